"""
Knockout bracket error taxonomy.

All of these are terminal for the computation that raised them; none is
transient, so callers never retry. Routes translate them into HTTP errors.
"""


class BracketError(Exception):
    """Base class for bracket computation failures"""

    pass


class InvalidInputError(BracketError):
    """Wrong candidate/selection/fixture count or malformed placeholder"""

    pass


class IncompleteStandingsError(BracketError):
    """A referenced group is missing or does not have a full table"""

    pass


class UnresolvableAllocationError(BracketError):
    """No allocation-table mapping and no valid fallback candidate for a placeholder"""

    pass


class BracketIntegrityError(BracketError):
    """Internal invariant broken: a third-place selection was double-consumed or left unused"""

    pass
