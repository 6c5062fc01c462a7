"""
Third-place allocation for the 2026 Round of 32.

Which group letters placed one of the 8 best thirds decides which third
faces which group winner. The combination key is the ascending
concatenation of those 8 letters (e.g. "ABCDEFGH"); each Round-of-32 third
place slot is named by its slash-joined candidate letters (e.g. "A/B/C/D/F").

Only a handful of the C(12,8) = 495 combinations are enumerated. For any
other combination (or a slot missing from an entry) the slot is filled by
BEST_RANKING_AVAILABLE: among the slot's candidate letters that qualified
and are not yet used, take the best-ranked third. When every qualified
candidate is already used, the best-ranked unused qualifier of any group
fills the slot.
"""

from __future__ import annotations

import logging
import re
from types import MappingProxyType
from typing import AbstractSet, List, Mapping, Optional

from predictor.services.bracket_errors import InvalidInputError, UnresolvableAllocationError
from predictor.services.third_place_ranker import BestThirdPlaceSelection

logger = logging.getLogger(__name__)

DEFAULT_ALLOCATION_STRATEGY = "BEST_RANKING_AVAILABLE"

# The 8 third place slots of the Round of 32, in match-number order (74, 77, 79, 80, 81, 82, 85, 87)
THIRD_PLACE_SLOTS = (
    "A/B/C/D/F",
    "C/D/F/G/H",
    "C/E/F/H/I",
    "E/H/I/J/K",
    "B/E/F/I/J",
    "A/E/H/I/J",
    "E/F/G/I/J",
    "D/E/I/J/L",
)

_SLOT_RE = re.compile(r"^[A-L](?:/[A-L])+$")


def _entry(*groups: str) -> Mapping[str, str]:
    return MappingProxyType(dict(zip(THIRD_PLACE_SLOTS, groups)))


ALLOCATION_TABLE: Mapping[str, Mapping[str, str]] = MappingProxyType(
    {
        "ABCDEFGH": _entry("D", "F", "C", "E", "B", "A", "G", "H"),
        "ABCDEFIJ": _entry("D", "F", "C", "J", "B", "A", "I", "E"),
        "ABCDFIJL": _entry("D", "C", "I", "J", "B", "A", "L", "F"),
        "ABCEFGHI": _entry("C", "G", "F", "E", "B", "A", "I", "H"),
        "BCDEFGHI": _entry("D", "F", "C", "E", "B", "I", "G", "H"),
    }
)


def qualifying_combination(selections: List[BestThirdPlaceSelection]) -> str:
    """Allocation-table key for a set of best-third selections."""
    return "".join(sorted(s.from_group_id for s in selections))


def parse_slot(placeholder_expression: str) -> List[str]:
    """Split "A/B/C/D/F" into its candidate letters (ascending, distinct)."""
    if not _SLOT_RE.match(placeholder_expression or ""):
        raise InvalidInputError(f"Invalid third place expression: '{placeholder_expression}'")
    letters = placeholder_expression.split("/")
    if letters != sorted(set(letters)):
        raise InvalidInputError(f"Third place expression must list distinct letters in order: '{placeholder_expression}'")
    return letters


def lookup_allocation(qualifying_combination: str, placeholder_expression: str) -> Optional[str]:
    """Exact allocation-table lookup.

    Returns the assigned group letter, or None when the combination (or the
    slot within it) is not enumerated and the fallback must be applied.
    """
    entry = ALLOCATION_TABLE.get(qualifying_combination)
    if entry is None:
        return None
    return entry.get(placeholder_expression)


def best_ranking_available(
    placeholder_expression: str,
    selections_by_group: Mapping[str, BestThirdPlaceSelection],
    consumed: AbstractSet[str],
) -> str:
    """Pick the best-ranked unused qualified third among the slot's candidate letters.

    When every qualified candidate is already used, the best-ranked unused
    qualifier from any group is taken instead.

    Raises:
        UnresolvableAllocationError: none of the candidate letters qualified,
            or no qualifier at all is left unused
    """
    letters = parse_slot(placeholder_expression)
    qualified = [g for g in letters if g in selections_by_group]
    if not qualified:
        raise UnresolvableAllocationError(
            f"No qualified third place among {placeholder_expression} "
            f"(qualified groups: {''.join(sorted(selections_by_group))})"
        )
    available = [g for g in qualified if g not in consumed]
    if not available:
        available = [g for g in selections_by_group if g not in consumed]
        if not available:
            raise UnresolvableAllocationError(
                f"No third place available for {placeholder_expression}. "
                f"Already used: {','.join(sorted(consumed))}"
            )
        logger.debug(
            "%s: candidates %s already used, taking best-ranked remaining third",
            placeholder_expression,
            "".join(qualified),
        )
    return min(available, key=lambda g: selections_by_group[g].ranking_position)


def resolve_third_place_group(
    qualifying_combination: str,
    placeholder_expression: str,
    selections_by_group: Mapping[str, BestThirdPlaceSelection],
    consumed: AbstractSet[str],
) -> str:
    """Group letter whose third fills the given slot.

    Uses the allocation table when the combination is enumerated, else
    DEFAULT_ALLOCATION_STRATEGY.
    """
    parse_slot(placeholder_expression)
    assigned = lookup_allocation(qualifying_combination, placeholder_expression)
    if assigned is not None:
        return assigned

    assigned = best_ranking_available(placeholder_expression, selections_by_group, consumed)
    logger.debug(
        "%s: combination %s not in allocation table, %s picked group %s",
        placeholder_expression,
        qualifying_combination,
        DEFAULT_ALLOCATION_STRATEGY,
        assigned,
    )
    return assigned
