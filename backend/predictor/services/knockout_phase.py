"""
Knockout phase ordering for the 2026 World Cup bracket.

ROUND_OF_32 -> ROUND_OF_16 -> QUARTER_FINALS -> SEMI_FINALS -> FINAL
"""

from enum import Enum
from typing import List, Optional


class KnockoutPhase(str, Enum):
    ROUND_OF_32 = "ROUND_OF_32"
    ROUND_OF_16 = "ROUND_OF_16"
    QUARTER_FINALS = "QUARTER_FINALS"
    SEMI_FINALS = "SEMI_FINALS"
    FINAL = "FINAL"

    @property
    def order(self) -> int:
        """1-based position in the knockout sequence"""
        return _PHASE_SEQUENCE.index(self) + 1

    def previous(self) -> Optional["KnockoutPhase"]:
        idx = _PHASE_SEQUENCE.index(self)
        return _PHASE_SEQUENCE[idx - 1] if idx > 0 else None

    def next(self) -> Optional["KnockoutPhase"]:
        idx = _PHASE_SEQUENCE.index(self)
        return _PHASE_SEQUENCE[idx + 1] if idx + 1 < len(_PHASE_SEQUENCE) else None

    def expected_match_count(self) -> int:
        return _EXPECTED_MATCH_COUNTS[self.order - 1]

    def is_first(self) -> bool:
        return self is KnockoutPhase.ROUND_OF_32

    def is_final(self) -> bool:
        return self is KnockoutPhase.FINAL

    def is_before(self, other: "KnockoutPhase") -> bool:
        return self.order < other.order

    @classmethod
    def is_valid(cls, value: str) -> bool:
        return value in cls._value2member_map_

    @classmethod
    def all_phases(cls) -> List["KnockoutPhase"]:
        return list(_PHASE_SEQUENCE)


_PHASE_SEQUENCE = (
    KnockoutPhase.ROUND_OF_32,
    KnockoutPhase.ROUND_OF_16,
    KnockoutPhase.QUARTER_FINALS,
    KnockoutPhase.SEMI_FINALS,
    KnockoutPhase.FINAL,
)

# Parallel to _PHASE_SEQUENCE
_EXPECTED_MATCH_COUNTS = (16, 8, 4, 2, 1)
