"""
Round of 32 resolution: placeholders to concrete team ids.

Each Round-of-32 side is one of:
  "Group E winners"               → 1st of group E
  "Group B runners-up"            → 2nd of group B
  "Group A/B/C/D/F third place"   → one of the 8 best thirds, via the
                                    allocation table (or its fallback)

Fixtures are processed in ascending match-number order; third place slots
consume selections statefully, so order matters. Every one of the 8 best
thirds must end up in exactly one fixture.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Dict, List, Sequence, Set

from predictor.services.bracket_errors import (
    BracketIntegrityError,
    IncompleteStandingsError,
    InvalidInputError,
)
from predictor.services.group_standings import (
    GroupStanding,
    check_group_complete,
    group_rows_by_letter,
    order_group,
)
from predictor.services.knockout_phase import KnockoutPhase
from predictor.services.third_place_allocation import qualifying_combination, resolve_third_place_group
from predictor.services.third_place_ranker import QUALIFIER_COUNT, BestThirdPlaceSelection

logger = logging.getLogger(__name__)

KIND_WINNER = "WINNER"
KIND_RUNNER_UP = "RUNNER_UP"
KIND_THIRD = "THIRD"

_WINNER_RE = re.compile(r"^Group ([A-L]) winners?$")
_RUNNER_UP_RE = re.compile(r"^Group ([A-L]) runners?-up$")
_THIRD_RE = re.compile(r"^Group ([A-L](?:/[A-L])+) third place$")


@dataclass(frozen=True)
class FixtureTemplate:
    """A Round-of-32 match as scheduled, before its participants are known."""

    match_id: int
    match_number: int
    home_placeholder: str
    away_placeholder: str


@dataclass(frozen=True)
class ResolvedFixture:
    match_id: int
    home_team_id: int
    away_team_id: int


@dataclass(frozen=True)
class Placeholder:
    kind: str  # WINNER | RUNNER_UP | THIRD
    group: str  # "E" for direct slots, "A/B/C/D/F" for third place slots


def parse_placeholder(text: str) -> Placeholder:
    raw = (text or "").strip()
    m = _WINNER_RE.match(raw)
    if m:
        return Placeholder(KIND_WINNER, m.group(1))
    m = _RUNNER_UP_RE.match(raw)
    if m:
        return Placeholder(KIND_RUNNER_UP, m.group(1))
    m = _THIRD_RE.match(raw)
    if m:
        return Placeholder(KIND_THIRD, m.group(1))
    raise InvalidInputError(f"Unknown placeholder format: '{text}'")


class _BracketState:
    """Lookup tables plus the used-set for one resolution run."""

    def __init__(self, group_standings: Sequence[GroupStanding], best_thirds: Sequence[BestThirdPlaceSelection]):
        self.by_group = group_rows_by_letter(group_standings)
        self.thirds_by_group: Dict[str, BestThirdPlaceSelection] = {s.from_group_id: s for s in best_thirds}
        self.combination = qualifying_combination(list(best_thirds))
        self.consumed: Set[str] = set()

    def direct(self, group: str, place: int) -> int:
        rows = self.by_group.get(group)
        if not rows:
            raise IncompleteStandingsError(f"No standings found for group {group}")
        check_group_complete(group, rows)
        return order_group(rows)[place - 1].team_id

    def third(self, slot: str) -> int:
        group = resolve_third_place_group(self.combination, slot, self.thirds_by_group, self.consumed)
        # Table letters are taken as written, so a non-qualifier or a reused letter is a table defect
        selection = self.thirds_by_group.get(group)
        if selection is None:
            raise BracketIntegrityError(
                f"Slot {slot} allocated to group {group}, which has no qualified third (combination {self.combination})"
            )
        if group in self.consumed:
            raise BracketIntegrityError(f"Third place of group {group} assigned twice (slot {slot})")
        self.consumed.add(group)
        return selection.team_id

    def resolve(self, text: str) -> int:
        placeholder = parse_placeholder(text)
        if placeholder.kind == KIND_WINNER:
            return self.direct(placeholder.group, 1)
        if placeholder.kind == KIND_RUNNER_UP:
            return self.direct(placeholder.group, 2)
        return self.third(placeholder.group)


def _check_best_thirds(best_thirds: Sequence[BestThirdPlaceSelection]) -> None:
    if len(best_thirds) != QUALIFIER_COUNT:
        raise InvalidInputError(f"Expected {QUALIFIER_COUNT} best third places, got {len(best_thirds)}")
    positions = sorted(s.ranking_position for s in best_thirds)
    if positions != list(range(1, QUALIFIER_COUNT + 1)):
        raise InvalidInputError(f"Best third ranking positions must be 1..{QUALIFIER_COUNT}, got {positions}")
    groups = {s.from_group_id for s in best_thirds}
    if len(groups) != QUALIFIER_COUNT:
        raise InvalidInputError("Best third places must come from distinct groups")


def resolve_round_of_32(
    group_standings: Sequence[GroupStanding],
    best_thirds: Sequence[BestThirdPlaceSelection],
    fixtures: Sequence[FixtureTemplate],
) -> List[ResolvedFixture]:
    """Resolve the 16 Round-of-32 fixtures to concrete team ids.

    Returns fixtures in ascending match-number order.

    Raises:
        InvalidInputError: wrong fixture/selection counts or unknown placeholder
        IncompleteStandingsError: a referenced group has no full table
        UnresolvableAllocationError: a third place slot cannot be filled
        BracketIntegrityError: a best third was used twice or left unused
    """
    expected = KnockoutPhase.ROUND_OF_32.expected_match_count()
    if len(fixtures) != expected:
        raise InvalidInputError(f"Expected {expected} Round of 32 fixtures, got {len(fixtures)}")
    _check_best_thirds(best_thirds)

    state = _BracketState(group_standings, best_thirds)
    resolved: List[ResolvedFixture] = []

    for fixture in sorted(fixtures, key=lambda f: f.match_number):
        home = state.resolve(fixture.home_placeholder)
        away = state.resolve(fixture.away_placeholder)
        resolved.append(ResolvedFixture(match_id=fixture.match_id, home_team_id=home, away_team_id=away))

    leftover = sorted(set(state.thirds_by_group) - state.consumed)
    if leftover:
        raise BracketIntegrityError(f"Best third places never assigned to a fixture: groups {', '.join(leftover)}")

    logger.debug("Round of 32 resolved for combination %s", state.combination)
    return resolved
