"""
Knockout prediction rules.

A knockout result must name a winner:
  - decisive after 90'       → no extra time, no penalties
  - level after 90'          → extra time scores required (cumulative)
  - level after extra time   → penalties winner ("home" | "away") required

A phase can only be predicted once the previous one is complete: every one
of its expected matches predicted with a winner. The Round of 32 instead
requires the bracket to have been resolved from the group tables.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Optional, Sequence

from predictor.services.knockout_phase import KnockoutPhase

SIDE_HOME = "home"
SIDE_AWAY = "away"


class KnockoutValidationError(Exception):
    """Raised when a knockout prediction breaks a result or phase rule"""

    pass


@dataclass(frozen=True)
class KnockoutResult:
    home_score: int
    away_score: int
    home_score_et: Optional[int] = None
    away_score_et: Optional[int] = None
    penalties_winner: Optional[str] = None


def validate_match_result(result: KnockoutResult) -> None:
    if result.home_score < 0 or result.away_score < 0:
        raise KnockoutValidationError("Scores cannot be negative")
    if (result.home_score_et is not None and result.home_score_et < 0) or (
        result.away_score_et is not None and result.away_score_et < 0
    ):
        raise KnockoutValidationError("Extra time scores cannot be negative")

    if result.home_score != result.away_score:
        if result.home_score_et is not None or result.away_score_et is not None:
            raise KnockoutValidationError(
                "Extra time scores should not be provided when there is a winner in regular time"
            )
        if result.penalties_winner is not None:
            raise KnockoutValidationError(
                "Penalties winner should not be provided when there is a winner in regular time"
            )
        return

    if result.home_score_et is None or result.away_score_et is None:
        raise KnockoutValidationError("Extra time scores are required when regular time ends in a draw")
    if result.home_score_et < result.home_score or result.away_score_et < result.away_score:
        raise KnockoutValidationError("Extra time scores must be greater than or equal to regular time scores")

    if result.home_score_et != result.away_score_et:
        if result.penalties_winner is not None:
            raise KnockoutValidationError(
                "Penalties winner should not be provided when there is a winner in extra time"
            )
        return

    if result.penalties_winner is None:
        raise KnockoutValidationError("Penalties winner is required when extra time ends in a draw")
    if result.penalties_winner not in (SIDE_HOME, SIDE_AWAY):
        raise KnockoutValidationError('Penalties winner must be either "home" or "away"')


def winning_side(result: KnockoutResult) -> Optional[str]:
    """'home' / 'away', or None when the result has no winner."""
    if result.penalties_winner in (SIDE_HOME, SIDE_AWAY):
        return result.penalties_winner
    if result.home_score_et is not None and result.away_score_et is not None:
        if result.home_score_et > result.away_score_et:
            return SIDE_HOME
        if result.away_score_et > result.home_score_et:
            return SIDE_AWAY
        return None
    if result.home_score > result.away_score:
        return SIDE_HOME
    if result.away_score > result.home_score:
        return SIDE_AWAY
    return None


def determine_winner(
    home_team_id: Optional[int], away_team_id: Optional[int], result: KnockoutResult
) -> Optional[int]:
    if home_team_id is None or away_team_id is None:
        return None
    side = winning_side(result)
    if side == SIDE_HOME:
        return home_team_id
    if side == SIDE_AWAY:
        return away_team_id
    return None


def validate_phase_can_be_predicted(
    phase: KnockoutPhase,
    previous_phase_results: Sequence[KnockoutResult],
    bracket_resolved: bool,
) -> None:
    """Gate entry of predictions for a knockout phase.

    Raises:
        KnockoutValidationError: the bracket or the previous phase is not complete
    """
    if phase.is_first():
        if not bracket_resolved:
            raise KnockoutValidationError(
                f"Cannot predict {phase.value}. The Round of 32 bracket has not been resolved from the group stage"
            )
        return

    previous = phase.previous()
    expected = previous.expected_match_count()
    if len(previous_phase_results) != expected:
        raise KnockoutValidationError(
            f"Cannot predict {phase.value}. Previous phase {previous.value} is not complete. "
            f"Expected {expected} predictions, found {len(previous_phase_results)}"
        )
    if any(winning_side(r) is None for r in previous_phase_results):
        raise KnockoutValidationError(
            f"Cannot predict {phase.value}. Some matches in {previous.value} "
            f"have no winner defined (draws without resolution)"
        )


def previous_phase_winners(
    results_by_match: Dict[int, KnockoutResult],
    teams_by_match: Dict[int, tuple],
) -> Dict[int, int]:
    """Map match number → predicted winner team id, skipping matches without one."""
    winners: Dict[int, int] = {}
    for match_number, result in results_by_match.items():
        home, away = teams_by_match.get(match_number, (None, None))
        winner = determine_winner(home, away, result)
        if winner is not None:
            winners[match_number] = winner
    return winners
