"""
Best third-placed teams: 12 group thirds in, 8 Round-of-32 qualifiers out.

Ranking: points, goal difference, goals for (higher is better on each,
compared lexicographically). Candidates level on all three keep their input
order (stable sort) and are flagged as a tiebreak conflict.

The cutoff is strictly positional: a tie straddling ranks 8 and 9 is not
flagged. Only ties inside the selected top 8 are reported.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence

from predictor.services.bracket_errors import InvalidInputError
from predictor.services.group_standings import GROUP_LETTERS, ThirdPlaceCandidate, fifa_sort_key

logger = logging.getLogger(__name__)

CANDIDATE_COUNT = 12
QUALIFIER_COUNT = 8


@dataclass(frozen=True)
class BestThirdPlaceSelection:
    team_id: int
    ranking_position: int  # 1 = best third
    points: int
    goal_difference: int
    goals_for: int
    from_group_id: str  # group letter A-L
    has_tiebreak_conflict: bool = False
    tiebreak_group: Optional[int] = None
    manual_tiebreak_order: Optional[int] = None


def rank_best_third_places(candidates: Sequence[ThirdPlaceCandidate]) -> List[BestThirdPlaceSelection]:
    """Rank the 12 third-placed rows and return the best 8.

    Pure and deterministic: the same input always yields the same selections,
    including tiebreak_group numbering.

    Raises:
        InvalidInputError: not exactly one candidate per group A-L
    """
    if len(candidates) != CANDIDATE_COUNT:
        raise InvalidInputError(
            f"Must provide exactly {CANDIDATE_COUNT} third place teams (one per group), got {len(candidates)}"
        )
    letters = sorted(c.group_id for c in candidates)
    if "".join(letters) != GROUP_LETTERS:
        raise InvalidInputError(f"Third place candidates must cover groups A-L once each, got {''.join(letters)}")

    qualifiers = sorted(candidates, key=fifa_sort_key)[:QUALIFIER_COUNT]

    conflict = [False] * len(qualifiers)
    cluster: List[Optional[int]] = [None] * len(qualifiers)
    counter = 1
    for i in range(1, len(qualifiers)):
        if fifa_sort_key(qualifiers[i]) != fifa_sort_key(qualifiers[i - 1]):
            continue
        if conflict[i - 1]:
            cluster[i] = cluster[i - 1]
        else:
            cluster[i] = counter
            conflict[i - 1] = True
            cluster[i - 1] = counter
            counter += 1
        conflict[i] = True

    if counter > 1:
        logger.debug("Best thirds: %d unresolved tiebreak cluster(s) in top %d", counter - 1, QUALIFIER_COUNT)

    return [
        BestThirdPlaceSelection(
            team_id=c.team_id,
            ranking_position=idx + 1,
            points=c.points,
            goal_difference=c.goal_difference,
            goals_for=c.goals_for,
            from_group_id=c.group_id,
            has_tiebreak_conflict=conflict[idx],
            tiebreak_group=cluster[idx],
            manual_tiebreak_order=None,
        )
        for idx, c in enumerate(qualifiers)
    ]
