"""
Group table model for the 2026 World Cup group stage.

12 groups (A-L) of 4 teams, 6 matches per group. FIFA ordering in v1:
  1. points (3 win / 1 draw / 0 loss)
  2. goal difference
  3. goals for
Teams level on all three are flagged as a tiebreak conflict and left for
manual resolution (manual_tiebreak_order).
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, replace
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from predictor.services.bracket_errors import IncompleteStandingsError

logger = logging.getLogger(__name__)

GROUP_LETTERS = "ABCDEFGHIJKL"
TEAMS_PER_GROUP = 4
MATCHES_PER_GROUP = 6

POINTS_WIN = 3
POINTS_DRAW = 1


class StandingValidationError(ValueError):
    """A standing row violates a table invariant"""

    pass


@dataclass(frozen=True)
class GroupStanding:
    """One team's row in one group's predicted final table."""

    group_id: str  # group letter A-L
    team_id: int
    position: int
    points: int
    played: int
    wins: int
    draws: int
    losses: int
    goals_for: int
    goals_against: int
    goal_difference: int
    has_tiebreak_conflict: bool = False
    tiebreak_group: Optional[int] = None
    manual_tiebreak_order: Optional[int] = None


# A third-placed row, as consumed by the best-third ranking
ThirdPlaceCandidate = GroupStanding


@dataclass(frozen=True)
class MatchResult:
    home_team_id: int
    away_team_id: int
    home_score: int
    away_score: int


def make_group_standing(
    group_id: str,
    team_id: int,
    position: int,
    points: int,
    wins: int,
    draws: int,
    losses: int,
    goals_for: int,
    goals_against: int,
    goal_difference: Optional[int] = None,
    played: Optional[int] = None,
    has_tiebreak_conflict: bool = False,
    tiebreak_group: Optional[int] = None,
    manual_tiebreak_order: Optional[int] = None,
) -> GroupStanding:
    """Build a GroupStanding, enforcing the table invariants.

    played and goal_difference are derived when omitted.

    Raises:
        StandingValidationError: on any invariant violation
    """
    if played is None:
        played = wins + draws + losses
    if goal_difference is None:
        goal_difference = goals_for - goals_against

    if not group_id or group_id not in GROUP_LETTERS:
        raise StandingValidationError(f"Invalid group '{group_id}'")
    if position < 1 or position > TEAMS_PER_GROUP:
        raise StandingValidationError(f"Position must be between 1 and {TEAMS_PER_GROUP}, got {position}")
    if points < 0:
        raise StandingValidationError("Points cannot be negative")
    if played < 0 or played > TEAMS_PER_GROUP - 1:
        raise StandingValidationError(f"Played matches must be between 0 and {TEAMS_PER_GROUP - 1}, got {played}")
    if wins < 0 or draws < 0 or losses < 0:
        raise StandingValidationError("Wins, draws and losses cannot be negative")
    if wins + draws + losses != played:
        raise StandingValidationError("Wins + draws + losses must equal played matches")
    if goals_for < 0 or goals_against < 0:
        raise StandingValidationError("Goals cannot be negative")
    if goal_difference != goals_for - goals_against:
        raise StandingValidationError("Goal difference must be goals_for - goals_against")
    expected_points = wins * POINTS_WIN + draws * POINTS_DRAW
    if points != expected_points:
        raise StandingValidationError(
            f"Points mismatch: expected {expected_points} ({wins}W * {POINTS_WIN} + {draws}D) but got {points}"
        )
    if has_tiebreak_conflict and tiebreak_group is None:
        raise StandingValidationError("Tiebreak conflict must have a tiebreak_group assigned")

    return GroupStanding(
        group_id=group_id,
        team_id=team_id,
        position=position,
        points=points,
        played=played,
        wins=wins,
        draws=draws,
        losses=losses,
        goals_for=goals_for,
        goals_against=goals_against,
        goal_difference=goal_difference,
        has_tiebreak_conflict=has_tiebreak_conflict,
        tiebreak_group=tiebreak_group,
        manual_tiebreak_order=manual_tiebreak_order,
    )


def fifa_sort_key(row) -> Tuple[int, int, int]:
    """Ascending sort key: higher points, then GD, then GF ranks first.

    Works for any object exposing points / goal_difference / goals_for.
    """
    return (-row.points, -row.goal_difference, -row.goals_for)


def calculate_group_standings(
    group_id: str, team_ids: Sequence[int], results: Sequence[MatchResult]
) -> List[GroupStanding]:
    """Compute a group's table from its 6 match results.

    Teams level on points/GD/GF keep their order in team_ids (stable sort)
    and are flagged with a shared tiebreak_group numbered from 1.
    """
    if len(team_ids) != TEAMS_PER_GROUP or len(set(team_ids)) != TEAMS_PER_GROUP:
        raise StandingValidationError(f"Group must have exactly {TEAMS_PER_GROUP} distinct teams, got {len(team_ids)}")
    if len(results) != MATCHES_PER_GROUP:
        raise StandingValidationError(f"Group stage must have exactly {MATCHES_PER_GROUP} matches, got {len(results)}")

    stats: Dict[int, Dict[str, int]] = {
        tid: {"points": 0, "wins": 0, "draws": 0, "losses": 0, "gf": 0, "ga": 0} for tid in team_ids
    }

    for r in results:
        home = stats.get(r.home_team_id)
        away = stats.get(r.away_team_id)
        if home is None or away is None:
            raise StandingValidationError(
                f"Match contains teams not in the group: {r.home_team_id}, {r.away_team_id}"
            )
        if r.home_score < 0 or r.away_score < 0:
            raise StandingValidationError("Scores cannot be negative")

        home["gf"] += r.home_score
        home["ga"] += r.away_score
        away["gf"] += r.away_score
        away["ga"] += r.home_score

        if r.home_score > r.away_score:
            home["wins"] += 1
            home["points"] += POINTS_WIN
            away["losses"] += 1
        elif r.home_score < r.away_score:
            away["wins"] += 1
            away["points"] += POINTS_WIN
            home["losses"] += 1
        else:
            home["draws"] += 1
            away["draws"] += 1
            home["points"] += POINTS_DRAW
            away["points"] += POINTS_DRAW

    rows = [
        make_group_standing(
            group_id=group_id,
            team_id=tid,
            position=1,
            points=s["points"],
            wins=s["wins"],
            draws=s["draws"],
            losses=s["losses"],
            goals_for=s["gf"],
            goals_against=s["ga"],
        )
        for tid, s in stats.items()
    ]
    rows.sort(key=fifa_sort_key)
    rows = [replace(row, position=idx + 1) for idx, row in enumerate(rows)]
    return _flag_tiebreak_conflicts(rows)


def _flag_tiebreak_conflicts(rows: List[GroupStanding]) -> List[GroupStanding]:
    """Mark clusters of rows level on every ranking criterion."""
    clusters: Dict[Tuple[int, int, int], List[int]] = defaultdict(list)
    for idx, row in enumerate(rows):
        clusters[fifa_sort_key(row)].append(idx)

    flagged = list(rows)
    counter = 1
    # rows are sorted, so iterating keys in first-seen order numbers clusters top-down
    for key, members in clusters.items():
        if len(members) < 2:
            continue
        for idx in members:
            flagged[idx] = replace(flagged[idx], has_tiebreak_conflict=True, tiebreak_group=counter)
        logger.debug("Group %s: tiebreak cluster %d at %s", rows[0].group_id, counter, key)
        counter += 1
    return flagged


def validate_standings(provided: Sequence[GroupStanding], calculated: Sequence[GroupStanding]) -> List[str]:
    """Compare a client-submitted table against the calculated one.

    Returns a list of error strings; empty means valid. Positions may only
    differ from the calculated ones inside a tiebreak cluster.
    """
    errors: List[str] = []

    if len(provided) != TEAMS_PER_GROUP:
        errors.append(f"Must have exactly {TEAMS_PER_GROUP} teams, got {len(provided)}")
        return errors

    positions = sorted(p.position for p in provided)
    if positions != list(range(1, TEAMS_PER_GROUP + 1)):
        errors.append(f"Positions must be [1, 2, 3, 4], got {positions}")
        return errors

    by_team = {c.team_id: c for c in calculated}
    for p in provided:
        c = by_team.get(p.team_id)
        if c is None:
            errors.append(f"Team {p.team_id} not found in calculated standings")
            continue
        for attr in ("points", "played", "wins", "draws", "losses", "goals_for", "goals_against", "goal_difference"):
            expected = getattr(c, attr)
            actual = getattr(p, attr)
            if expected != actual:
                errors.append(f"Team {p.team_id}: {attr} mismatch (provided={actual}, calculated={expected})")
        if p.position != c.position and not c.has_tiebreak_conflict:
            errors.append(
                f"Team {p.team_id}: position {p.position} differs from calculated {c.position} without a tie"
            )

    return errors


def order_group(rows: Iterable[GroupStanding]) -> List[GroupStanding]:
    """Final order of one group: manual tiebreak order inside a resolved tie, else position."""
    rows = list(rows)
    cluster_start: Dict[int, int] = {}
    for row in rows:
        if row.tiebreak_group is not None:
            cluster_start[row.tiebreak_group] = min(cluster_start.get(row.tiebreak_group, row.position), row.position)

    def key(row: GroupStanding) -> Tuple[int, int]:
        if row.tiebreak_group is not None and row.manual_tiebreak_order is not None:
            return (cluster_start[row.tiebreak_group], row.manual_tiebreak_order)
        return (row.position, 0)

    return sorted(rows, key=key)


def group_rows_by_letter(standings: Iterable[GroupStanding]) -> Dict[str, List[GroupStanding]]:
    by_group: Dict[str, List[GroupStanding]] = defaultdict(list)
    for row in standings:
        by_group[row.group_id].append(row)
    return dict(by_group)


def check_group_complete(group_id: str, rows: Sequence[GroupStanding]) -> None:
    if len(rows) != TEAMS_PER_GROUP:
        raise IncompleteStandingsError(
            f"Group {group_id} has {len(rows)} standings, expected {TEAMS_PER_GROUP}"
        )
    positions = sorted(r.position for r in rows)
    if positions != list(range(1, TEAMS_PER_GROUP + 1)):
        raise IncompleteStandingsError(f"Group {group_id} positions are {positions}, expected [1, 2, 3, 4]")


def check_complete_groups(standings: Iterable[GroupStanding]) -> Dict[str, List[GroupStanding]]:
    """Require all 12 groups with a full table. Returns rows grouped by letter."""
    by_group = group_rows_by_letter(standings)
    missing = [g for g in GROUP_LETTERS if g not in by_group]
    if missing:
        raise IncompleteStandingsError(f"Missing standings for groups: {', '.join(missing)}")
    for letter in GROUP_LETTERS:
        check_group_complete(letter, by_group[letter])
    return by_group


def third_place_candidates(standings: Iterable[GroupStanding]) -> List[ThirdPlaceCandidate]:
    """The third-placed row of every group, in group-letter order."""
    by_group = check_complete_groups(standings)
    return [order_group(by_group[letter])[2] for letter in GROUP_LETTERS]
