"""
Prediction orchestration for one user's World Cup prediction.

Flow:
  group results saved → group table recalculated (replace) →
  12th table present  → best thirds re-ranked (replace-all) →
  bracket resolve     → 16 R32 sides written in one commit →
  knockout phases     → predicted in order, each gated on the previous one

Every recomputation deletes the prior rows for the prediction and inserts
the new ones inside one commit; a partially rebuilt bracket is never visible.
Re-running any step with unchanged inputs produces the same rows.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

from sqlmodel import Session, select

from predictor.models.best_third_place_prediction import BestThirdPlacePrediction
from predictor.models.group import Group
from predictor.models.group_standing_prediction import GroupStandingPrediction
from predictor.models.match import PHASE_GROUP, Match
from predictor.models.match_prediction import MatchPrediction
from predictor.models.prediction import Prediction
from predictor.services.bracket_errors import BracketIntegrityError, IncompleteStandingsError
from predictor.services.bracket_resolver import FixtureTemplate, ResolvedFixture, resolve_round_of_32
from predictor.services.group_standings import (
    GROUP_LETTERS,
    MATCHES_PER_GROUP,
    TEAMS_PER_GROUP,
    GroupStanding,
    MatchResult,
    StandingValidationError,
    calculate_group_standings,
    check_complete_groups,
    third_place_candidates,
    validate_standings,
)
from predictor.services.knockout_phase import KnockoutPhase
from predictor.services.knockout_validator import (
    KnockoutResult,
    KnockoutValidationError,
    determine_winner,
    previous_phase_winners,
    validate_match_result,
    validate_phase_can_be_predicted,
)
from predictor.services.third_place_allocation import ALLOCATION_TABLE, qualifying_combination
from predictor.services.third_place_ranker import BestThirdPlaceSelection, rank_best_third_places

logger = logging.getLogger(__name__)


class PredictionServiceError(Exception):
    """Base exception for prediction orchestration errors"""

    pass


class PredictionNotFoundError(PredictionServiceError):
    pass


class PredictionLockedError(PredictionServiceError):
    pass


class PredictionInputError(PredictionServiceError):
    """Request data does not match the tournament reference data"""

    pass


@dataclass
class GroupScore:
    match_id: int
    home_score: int
    away_score: int


@dataclass
class KnockoutScore:
    match_id: int
    result: KnockoutResult


# ─── Lookups ──────────────────────────────────────────────────────────────


def get_prediction_or_raise(session: Session, prediction_id: int) -> Prediction:
    prediction = session.get(Prediction, prediction_id)
    if not prediction:
        raise PredictionNotFoundError(f"Prediction {prediction_id} not found")
    return prediction


def get_editable_prediction(session: Session, prediction_id: int) -> Prediction:
    prediction = get_prediction_or_raise(session, prediction_id)
    if not prediction.can_be_edited():
        raise PredictionLockedError("Predictions are locked. The deadline has passed.")
    return prediction


def group_letters_by_id(session: Session) -> Dict[int, str]:
    return {g.id: g.name for g in session.exec(select(Group)).all()}


def load_group_standings(session: Session, prediction_id: int) -> List[GroupStanding]:
    letters = group_letters_by_id(session)
    rows = session.exec(
        select(GroupStandingPrediction)
        .where(GroupStandingPrediction.prediction_id == prediction_id)
        .order_by(GroupStandingPrediction.group_id, GroupStandingPrediction.position)
    ).all()
    return [row.to_domain(letters[row.group_id]) for row in rows]


def load_best_third_places(session: Session, prediction_id: int) -> List[BestThirdPlaceSelection]:
    letters = group_letters_by_id(session)
    rows = session.exec(
        select(BestThirdPlacePrediction)
        .where(BestThirdPlacePrediction.prediction_id == prediction_id)
        .order_by(BestThirdPlacePrediction.ranking_position)
    ).all()
    return [row.to_domain(letters[row.from_group_id]) for row in rows]


def load_round_of_32_templates(session: Session) -> List[FixtureTemplate]:
    matches = session.exec(
        select(Match).where(Match.phase == KnockoutPhase.ROUND_OF_32.value).order_by(Match.match_number)
    ).all()
    return [
        FixtureTemplate(
            match_id=m.id,
            match_number=m.match_number,
            home_placeholder=m.home_placeholder or "",
            away_placeholder=m.away_placeholder or "",
        )
        for m in matches
    ]


def _completed_group_count(session: Session, prediction_id: int) -> int:
    rows = session.exec(
        select(GroupStandingPrediction.group_id).where(GroupStandingPrediction.prediction_id == prediction_id)
    ).all()
    counts: Dict[int, int] = {}
    for group_id in rows:
        counts[group_id] = counts.get(group_id, 0) + 1
    return sum(1 for c in counts.values() if c == TEAMS_PER_GROUP)


def _get_or_create_match_prediction(session: Session, prediction_id: int, match_id: int) -> MatchPrediction:
    mp = session.exec(
        select(MatchPrediction).where(
            MatchPrediction.prediction_id == prediction_id,
            MatchPrediction.match_id == match_id,
        )
    ).first()
    if mp is None:
        mp = MatchPrediction(prediction_id=prediction_id, match_id=match_id)
    return mp


# ─── Group stage ──────────────────────────────────────────────────────────


def save_group_predictions(
    session: Session,
    prediction_id: int,
    group_letter: str,
    scores: Sequence[GroupScore],
    provided_standings: Optional[Sequence[GroupStanding]] = None,
) -> Dict[str, Any]:
    """Save a group's 6 scores and replace its predicted table.

    When provided_standings is given (client-ordered table, possibly with
    manual tiebreak order) it must agree with the calculated table and is
    stored instead of it.

    Returns:
        Dict with group, standings, groups_completed, total_groups_completed
        and best_third_places (None until all 12 groups are saved)
    """
    prediction = get_editable_prediction(session, prediction_id)

    group = session.exec(select(Group).where(Group.name == group_letter)).first()
    if not group:
        raise PredictionNotFoundError(f"Group {group_letter} not found")

    matches = session.exec(
        select(Match).where(Match.group_id == group.id, Match.phase == PHASE_GROUP).order_by(Match.match_number)
    ).all()
    if len(matches) != MATCHES_PER_GROUP:
        raise PredictionInputError(
            f"Group {group_letter} must have exactly {MATCHES_PER_GROUP} matches, found {len(matches)}"
        )

    matches_by_id = {m.id: m for m in matches}
    submitted_ids = [s.match_id for s in scores]
    if len(scores) != MATCHES_PER_GROUP or set(submitted_ids) != set(matches_by_id):
        raise PredictionInputError(f"Scores must cover exactly the {MATCHES_PER_GROUP} matches of group {group_letter}")

    team_ids: List[int] = []
    for m in matches:
        if m.home_team_id is None or m.away_team_id is None:
            raise PredictionInputError(f"Match {m.match_number} does not have valid team ids")
        for tid in (m.home_team_id, m.away_team_id):
            if tid not in team_ids:
                team_ids.append(tid)

    results = [
        MatchResult(
            home_team_id=matches_by_id[s.match_id].home_team_id,
            away_team_id=matches_by_id[s.match_id].away_team_id,
            home_score=s.home_score,
            away_score=s.away_score,
        )
        for s in scores
    ]

    try:
        calculated = calculate_group_standings(group_letter, team_ids, results)
    except StandingValidationError as exc:
        raise PredictionInputError(str(exc)) from exc

    standings = calculated
    if provided_standings is not None:
        errors = validate_standings(provided_standings, calculated)
        if errors:
            raise PredictionInputError("Group standings validation failed: " + "; ".join(errors))
        standings = sorted(provided_standings, key=lambda r: r.position)

    for s in scores:
        mp = _get_or_create_match_prediction(session, prediction.id, s.match_id)
        mp.home_score = s.home_score
        mp.away_score = s.away_score
        session.add(mp)

    old_rows = session.exec(
        select(GroupStandingPrediction).where(
            GroupStandingPrediction.prediction_id == prediction.id,
            GroupStandingPrediction.group_id == group.id,
        )
    ).all()
    for row in old_rows:
        session.delete(row)
    session.flush()

    for row in standings:
        session.add(GroupStandingPrediction.from_domain(prediction.id, group.id, row))
    session.flush()

    total_completed = _completed_group_count(session, prediction.id)
    prediction.groups_completed = total_completed == len(GROUP_LETTERS)
    # Any table change invalidates the resolved bracket
    prediction.bracket_resolved = False
    prediction.knockouts_completed = False

    best_thirds: Optional[List[BestThirdPlaceSelection]] = None
    if prediction.groups_completed:
        best_thirds = recompute_best_third_places(session, prediction)

    session.add(prediction)
    session.commit()

    logger.info(
        "Prediction %d: group %s saved (%d/%d groups complete)",
        prediction.id,
        group_letter,
        total_completed,
        len(GROUP_LETTERS),
    )

    return {
        "group": group_letter,
        "standings": standings,
        "groups_completed": prediction.groups_completed,
        "total_groups_completed": total_completed,
        "best_third_places": best_thirds,
    }


def recompute_best_third_places(session: Session, prediction: Prediction) -> List[BestThirdPlaceSelection]:
    """Re-rank the 12 thirds and replace the stored best 8. Flushes, does not commit."""
    standings = load_group_standings(session, prediction.id)
    selections = rank_best_third_places(third_place_candidates(standings))

    group_ids = {letter: gid for gid, letter in group_letters_by_id(session).items()}

    old_rows = session.exec(
        select(BestThirdPlacePrediction).where(BestThirdPlacePrediction.prediction_id == prediction.id)
    ).all()
    for row in old_rows:
        session.delete(row)
    session.flush()

    for selection in selections:
        session.add(
            BestThirdPlacePrediction.from_domain(prediction.id, group_ids[selection.from_group_id], selection)
        )
    session.flush()

    logger.info(
        "Prediction %d: best thirds recomputed from groups %s",
        prediction.id,
        "".join(sorted(s.from_group_id for s in selections)),
    )
    return selections


# ─── Round of 32 ──────────────────────────────────────────────────────────


def resolve_round_of_32_for_prediction(session: Session, prediction_id: int) -> List[ResolvedFixture]:
    """Resolve the prediction's R32 sides and write them in one batch.

    Sides that change clear the fixture's previous score and every later
    prediction that fixture feeds.
    """
    prediction = get_editable_prediction(session, prediction_id)
    if not prediction.groups_completed:
        raise IncompleteStandingsError("Complete all 12 groups before resolving the Round of 32")

    standings = load_group_standings(session, prediction.id)
    best_thirds = load_best_third_places(session, prediction.id)
    fixtures = load_round_of_32_templates(session)
    check_complete_groups(standings)

    combination = qualifying_combination(best_thirds)
    if combination not in ALLOCATION_TABLE:
        logger.warning(
            "Prediction %d: combination %s not in allocation table, using best ranking fallback",
            prediction.id,
            combination,
        )

    try:
        resolved = resolve_round_of_32(standings, best_thirds, fixtures)
    except BracketIntegrityError:
        logger.error("Prediction %d: bracket integrity check failed", prediction.id)
        raise

    number_by_id = {f.match_id: f.match_number for f in fixtures}
    changed: List[int] = []
    for fixture in resolved:
        mp = _get_or_create_match_prediction(session, prediction.id, fixture.match_id)
        if (mp.home_team_id, mp.away_team_id) != (fixture.home_team_id, fixture.away_team_id):
            _clear_result(mp)
            changed.append(number_by_id[fixture.match_id])
        mp.home_team_id = fixture.home_team_id
        mp.away_team_id = fixture.away_team_id
        session.add(mp)

    cleared = _clear_downstream(session, prediction.id, changed)
    if cleared:
        logger.info(
            "Prediction %d: %d later knockout prediction(s) cleared after Round of 32 changes",
            prediction.id,
            cleared,
        )

    prediction.bracket_resolved = True
    prediction.knockouts_completed = False
    session.add(prediction)
    session.commit()

    logger.info("Prediction %d: Round of 32 resolved (%d fixtures)", prediction.id, len(resolved))
    return resolved


def get_knockout_predictions(session: Session, prediction_id: int, phase: KnockoutPhase) -> List[Dict[str, Any]]:
    """Fixtures of a knockout phase with this prediction's sides and scores, by match number."""
    get_prediction_or_raise(session, prediction_id)
    matches = session.exec(select(Match).where(Match.phase == phase.value).order_by(Match.match_number)).all()
    predicted = {
        mp.match_id: mp
        for mp in session.exec(
            select(MatchPrediction).where(
                MatchPrediction.prediction_id == prediction_id,
                MatchPrediction.match_id.in_([m.id for m in matches]),
            )
        ).all()
    }

    out = []
    for m in matches:
        mp = predicted.get(m.id)
        out.append(
            {
                "match_id": m.id,
                "match_number": m.match_number,
                "phase": m.phase,
                "home_placeholder": m.home_placeholder,
                "away_placeholder": m.away_placeholder,
                "home_team_id": mp.home_team_id if mp else None,
                "away_team_id": mp.away_team_id if mp else None,
                "home_score": mp.home_score if mp else None,
                "away_score": mp.away_score if mp else None,
                "home_score_et": mp.home_score_et if mp else None,
                "away_score_et": mp.away_score_et if mp else None,
                "penalties_winner": mp.penalties_winner if mp else None,
                "winner_team_id": mp.winner_team_id if mp else None,
            }
        )
    return out


# ─── Knockout phases ──────────────────────────────────────────────────────


def _clear_result(mp: MatchPrediction) -> None:
    mp.home_score = None
    mp.away_score = None
    mp.home_score_et = None
    mp.away_score_et = None
    mp.penalties_winner = None
    mp.winner_team_id = None


def _to_result(mp: MatchPrediction) -> KnockoutResult:
    return KnockoutResult(
        home_score=mp.home_score,
        away_score=mp.away_score,
        home_score_et=mp.home_score_et,
        away_score_et=mp.away_score_et,
        penalties_winner=mp.penalties_winner,
    )


def _phase_predictions(session: Session, prediction_id: int, phase: KnockoutPhase) -> Dict[int, MatchPrediction]:
    """Scored match predictions of a phase, keyed by match number."""
    rows = session.exec(
        select(Match, MatchPrediction)
        .join(MatchPrediction, MatchPrediction.match_id == Match.id)
        .where(Match.phase == phase.value, MatchPrediction.prediction_id == prediction_id)
    ).all()
    return {m.match_number: mp for m, mp in rows if mp.has_score()}


def _clear_downstream(session: Session, prediction_id: int, match_numbers: Sequence[int]) -> int:
    """Clear sides and result of every later match fed by the given matches, directly or not.

    Returns the number of match predictions cleared. Does not commit.
    """
    fed_by: Dict[int, List[Match]] = {}
    for m in session.exec(select(Match).where(Match.home_source_match_number.is_not(None))).all():
        for source in (m.home_source_match_number, m.away_source_match_number):
            fed_by.setdefault(source, []).append(m)

    pending = list(match_numbers)
    visited = set()
    cleared = 0
    while pending:
        for m in fed_by.get(pending.pop(), []):
            if m.match_number in visited:
                continue
            visited.add(m.match_number)
            pending.append(m.match_number)
            mp = session.exec(
                select(MatchPrediction).where(
                    MatchPrediction.prediction_id == prediction_id,
                    MatchPrediction.match_id == m.id,
                )
            ).first()
            if mp is None:
                continue
            _clear_result(mp)
            mp.home_team_id = None
            mp.away_team_id = None
            session.add(mp)
            cleared += 1
    return cleared


def _knockouts_complete(session: Session, prediction_id: int) -> bool:
    return all(
        len(_phase_predictions(session, prediction_id, phase)) == phase.expected_match_count()
        for phase in KnockoutPhase.all_phases()
    )


def save_knockout_predictions(
    session: Session,
    prediction_id: int,
    phase: KnockoutPhase,
    scores: Sequence[KnockoutScore],
) -> List[MatchPrediction]:
    """Validate and save the predictions for every match of one knockout phase.

    Round of 32 sides come from the resolved bracket; later sides are the
    predicted winners of the feeding matches. A changed winner clears the
    later matches it feeds.
    """
    prediction = get_editable_prediction(session, prediction_id)

    previous = phase.previous()
    previous_results: List[KnockoutResult] = []
    winners: Dict[int, int] = {}
    if previous is not None:
        previous_by_number = _phase_predictions(session, prediction.id, previous)
        previous_results = [_to_result(mp) for mp in previous_by_number.values()]
        winners = previous_phase_winners(
            {number: _to_result(mp) for number, mp in previous_by_number.items()},
            {number: (mp.home_team_id, mp.away_team_id) for number, mp in previous_by_number.items()},
        )
    validate_phase_can_be_predicted(phase, previous_results, prediction.bracket_resolved)

    expected = phase.expected_match_count()
    if len(scores) != expected:
        raise PredictionInputError(
            f"Invalid number of predictions for {phase.value}. Expected {expected}, got {len(scores)}"
        )

    matches = {m.id: m for m in session.exec(select(Match).where(Match.phase == phase.value)).all()}
    seen = set()
    saved: List[MatchPrediction] = []
    changed: List[int] = []

    for item in scores:
        match = matches.get(item.match_id)
        if match is None:
            raise PredictionInputError(f"Match {item.match_id} does not belong to phase {phase.value}")
        if item.match_id in seen:
            raise PredictionInputError(f"Match {match.match_number} submitted more than once")
        seen.add(item.match_id)

        validate_match_result(item.result)
        mp = _get_or_create_match_prediction(session, prediction.id, match.id)

        if not phase.is_first():
            home_team_id = winners.get(match.home_source_match_number)
            away_team_id = winners.get(match.away_source_match_number)
            if home_team_id is None or away_team_id is None:
                raise KnockoutValidationError(f"Feeding matches of match {match.match_number} are not predicted")
            mp.home_team_id = home_team_id
            mp.away_team_id = away_team_id

        if mp.home_team_id is None or mp.away_team_id is None:
            raise KnockoutValidationError(f"Match {match.match_number} has no resolved teams")

        old_winner = mp.winner_team_id
        mp.home_score = item.result.home_score
        mp.away_score = item.result.away_score
        mp.home_score_et = item.result.home_score_et
        mp.away_score_et = item.result.away_score_et
        mp.penalties_winner = item.result.penalties_winner
        mp.winner_team_id = determine_winner(mp.home_team_id, mp.away_team_id, item.result)
        if old_winner is not None and old_winner != mp.winner_team_id:
            changed.append(match.match_number)
        session.add(mp)
        saved.append(mp)

    cleared = _clear_downstream(session, prediction.id, changed)
    if cleared:
        logger.info("Prediction %d: %d later knockout prediction(s) cleared", prediction.id, cleared)
    session.flush()

    prediction.knockouts_completed = _knockouts_complete(session, prediction.id)
    session.add(prediction)
    session.commit()
    for mp in saved:
        session.refresh(mp)

    logger.info("Prediction %d: %d %s prediction(s) saved", prediction.id, len(saved), phase.value)
    if prediction.knockouts_completed:
        logger.info("Prediction %d: all knockout phases predicted", prediction.id)
    return saved
