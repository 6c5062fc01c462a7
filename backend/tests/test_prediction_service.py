"""
Tests for prediction orchestration against an in-memory database.

Every group is predicted with the same pattern (draw positions 1-4):
  1v2 2-0, 3v4 X-0, 1v3 1-0, 4v2 0-2, 4v1 0-3, 2v3 2-0
Team 1 wins the group, team 2 is runner-up, team 3 is third with 3 points
and X goals, team 4 is last.
X is chosen per group so the qualifying thirds can be steered.
"""

from datetime import datetime

import pytest
from sqlmodel import Session, select

from predictor.models.best_third_place_prediction import BestThirdPlacePrediction
from predictor.models.group import Group
from predictor.models.group_standing_prediction import GroupStandingPrediction
from predictor.models.match import PHASE_GROUP, Match
from predictor.models.match_prediction import MatchPrediction
from predictor.models.prediction import Prediction
from predictor.services.bracket_errors import IncompleteStandingsError
from predictor.services.group_standings import GROUP_LETTERS, make_group_standing
from predictor.services.knockout_phase import KnockoutPhase
from predictor.services.knockout_validator import KnockoutResult, KnockoutValidationError
from predictor.services.prediction_service import (
    GroupScore,
    KnockoutScore,
    PredictionInputError,
    PredictionLockedError,
    PredictionNotFoundError,
    get_knockout_predictions,
    load_best_third_places,
    resolve_round_of_32_for_prediction,
    save_group_predictions,
    save_knockout_predictions,
)

# -----------------------------------------------------------------------------
# Helpers
# -----------------------------------------------------------------------------


def _group_scores(x):
    return [(2, 0), (x, 0), (1, 0), (0, 2), (0, 3), (2, 0)]


def _create_prediction(session: Session, locked_at=None) -> Prediction:
    prediction = Prediction(user_id="user-1", league_id="league-1", locked_at=locked_at)
    session.add(prediction)
    session.commit()
    session.refresh(prediction)
    return prediction


def _group_matches(session: Session, letter: str):
    group = session.exec(select(Group).where(Group.name == letter)).one()
    return session.exec(
        select(Match).where(Match.group_id == group.id, Match.phase == PHASE_GROUP).order_by(Match.match_number)
    ).all()


def _save_group(session: Session, prediction_id: int, letter: str, x: int, **kwargs):
    matches = _group_matches(session, letter)
    scores = [GroupScore(m.id, hs, as_) for m, (hs, as_) in zip(matches, _group_scores(x))]
    return save_group_predictions(session, prediction_id, letter, scores, **kwargs)


def _save_all_groups(session: Session, prediction_id: int, goals=lambda idx: 12 - idx):
    result = None
    for idx, letter in enumerate(GROUP_LETTERS):
        result = _save_group(session, prediction_id, letter, goals(idx))
    return result


def _home_wins(session: Session, phase: KnockoutPhase):
    matches = session.exec(select(Match).where(Match.phase == phase.value)).all()
    return [KnockoutScore(m.id, KnockoutResult(1, 0)) for m in matches]


# -----------------------------------------------------------------------------
# Group stage
# -----------------------------------------------------------------------------


class TestSaveGroupPredictions:
    def test_saves_scores_and_table(self, session, tournament):
        prediction = _create_prediction(session)
        result = _save_group(session, prediction.id, "A", 1)

        assert result["group"] == "A"
        assert [r.team_id for r in result["standings"]] == [tournament[f"A{p}"] for p in range(1, 5)]
        assert [r.points for r in result["standings"]] == [9, 6, 3, 0]
        assert result["total_groups_completed"] == 1
        assert result["groups_completed"] is False
        assert result["best_third_places"] is None

        stored = session.exec(
            select(MatchPrediction).where(MatchPrediction.prediction_id == prediction.id)
        ).all()
        assert len(stored) == 6

    def test_resave_replaces_table(self, session, tournament):
        prediction = _create_prediction(session)
        _save_group(session, prediction.id, "A", 1)
        _save_group(session, prediction.id, "A", 4)

        rows = session.exec(
            select(GroupStandingPrediction).where(GroupStandingPrediction.prediction_id == prediction.id)
        ).all()
        assert len(rows) == 4
        third = next(r for r in rows if r.position == 3)
        assert third.goals_for == 4

    def test_all_groups_rank_best_thirds(self, session, tournament):
        prediction = _create_prediction(session)
        result = _save_all_groups(session, prediction.id)

        assert result["groups_completed"] is True
        assert result["total_groups_completed"] == 12
        best = result["best_third_places"]
        assert [s.from_group_id for s in best] == list("ABCDEFGH")
        assert [s.ranking_position for s in best] == list(range(1, 9))

        stored = load_best_third_places(session, prediction.id)
        assert stored == best

    def test_best_thirds_replaced_on_change(self, session, tournament):
        prediction = _create_prediction(session)
        _save_all_groups(session, prediction.id)
        _save_group(session, prediction.id, "L", 20)

        rows = session.exec(
            select(BestThirdPlacePrediction).where(BestThirdPlacePrediction.prediction_id == prediction.id)
        ).all()
        assert len(rows) == 8
        assert load_best_third_places(session, prediction.id)[0].from_group_id == "L"

    def test_provided_standings_with_manual_tiebreak(self, session, tournament):
        prediction = _create_prediction(session)
        matches = _group_matches(session, "B")
        scores = [GroupScore(m.id, 0, 0) for m in matches]
        # All draws: every team 3 pts, 0 GD, 0 GF, one cluster; user puts B4 first
        order = ["B4", "B1", "B2", "B3"]
        provided = [
            make_group_standing(
                "B", tournament[name], position, points=3, wins=0, draws=3, losses=0,
                goals_for=0, goals_against=0, has_tiebreak_conflict=True, tiebreak_group=1,
                manual_tiebreak_order=position,
            )
            for position, name in enumerate(order, start=1)
        ]
        result = save_group_predictions(session, prediction.id, "B", scores, provided_standings=provided)
        assert [r.team_id for r in result["standings"]] == [tournament[n] for n in order]

    def test_provided_standings_must_match(self, session, tournament):
        prediction = _create_prediction(session)
        wrong = [
            make_group_standing("A", tournament[f"A{p}"], p, points=0, wins=0, draws=0, losses=3,
                                goals_for=0, goals_against=1)
            for p in range(1, 5)
        ]
        with pytest.raises(PredictionInputError, match="validation failed"):
            _save_group(session, prediction.id, "A", 1, provided_standings=wrong)

    def test_scores_must_cover_group(self, session, tournament):
        prediction = _create_prediction(session)
        matches = _group_matches(session, "A")
        scores = [GroupScore(m.id, 1, 0) for m in matches[:5]]
        with pytest.raises(PredictionInputError, match="exactly the 6 matches"):
            save_group_predictions(session, prediction.id, "A", scores)

    def test_unknown_prediction(self, session, tournament):
        with pytest.raises(PredictionNotFoundError):
            _save_group(session, 999, "A", 1)

    def test_locked_prediction(self, session, tournament):
        prediction = _create_prediction(session, locked_at=datetime(2000, 1, 1))
        with pytest.raises(PredictionLockedError):
            _save_group(session, prediction.id, "A", 1)


# -----------------------------------------------------------------------------
# Round of 32
# -----------------------------------------------------------------------------


class TestResolveRoundOf32ForPrediction:
    def test_requires_all_groups(self, session, tournament):
        prediction = _create_prediction(session)
        _save_group(session, prediction.id, "A", 1)
        with pytest.raises(IncompleteStandingsError, match="Complete all 12 groups"):
            resolve_round_of_32_for_prediction(session, prediction.id)

    def test_writes_sides_from_table(self, session, tournament):
        prediction = _create_prediction(session)
        _save_all_groups(session, prediction.id)

        resolved = resolve_round_of_32_for_prediction(session, prediction.id)
        assert len(resolved) == 16

        rows = {r["match_number"]: r for r in get_knockout_predictions(session, prediction.id, KnockoutPhase.ROUND_OF_32)}
        # ABCDEFGH: C/D/F/G/H third place goes to F
        assert (rows[77]["home_team_id"], rows[77]["away_team_id"]) == (tournament["I1"], tournament["F3"])
        assert (rows[74]["home_team_id"], rows[74]["away_team_id"]) == (tournament["E1"], tournament["D3"])
        assert (rows[73]["home_team_id"], rows[73]["away_team_id"]) == (tournament["A2"], tournament["B2"])

        session.refresh(prediction)
        assert prediction.bracket_resolved is True

    def test_fallback_combination(self, session, tournament):
        prediction = _create_prediction(session)
        # Thirds of E..L qualify, L best: EFGHIJKL is not in the allocation table
        _save_all_groups(session, prediction.id, goals=lambda idx: idx + 1)

        resolved = resolve_round_of_32_for_prediction(session, prediction.id)
        away = {f.match_id: f.away_team_id for f in resolved}
        numbers = {m.id: m.match_number for m in session.exec(select(Match)).all()}
        by_number = {numbers[mid]: tid for mid, tid in away.items()}

        assert by_number[74] == tournament["F3"]
        assert by_number[77] == tournament["H3"]
        assert by_number[79] == tournament["I3"]
        assert by_number[80] == tournament["K3"]
        assert by_number[81] == tournament["J3"]
        assert by_number[82] == tournament["E3"]
        assert by_number[85] == tournament["G3"]
        assert by_number[87] == tournament["L3"]

    def test_idempotent(self, session, tournament):
        prediction = _create_prediction(session)
        _save_all_groups(session, prediction.id)

        first = resolve_round_of_32_for_prediction(session, prediction.id)
        second = resolve_round_of_32_for_prediction(session, prediction.id)
        assert first == second

        rows = session.exec(select(MatchPrediction).where(MatchPrediction.prediction_id == prediction.id)).all()
        # 72 group scores + 16 resolved fixtures
        assert len(rows) == 88

    def test_group_change_unresolves_bracket(self, session, tournament):
        prediction = _create_prediction(session)
        _save_all_groups(session, prediction.id)
        resolve_round_of_32_for_prediction(session, prediction.id)

        _save_group(session, prediction.id, "A", 12)
        session.refresh(prediction)
        assert prediction.bracket_resolved is False


# -----------------------------------------------------------------------------
# Knockout phases
# -----------------------------------------------------------------------------


class TestKnockoutPredictions:
    def test_round_of_32_needs_resolved_bracket(self, session, tournament):
        prediction = _create_prediction(session)
        with pytest.raises(KnockoutValidationError, match="has not been resolved"):
            save_knockout_predictions(session, prediction.id, KnockoutPhase.ROUND_OF_32, [])

    def test_round_of_16_needs_complete_round_of_32(self, session, tournament):
        prediction = _create_prediction(session)
        _save_all_groups(session, prediction.id)
        resolve_round_of_32_for_prediction(session, prediction.id)

        with pytest.raises(KnockoutValidationError, match="Expected 16 predictions, found 0"):
            save_knockout_predictions(
                session, prediction.id, KnockoutPhase.ROUND_OF_16, _home_wins(session, KnockoutPhase.ROUND_OF_16)
            )

    def test_partial_phase_is_rejected(self, session, tournament):
        prediction = _create_prediction(session)
        _save_all_groups(session, prediction.id)
        resolve_round_of_32_for_prediction(session, prediction.id)

        with pytest.raises(PredictionInputError, match="Expected 16, got 10"):
            save_knockout_predictions(
                session, prediction.id, KnockoutPhase.ROUND_OF_32, _home_wins(session, KnockoutPhase.ROUND_OF_32)[:10]
            )
        assert get_knockout_predictions(session, prediction.id, KnockoutPhase.ROUND_OF_32)[0]["home_score"] is None

    def test_winners_advance_to_final(self, session, tournament):
        prediction = _create_prediction(session)
        _save_all_groups(session, prediction.id)
        resolve_round_of_32_for_prediction(session, prediction.id)

        for phase in KnockoutPhase.all_phases():
            saved = save_knockout_predictions(session, prediction.id, phase, _home_wins(session, phase))
            assert len(saved) == phase.expected_match_count()
            assert prediction.knockouts_completed is phase.is_final()

        final = get_knockout_predictions(session, prediction.id, KnockoutPhase.FINAL)[0]
        # Home side all the way: 104 <- 101 <- 97 <- 89 <- 74 (Group E winners)
        assert final["match_number"] == 104
        assert final["home_team_id"] == tournament["E1"]
        assert final["winner_team_id"] == tournament["E1"]

    def test_group_change_resets_knockouts_completed(self, session, tournament):
        prediction = _create_prediction(session)
        _save_all_groups(session, prediction.id)
        resolve_round_of_32_for_prediction(session, prediction.id)
        for phase in KnockoutPhase.all_phases():
            save_knockout_predictions(session, prediction.id, phase, _home_wins(session, phase))
        assert prediction.knockouts_completed is True

        _save_group(session, prediction.id, "L", 5)

        assert prediction.knockouts_completed is False
        assert prediction.bracket_resolved is False

    def test_penalties_decide_the_winner(self, session, tournament):
        prediction = _create_prediction(session)
        _save_all_groups(session, prediction.id)
        resolve_round_of_32_for_prediction(session, prediction.id)

        match = session.exec(select(Match).where(Match.match_number == 73)).one()
        result = KnockoutResult(1, 1, home_score_et=2, away_score_et=2, penalties_winner="away")
        scores = [
            KnockoutScore(s.match_id, result) if s.match_id == match.id else s
            for s in _home_wins(session, KnockoutPhase.ROUND_OF_32)
        ]
        saved = save_knockout_predictions(session, prediction.id, KnockoutPhase.ROUND_OF_32, scores)

        by_match = {mp.match_id: mp for mp in saved}
        assert by_match[match.id].winner_team_id == tournament["B2"]

    def test_rejects_match_from_another_phase(self, session, tournament):
        prediction = _create_prediction(session)
        _save_all_groups(session, prediction.id)
        resolve_round_of_32_for_prediction(session, prediction.id)

        final = session.exec(select(Match).where(Match.match_number == 104)).one()
        scores = _home_wins(session, KnockoutPhase.ROUND_OF_32)
        scores[0] = KnockoutScore(final.id, KnockoutResult(1, 0))
        with pytest.raises(PredictionInputError, match="does not belong"):
            save_knockout_predictions(session, prediction.id, KnockoutPhase.ROUND_OF_32, scores)

    def test_new_sides_clear_old_score(self, session, tournament):
        prediction = _create_prediction(session)
        _save_all_groups(session, prediction.id)
        resolve_round_of_32_for_prediction(session, prediction.id)
        save_knockout_predictions(
            session, prediction.id, KnockoutPhase.ROUND_OF_32, _home_wins(session, KnockoutPhase.ROUND_OF_32)
        )

        # Group A reordered to A1, A3, A4, A2: the runner-up changes
        matches = _group_matches(session, "A")
        reordered = [(2, 0), (1, 0), (1, 0), (1, 0), (0, 3), (0, 1)]
        save_group_predictions(
            session, prediction.id, "A", [GroupScore(m.id, hs, as_) for m, (hs, as_) in zip(matches, reordered)]
        )
        resolve_round_of_32_for_prediction(session, prediction.id)

        rows = {r["match_number"]: r for r in get_knockout_predictions(session, prediction.id, KnockoutPhase.ROUND_OF_32)}
        assert rows[73]["home_team_id"] == tournament["A3"]
        assert rows[73]["home_score"] is None
        assert rows[88]["home_score"] == 1

    def test_new_sides_clear_later_phases(self, session, tournament):
        prediction = _create_prediction(session)
        _save_all_groups(session, prediction.id)
        resolve_round_of_32_for_prediction(session, prediction.id)
        for phase in (KnockoutPhase.ROUND_OF_32, KnockoutPhase.ROUND_OF_16):
            save_knockout_predictions(session, prediction.id, phase, _home_wins(session, phase))

        matches = _group_matches(session, "A")
        reordered = [(2, 0), (1, 0), (1, 0), (1, 0), (0, 3), (0, 1)]
        save_group_predictions(
            session, prediction.id, "A", [GroupScore(m.id, hs, as_) for m, (hs, as_) in zip(matches, reordered)]
        )
        resolve_round_of_32_for_prediction(session, prediction.id)

        # Match 73 (Group A runners-up) feeds match 90
        rows = {r["match_number"]: r for r in get_knockout_predictions(session, prediction.id, KnockoutPhase.ROUND_OF_16)}
        assert rows[90]["home_team_id"] is None
        assert rows[90]["away_team_id"] is None
        assert rows[90]["winner_team_id"] is None

        with pytest.raises(KnockoutValidationError, match="ROUND_OF_16 is not complete"):
            save_knockout_predictions(
                session, prediction.id, KnockoutPhase.QUARTER_FINALS, _home_wins(session, KnockoutPhase.QUARTER_FINALS)
            )

    def test_changed_winner_clears_later_phases(self, session, tournament):
        prediction = _create_prediction(session)
        _save_all_groups(session, prediction.id)
        resolve_round_of_32_for_prediction(session, prediction.id)
        for phase in (KnockoutPhase.ROUND_OF_32, KnockoutPhase.ROUND_OF_16, KnockoutPhase.QUARTER_FINALS):
            save_knockout_predictions(session, prediction.id, phase, _home_wins(session, phase))

        match = session.exec(select(Match).where(Match.match_number == 73)).one()
        scores = [
            KnockoutScore(s.match_id, KnockoutResult(0, 1)) if s.match_id == match.id else s
            for s in _home_wins(session, KnockoutPhase.ROUND_OF_32)
        ]
        save_knockout_predictions(session, prediction.id, KnockoutPhase.ROUND_OF_32, scores)

        # 73 feeds 90, which feeds 97
        r16 = {r["match_number"]: r for r in get_knockout_predictions(session, prediction.id, KnockoutPhase.ROUND_OF_16)}
        qf = {r["match_number"]: r for r in get_knockout_predictions(session, prediction.id, KnockoutPhase.QUARTER_FINALS)}
        assert r16[90]["winner_team_id"] is None
        assert qf[97]["home_team_id"] is None
        assert r16[89]["winner_team_id"] is not None
        assert qf[98]["winner_team_id"] is not None

        save_knockout_predictions(
            session, prediction.id, KnockoutPhase.ROUND_OF_16, _home_wins(session, KnockoutPhase.ROUND_OF_16)
        )
        r16 = {r["match_number"]: r for r in get_knockout_predictions(session, prediction.id, KnockoutPhase.ROUND_OF_16)}
        assert r16[90]["home_team_id"] == tournament["B2"]
