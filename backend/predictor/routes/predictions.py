"""
Prediction endpoints: group tables, best thirds, Round of 32 bracket and
knockout phases. Thin layer over services.prediction_service; domain errors
are mapped to HTTP status codes here.
"""
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, field_validator
from sqlmodel import Session, select

from predictor.database import get_session
from predictor.models.prediction import Prediction
from predictor.services.bracket_errors import (
    BracketIntegrityError,
    IncompleteStandingsError,
    InvalidInputError,
    UnresolvableAllocationError,
)
from predictor.services.group_standings import GROUP_LETTERS, StandingValidationError, make_group_standing
from predictor.services.knockout_phase import KnockoutPhase
from predictor.services.knockout_validator import KnockoutResult, KnockoutValidationError
from predictor.services.prediction_service import (
    GroupScore,
    KnockoutScore,
    PredictionInputError,
    PredictionLockedError,
    PredictionNotFoundError,
    get_knockout_predictions,
    get_prediction_or_raise,
    load_best_third_places,
    load_group_standings,
    resolve_round_of_32_for_prediction,
    save_group_predictions,
    save_knockout_predictions,
)

router = APIRouter()


# ─── Schemas ──────────────────────────────────────────────────────────────


class PredictionCreate(BaseModel):
    user_id: str
    league_id: str

    @field_validator("user_id", "league_id")
    @classmethod
    def validate_not_empty(cls, v):
        if not v or not v.strip():
            raise ValueError("must not be empty")
        return v.strip()


class PredictionResponse(BaseModel):
    id: int
    user_id: str
    league_id: str
    groups_completed: bool
    bracket_resolved: bool
    knockouts_completed: bool

    class Config:
        from_attributes = True


class GroupScoreIn(BaseModel):
    match_id: int
    home_score: int
    away_score: int

    @field_validator("home_score", "away_score")
    @classmethod
    def validate_score(cls, v):
        if v < 0:
            raise ValueError("score cannot be negative")
        return v


class StandingIn(BaseModel):
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


class SaveGroupRequest(BaseModel):
    scores: List[GroupScoreIn]
    standings: Optional[List[StandingIn]] = None


class StandingOut(BaseModel):
    group: str
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
    has_tiebreak_conflict: bool
    tiebreak_group: Optional[int] = None
    manual_tiebreak_order: Optional[int] = None


class BestThirdOut(BaseModel):
    team_id: int
    ranking_position: int
    points: int
    goal_difference: int
    goals_for: int
    from_group: str
    has_tiebreak_conflict: bool
    tiebreak_group: Optional[int] = None
    manual_tiebreak_order: Optional[int] = None


class SaveGroupResponse(BaseModel):
    group: str
    standings: List[StandingOut]
    groups_completed: bool
    total_groups_completed: int
    best_third_places: Optional[List[BestThirdOut]] = None


class ResolvedFixtureOut(BaseModel):
    match_id: int
    home_team_id: int
    away_team_id: int


class KnockoutScoreIn(BaseModel):
    match_id: int
    home_score: int
    away_score: int
    home_score_et: Optional[int] = None
    away_score_et: Optional[int] = None
    penalties_winner: Optional[str] = None


class KnockoutMatchOut(BaseModel):
    match_id: int
    match_number: int
    phase: str
    home_placeholder: Optional[str] = None
    away_placeholder: Optional[str] = None
    home_team_id: Optional[int] = None
    away_team_id: Optional[int] = None
    home_score: Optional[int] = None
    away_score: Optional[int] = None
    home_score_et: Optional[int] = None
    away_score_et: Optional[int] = None
    penalties_winner: Optional[str] = None
    winner_team_id: Optional[int] = None


def _standing_out(row) -> StandingOut:
    return StandingOut(
        group=row.group_id,
        team_id=row.team_id,
        position=row.position,
        points=row.points,
        played=row.played,
        wins=row.wins,
        draws=row.draws,
        losses=row.losses,
        goals_for=row.goals_for,
        goals_against=row.goals_against,
        goal_difference=row.goal_difference,
        has_tiebreak_conflict=row.has_tiebreak_conflict,
        tiebreak_group=row.tiebreak_group,
        manual_tiebreak_order=row.manual_tiebreak_order,
    )


def _best_third_out(sel) -> BestThirdOut:
    return BestThirdOut(
        team_id=sel.team_id,
        ranking_position=sel.ranking_position,
        points=sel.points,
        goal_difference=sel.goal_difference,
        goals_for=sel.goals_for,
        from_group=sel.from_group_id,
        has_tiebreak_conflict=sel.has_tiebreak_conflict,
        tiebreak_group=sel.tiebreak_group,
        manual_tiebreak_order=sel.manual_tiebreak_order,
    )


def _parse_phase(phase: str) -> KnockoutPhase:
    if not KnockoutPhase.is_valid(phase):
        valid = ", ".join(p.value for p in KnockoutPhase.all_phases())
        raise HTTPException(status_code=404, detail=f"Invalid knockout phase: {phase}. Valid phases are: {valid}")
    return KnockoutPhase(phase)


def _raise_http(exc: Exception) -> None:
    """Translate a domain error into the matching HTTPException."""
    if isinstance(exc, PredictionNotFoundError):
        raise HTTPException(status_code=404, detail=str(exc))
    if isinstance(exc, PredictionLockedError):
        raise HTTPException(status_code=403, detail=str(exc))
    if isinstance(exc, (PredictionInputError, InvalidInputError, IncompleteStandingsError, StandingValidationError)):
        raise HTTPException(status_code=400, detail=str(exc))
    if isinstance(exc, (UnresolvableAllocationError, KnockoutValidationError)):
        raise HTTPException(status_code=422, detail=str(exc))
    if isinstance(exc, BracketIntegrityError):
        raise HTTPException(status_code=500, detail=f"BRACKET_INTEGRITY: {exc}")
    raise exc


_DOMAIN_ERRORS = (
    PredictionNotFoundError,
    PredictionLockedError,
    PredictionInputError,
    InvalidInputError,
    IncompleteStandingsError,
    UnresolvableAllocationError,
    BracketIntegrityError,
    StandingValidationError,
    KnockoutValidationError,
)


# ─── Endpoints ────────────────────────────────────────────────────────────


@router.post("/predictions", response_model=PredictionResponse, status_code=201)
def create_prediction(payload: PredictionCreate, session: Session = Depends(get_session)) -> PredictionResponse:
    existing = session.exec(
        select(Prediction).where(Prediction.user_id == payload.user_id, Prediction.league_id == payload.league_id)
    ).first()
    if existing:
        raise HTTPException(status_code=409, detail="Prediction already exists for this user and league")

    prediction = Prediction(user_id=payload.user_id, league_id=payload.league_id)
    session.add(prediction)
    session.commit()
    session.refresh(prediction)
    return PredictionResponse.model_validate(prediction)


@router.get("/predictions/{prediction_id}", response_model=PredictionResponse)
def get_prediction(prediction_id: int, session: Session = Depends(get_session)) -> PredictionResponse:
    try:
        prediction = get_prediction_or_raise(session, prediction_id)
    except PredictionNotFoundError as e:
        _raise_http(e)
    return PredictionResponse.model_validate(prediction)


@router.put("/predictions/{prediction_id}/groups/{group_letter}", response_model=SaveGroupResponse)
def save_group(
    prediction_id: int,
    group_letter: str,
    payload: SaveGroupRequest,
    session: Session = Depends(get_session),
) -> SaveGroupResponse:
    """Save a group's 6 predicted scores; returns the recalculated table.

    Once all 12 groups are saved the best 8 thirds are included."""
    letter = group_letter.upper()
    if len(letter) != 1 or letter not in GROUP_LETTERS:
        raise HTTPException(status_code=404, detail=f"Group {group_letter} not found")

    try:
        provided = None
        if payload.standings is not None:
            provided = [make_group_standing(group_id=letter, **s.model_dump()) for s in payload.standings]
        result = save_group_predictions(
            session,
            prediction_id,
            letter,
            [GroupScore(match_id=s.match_id, home_score=s.home_score, away_score=s.away_score) for s in payload.scores],
            provided_standings=provided,
        )
    except _DOMAIN_ERRORS as e:
        _raise_http(e)

    best = result["best_third_places"]
    return SaveGroupResponse(
        group=result["group"],
        standings=[_standing_out(r) for r in result["standings"]],
        groups_completed=result["groups_completed"],
        total_groups_completed=result["total_groups_completed"],
        best_third_places=[_best_third_out(s) for s in best] if best is not None else None,
    )


@router.get("/predictions/{prediction_id}/standings", response_model=List[StandingOut])
def get_standings(prediction_id: int, session: Session = Depends(get_session)) -> List[StandingOut]:
    """All saved group tables. Stable order: group letter, position."""
    try:
        get_prediction_or_raise(session, prediction_id)
    except PredictionNotFoundError as e:
        _raise_http(e)
    rows = load_group_standings(session, prediction_id)
    rows.sort(key=lambda r: (r.group_id, r.position))
    return [_standing_out(r) for r in rows]


@router.get("/predictions/{prediction_id}/best-third-places", response_model=List[BestThirdOut])
def get_best_third_places(prediction_id: int, session: Session = Depends(get_session)) -> List[BestThirdOut]:
    try:
        get_prediction_or_raise(session, prediction_id)
    except PredictionNotFoundError as e:
        _raise_http(e)
    return [_best_third_out(s) for s in load_best_third_places(session, prediction_id)]


@router.post("/predictions/{prediction_id}/round-of-32/resolve", response_model=List[ResolvedFixtureOut])
def resolve_round_of_32(prediction_id: int, session: Session = Depends(get_session)) -> List[ResolvedFixtureOut]:
    """Resolve R32 placeholders from the saved tables and persist the 16 fixtures.

    Idempotent: re-running with unchanged tables writes the same teams."""
    try:
        resolved = resolve_round_of_32_for_prediction(session, prediction_id)
    except _DOMAIN_ERRORS as e:
        _raise_http(e)
    return [
        ResolvedFixtureOut(match_id=r.match_id, home_team_id=r.home_team_id, away_team_id=r.away_team_id)
        for r in resolved
    ]


@router.get("/predictions/{prediction_id}/round-of-32", response_model=List[KnockoutMatchOut])
def get_round_of_32(prediction_id: int, session: Session = Depends(get_session)) -> List[KnockoutMatchOut]:
    """The 16 Round of 32 fixtures with the teams resolved for this prediction"""
    try:
        rows = get_knockout_predictions(session, prediction_id, KnockoutPhase.ROUND_OF_32)
    except PredictionNotFoundError as e:
        _raise_http(e)
    return [KnockoutMatchOut(**r) for r in rows]


@router.get("/predictions/{prediction_id}/knockout/{phase}", response_model=List[KnockoutMatchOut])
def get_knockout_phase(
    prediction_id: int, phase: str, session: Session = Depends(get_session)
) -> List[KnockoutMatchOut]:
    knockout_phase = _parse_phase(phase)
    try:
        rows = get_knockout_predictions(session, prediction_id, knockout_phase)
    except PredictionNotFoundError as e:
        _raise_http(e)
    return [KnockoutMatchOut(**r) for r in rows]


@router.put("/predictions/{prediction_id}/knockout/{phase}", response_model=List[KnockoutMatchOut])
def save_knockout_phase(
    prediction_id: int,
    phase: str,
    payload: List[KnockoutScoreIn],
    session: Session = Depends(get_session),
) -> List[KnockoutMatchOut]:
    """Save predictions for every match of a knockout phase. Requires the previous phase complete
    (or, for the Round of 32, a resolved bracket)."""
    knockout_phase = _parse_phase(phase)
    scores = [
        KnockoutScore(
            match_id=item.match_id,
            result=KnockoutResult(
                home_score=item.home_score,
                away_score=item.away_score,
                home_score_et=item.home_score_et,
                away_score_et=item.away_score_et,
                penalties_winner=item.penalties_winner,
            ),
        )
        for item in payload
    ]
    try:
        save_knockout_predictions(session, prediction_id, knockout_phase, scores)
        rows = get_knockout_predictions(session, prediction_id, knockout_phase)
    except _DOMAIN_ERRORS as e:
        _raise_http(e)
    return [KnockoutMatchOut(**r) for r in rows]
