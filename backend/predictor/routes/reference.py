from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, field_validator
from sqlmodel import Session, select

from predictor.database import get_session
from predictor.models.group import Group
from predictor.models.team import Team
from predictor.utils.tournament_seed import seed_group_teams, seed_reference_data

router = APIRouter()


class TeamIn(BaseModel):
    name: str
    fifa_code: Optional[str] = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, v):
        if not v or not v.strip():
            raise ValueError("Team name must not be empty")
        return v.strip()


@router.post("/reference/seed")
def seed_reference(session: Session = Depends(get_session)):
    """Insert groups A-L and the knockout bracket. Safe to call repeatedly."""
    return seed_reference_data(session)


@router.post("/reference/groups/{group_letter}/teams", status_code=201)
def add_group_teams(group_letter: str, teams: List[TeamIn], session: Session = Depends(get_session)):
    """Draw 4 teams into a group and create its 6 group matches"""
    try:
        return seed_group_teams(session, group_letter.upper(), [(t.name, t.fifa_code) for t in teams])
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.get("/reference/groups")
def list_groups(session: Session = Depends(get_session)):
    groups = session.exec(select(Group).order_by(Group.name)).all()
    teams = session.exec(select(Team).order_by(Team.id)).all()
    by_group = {}
    for team in teams:
        by_group.setdefault(team.group_id, []).append({"id": team.id, "name": team.name, "fifa_code": team.fifa_code})
    return [{"id": g.id, "name": g.name, "teams": by_group.get(g.id, [])} for g in groups]
