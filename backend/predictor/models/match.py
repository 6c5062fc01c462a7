from datetime import datetime
from typing import Optional

from sqlmodel import Field, SQLModel

PHASE_GROUP = "GROUP"


class Match(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    match_number: int = Field(unique=True, index=True)  # 1-72 group stage, 73-88 R32, ...
    phase: str = Field(index=True)  # "GROUP" | KnockoutPhase value
    group_id: Optional[int] = Field(default=None, foreign_key="tournament_group.id", index=True)
    kickoff_at: Optional[datetime] = Field(default=None)

    # Known participants (group stage only; knockout sides come from each prediction)
    home_team_id: Optional[int] = Field(default=None, foreign_key="team.id")
    away_team_id: Optional[int] = Field(default=None, foreign_key="team.id")

    # Placeholder text for knockout sides ("Group E winners", "Group A/B/C/D/F third place", ...)
    home_placeholder: Optional[str] = Field(default=None)
    away_placeholder: Optional[str] = Field(default=None)

    # Bracket wiring from Round of 16 on: winner of these match numbers feeds each side
    home_source_match_number: Optional[int] = Field(default=None)
    away_source_match_number: Optional[int] = Field(default=None)
