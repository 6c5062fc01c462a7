from datetime import datetime
from typing import Optional

from sqlalchemy import UniqueConstraint as SAUniqueConstraint
from sqlmodel import Field, SQLModel


class MatchPrediction(SQLModel, table=True):
    __tablename__ = "match_prediction"
    __table_args__ = (SAUniqueConstraint("prediction_id", "match_id", name="uq_match_prediction"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    prediction_id: int = Field(foreign_key="prediction.id", index=True)
    match_id: int = Field(foreign_key="match.id", index=True)

    home_score: Optional[int] = Field(default=None)
    away_score: Optional[int] = Field(default=None)
    home_score_et: Optional[int] = Field(default=None)  # cumulative incl. 90'
    away_score_et: Optional[int] = Field(default=None)
    penalties_winner: Optional[str] = Field(default=None)  # "home" | "away"

    # Knockout sides as resolved for this prediction (null until known)
    home_team_id: Optional[int] = Field(default=None, foreign_key="team.id")
    away_team_id: Optional[int] = Field(default=None, foreign_key="team.id")
    winner_team_id: Optional[int] = Field(default=None, foreign_key="team.id")

    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow, sa_column_kwargs={"onupdate": datetime.utcnow})

    def has_score(self) -> bool:
        return self.home_score is not None and self.away_score is not None
