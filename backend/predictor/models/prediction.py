from datetime import datetime
from typing import Optional

from sqlalchemy import UniqueConstraint as SAUniqueConstraint
from sqlmodel import Field, SQLModel


class Prediction(SQLModel, table=True):
    __table_args__ = (SAUniqueConstraint("user_id", "league_id", name="uq_prediction_user_league"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: str = Field(index=True)
    league_id: str = Field(index=True)

    groups_completed: bool = Field(default=False)  # all 12 group tables saved
    bracket_resolved: bool = Field(default=False)  # R32 sides written from current tables
    knockouts_completed: bool = Field(default=False)  # every phase through the final predicted

    locked_at: Optional[datetime] = Field(default=None)  # edits rejected from this instant
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow, sa_column_kwargs={"onupdate": datetime.utcnow})

    def can_be_edited(self, now: Optional[datetime] = None) -> bool:
        if self.locked_at is None:
            return True
        return (now or datetime.utcnow()) < self.locked_at
