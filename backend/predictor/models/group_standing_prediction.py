from datetime import datetime
from typing import Optional

from sqlalchemy import UniqueConstraint as SAUniqueConstraint
from sqlmodel import Field, SQLModel

from predictor.services.group_standings import GroupStanding


class GroupStandingPrediction(SQLModel, table=True):
    __tablename__ = "group_standing_prediction"
    __table_args__ = (
        SAUniqueConstraint("prediction_id", "group_id", "team_id", name="uq_standing_team"),
        SAUniqueConstraint("prediction_id", "group_id", "position", name="uq_standing_position"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    prediction_id: int = Field(foreign_key="prediction.id", index=True)
    group_id: int = Field(foreign_key="tournament_group.id", index=True)
    team_id: int = Field(foreign_key="team.id")

    position: int  # 1-4
    points: int
    played: int
    wins: int
    draws: int
    losses: int
    goals_for: int
    goals_against: int
    goal_difference: int

    has_tiebreak_conflict: bool = Field(default=False)
    tiebreak_group: Optional[int] = Field(default=None)
    manual_tiebreak_order: Optional[int] = Field(default=None)

    created_at: datetime = Field(default_factory=datetime.utcnow)

    @classmethod
    def from_domain(cls, prediction_id: int, group_id: int, row: GroupStanding) -> "GroupStandingPrediction":
        return cls(
            prediction_id=prediction_id,
            group_id=group_id,
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

    def to_domain(self, group_letter: str) -> GroupStanding:
        return GroupStanding(
            group_id=group_letter,
            team_id=self.team_id,
            position=self.position,
            points=self.points,
            played=self.played,
            wins=self.wins,
            draws=self.draws,
            losses=self.losses,
            goals_for=self.goals_for,
            goals_against=self.goals_against,
            goal_difference=self.goal_difference,
            has_tiebreak_conflict=self.has_tiebreak_conflict,
            tiebreak_group=self.tiebreak_group,
            manual_tiebreak_order=self.manual_tiebreak_order,
        )
