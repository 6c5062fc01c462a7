from datetime import datetime
from typing import Optional

from sqlalchemy import UniqueConstraint as SAUniqueConstraint
from sqlmodel import Field, SQLModel

from predictor.services.third_place_ranker import BestThirdPlaceSelection


class BestThirdPlacePrediction(SQLModel, table=True):
    __tablename__ = "best_third_place_prediction"
    __table_args__ = (SAUniqueConstraint("prediction_id", "ranking_position", name="uq_best_third_rank"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    prediction_id: int = Field(foreign_key="prediction.id", index=True)
    team_id: int = Field(foreign_key="team.id")
    from_group_id: int = Field(foreign_key="tournament_group.id")

    ranking_position: int  # 1-8
    points: int
    goal_difference: int
    goals_for: int

    has_tiebreak_conflict: bool = Field(default=False)
    tiebreak_group: Optional[int] = Field(default=None)
    manual_tiebreak_order: Optional[int] = Field(default=None)

    created_at: datetime = Field(default_factory=datetime.utcnow)

    @classmethod
    def from_domain(
        cls, prediction_id: int, from_group_id: int, selection: BestThirdPlaceSelection
    ) -> "BestThirdPlacePrediction":
        return cls(
            prediction_id=prediction_id,
            team_id=selection.team_id,
            from_group_id=from_group_id,
            ranking_position=selection.ranking_position,
            points=selection.points,
            goal_difference=selection.goal_difference,
            goals_for=selection.goals_for,
            has_tiebreak_conflict=selection.has_tiebreak_conflict,
            tiebreak_group=selection.tiebreak_group,
            manual_tiebreak_order=selection.manual_tiebreak_order,
        )

    def to_domain(self, group_letter: str) -> BestThirdPlaceSelection:
        return BestThirdPlaceSelection(
            team_id=self.team_id,
            ranking_position=self.ranking_position,
            points=self.points,
            goal_difference=self.goal_difference,
            goals_for=self.goals_for,
            from_group_id=group_letter,
            has_tiebreak_conflict=self.has_tiebreak_conflict,
            tiebreak_group=self.tiebreak_group,
            manual_tiebreak_order=self.manual_tiebreak_order,
        )
