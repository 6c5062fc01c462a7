from typing import TYPE_CHECKING, Optional

from sqlmodel import Field, Relationship, SQLModel

if TYPE_CHECKING:
    from predictor.models.group import Group


class Team(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str
    fifa_code: Optional[str] = Field(default=None, index=True)  # "ARG", "MEX", ...
    group_id: Optional[int] = Field(default=None, foreign_key="tournament_group.id", index=True)

    # Relationships
    group: Optional["Group"] = Relationship(back_populates="teams")
