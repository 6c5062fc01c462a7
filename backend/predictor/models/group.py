from typing import TYPE_CHECKING, List, Optional

from sqlmodel import Field, Relationship, SQLModel

if TYPE_CHECKING:
    from predictor.models.team import Team


class Group(SQLModel, table=True):
    __tablename__ = "tournament_group"

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(unique=True, index=True)  # group letter "A".."L"

    # Relationships
    teams: List["Team"] = Relationship(back_populates="group")
