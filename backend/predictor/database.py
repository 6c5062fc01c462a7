import os
from pathlib import Path
from typing import Generator

from dotenv import load_dotenv
from sqlalchemy.engine import Engine
from sqlmodel import Session, SQLModel, create_engine

load_dotenv()

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./predictor.db")

_is_sqlite = DATABASE_URL.startswith("sqlite")
_connect_args = {"check_same_thread": False} if _is_sqlite else {}
_echo = os.getenv("SQL_ECHO", "false").lower() in ("true", "1", "yes")

if _is_sqlite and ":memory:" not in DATABASE_URL:
    db_path = DATABASE_URL.replace("sqlite:///", "", 1)
    Path(db_path).parent.mkdir(parents=True, exist_ok=True)

engine: Engine = create_engine(
    DATABASE_URL,
    echo=_echo,
    connect_args=_connect_args,
)


def get_session() -> Generator[Session, None, None]:
    """Get database session"""
    with Session(engine) as session:
        yield session


def import_models() -> None:
    """Register every table with SQLModel metadata"""
    from predictor.models.best_third_place_prediction import BestThirdPlacePrediction  # noqa: F401
    from predictor.models.group import Group  # noqa: F401
    from predictor.models.group_standing_prediction import GroupStandingPrediction  # noqa: F401
    from predictor.models.match import Match  # noqa: F401
    from predictor.models.match_prediction import MatchPrediction  # noqa: F401
    from predictor.models.prediction import Prediction  # noqa: F401
    from predictor.models.team import Team  # noqa: F401


def init_db() -> None:
    """Initialize database - create all tables"""
    import_models()
    SQLModel.metadata.create_all(engine)
