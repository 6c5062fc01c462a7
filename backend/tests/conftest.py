import os

# Keep the app's own engine off disk; every request goes through the test engine anyway
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402
from sqlmodel import Session, SQLModel, create_engine, select  # noqa: E402

from predictor.database import get_session, import_models  # noqa: E402
from predictor.main import app  # noqa: E402
from predictor.models.team import Team  # noqa: E402
from predictor.services.group_standings import GROUP_LETTERS  # noqa: E402
from predictor.utils.tournament_seed import seed_group_teams, seed_reference_data  # noqa: E402

TEST_DATABASE_URL = "sqlite:///:memory:"

# sqlite:///:memory: with StaticPool so ALL sessions share the same database;
# check_same_thread=False is required for TestClient's worker thread.
test_engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)


def override_get_session():
    """Override session to use test engine"""
    with Session(test_engine) as session:
        yield session


@pytest.fixture(name="session", scope="function")
def session_fixture():
    """Provide a test database session on a fresh schema"""
    import_models()
    SQLModel.metadata.create_all(test_engine)

    with Session(test_engine) as session:
        yield session

    SQLModel.metadata.drop_all(test_engine)


@pytest.fixture(name="client")
def client_fixture(session: Session):
    """Provide a test client with overridden database session

    The override is set before TestClient() so the app never touches its own engine.
    """
    app.dependency_overrides[get_session] = override_get_session

    with TestClient(app) as client:
        yield client

    app.dependency_overrides.clear()


@pytest.fixture(name="tournament")
def tournament_fixture(session: Session):
    """Seed groups A-L with teams "A1".."L4" and the knockout bracket.

    Returns a dict team name -> team id.
    """
    seed_reference_data(session)
    for letter in GROUP_LETTERS:
        seed_group_teams(session, letter, [(f"{letter}{p}", None) for p in range(1, 5)])
    return {t.name: t.id for t in session.exec(select(Team)).all()}
