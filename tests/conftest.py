"""
Pytest will auto-discover / import this file called 'conftest.py'.
This file defines fixtures/variables required for testing multiple layers.
"""

from typing import Iterator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import StaticPool, create_engine
from sqlalchemy.orm import Session, sessionmaker

from src.core.config import Settings
from src.core.models import UserModel
from src.db.database import get_db
from src.db.schema import Base
from src.db.sql_repository import SQLUserRepository
from src.main import create_app

# Setup an in-memory SQLite database for testing
DATABASE_URL = "sqlite:///:memory:"
engine = create_engine(
    DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

TestingSessionLocal = sessionmaker(autoflush=False, bind=engine)


@pytest.fixture
def db_session_repo() -> Iterator[Session]:
    """Connection to a test database. Tables are removed at teardown to make unit tests of repository independent of each other."""
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def players(db_session_repo: Session) -> tuple[UserModel, UserModel]:
    """Two registered users: the first one gets white in every new game."""
    repo = SQLUserRepository(db_session_repo)
    white = repo.create_user(UserModel(username="alice_chess", email="alice@chess.dev"))
    black = repo.create_user(UserModel(username="bob_tactics", email="bob@chess.dev"))
    return white, black


@pytest.fixture
def client(db_session_repo: Session) -> TestClient:
    """
    The full app, wired to the test database.

    Not used as a context manager, so the lifespan (creating tables on the configured database) never runs.
    """
    app = create_app(Settings(database_url=DATABASE_URL))
    app.dependency_overrides[get_db] = lambda: db_session_repo
    return TestClient(app, raise_server_exceptions=False)
