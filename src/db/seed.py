"""
Fill an empty database with a few demo users (so a game can be created right away).

Usage: python -m src.db.seed
"""

import logging

from sqlalchemy.orm import Session

from src.core.models import UserModel
from src.db.database import get_engine, get_session_factory, init_db
from src.db.sql_repository import SQLUserRepository

logger = logging.getLogger(__name__)

DEMO_USERS = [
    UserModel(
        username="alice_chess",
        email="alice@chess.dev",
        display_name="Alice Cooper",
        bio="Love playing tactical chess games",
        country="US",
        elo_rating=1450,
        games_played=25,
        games_won=15,
        games_drawn=5,
        games_lost=5,
        is_online=True,
        preferences={"theme": "dark", "board_theme": "green", "auto_queen": False},
    ),
    UserModel(
        username="bob_tactics",
        email="bob@chess.dev",
        display_name="Bob Fischer",
        bio="Tactical puzzles are my specialty",
        country="CA",
        elo_rating=1380,
        games_played=18,
        games_won=8,
        games_drawn=4,
        games_lost=6,
        preferences={"theme": "light", "board_theme": "brown", "auto_queen": True},
    ),
    UserModel(
        username="chess_master",
        email="master@chess.dev",
        display_name="Magnus Demo",
        bio="Endgames are where games are won",
        country="NO",
        elo_rating=2100,
    ),
]


def seed_users(db: Session) -> int:
    """Insert the demo users that are not there yet. Returns the number of users added."""
    repo = SQLUserRepository(db)
    existing = {user.username for user in repo.first_users(limit=len(DEMO_USERS) + 100)}
    added = 0
    for user in DEMO_USERS:
        if user.username in existing:
            continue
        repo.create_user(user)
        added += 1
    return added


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    init_db(get_engine())
    with get_session_factory()() as session:
        logger.info("Added %d demo users", seed_users(session))
