"""Wiring of services for the routes (FastAPI dependency injection)."""

from typing import Annotated

from fastapi import Depends
from sqlalchemy.orm import Session

from src.chess.python_chess_engine import PythonChessEngine
from src.core.config import get_settings
from src.core.models import TimeControl
from src.db.database import get_db
from src.db.sql_repository import SQLGameRepository, SQLUserRepository
from src.services.chess_service import ChessService
from src.services.user_service import UserService

DBSession = Annotated[Session, Depends(get_db)]


def get_chess_service(db: DBSession) -> ChessService:
    settings = get_settings()
    return ChessService(
        repository=SQLGameRepository(db),
        users=SQLUserRepository(db),
        engine=PythonChessEngine(),
        default_time_control=TimeControl(
            settings.default_initial_time, settings.default_increment
        ),
    )


def get_user_service(db: DBSession) -> UserService:
    return UserService(SQLUserRepository(db))
