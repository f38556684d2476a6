"""Implementation of the Game/User repositories using SQLAlchemy"""

import logging
from contextlib import contextmanager
from typing import Any, Iterator, Optional
from uuid import UUID

from sqlalchemy import case, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from src.core.exceptions import ConflictError, GameNotFoundError, RepositoryError
from src.core.models import (
    GameModel,
    MoveModel,
    ProfileChanges,
    TimeControl,
    UserModel,
)
from src.core.shared_types import (
    CheckStatus,
    Color,
    GameResult,
    PieceType,
    Status,
    Termination,
)
from src.db.schema import DBGame, DBMove, DBUser

logger = logging.getLogger(__name__)

UNIQUE_VIOLATION = "23505"


class SQLGameRepository:
    """Data stored using SQL / methods implemented using SQLAlchemy"""

    def __init__(self, db_session: Session) -> None:
        self.db = db_session

    def get_game(self, game_id: UUID) -> GameModel | None:
        """Get game by ID, if record exists."""
        game_db = self._fetch_game(game_id)
        if game_db:
            return self._to_model(game_db)
        return None

    def list_games(self, status: Optional[Status] = None, limit: int = 10) -> list[GameModel]:
        """Newest games first, optionally only those with the given status."""
        query = select(DBGame).order_by(DBGame.created_at.desc()).limit(limit)
        if status is not None:
            query = query.where(DBGame.status == status)
        return [self._to_model(game_db) for game_db in self.db.scalars(query)]

    def create_game(self, game: GameModel) -> tuple[GameModel, UUID]:
        """Store new game and return the stored data + newly created game ID."""
        game_db = DBGame(
            white_player_id=game.white_player_id,
            black_player_id=game.black_player_id,
            time_control=game.time_control.to_dict(),
            **self._game_values(game),
        )
        if game.created_at is not None:
            game_db.created_at = game.created_at

        with _transaction(self.db, "create game"):
            self.db.add(game_db)
        self.db.refresh(game_db)
        return self._to_model(game_db), game_db.id

    def list_moves(self, game_id: UUID) -> list[MoveModel]:
        """All moves of a game, by move number and white before black."""
        white_first = case((DBMove.color == Color.WHITE, 0), else_=1)
        query = (
            select(DBMove)
            .where(DBMove.game_id == game_id)
            .order_by(DBMove.move_number, white_first)
        )
        return [self._move_to_model(move_db) for move_db in self.db.scalars(query)]

    def record_move(
        self, game_id: UUID, move: MoveModel, game: GameModel, expected_move_count: int
    ) -> GameModel:
        """
        Append a move and store the updated game in one transaction.

        The game row is only updated if its move_count is still `expected_move_count` (optimistic concurrency).
        A second line of defence is the unique (game, move_number, color) constraint on the moves table.
        """
        with _transaction(self.db, "record move"):
            self._guarded_update(game_id, game, expected_move_count)
            self.db.add(self._move_to_db(game_id, move))
        return self._refetch(game_id)

    def update_game(self, game_id: UUID, game: GameModel, expected_move_count: int) -> GameModel:
        """Store new game state without a move (e.g. resignation). Same concurrency guard as record_move."""
        with _transaction(self.db, "update game"):
            self._guarded_update(game_id, game, expected_move_count)
        return self._refetch(game_id)

    def delete_game(self, game_id: UUID) -> GameModel | None:
        """Remove a game's record. Its moves go with it."""
        game_db = self._fetch_game(game_id)
        if not game_db:
            return None
        game_model = self._to_model(game_db)
        with _transaction(self.db, "delete game"):
            self.db.delete(game_db)
        return game_model

    # -- Internal helpers --
    def _guarded_update(self, game_id: UUID, game: GameModel, expected_move_count: int) -> None:
        statement = (
            update(DBGame)
            .where(DBGame.id == game_id, DBGame.move_count == expected_move_count)
            .values(**self._game_values(game))
            .execution_options(synchronize_session=False)
        )
        result = self.db.execute(statement)
        if result.rowcount == 1:  # type: ignore[attr-defined]
            return

        # Nothing updated: either the game is gone or someone else got there first
        exists = self.db.scalar(select(DBGame.id).where(DBGame.id == game_id))
        if exists is None:
            raise GameNotFoundError(f"Game with {game_id=} not found.")
        raise ConflictError(
            f"Game with {game_id=} changed since it was read (expected {expected_move_count} moves)."
        )

    def _refetch(self, game_id: UUID) -> GameModel:
        game = self.get_game(game_id)
        if game is None:
            raise GameNotFoundError(f"Game with {game_id=} not found.")
        return game

    def _fetch_game(self, game_id: UUID) -> DBGame | None:
        query = select(DBGame).where(DBGame.id == game_id)
        return self.db.scalar(query)

    def _game_values(self, game: GameModel) -> dict[str, Any]:
        """Columns that change during a game's lifetime."""
        return {
            "status": game.status,
            "current_fen": game.current_fen,
            "move_count": game.move_count,
            "white_time_left": game.white_time_left,
            "black_time_left": game.black_time_left,
            "result": game.result,
            "termination": game.termination,
            "winner_id": game.winner_id,
            "started_at": game.started_at,
            "ended_at": game.ended_at,
            "last_move_at": game.last_move_at,
        }

    def _to_model(self, game_db: DBGame) -> GameModel:
        """Convert SQLAlchemy model to data transfer model."""
        return GameModel(
            id=game_db.id,
            white_player_id=game_db.white_player_id,
            black_player_id=game_db.black_player_id,
            status=Status(game_db.status),
            current_fen=game_db.current_fen,
            time_control=TimeControl(**game_db.time_control),
            white_time_left=game_db.white_time_left,
            black_time_left=game_db.black_time_left,
            move_count=game_db.move_count,
            result=GameResult(game_db.result) if game_db.result else None,
            termination=Termination(game_db.termination) if game_db.termination else None,
            winner_id=game_db.winner_id,
            started_at=game_db.started_at,
            ended_at=game_db.ended_at,
            last_move_at=game_db.last_move_at,
            created_at=game_db.created_at,
        )

    def _move_to_db(self, game_id: UUID, move: MoveModel) -> DBMove:
        return DBMove(
            game_id=game_id,
            move_number=move.move_number,
            color=move.color,
            from_square=move.from_square,
            to_square=move.to_square,
            piece_moved=move.piece_moved,
            captured_piece=move.captured_piece,
            is_castling=move.is_castling,
            is_en_passant=move.is_en_passant,
            promotion_piece=move.promotion_piece,
            check_status=move.check_status,
            move_notation=move.move_notation,
            position_after=move.position_after,
            time_taken=move.time_taken,
            time_left=move.time_left,
        )

    def _move_to_model(self, move_db: DBMove) -> MoveModel:
        return MoveModel(
            id=move_db.id,
            game_id=move_db.game_id,
            move_number=move_db.move_number,
            color=Color(move_db.color),
            from_square=move_db.from_square,
            to_square=move_db.to_square,
            piece_moved=PieceType(move_db.piece_moved),
            captured_piece=PieceType(move_db.captured_piece) if move_db.captured_piece else None,
            is_castling=move_db.is_castling,
            is_en_passant=move_db.is_en_passant,
            promotion_piece=PieceType(move_db.promotion_piece) if move_db.promotion_piece else None,
            check_status=CheckStatus(move_db.check_status) if move_db.check_status else None,
            move_notation=move_db.move_notation,
            position_after=move_db.position_after,
            time_taken=move_db.time_taken,
            time_left=move_db.time_left,
            created_at=move_db.created_at,
        )


class SQLUserRepository:
    """Users table. The password hash never makes it into a UserModel."""

    def __init__(self, db_session: Session) -> None:
        self.db = db_session

    def get_user(self, user_id: UUID) -> UserModel | None:
        user_db = self.db.get(DBUser, user_id)
        return self._to_model(user_db) if user_db else None

    def first_users(self, limit: int) -> list[UserModel]:
        query = select(DBUser).order_by(DBUser.created_at, DBUser.username).limit(limit)
        return [self._to_model(user_db) for user_db in self.db.scalars(query)]

    def create_user(self, user: UserModel, password_hash: Optional[str] = None) -> UserModel:
        user_db = DBUser(
            username=user.username,
            email=user.email,
            password_hash=password_hash,
            display_name=user.display_name,
            bio=user.bio,
            country=user.country,
            elo_rating=user.elo_rating,
            games_played=user.games_played,
            games_won=user.games_won,
            games_drawn=user.games_drawn,
            games_lost=user.games_lost,
            is_online=user.is_online,
            preferences=dict(user.preferences),
        )
        if user.created_at is not None:
            user_db.created_at = user.created_at
        with _transaction(self.db, "create user"):
            self.db.add(user_db)
        self.db.refresh(user_db)
        return self._to_model(user_db)

    def update_profile(self, user_id: UUID, changes: ProfileChanges) -> UserModel | None:
        user_db = self.db.get(DBUser, user_id)
        if not user_db:
            return None
        with _transaction(self.db, "update profile"):
            if changes.display_name is not None:
                user_db.display_name = changes.display_name
            if changes.bio is not None:
                user_db.bio = changes.bio
            if changes.preferences is not None:
                # new dict, so SQLAlchemy notices the JSON column changed
                user_db.preferences = {**(user_db.preferences or {}), **changes.preferences}
        self.db.refresh(user_db)
        return self._to_model(user_db)

    def _to_model(self, user_db: DBUser) -> UserModel:
        return UserModel(
            id=user_db.id,
            username=user_db.username,
            email=user_db.email,
            display_name=user_db.display_name,
            bio=user_db.bio,
            country=user_db.country,
            elo_rating=user_db.elo_rating,
            games_played=user_db.games_played,
            games_won=user_db.games_won,
            games_drawn=user_db.games_drawn,
            games_lost=user_db.games_lost,
            is_online=user_db.is_online,
            preferences=dict(user_db.preferences or {}),
            created_at=user_db.created_at,
            updated_at=user_db.updated_at,
        )


@contextmanager
def _transaction(db: Session, action: str) -> Iterator[None]:
    """
    Commit on success, roll back on any failure.

    Storage errors get classified on the way out: a unique violation means a concurrent write won (Conflict),
    anything else SQLAlchemy raises (including CHECK / NOT NULL / foreign key violations) is a storage failure (RepositoryError).
    """
    try:
        yield
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        if not _is_unique_violation(exc):
            logger.error("Constraint violated during %s: %s", action, exc.orig)
            raise RepositoryError(f"Storage failure during {action}.") from exc
        logger.warning("Conflict during %s: %s", action, exc.orig)
        raise ConflictError(f"Concurrent modification during {action}.") from exc
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error("Storage failure during %s: %s", action, exc)
        raise RepositoryError(f"Storage failure during {action}.") from exc
    except BaseException:
        db.rollback()
        raise


def _is_unique_violation(exc: IntegrityError) -> bool:
    # PostgreSQL drivers expose the SQLSTATE, SQLite only a message
    sqlstate = getattr(exc.orig, "sqlstate", None) or getattr(exc.orig, "pgcode", None)
    if sqlstate:
        return sqlstate == UNIQUE_VIOLATION
    return "unique constraint" in str(exc.orig).lower()
