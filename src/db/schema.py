"""Database tables / schema"""

from datetime import datetime
from typing import Any, Optional
from uuid import UUID, uuid4

from sqlalchemy import (
    JSON,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

from src.core.models import utc_now
from src.core.shared_types import (
    PROMOTABLE_PIECES,
    STARTING_FEN,
    CheckStatus,
    Color,
    GameResult,
    PieceType,
    Status,
    Termination,
)


def _one_of(column: str, values: list[str], nullable: bool = False) -> str:
    """SQL for a CHECK constraint restricting a column to a set of values."""
    options = ", ".join(f"'{value}'" for value in values)
    check = f"{column} IN ({options})"
    return f"{check} OR {column} IS NULL" if nullable else check


def _algebraic_square(column: str) -> str:
    """'a1' - 'h8' (works on SQLite as well as PostgreSQL, no regex needed)"""
    return (
        f"length({column}) = 2 "
        f"AND substr({column}, 1, 1) BETWEEN 'a' AND 'h' "
        f"AND substr({column}, 2, 1) BETWEEN '1' AND '8'"
    )


class Base(DeclarativeBase):
    pass


class DBUser(Base):
    __tablename__ = "users"
    __table_args__ = (
        CheckConstraint("length(username) >= 3", name="username_length"),
        CheckConstraint("elo_rating >= 100 AND elo_rating <= 3000", name="elo_rating_range"),
        CheckConstraint(
            "games_played = games_won + games_drawn + games_lost", name="games_consistency"
        ),
    )

    id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    username: Mapped[str] = mapped_column(String(30), unique=True, index=True)
    email: Mapped[str] = mapped_column(String(100), unique=True)
    # nullable for OAuth users. NEVER leaves the repository.
    password_hash: Mapped[Optional[str]]
    display_name: Mapped[Optional[str]] = mapped_column(String(50))
    bio: Mapped[Optional[str]]
    country: Mapped[Optional[str]] = mapped_column(String(2))
    elo_rating: Mapped[int] = mapped_column(default=1200)
    games_played: Mapped[int] = mapped_column(default=0)
    games_won: Mapped[int] = mapped_column(default=0)
    games_drawn: Mapped[int] = mapped_column(default=0)
    games_lost: Mapped[int] = mapped_column(default=0)
    is_online: Mapped[bool] = mapped_column(default=False)
    preferences: Mapped[dict[str, Any]] = mapped_column(JSON, default=dict)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now
    )


class DBGame(Base):
    __tablename__ = "games"
    __table_args__ = (
        CheckConstraint("white_player_id != black_player_id", name="different_players"),
        CheckConstraint(_one_of("status", list(Status)), name="status_valid"),
        CheckConstraint(_one_of("result", list(GameResult), nullable=True), name="result_valid"),
        CheckConstraint(
            _one_of("termination", list(Termination), nullable=True), name="termination_valid"
        ),
        CheckConstraint("ended_at IS NULL OR ended_at >= started_at", name="end_time_valid"),
        CheckConstraint(
            "white_time_left >= 0 AND black_time_left >= 0", name="time_left_positive"
        ),
        CheckConstraint("move_count >= 0", name="move_count_positive"),
        Index("idx_games_status_created", "status", "created_at"),
    )

    id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    white_player_id: Mapped[UUID] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"))
    black_player_id: Mapped[UUID] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"))
    status: Mapped[str] = mapped_column(String(20), default=Status.WAITING)
    time_control: Mapped[dict[str, int]] = mapped_column(JSON)
    winner_id: Mapped[Optional[UUID]] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"))
    result: Mapped[Optional[str]] = mapped_column(String(10))
    termination: Mapped[Optional[str]] = mapped_column(String(30))
    started_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    ended_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    current_fen: Mapped[str] = mapped_column(default=STARTING_FEN)
    white_time_left: Mapped[int] = mapped_column(default=600)  # seconds
    black_time_left: Mapped[int] = mapped_column(default=600)  # seconds
    move_count: Mapped[int] = mapped_column(default=0)
    last_move_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, index=True
    )

    moves: Mapped[list["DBMove"]] = relationship(
        back_populates="game",
        cascade="all, delete-orphan",
    )


class DBMove(Base):
    __tablename__ = "game_moves"
    __table_args__ = (
        UniqueConstraint("game_id", "move_number", "color", name="unique_game_move_color"),
        CheckConstraint("move_number > 0", name="move_number_positive"),
        CheckConstraint(_one_of("color", list(Color)), name="color_valid"),
        CheckConstraint(_algebraic_square("from_square"), name="from_square_valid"),
        CheckConstraint(_algebraic_square("to_square"), name="to_square_valid"),
        CheckConstraint(_one_of("piece_moved", list(PieceType)), name="piece_moved_valid"),
        CheckConstraint(
            _one_of(
                "captured_piece",
                [piece for piece in PieceType if piece != PieceType.KING],
                nullable=True,
            ),
            name="captured_piece_valid",
        ),
        CheckConstraint(
            _one_of("promotion_piece", list(PROMOTABLE_PIECES), nullable=True),
            name="promotion_piece_valid",
        ),
        CheckConstraint(
            _one_of("check_status", list(CheckStatus), nullable=True), name="check_status_valid"
        ),
        CheckConstraint("time_left >= 0", name="move_time_left_positive"),
        CheckConstraint("time_taken IS NULL OR time_taken >= 0", name="time_taken_positive"),
        Index("idx_moves_game_move", "game_id", "move_number"),
    )

    id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    game_id: Mapped[UUID] = mapped_column(ForeignKey("games.id", ondelete="CASCADE"))
    move_number: Mapped[int]
    color: Mapped[str] = mapped_column(String(5))
    from_square: Mapped[str] = mapped_column(String(2))
    to_square: Mapped[str] = mapped_column(String(2))
    piece_moved: Mapped[str] = mapped_column(String(6))
    captured_piece: Mapped[Optional[str]] = mapped_column(String(6))
    is_castling: Mapped[bool] = mapped_column(default=False)
    is_en_passant: Mapped[bool] = mapped_column(default=False)
    promotion_piece: Mapped[Optional[str]] = mapped_column(String(6))
    check_status: Mapped[Optional[str]] = mapped_column(String(10))
    move_notation: Mapped[str] = mapped_column(String(10))  # SAN
    position_after: Mapped[str]  # FEN after this move
    time_taken: Mapped[Optional[int]]  # milliseconds
    time_left: Mapped[int]  # milliseconds
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now)

    game: Mapped[DBGame] = relationship(back_populates="moves")
