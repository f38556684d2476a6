"""
Boundary layer data model(s).

These objects can be used to communicate with the Service.
Hence, both the API layer (higher) and domain/db layers (lower) will use model(s) defined here to send to/receive from the Service
(Decouples the data model specific to the DB layer, API layer, or domain layer from the information needed to send across boundaries)
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional
from uuid import UUID

from src.core.shared_types import (
    CheckStatus,
    Color,
    GameResult,
    PieceType,
    Status,
    Termination,
)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class TimeControl:
    """Seconds on the clock at the start + seconds added per move."""

    initial: int = 600
    increment: int = 5

    def to_dict(self) -> dict[str, int]:
        return {"initial": self.initial, "increment": self.increment}


@dataclass
class GameModel:
    """Transport-safe representation of a chess game used between API, Service and DB layers."""

    white_player_id: UUID
    black_player_id: UUID
    status: Status
    current_fen: str
    time_control: TimeControl
    white_time_left: int
    black_time_left: int
    move_count: int = 0
    result: Optional[GameResult] = None
    termination: Optional[Termination] = None
    winner_id: Optional[UUID] = None
    started_at: Optional[datetime] = None
    ended_at: Optional[datetime] = None
    last_move_at: Optional[datetime] = None
    # Assigned by the repository
    id: Optional[UUID] = None
    created_at: Optional[datetime] = None

    def player_id(self, color: Color) -> UUID:
        return self.white_player_id if color == Color.WHITE else self.black_player_id

    def time_left(self, color: Color) -> int:
        return self.white_time_left if color == Color.WHITE else self.black_time_left


@dataclass
class MoveModel:
    """One ply. Created once when the move is accepted, never updated afterwards."""

    move_number: int
    color: Color
    from_square: str
    to_square: str
    piece_moved: PieceType
    move_notation: str
    position_after: str
    time_left: int
    captured_piece: Optional[PieceType] = None
    is_castling: bool = False
    is_en_passant: bool = False
    promotion_piece: Optional[PieceType] = None
    check_status: Optional[CheckStatus] = None
    time_taken: Optional[int] = None
    # Assigned by the repository
    id: Optional[UUID] = None
    game_id: Optional[UUID] = None
    created_at: Optional[datetime] = None


@dataclass
class UserModel:
    username: str
    email: str
    display_name: Optional[str] = None
    bio: Optional[str] = None
    country: Optional[str] = None
    elo_rating: int = 1200
    games_played: int = 0
    games_won: int = 0
    games_drawn: int = 0
    games_lost: int = 0
    is_online: bool = False
    preferences: dict[str, Any] = field(default_factory=dict)
    id: Optional[UUID] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


@dataclass
class ProfileChanges:
    """Only fields that are not None get written."""

    display_name: Optional[str] = None
    bio: Optional[str] = None
    preferences: Optional[dict[str, Any]] = None
