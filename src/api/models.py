"""Requests and Response models"""

from datetime import datetime
from typing import Any, Literal, Optional, Self
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from src.chess.rules_engine import AppliedMove
from src.core.exceptions import InvalidRequestError
from src.core.models import GameModel, MoveModel, UserModel
from src.core.shared_types import (
    PROMOTABLE_PIECES,
    CheckStatus,
    Color,
    GameResult,
    PieceType,
    Status,
    Termination,
)

FILES = "abcdefgh"
RANKS = "12345678"
PROMOTION_LETTERS = {
    "n": PieceType.KNIGHT,
    "b": PieceType.BISHOP,
    "r": PieceType.ROOK,
    "q": PieceType.QUEEN,
}


class RequestModel(BaseModel):
    """Unknown fields are rejected instead of silently ignored."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)


# --- REQUEST MODELS ---
class TimeControlRequest(RequestModel):
    initial: int = Field(default=600, ge=0)
    increment: int = Field(default=5, ge=0)


class CreateGameRequest(RequestModel):
    time_control: Optional[TimeControlRequest] = None


class ListGamesRequest(RequestModel):
    status: Optional[Status] = None
    limit: int = Field(default=10, ge=1, le=100)


class MoveRequest(RequestModel):
    """Body of POST /games/{id}/move. On the wire the squares are called "from" and "to"."""

    from_square: str = Field(alias="from")
    to_square: str = Field(alias="to")
    promotion: Optional[PieceType] = None
    time_taken: Optional[int] = Field(default=None, ge=0)  # milliseconds
    time_left: Optional[int] = Field(default=None, ge=0)  # milliseconds

    @field_validator("from_square", "to_square")
    @classmethod
    def validate_square(cls, value: str) -> str:
        def _is_algebraic_notation(value: str) -> bool:
            return len(value) == 2 and value[0] in FILES and value[1] in RANKS

        if not _is_algebraic_notation(value):
            raise InvalidRequestError(
                f"Cannot interpret {value!r} as a valid square name."
            )
        return value

    @field_validator("promotion", mode="before")
    @classmethod
    def validate_promotion(cls, value: Any) -> Any:
        """Frontend sends single letters ('q'), other clients the full piece name."""
        if isinstance(value, str) and value.lower() in PROMOTION_LETTERS:
            return PROMOTION_LETTERS[value.lower()]
        if value is not None and value not in PROMOTABLE_PIECES:
            raise InvalidRequestError(f"Cannot promote to {value!r}.")
        return value


class ResignRequest(RequestModel):
    color: Color


class PreferencesUpdate(RequestModel):
    theme: Optional[Literal["light", "dark"]] = None
    board_theme: Optional[Literal["green", "brown", "blue", "purple"]] = None
    piece_theme: Optional[Literal["classic", "modern", "artistic"]] = None
    auto_queen: Optional[bool] = None
    show_legal_moves: Optional[bool] = None
    show_coordinates: Optional[bool] = None
    enable_sounds: Optional[bool] = None
    animation_speed: Optional[Literal["slow", "normal", "fast"]] = None
    flip_board: Optional[bool] = None


class UpdateProfileRequest(RequestModel):
    display_name: Optional[str] = Field(default=None, min_length=1, max_length=50)
    bio: Optional[str] = Field(default=None, max_length=500)
    preferences: Optional[PreferencesUpdate] = None


# --- RESPONSE MODELS ---
class GameResponse(BaseModel):
    id: UUID
    white_player_id: UUID
    black_player_id: UUID
    status: Status
    time_control: dict[str, int]
    winner_id: Optional[UUID]
    result: Optional[GameResult]
    termination: Optional[Termination]
    current_fen: str
    white_time_left: int
    black_time_left: int
    move_count: int
    started_at: Optional[datetime]
    ended_at: Optional[datetime]
    last_move_at: Optional[datetime]
    created_at: Optional[datetime]

    @classmethod
    def from_model(cls, game: GameModel) -> Self:
        assert game.id is not None, "stored games always have an ID"
        return cls(
            id=game.id,
            white_player_id=game.white_player_id,
            black_player_id=game.black_player_id,
            status=game.status,
            time_control=game.time_control.to_dict(),
            winner_id=game.winner_id,
            result=game.result,
            termination=game.termination,
            current_fen=game.current_fen,
            white_time_left=game.white_time_left,
            black_time_left=game.black_time_left,
            move_count=game.move_count,
            started_at=game.started_at,
            ended_at=game.ended_at,
            last_move_at=game.last_move_at,
            created_at=game.created_at,
        )


class MoveRecordResponse(BaseModel):
    """One row of a game's move history."""

    id: Optional[UUID]
    game_id: Optional[UUID]
    move_number: int
    color: Color
    from_square: str
    to_square: str
    piece_moved: PieceType
    captured_piece: Optional[PieceType]
    is_castling: bool
    is_en_passant: bool
    promotion_piece: Optional[PieceType]
    check_status: Optional[CheckStatus]
    move_notation: str
    position_after: str
    time_taken: Optional[int]
    time_left: int
    created_at: Optional[datetime]

    @classmethod
    def from_model(cls, move: MoveModel) -> Self:
        return cls(
            id=move.id,
            game_id=move.game_id,
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
            created_at=move.created_at,
        )


class GameDetailResponse(GameResponse):
    """A game merged with its ordered move history."""

    moves: list[MoveRecordResponse]


class MovePayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    from_square: str = Field(alias="from")
    to_square: str = Field(alias="to")
    san: str
    piece: PieceType
    captured: Optional[PieceType] = None
    promotion: Optional[PieceType] = None


class GameStateResponse(BaseModel):
    fen: str
    turn: Literal["w", "b"]
    check: bool
    checkmate: bool
    stalemate: bool
    draw: bool
    game_over: bool
    move_number: int
    status: Status
    result: Optional[GameResult]
    termination: Optional[Termination]


class MoveResponse(BaseModel):
    move: MovePayload
    game_state: GameStateResponse

    @classmethod
    def from_applied(cls, applied: AppliedMove, game: GameModel) -> Self:
        """Canonical move from the rules engine + state of the game after it was stored."""
        move, position = applied.move, applied.position
        return cls(
            move=MovePayload(
                from_square=move.from_square,
                to_square=move.to_square,
                san=move.san,
                piece=move.piece,
                captured=move.captured,
                promotion=move.promotion,
            ),
            game_state=GameStateResponse(
                fen=position.fen,
                turn="w" if position.turn == Color.WHITE else "b",
                check=position.is_check,
                checkmate=position.is_checkmate,
                stalemate=position.is_stalemate,
                draw=position.is_draw,
                game_over=position.is_game_over,
                move_number=position.fullmove_number,
                status=game.status,
                result=game.result,
                termination=game.termination,
            ),
        )


class LegalMovesResponse(BaseModel):
    game_id: UUID
    color: Color
    legal_moves: list[str]


class UserProfileResponse(BaseModel):
    """Public view of a user. Never includes the password hash."""

    id: UUID
    username: str
    email: str
    display_name: Optional[str]
    bio: Optional[str]
    country: Optional[str]
    elo_rating: int
    games_played: int
    games_won: int
    games_drawn: int
    games_lost: int
    is_online: bool
    preferences: dict[str, Any]
    created_at: Optional[datetime]
    updated_at: Optional[datetime]

    @classmethod
    def from_model(cls, user: UserModel) -> Self:
        assert user.id is not None, "stored users always have an ID"
        return cls(
            id=user.id,
            username=user.username,
            email=user.email,
            display_name=user.display_name,
            bio=user.bio,
            country=user.country,
            elo_rating=user.elo_rating,
            games_played=user.games_played,
            games_won=user.games_won,
            games_drawn=user.games_drawn,
            games_lost=user.games_lost,
            is_online=user.is_online,
            preferences=user.preferences,
            created_at=user.created_at,
            updated_at=user.updated_at,
        )


# --- ENVELOPE ---
class ErrorBody(BaseModel):
    code: str
    message: str
    details: Optional[Any] = None


class ApiResponse(BaseModel):
    """Every response has this shape: {success, data?, error?, timestamp}."""

    success: bool
    data: Optional[Any] = None
    error: Optional[ErrorBody] = None
    timestamp: datetime
