"""
Type definitions used across layers
"""

from enum import StrEnum

STARTING_FEN = "rnbqkbnr/pppppppp/8/8/8/8/PPPPPPPP/RNBQKBNR w KQkq - 0 1"


class Status(StrEnum):
    WAITING = "waiting"
    ACTIVE = "active"
    COMPLETED = "completed"
    ABORTED = "aborted"
    DRAW_OFFERED = "draw_offered"
    ADJOURNED = "adjourned"


# Moves (and resignations) are only accepted while the game is in one of these
PLAYABLE_STATUSES = (Status.WAITING, Status.ACTIVE)


class Color(StrEnum):
    WHITE = "white"
    BLACK = "black"

    @property
    def opponent(self) -> "Color":
        return Color.BLACK if self is Color.WHITE else Color.WHITE


class PieceType(StrEnum):
    PAWN = "pawn"
    KNIGHT = "knight"
    BISHOP = "bishop"
    ROOK = "rook"
    QUEEN = "queen"
    KING = "king"


PROMOTABLE_PIECES = (PieceType.KNIGHT, PieceType.BISHOP, PieceType.ROOK, PieceType.QUEEN)


class GameResult(StrEnum):
    """Stored in PGN style, same as the values the frontend reads."""

    WHITE_WINS = "1-0"
    BLACK_WINS = "0-1"
    DRAW = "1/2-1/2"
    ONGOING = "*"

    @classmethod
    def win_for(cls, color: Color) -> "GameResult":
        return cls.WHITE_WINS if color == Color.WHITE else cls.BLACK_WINS


class Termination(StrEnum):
    CHECKMATE = "checkmate"
    RESIGNATION = "resignation"
    TIMEOUT = "timeout"
    DRAW_AGREEMENT = "draw_agreement"
    STALEMATE = "stalemate"
    INSUFFICIENT_MATERIAL = "insufficient_material"
    THREEFOLD_REPETITION = "threefold_repetition"
    FIFTY_MOVE_RULE = "50_move_rule"
    ABANDONED = "abandoned"


class CheckStatus(StrEnum):
    CHECK = "check"
    CHECKMATE = "checkmate"


class ErrorKind(StrEnum):
    """Classification of every failure. Decides HTTP status and whether a client may retry."""

    NOT_FOUND = "not_found"
    PRECONDITION_FAILED = "precondition_failed"
    INVALID_INPUT = "invalid_input"
    CONFLICT = "conflict"
    INTERNAL = "internal"


class ErrorCode(StrEnum):
    GAME_NOT_FOUND = "GAME_NOT_FOUND"
    USER_NOT_FOUND = "USER_NOT_FOUND"
    GAME_NOT_ACTIVE = "GAME_NOT_ACTIVE"
    INSUFFICIENT_PLAYERS = "INSUFFICIENT_PLAYERS"
    MOVE_IN_FLIGHT = "MOVE_IN_FLIGHT"
    INVALID_MOVE = "INVALID_MOVE"
    INVALID_INPUT = "INVALID_INPUT"
    CONFLICT = "CONFLICT"
    INTERNAL_ERROR = "INTERNAL_ERROR"
    # client side only: request never produced a classified server response
    API_ERROR = "API_ERROR"
