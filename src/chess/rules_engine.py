"""
Contract between the Service layer and whatever knows the rules of chess.

The Service never touches a concrete engine: it hands over a position (FEN) and a candidate move,
and gets back either the canonical move + facts about the resulting position, or an IllegalMoveError.
"""

from dataclasses import dataclass
from typing import Optional, Protocol, Sequence

from src.core.shared_types import Color, PieceType, Termination


@dataclass(frozen=True)
class CandidateMove:
    """What a player asked for: from/to squares and (for pawn pushes to the last rank) a promotion piece."""

    from_square: str
    to_square: str
    promotion: Optional[PieceType] = None


@dataclass(frozen=True)
class CanonicalMove:
    """The move as resolved by the rules engine."""

    from_square: str
    to_square: str
    color: Color
    piece: PieceType
    san: str
    uci: str
    captured: Optional[PieceType] = None
    promotion: Optional[PieceType] = None
    is_castling: bool = False
    is_en_passant: bool = False


@dataclass(frozen=True)
class PositionFacts:
    fen: str
    turn: Color
    fullmove_number: int
    is_check: bool = False
    is_checkmate: bool = False
    is_stalemate: bool = False
    is_insufficient_material: bool = False
    is_threefold_repetition: bool = False
    is_fifty_moves: bool = False

    @property
    def draw_reason(self) -> Optional[Termination]:
        """First draw condition that applies (stalemate before material before repetition before 50 moves)."""
        if self.is_checkmate:
            return None
        if self.is_stalemate:
            return Termination.STALEMATE
        if self.is_insufficient_material:
            return Termination.INSUFFICIENT_MATERIAL
        if self.is_threefold_repetition:
            return Termination.THREEFOLD_REPETITION
        if self.is_fifty_moves:
            return Termination.FIFTY_MOVE_RULE
        return None

    @property
    def is_draw(self) -> bool:
        return self.draw_reason is not None

    @property
    def is_game_over(self) -> bool:
        return self.is_checkmate or self.is_draw


@dataclass(frozen=True)
class AppliedMove:
    move: CanonicalMove
    position: PositionFacts


class RulesEngine(Protocol):
    """Anything that can validate and apply chess moves."""

    def try_move(
        self, position: str, candidate: CandidateMove, history: Sequence[str] = ()
    ) -> AppliedMove:
        """
        Apply candidate to position.

        history: FENs of all earlier positions of the game (oldest first), used for repetition detection.
        Raises IllegalMoveError if the move is not legal, InvalidFENError if the position cannot be read.
        """
        ...

    def legal_moves(self, position: str) -> list[str]:
        """All legal moves (UCI) for the side to move."""
        ...

    def describe(self, position: str, history: Sequence[str] = ()) -> PositionFacts:
        """Facts about a position without making a move."""
        ...


def repetition_key(fen: str) -> str:
    """Part of a FEN that identifies a position for repetition purposes (drops the move counters)."""
    return " ".join(fen.split(" ")[:4])
