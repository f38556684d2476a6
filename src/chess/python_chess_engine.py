"""RulesEngine implemented with python-chess."""

from typing import Optional, Sequence

import chess

from src.chess.rules_engine import (
    AppliedMove,
    CandidateMove,
    CanonicalMove,
    PositionFacts,
    repetition_key,
)
from src.core.exceptions import IllegalMoveError, InvalidFENError
from src.core.shared_types import Color, PieceType

PIECE_FROM_CHESS: dict[int, PieceType] = {
    chess.PAWN: PieceType.PAWN,
    chess.KNIGHT: PieceType.KNIGHT,
    chess.BISHOP: PieceType.BISHOP,
    chess.ROOK: PieceType.ROOK,
    chess.QUEEN: PieceType.QUEEN,
    chess.KING: PieceType.KING,
}
PIECE_TO_CHESS: dict[PieceType, int] = {
    piece: piece_type for piece_type, piece in PIECE_FROM_CHESS.items()
}


def _color(turn: chess.Color) -> Color:
    return Color.WHITE if turn == chess.WHITE else Color.BLACK


class PythonChessEngine:
    """Production rules engine: full legal move generation by python-chess."""

    def try_move(
        self, position: str, candidate: CandidateMove, history: Sequence[str] = ()
    ) -> AppliedMove:
        board = self._board(position)
        move = self._parse_move(candidate)

        if not board.is_legal(move):
            raise IllegalMoveError(f"Move not allowed: {move.uci()}")

        # Snapshot everything that needs the position before the move
        moving_piece = board.piece_at(move.from_square)
        assert moving_piece is not None  # a legal move always starts on an occupied square
        is_en_passant = board.is_en_passant(move)
        captured = self._captured_piece(board, move, is_en_passant)
        canonical = CanonicalMove(
            from_square=chess.square_name(move.from_square),
            to_square=chess.square_name(move.to_square),
            color=_color(board.turn),
            piece=PIECE_FROM_CHESS[moving_piece.piece_type],
            san=board.san(move),
            uci=move.uci(),
            captured=captured,
            promotion=PIECE_FROM_CHESS[move.promotion] if move.promotion else None,
            is_castling=board.is_castling(move),
            is_en_passant=is_en_passant,
        )

        board.push(move)
        return AppliedMove(move=canonical, position=self._facts(board, history))

    def legal_moves(self, position: str) -> list[str]:
        board = self._board(position)
        return [move.uci() for move in board.legal_moves]

    def describe(self, position: str, history: Sequence[str] = ()) -> PositionFacts:
        board = self._board(position)
        # the position itself is already in history when describing a stored game
        earlier = list(history)
        if earlier and repetition_key(earlier[-1]) == repetition_key(board.fen()):
            earlier = earlier[:-1]
        return self._facts(board, earlier)

    # -- Internal helpers --
    def _board(self, position: str) -> chess.Board:
        try:
            board = chess.Board(position)
        except ValueError as exc:
            raise InvalidFENError(f"Cannot read position: {position!r}") from exc
        if not board.is_valid():
            raise InvalidFENError(f"Not a legal chess position: {position!r}")
        return board

    def _parse_move(self, candidate: CandidateMove) -> chess.Move:
        try:
            from_square = chess.parse_square(candidate.from_square)
            to_square = chess.parse_square(candidate.to_square)
        except ValueError as exc:
            raise IllegalMoveError(
                f"Cannot interpret squares: {candidate.from_square!r}, {candidate.to_square!r}"
            ) from exc
        promotion = PIECE_TO_CHESS[candidate.promotion] if candidate.promotion else None
        return chess.Move(from_square, to_square, promotion=promotion)

    def _captured_piece(
        self, board: chess.Board, move: chess.Move, is_en_passant: bool
    ) -> Optional[PieceType]:
        if is_en_passant:
            return PieceType.PAWN
        if not board.is_capture(move):
            return None
        target = board.piece_at(move.to_square)
        return PIECE_FROM_CHESS[target.piece_type] if target else None

    def _facts(self, board: chess.Board, history: Sequence[str]) -> PositionFacts:
        """Facts about the position on the board. history holds the positions before it."""
        fen = board.fen()
        key = repetition_key(fen)
        occurrences = 1 + sum(1 for earlier in history if repetition_key(earlier) == key)
        return PositionFacts(
            fen=fen,
            turn=_color(board.turn),
            fullmove_number=board.fullmove_number,
            is_check=board.is_check(),
            is_checkmate=board.is_checkmate(),
            is_stalemate=board.is_stalemate(),
            is_insufficient_material=board.is_insufficient_material(),
            is_threefold_repetition=occurrences >= 3,
            is_fifty_moves=board.is_fifty_moves(),
        )
