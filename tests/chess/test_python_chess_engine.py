"""Unit tests for src/chess/python_chess_engine.py"""

import pytest

from src.chess.python_chess_engine import PythonChessEngine
from src.chess.rules_engine import AppliedMove, CandidateMove, repetition_key
from src.core.exceptions import IllegalMoveError, InvalidFENError
from src.core.shared_types import STARTING_FEN, Color, PieceType, Termination


@pytest.fixture
def engine() -> PythonChessEngine:
    return PythonChessEngine()


def play(engine: PythonChessEngine, moves: list[str], fen: str = STARTING_FEN) -> AppliedMove:
    """Play a sequence of UCI moves, keeping track of earlier positions like the service does."""
    history: list[str] = []
    applied = None
    for uci in moves:
        candidate = CandidateMove(uci[:2], uci[2:4])
        applied = engine.try_move(fen, candidate, history=history + [fen])
        history.append(fen)
        fen = applied.position.fen
    assert applied is not None
    return applied


# -- try_move: ordinary moves --
def test_pawn_push_from_start(engine: PythonChessEngine) -> None:
    applied = engine.try_move(STARTING_FEN, CandidateMove("e2", "e4"))

    assert applied.move.san == "e4"
    assert applied.move.uci == "e2e4"
    assert applied.move.color == Color.WHITE
    assert applied.move.piece == PieceType.PAWN
    assert applied.move.captured is None
    assert applied.position.fen == "rnbqkbnr/pppppppp/8/8/4P3/8/PPPP1PPP/RNBQKBNR b KQkq - 0 1"
    assert applied.position.turn == Color.BLACK
    assert applied.position.fullmove_number == 1
    assert not applied.position.is_game_over


@pytest.mark.parametrize(
    "from_square, to_square",
    [
        ("e2", "e5"),  # pawn cannot move three squares
        ("e7", "e5"),  # black piece, white to move
        ("e1", "e2"),  # own piece on the target square
        ("d4", "d5"),  # empty from-square
    ],
)
def test_illegal_moves_are_rejected(
    engine: PythonChessEngine, from_square: str, to_square: str
) -> None:
    with pytest.raises(IllegalMoveError):
        engine.try_move(STARTING_FEN, CandidateMove(from_square, to_square))


def test_unreadable_squares_are_rejected(engine: PythonChessEngine) -> None:
    with pytest.raises(IllegalMoveError):
        engine.try_move(STARTING_FEN, CandidateMove("z9", "e4"))


def test_capture(engine: PythonChessEngine) -> None:
    fen = "rnbqkbnr/ppp1pppp/8/3p4/4P3/8/PPPP1PPP/RNBQKBNR w KQkq - 0 2"
    applied = engine.try_move(fen, CandidateMove("e4", "d5"))

    assert applied.move.san == "exd5"
    assert applied.move.captured == PieceType.PAWN
    assert not applied.move.is_en_passant


# -- try_move: special moves --
@pytest.mark.parametrize(
    "to_square, san, first_rank",
    [("g1", "O-O", "R4RK1"), ("c1", "O-O-O", "2KR3R")],
)
def test_castling(engine: PythonChessEngine, to_square: str, san: str, first_rank: str) -> None:
    fen = "r3k2r/8/8/8/8/8/8/R3K2R w KQkq - 0 1"
    applied = engine.try_move(fen, CandidateMove("e1", to_square))

    assert applied.move.is_castling
    assert applied.move.piece == PieceType.KING
    assert applied.move.san == san
    # rook jumped over the king
    assert applied.position.fen.split("/")[7].split(" ")[0] == first_rank
    assert applied.position.turn == Color.BLACK


def test_en_passant(engine: PythonChessEngine) -> None:
    fen = "rnbqkbnr/ppp1p1pp/8/3pPp2/8/8/PPPP1PPP/RNBQKBNR w KQkq f6 0 3"
    applied = engine.try_move(fen, CandidateMove("e5", "f6"))

    assert applied.move.is_en_passant
    assert applied.move.captured == PieceType.PAWN
    assert applied.move.san == "exf6"
    # the captured pawn disappeared from f5
    assert applied.position.fen.startswith("rnbqkbnr/ppp1p1pp/5P2/3p4/")


@pytest.mark.parametrize(
    "promotion, san",
    [(PieceType.QUEEN, "e8=Q"), (PieceType.KNIGHT, "e8=N")],
)
def test_promotion(engine: PythonChessEngine, promotion: PieceType, san: str) -> None:
    fen = "8/4P3/8/8/8/8/k7/4K3 w - - 0 1"
    applied = engine.try_move(fen, CandidateMove("e7", "e8", promotion))

    assert applied.move.piece == PieceType.PAWN
    assert applied.move.promotion == promotion
    assert applied.move.san == san
    assert applied.move.uci == f"e7e8{san[-1].lower()}"


def test_promotion_requires_a_piece(engine: PythonChessEngine) -> None:
    fen = "8/4P3/8/8/8/8/k7/4K3 w - - 0 1"
    with pytest.raises(IllegalMoveError):
        engine.try_move(fen, CandidateMove("e7", "e8"))


def test_promotion_piece_on_ordinary_move(engine: PythonChessEngine) -> None:
    with pytest.raises(IllegalMoveError):
        engine.try_move(STARTING_FEN, CandidateMove("e2", "e4", PieceType.QUEEN))


# -- try_move: end of game --
def test_fools_mate(engine: PythonChessEngine) -> None:
    applied = play(engine, ["f2f3", "e7e5", "g2g4", "d8h4"])

    assert applied.move.san == "Qh4#"
    assert applied.move.color == Color.BLACK
    assert applied.position.is_check
    assert applied.position.is_checkmate
    assert applied.position.is_game_over
    assert applied.position.draw_reason is None
    assert applied.position.fullmove_number == 3


def test_stalemate(engine: PythonChessEngine) -> None:
    applied = engine.try_move("k7/8/1Q6/8/8/8/8/7K w - - 0 1", CandidateMove("b6", "c7"))

    assert applied.position.is_stalemate
    assert not applied.position.is_checkmate
    assert applied.position.draw_reason == Termination.STALEMATE
    assert applied.position.is_draw
    assert applied.position.is_game_over


def test_insufficient_material(engine: PythonChessEngine) -> None:
    applied = engine.try_move("k7/8/8/8/8/8/1r6/K7 w - - 0 1", CandidateMove("a1", "b2"))

    assert applied.move.san == "Kxb2"
    assert applied.move.captured == PieceType.ROOK
    assert applied.position.draw_reason == Termination.INSUFFICIENT_MATERIAL


def test_threefold_repetition(engine: PythonChessEngine) -> None:
    """Knights out and back twice: the starting position is on the board for the third time."""
    shuffle = ["g1f3", "g8f6", "f3g1", "f6g8"]

    second_time = play(engine, shuffle)
    assert not second_time.position.is_threefold_repetition
    assert repetition_key(second_time.position.fen) == repetition_key(STARTING_FEN)

    third_time = play(engine, shuffle * 2)
    assert third_time.position.is_threefold_repetition
    assert third_time.position.draw_reason == Termination.THREEFOLD_REPETITION


def test_repetition_needs_history(engine: PythonChessEngine) -> None:
    """Without the earlier positions a single move can never be a repetition."""
    fen = "rnbqkb1r/pppppppp/5n2/8/8/5N2/PPPPPPPP/RNBQKB1R w KQkq - 6 4"
    applied = engine.try_move(fen, CandidateMove("f3", "g1"))
    assert not applied.position.is_threefold_repetition


def test_fifty_move_rule(engine: PythonChessEngine) -> None:
    applied = engine.try_move("k7/8/8/8/8/8/8/KR6 w - - 99 80", CandidateMove("b1", "b2"))

    assert applied.position.is_fifty_moves
    assert applied.position.draw_reason == Termination.FIFTY_MOVE_RULE
    assert applied.position.is_game_over


# -- positions that cannot be read --
@pytest.mark.parametrize(
    "fen",
    [
        "not a fen at all",
        "8/8/8/8/8/8/8/8 w - - 0 1",  # no kings
    ],
)
def test_invalid_positions(engine: PythonChessEngine, fen: str) -> None:
    with pytest.raises(InvalidFENError):
        engine.try_move(fen, CandidateMove("e2", "e4"))
    with pytest.raises(InvalidFENError):
        engine.legal_moves(fen)


# -- legal_moves / describe --
def test_legal_moves_from_start(engine: PythonChessEngine) -> None:
    moves = engine.legal_moves(STARTING_FEN)
    assert len(moves) == 20
    assert "e2e4" in moves
    assert "g1f3" in moves


def test_legal_moves_of_lone_king(engine: PythonChessEngine) -> None:
    assert set(engine.legal_moves("k7/8/8/8/8/8/8/K7 w - - 8 24")) == {"a1b1", "a1a2", "a1b2"}


def test_describe_start(engine: PythonChessEngine) -> None:
    facts = engine.describe(STARTING_FEN)
    assert facts.turn == Color.WHITE
    assert facts.fullmove_number == 1
    assert not facts.is_check
    assert not facts.is_game_over


def test_describe_ignores_itself_at_the_end_of_history(engine: PythonChessEngine) -> None:
    """A stored game's history ends with its current position, which must not count twice."""
    after_shuffle = play(engine, ["g1f3", "g8f6", "f3g1", "f6g8"]).position.fen
    history = [STARTING_FEN, "x", "y", "z", after_shuffle]
    assert not engine.describe(after_shuffle, history).is_threefold_repetition
