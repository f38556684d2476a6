"""Unit tests for src/db/sql_repository.py"""

from dataclasses import replace
from datetime import datetime, timezone
from uuid import uuid4

import pytest
from sqlalchemy.orm import Session

from src.core.exceptions import ConflictError, GameNotFoundError, RepositoryError
from src.core.models import GameModel, MoveModel, ProfileChanges, TimeControl, UserModel
from src.core.shared_types import STARTING_FEN, Color, GameResult, PieceType, Status, Termination
from src.db.sql_repository import SQLGameRepository, SQLUserRepository

AFTER_E4 = "rnbqkbnr/pppppppp/8/8/4P3/8/PPPP1PPP/RNBQKBNR b KQkq - 0 1"
AFTER_E5 = "rnbqkbnr/pppp1ppp/8/4p3/4P3/8/PPPP1PPP/RNBQKBNR w KQkq - 0 2"


def new_game(players: tuple[UserModel, UserModel], **changes) -> GameModel:
    white, black = players
    assert white.id is not None and black.id is not None
    game = GameModel(
        white_player_id=white.id,
        black_player_id=black.id,
        status=Status.WAITING,
        current_fen=STARTING_FEN,
        time_control=TimeControl(),
        white_time_left=600,
        black_time_left=600,
    )
    return replace(game, **changes)


def e4() -> MoveModel:
    return MoveModel(
        move_number=1,
        color=Color.WHITE,
        from_square="e2",
        to_square="e4",
        piece_moved=PieceType.PAWN,
        move_notation="e4",
        position_after=AFTER_E4,
        time_left=600_000,
    )


def e5() -> MoveModel:
    return MoveModel(
        move_number=1,
        color=Color.BLACK,
        from_square="e7",
        to_square="e5",
        piece_moved=PieceType.PAWN,
        move_notation="e5",
        position_after=AFTER_E5,
        time_left=598_000,
        time_taken=2_000,
    )


# --- GAMES ---
def test_create_game(db_session_repo: Session, players: tuple[UserModel, UserModel]) -> None:
    """Conversion from a GameModel to DBGame for a new entry to the database."""
    repo = SQLGameRepository(db_session_repo)
    stored, game_id = repo.create_game(new_game(players))

    assert isinstance(stored, GameModel)
    assert stored.id == game_id
    assert stored.created_at is not None
    assert stored.status == Status.WAITING
    assert stored.current_fen == STARTING_FEN
    assert stored.time_control == TimeControl(600, 5)
    assert stored.move_count == 0
    assert stored.result is None


def test_get_game_by_id(db_session_repo: Session, players: tuple[UserModel, UserModel]) -> None:
    repo = SQLGameRepository(db_session_repo)
    expected_game, game_id = repo.create_game(new_game(players))
    assert repo.get_game(game_id) == expected_game


def test_get_unknown_game(db_session_repo: Session, players: tuple[UserModel, UserModel]) -> None:
    """Should return None if ID does not match anything in database."""
    repo = SQLGameRepository(db_session_repo)
    assert repo.get_game(uuid4()) is None

    repo.create_game(new_game(players))
    assert repo.get_game(uuid4()) is None


def test_list_games_newest_first(
    db_session_repo: Session, players: tuple[UserModel, UserModel]
) -> None:
    repo = SQLGameRepository(db_session_repo)
    created = {}
    for day, status in [(1, Status.COMPLETED), (2, Status.WAITING), (3, Status.ACTIVE)]:
        game = new_game(
            players, status=status, created_at=datetime(2024, 1, day, tzinfo=timezone.utc)
        )
        _, created[day] = repo.create_game(game)

    assert [game.id for game in repo.list_games()] == [created[3], created[2], created[1]]
    assert [game.id for game in repo.list_games(limit=2)] == [created[3], created[2]]
    assert [game.id for game in repo.list_games(status=Status.COMPLETED)] == [created[1]]
    assert repo.list_games(status=Status.ABORTED) == []


# --- MOVES ---
def test_record_move(db_session_repo: Session, players: tuple[UserModel, UserModel]) -> None:
    """Move and new game state are stored together."""
    repo = SQLGameRepository(db_session_repo)
    game, game_id = repo.create_game(new_game(players))

    after = replace(game, current_fen=AFTER_E4, move_count=1, status=Status.ACTIVE)
    stored = repo.record_move(game_id, e4(), after, expected_move_count=0)

    assert stored.move_count == 1
    assert stored.current_fen == AFTER_E4
    assert stored.status == Status.ACTIVE

    moves = repo.list_moves(game_id)
    assert len(moves) == 1
    assert moves[0].game_id == game_id
    assert moves[0].id is not None
    assert moves[0].move_notation == "e4"
    assert moves[0].piece_moved == PieceType.PAWN
    assert moves[0].position_after == AFTER_E4


def test_moves_are_listed_in_play_order(
    db_session_repo: Session, players: tuple[UserModel, UserModel]
) -> None:
    repo = SQLGameRepository(db_session_repo)
    game, game_id = repo.create_game(new_game(players))

    game = repo.record_move(game_id, e4(), replace(game, move_count=1), expected_move_count=0)
    repo.record_move(game_id, e5(), replace(game, move_count=2), expected_move_count=1)

    moves = repo.list_moves(game_id)
    assert [(move.move_number, move.color) for move in moves] == [
        (1, Color.WHITE),
        (1, Color.BLACK),
    ]
    assert moves[1].time_taken == 2_000


def test_stale_move_count_is_a_conflict(
    db_session_repo: Session, players: tuple[UserModel, UserModel]
) -> None:
    """Two writers read the same game; only the first one may append a move."""
    first_writer = SQLGameRepository(db_session_repo)
    second_writer = SQLGameRepository(db_session_repo)
    game, game_id = first_writer.create_game(new_game(players))
    seen_by_second = second_writer.get_game(game_id)
    assert seen_by_second is not None

    first_writer.record_move(game_id, e4(), replace(game, move_count=1), expected_move_count=0)

    with pytest.raises(ConflictError):
        second_writer.record_move(
            game_id,
            replace(e4(), to_square="e3", move_notation="e3"),
            replace(seen_by_second, move_count=1),
            expected_move_count=seen_by_second.move_count,
        )

    # Nothing of the losing write made it to the database
    assert [move.move_notation for move in first_writer.list_moves(game_id)] == ["e4"]
    stored = first_writer.get_game(game_id)
    assert stored is not None
    assert stored.move_count == 1


def test_duplicate_move_number_is_a_conflict(
    db_session_repo: Session, players: tuple[UserModel, UserModel]
) -> None:
    """The unique (game, move number, color) constraint backs up the move count check."""
    repo = SQLGameRepository(db_session_repo)
    game, game_id = repo.create_game(new_game(players))
    game = repo.record_move(game_id, e4(), replace(game, move_count=1), expected_move_count=0)

    with pytest.raises(ConflictError):
        repo.record_move(game_id, e4(), replace(game, move_count=2), expected_move_count=1)

    stored = repo.get_game(game_id)
    assert stored is not None
    assert stored.move_count == 1
    assert len(repo.list_moves(game_id)) == 1


def test_record_move_for_unknown_game(db_session_repo: Session) -> None:
    repo = SQLGameRepository(db_session_repo)
    game = GameModel(
        white_player_id=uuid4(),
        black_player_id=uuid4(),
        status=Status.ACTIVE,
        current_fen=AFTER_E4,
        time_control=TimeControl(),
        white_time_left=600,
        black_time_left=600,
        move_count=1,
    )
    with pytest.raises(GameNotFoundError):
        repo.record_move(uuid4(), e4(), game, expected_move_count=0)


def test_update_game(db_session_repo: Session, players: tuple[UserModel, UserModel]) -> None:
    """Finish a game without a move (resignation)."""
    repo = SQLGameRepository(db_session_repo)
    game, game_id = repo.create_game(new_game(players))
    finished = replace(
        game,
        status=Status.COMPLETED,
        result=GameResult.BLACK_WINS,
        termination=Termination.RESIGNATION,
        winner_id=game.black_player_id,
        ended_at=datetime.now(timezone.utc),
    )

    stored = repo.update_game(game_id, finished, expected_move_count=0)
    assert stored.status == Status.COMPLETED
    assert stored.result == GameResult.BLACK_WINS
    assert stored.termination == Termination.RESIGNATION
    assert stored.winner_id == game.black_player_id

    with pytest.raises(ConflictError):
        repo.update_game(game_id, finished, expected_move_count=3)


def test_delete_game(db_session_repo: Session, players: tuple[UserModel, UserModel]) -> None:
    """The game and its moves are gone afterwards."""
    repo = SQLGameRepository(db_session_repo)
    game, game_id = repo.create_game(new_game(players))
    repo.record_move(game_id, e4(), replace(game, move_count=1), expected_move_count=0)

    deleted = repo.delete_game(game_id)
    assert deleted is not None
    assert deleted.id == game_id
    assert repo.get_game(game_id) is None
    assert repo.list_moves(game_id) == []

    assert repo.delete_game(game_id) is None


# --- USERS ---
def test_create_and_get_user(db_session_repo: Session) -> None:
    repo = SQLUserRepository(db_session_repo)
    created = repo.create_user(
        UserModel(username="chess_master", email="master@chess.dev", preferences={"theme": "dark"}),
        password_hash="not-a-real-hash",
    )

    assert created.id is not None
    assert created.elo_rating == 1200
    assert created.preferences == {"theme": "dark"}
    assert repo.get_user(created.id) == created
    assert repo.get_user(uuid4()) is None
    assert not hasattr(created, "password_hash")


def test_first_users_in_registration_order(db_session_repo: Session) -> None:
    repo = SQLUserRepository(db_session_repo)
    for day, username in [(3, "carol"), (1, "alice"), (2, "bobby")]:
        repo.create_user(
            UserModel(
                username=username,
                email=f"{username}@chess.dev",
                created_at=datetime(2024, 1, day, tzinfo=timezone.utc),
            )
        )

    assert [user.username for user in repo.first_users(limit=2)] == ["alice", "bobby"]
    assert len(repo.first_users(limit=10)) == 3


def test_update_profile_merges_preferences(db_session_repo: Session) -> None:
    repo = SQLUserRepository(db_session_repo)
    user = repo.create_user(
        UserModel(
            username="alice_chess",
            email="alice@chess.dev",
            bio="Tactics",
            preferences={"theme": "dark", "auto_queen": False},
        )
    )
    assert user.id is not None

    updated = repo.update_profile(
        user.id, ProfileChanges(display_name="Alice", preferences={"auto_queen": True})
    )
    assert updated is not None
    assert updated.display_name == "Alice"
    assert updated.bio == "Tactics"
    assert updated.preferences == {"theme": "dark", "auto_queen": True}

    assert repo.update_profile(uuid4(), ProfileChanges(bio="nobody")) is None


def test_broken_check_constraint_is_not_a_conflict(db_session_repo: Session) -> None:
    """Only unique violations mean someone else won a race. A CHECK failure is a storage error."""
    repo = SQLUserRepository(db_session_repo)

    with pytest.raises(RepositoryError) as exc_info:
        repo.create_user(UserModel(username="ab", email="ab@chess.dev"))

    assert not isinstance(exc_info.value, ConflictError)
    assert repo.first_users(limit=10) == []
