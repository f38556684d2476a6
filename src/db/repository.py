"""Protocol repositories (implemented with SQLAlchemy in sql_repository.py, with dictionaries in the tests)"""

from typing import Optional, Protocol
from uuid import UUID

from src.core.models import GameModel, MoveModel, ProfileChanges, UserModel
from src.core.shared_types import Status


class GameRepository(Protocol):
    """Persistence layer orchestration"""

    def get_game(self, game_id: UUID) -> GameModel | None:
        """Get game by ID, if record exists."""
        ...

    def list_games(self, status: Optional[Status] = None, limit: int = 10) -> list[GameModel]:
        """Newest games first, optionally only those with the given status."""
        ...

    def create_game(self, game: GameModel) -> tuple[GameModel, UUID]:
        """Store new game and return the stored data + newly created game ID."""
        ...

    def list_moves(self, game_id: UUID) -> list[MoveModel]:
        """All moves of a game, by move number and white before black."""
        ...

    def record_move(
        self, game_id: UUID, move: MoveModel, game: GameModel, expected_move_count: int
    ) -> GameModel:
        """
        Append a move and store the updated game, all or nothing.

        Only succeeds if the stored game still has `expected_move_count` moves, otherwise raises ConflictError.
        Raises GameNotFoundError if the game does not exist (anymore).
        """
        ...

    def update_game(self, game_id: UUID, game: GameModel, expected_move_count: int) -> GameModel:
        """Store new game state without a move (e.g. resignation). Same concurrency guard as record_move."""
        ...

    def delete_game(self, game_id: UUID) -> GameModel | None:
        """Remove a game's record (and its moves)."""
        ...


class UserRepository(Protocol):
    def get_user(self, user_id: UUID) -> UserModel | None:
        """Get user by ID, if record exists."""
        ...

    def first_users(self, limit: int) -> list[UserModel]:
        """Oldest registered users first."""
        ...

    def create_user(self, user: UserModel, password_hash: Optional[str] = None) -> UserModel:
        """Store a new user."""
        ...

    def update_profile(self, user_id: UUID, changes: ProfileChanges) -> UserModel | None:
        """Write the fields that are set in changes. Preferences get merged into the existing ones."""
        ...
