"""Orchestration of communication from API router to business logic and persistence layers (and the reverse direction)."""

import logging
from dataclasses import replace
from datetime import datetime
from typing import Optional
from uuid import UUID

from src.api.models import (
    CreateGameRequest,
    GameDetailResponse,
    GameResponse,
    LegalMovesResponse,
    ListGamesRequest,
    MoveRecordResponse,
    MoveRequest,
    MoveResponse,
    ResignRequest,
)
from src.chess.rules_engine import AppliedMove, CandidateMove, RulesEngine
from src.core.exceptions import (
    GameError,
    GameNotActiveError,
    GameNotFoundError,
    InsufficientPlayersError,
    InternalError,
    InvalidFENError,
)
from src.core.models import GameModel, MoveModel, TimeControl, utc_now
from src.core.shared_types import (
    PLAYABLE_STATUSES,
    STARTING_FEN,
    CheckStatus,
    Color,
    GameResult,
    Status,
    Termination,
)
from src.db.repository import GameRepository, UserRepository

logger = logging.getLogger(__name__)


class ChessService:
    """Orchestration of layers for chess game."""

    def __init__(
        self,
        repository: GameRepository,
        users: UserRepository,
        engine: RulesEngine,
        default_time_control: Optional[TimeControl] = None,
    ) -> None:
        self.repo = repository
        self.users = users
        self.engine = engine
        self.default_time_control = default_time_control or TimeControl()

    # -- API routes logic ---
    def create_new_game(self, request: CreateGameRequest) -> GameResponse:
        """
        Create a game between the first two registered users (white and black respectively).

        Both clocks start at the initial time of the time control.
        """
        players = self.users.first_users(limit=2)
        if len(players) < 2:
            raise InsufficientPlayersError("Need at least 2 users to create a game")
        white, black = players
        assert white.id is not None and black.id is not None

        time_control = (
            TimeControl(request.time_control.initial, request.time_control.increment)
            if request.time_control
            else replace(self.default_time_control)
        )
        new_game = GameModel(
            white_player_id=white.id,
            black_player_id=black.id,
            status=Status.WAITING,
            current_fen=STARTING_FEN,
            time_control=time_control,
            white_time_left=time_control.initial,
            black_time_left=time_control.initial,
        )

        # Store the GameModel in the repository
        stored_game, game_id = self.repo.create_game(new_game)
        logger.info("Game created: %s (%s vs %s)", game_id, white.username, black.username)
        return GameResponse.from_model(stored_game)

    def list_games(self, request: ListGamesRequest) -> list[GameResponse]:
        games = self.repo.list_games(status=request.status, limit=request.limit)
        return [GameResponse.from_model(game) for game in games]

    def get_game(self, game_id: UUID) -> GameDetailResponse:
        """The game and all of its moves (move number order, white before black)."""
        game = self._fetch_game(game_id)
        moves = self.repo.list_moves(game_id)
        return GameDetailResponse(
            **GameResponse.from_model(game).model_dump(),
            moves=[MoveRecordResponse.from_model(move) for move in moves],
        )

    def legal_moves(self, game_id: UUID) -> LegalMovesResponse:
        """retrieve set of legal moves for the side to move."""
        game = self._fetch_playable_game(game_id)
        facts = self.engine.describe(game.current_fen)
        return LegalMovesResponse(
            game_id=game_id,
            color=facts.turn,
            legal_moves=self.engine.legal_moves(game.current_fen),
        )

    def make_move(self, game_id: UUID, request: MoveRequest) -> MoveResponse:
        """
        Make a move attempt.
        ----

        1. the game must exist (GameNotFoundError)
        2. the game must be waiting or active (GameNotActiveError)
        3. the rules engine must accept the move (IllegalMoveError)
        4. store the move and the updated game together (ConflictError if someone else moved first)

        Every failure leaves as a classified GameError. Nothing is retried here.
        """
        try:
            return self._submit_move(game_id, request)
        except GameError as exc:
            logger.info("Move rejected in game %s: [%s] %s", game_id, exc.code, exc.message)
            raise
        except Exception as exc:
            logger.exception("Unexpected failure making a move in game %s", game_id)
            raise InternalError("Failed to make move") from exc

    def resign(self, game_id: UUID, request: ResignRequest) -> GameResponse:
        """The player with `request.color` gives up. The opponent wins."""
        game = self._fetch_playable_game(game_id)
        winner = request.color.opponent
        now = utc_now()
        resigned = replace(
            game,
            status=Status.COMPLETED,
            result=GameResult.win_for(winner),
            termination=Termination.RESIGNATION,
            winner_id=game.player_id(winner),
            ended_at=game.ended_at or now,
        )
        stored = self.repo.update_game(game_id, resigned, expected_move_count=game.move_count)
        logger.info("Game %s: %s resigned", game_id, request.color)
        return GameResponse.from_model(stored)

    def delete_game(self, game_id: UUID) -> None:
        """Handle a request to delete a Game record."""
        if self.repo.delete_game(game_id) is None:
            raise GameNotFoundError(f"Game with {game_id=} not found.")

    # -- Internal helpers --
    def _submit_move(self, game_id: UUID, request: MoveRequest) -> MoveResponse:
        game = self._fetch_playable_game(game_id)

        candidate = CandidateMove(
            from_square=request.from_square,
            to_square=request.to_square,
            promotion=request.promotion,
        )
        try:
            applied = self.engine.try_move(
                game.current_fen, candidate, history=self._position_history(game_id)
            )
        except InvalidFENError as exc:
            # The stored position is corrupt: not something the player can fix
            raise InternalError(f"Stored position of game {game_id} is unreadable.") from exc

        now = utc_now()
        move = self._build_move_record(game, applied, request)
        after_move = self._game_after_move(game, applied, move, now)

        stored = self.repo.record_move(game_id, move, after_move, expected_move_count=game.move_count)
        logger.info(
            "Move %s played in game %s (%s, status %s)",
            applied.move.san,
            game_id,
            applied.position.fen.split(" ")[0],
            stored.status,
        )
        return MoveResponse.from_applied(applied, stored)

    def _position_history(self, game_id: UUID) -> list[str]:
        """Every position the game went through so far, oldest first. Games always start from the standard position."""
        return [STARTING_FEN] + [move.position_after for move in self.repo.list_moves(game_id)]

    def _build_move_record(
        self, game: GameModel, applied: AppliedMove, request: MoveRequest
    ) -> MoveModel:
        move, position = applied.move, applied.position

        # Black's move completes a full move, so the counter already moved on by one
        move_number = (
            position.fullmove_number
            if move.color == Color.WHITE
            else position.fullmove_number - 1
        )
        if position.is_checkmate:
            check_status: Optional[CheckStatus] = CheckStatus.CHECKMATE
        elif position.is_check:
            check_status = CheckStatus.CHECK
        else:
            check_status = None

        # Clocks on the game are kept in seconds, times on moves in milliseconds
        time_left = (
            request.time_left
            if request.time_left is not None
            else game.time_left(move.color) * 1000
        )
        return MoveModel(
            move_number=move_number,
            color=move.color,
            from_square=move.from_square,
            to_square=move.to_square,
            piece_moved=move.piece,
            captured_piece=move.captured,
            is_castling=move.is_castling,
            is_en_passant=move.is_en_passant,
            promotion_piece=move.promotion,
            check_status=check_status,
            move_notation=move.san,
            position_after=position.fen,
            time_taken=request.time_taken,
            time_left=time_left,
        )

    def _game_after_move(
        self, game: GameModel, applied: AppliedMove, move: MoveModel, now: datetime
    ) -> GameModel:
        """Derive the new state of the game (position, counters, status, outcome, timestamps)."""
        position = applied.position

        result, termination, winner_id = game.result, game.termination, game.winner_id
        if position.is_checkmate:
            result = GameResult.win_for(move.color)
            termination = Termination.CHECKMATE
            winner_id = game.player_id(move.color)
        elif position.draw_reason is not None:
            result = GameResult.DRAW
            termination = position.draw_reason

        status = game.status
        started_at = game.started_at
        if game.status == Status.WAITING:
            status = Status.ACTIVE
            started_at = now
        ended_at = game.ended_at
        if position.is_game_over:
            status = Status.COMPLETED
            ended_at = ended_at or now

        clocks = {
            Color.WHITE: game.white_time_left,
            Color.BLACK: game.black_time_left,
        }
        clocks[move.color] = move.time_left // 1000

        return replace(
            game,
            current_fen=position.fen,
            move_count=game.move_count + 1,
            status=status,
            result=result,
            termination=termination,
            winner_id=winner_id,
            started_at=started_at,
            ended_at=ended_at,
            last_move_at=now,
            white_time_left=clocks[Color.WHITE],
            black_time_left=clocks[Color.BLACK],
        )

    def _fetch_game(self, game_id: UUID) -> GameModel:
        """Attempt to find the game in the repository and raise error if it fails."""
        game_model = self.repo.get_game(game_id)
        if game_model is None:
            raise GameNotFoundError(f"Game with {game_id=} not found.")
        return game_model

    def _fetch_playable_game(self, game_id: UUID) -> GameModel:
        game = self._fetch_game(game_id)
        if game.status not in PLAYABLE_STATUSES:
            raise GameNotActiveError(f"Game is not active. status: {game.status}")
        return game
