"""
Optimistic moves on the client.

A move is first applied to the local position (Tentative) so the board can update immediately, then sent to the server.
The server has the final word:

    Idle -> Tentative -> Confirmed  -> Idle   (server accepted: tentative position becomes the baseline)
                      -> RolledBack -> Idle   (server rejected / request failed: back to the baseline)

The baseline is an immutable value, so rolling back is simply forgetting the pending move.
Only one move can be pending at a time.

A failure that was retried or transient (timeout, 5xx, conflict) does not tell whether the server applied the move.
In that case the game is re-read and the server's position becomes the baseline.
"""

import logging
import threading
from dataclasses import dataclass
from enum import StrEnum
from typing import Callable, Optional, Protocol, Self
from uuid import UUID

from pydantic import ValidationError

from src.api.models import ErrorBody, GameDetailResponse, GameStateResponse, MoveResponse
from src.chess.rules_engine import (
    AppliedMove,
    CandidateMove,
    CanonicalMove,
    RulesEngine,
)
from src.client.api_client import ApiResult, ChessApiClient
from src.core.exceptions import MoveInFlightError, PreconditionFailedError
from src.core.shared_types import STARTING_FEN, ErrorCode, PieceType

logger = logging.getLogger(__name__)


class Phase(StrEnum):
    IDLE = "idle"
    TENTATIVE = "tentative"
    CONFIRMED = "confirmed"
    ROLLED_BACK = "rolled_back"
    # The reconciler was closed while the move was in flight; the server's answer was ignored
    DISCARDED = "discarded"


@dataclass(frozen=True)
class LocalPosition:
    """A position plus every position before it (needed to spot repetitions)."""

    fen: str = STARTING_FEN
    history: tuple[str, ...] = ()

    def advance(self, fen: str) -> "LocalPosition":
        return LocalPosition(fen=fen, history=self.history + (self.fen,))


@dataclass(frozen=True)
class PendingMove:
    applied: AppliedMove
    position: LocalPosition


@dataclass(frozen=True)
class MoveOutcome:
    """What happened to a move, and what the board should show now."""

    phase: Phase
    position: str
    move: Optional[CanonicalMove] = None
    game_state: Optional[GameStateResponse] = None
    error: Optional[ErrorBody] = None
    message: Optional[str] = None


class MoveSubmitter(Protocol):
    """The part of ChessApiClient the reconciler needs."""

    def get_game(self, game_id: UUID) -> ApiResult: ...

    def make_move(
        self,
        game_id: UUID,
        from_square: str,
        to_square: str,
        promotion: Optional[PieceType] = None,
        time_taken: Optional[int] = None,
        time_left: Optional[int] = None,
    ) -> ApiResult: ...


class MoveReconciler:
    """Keeps the local board of one game in line with the server."""

    def __init__(
        self,
        game_id: UUID,
        client: MoveSubmitter,
        engine: RulesEngine,
        position: Optional[LocalPosition] = None,
        on_change: Optional[Callable[[Phase, str], None]] = None,
    ) -> None:
        self.game_id = game_id
        self.client = client
        self.engine = engine
        self.on_change = on_change
        self._baseline = position or LocalPosition()
        self._pending: Optional[PendingMove] = None
        self._closed = False
        self._lock = threading.Lock()

    @classmethod
    def from_server(
        cls,
        game_id: UUID,
        client: ChessApiClient,
        engine: RulesEngine,
        on_change: Optional[Callable[[Phase, str], None]] = None,
    ) -> Self:
        """Start from the game as the server knows it."""
        result = client.get_game(game_id)
        if not result.success:
            raise result.to_exception()
        return cls(game_id, client, engine, _server_position(result.data), on_change)

    @property
    def phase(self) -> Phase:
        return Phase.TENTATIVE if self._pending else Phase.IDLE

    @property
    def baseline(self) -> LocalPosition:
        return self._baseline

    @property
    def position(self) -> str:
        """What the board shows: the tentative position while a move is in flight, otherwise the baseline."""
        pending = self._pending
        return pending.position.fen if pending else self._baseline.fen

    def play(
        self,
        from_square: str,
        to_square: str,
        promotion: Optional[PieceType] = None,
        time_taken: Optional[int] = None,
        time_left: Optional[int] = None,
    ) -> MoveOutcome:
        """
        Apply a move locally, submit it, and settle on the server's answer.

        Raises IllegalMoveError (without contacting the server) if the move is not legal locally,
        MoveInFlightError if another move is still pending.
        """
        candidate = CandidateMove(from_square, to_square, promotion)
        with self._lock:
            if self._closed:
                raise PreconditionFailedError(f"Reconciler for game {self.game_id} is closed.")
            if self._pending is not None:
                raise MoveInFlightError("Wait for the previous move to be confirmed.")
            applied = self.engine.try_move(self._baseline.fen, candidate, self._baseline.history)
            pending = PendingMove(applied, self._baseline.advance(applied.position.fen))
            self._pending = pending
        self._notify(Phase.TENTATIVE, pending.position.fen)

        try:
            result = self.client.make_move(
                self.game_id, from_square, to_square, promotion, time_taken, time_left
            )
        except Exception:
            self._forget(pending)
            raise
        return self._settle(pending, result)

    def close(self) -> None:
        """Stop listening. A move still in flight may complete on the server, its result is ignored here."""
        with self._lock:
            self._closed = True

    # -- Internal helpers --
    def _settle(self, pending: PendingMove, result: ApiResult) -> MoveOutcome:
        move = pending.applied.move
        if result.success:
            game_state = _game_state(result.data)
            # The server's position is authoritative
            fen = game_state.fen if game_state else pending.position.fen
            baseline = LocalPosition(fen, pending.position.history)
            outcome = MoveOutcome(
                Phase.CONFIRMED,
                fen,
                move=move,
                game_state=game_state,
                message=_game_over_message(game_state),
            )
        else:
            error = result.error or ErrorBody(code=ErrorCode.API_ERROR, message="Unknown error")
            baseline = self._baseline
            if _outcome_unknown(result):
                # The server may have applied the move before the request failed
                baseline = self._server_baseline() or baseline

            if baseline.fen == pending.position.fen:
                logger.info("Game %s: %s was applied by the server after all", self.game_id, move.san)
                outcome = MoveOutcome(Phase.CONFIRMED, baseline.fen, move=move)
            else:
                logger.info("Game %s: %s rolled back [%s]", self.game_id, move.san, error.code)
                outcome = MoveOutcome(
                    Phase.ROLLED_BACK,
                    baseline.fen,
                    move=move,
                    error=error,
                    message=f"Move {move.san} was not accepted: {error.message}",
                )

        with self._lock:
            self._pending = None
            if self._closed:
                logger.info("Game %s: ignoring server answer for %s (closed)", self.game_id, move.san)
                return MoveOutcome(Phase.DISCARDED, self._baseline.fen, move=move)
            self._baseline = baseline

        self._notify(outcome.phase, outcome.position)
        self._notify(Phase.IDLE, outcome.position)
        return outcome

    def _server_baseline(self) -> Optional[LocalPosition]:
        """Re-read the game. None if the server cannot be reached either."""
        result = self.client.get_game(self.game_id)
        if not result.success:
            logger.warning("Game %s: cannot re-read the game [%s]", self.game_id, result.error_code)
            return None
        return _server_position(result.data)

    def _forget(self, pending: PendingMove) -> None:
        with self._lock:
            if self._pending is pending:
                self._pending = None
        self._notify(Phase.ROLLED_BACK, self._baseline.fen)
        self._notify(Phase.IDLE, self._baseline.fen)

    def _notify(self, phase: Phase, fen: str) -> None:
        if self.on_change is not None and not self._closed:
            self.on_change(phase, fen)


def _server_position(data: object) -> LocalPosition:
    game = GameDetailResponse.model_validate(data)
    # moves[i].position_after is the position after ply i+1, the last one is the current position
    history: tuple[str, ...] = ()
    if game.moves:
        history = (STARTING_FEN, *(move.position_after for move in game.moves[:-1]))
    return LocalPosition(game.current_fen, history)


def _outcome_unknown(result: ApiResult) -> bool:
    """Whether a failed submission may still have been applied (it was retried, or the failure was transient)."""
    if result.attempts > 1 or result.error is None:
        return True
    return result.to_exception().is_retryable


def _game_state(data: object) -> Optional[GameStateResponse]:
    try:
        return MoveResponse.model_validate(data).game_state
    except ValidationError:
        logger.warning("Server accepted the move but sent an unreadable game state")
        return None


def _game_over_message(game_state: Optional[GameStateResponse]) -> Optional[str]:
    if game_state is None or not game_state.game_over:
        return None
    reason = (game_state.termination or "game over").replace("_", " ")
    return f"Game over ({reason}): {game_state.result}"
