"""
Custom exceptions.

Every exception carries a `kind` (used to pick the HTTP status and to decide if a client may retry)
and a `code` (what ends up in the `error.code` field of a response).
"""

from typing import Any, Optional

from src.core.shared_types import ErrorCode, ErrorKind


class GameError(Exception):
    """Top level exception for anything the application raises on purpose."""

    kind: ErrorKind = ErrorKind.INTERNAL
    code: ErrorCode = ErrorCode.INTERNAL_ERROR

    def __init__(self, message: str = "", details: Optional[Any] = None) -> None:
        super().__init__(message)
        self.message = message or self.__class__.__name__
        self.details = details

    @property
    def is_retryable(self) -> bool:
        return self.kind in (ErrorKind.CONFLICT, ErrorKind.INTERNAL)


# --- NOT FOUND ---
class NotFoundError(GameError):
    kind = ErrorKind.NOT_FOUND


class GameNotFoundError(NotFoundError):
    code = ErrorCode.GAME_NOT_FOUND


class UserNotFoundError(NotFoundError):
    code = ErrorCode.USER_NOT_FOUND


# --- PRECONDITION FAILED ---
class PreconditionFailedError(GameError):
    kind = ErrorKind.PRECONDITION_FAILED


class GameNotActiveError(PreconditionFailedError):
    code = ErrorCode.GAME_NOT_ACTIVE


class InsufficientPlayersError(PreconditionFailedError):
    code = ErrorCode.INSUFFICIENT_PLAYERS


class MoveInFlightError(PreconditionFailedError):
    """Client side: a new move was attempted while the previous one is still awaiting the server."""

    code = ErrorCode.MOVE_IN_FLIGHT


# --- INVALID INPUT ---
class InvalidInputError(GameError):
    kind = ErrorKind.INVALID_INPUT
    code = ErrorCode.INVALID_INPUT


class InvalidRequestError(InvalidInputError):
    pass


class InvalidFENError(InvalidInputError):
    pass


class IllegalMoveError(InvalidInputError):
    code = ErrorCode.INVALID_MOVE


# --- CONFLICT ---
class ConflictError(GameError):
    """The game changed between reading it and writing the move."""

    kind = ErrorKind.CONFLICT
    code = ErrorCode.CONFLICT


# --- INTERNAL ---
class InternalError(GameError):
    kind = ErrorKind.INTERNAL
    code = ErrorCode.INTERNAL_ERROR


class RepositoryError(InternalError):
    pass
