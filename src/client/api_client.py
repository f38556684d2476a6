"""
HTTP client for the chess API, with timeout + retry/backoff.

Transient failures (timeouts, connection errors, 5xx, 409 conflicts) are retried with exponentially growing delays.
Everything else the server classifies (400, 401, 404) is returned straight away: retrying would not change the answer.
"""

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Optional
from uuid import UUID

import httpx

from src.api.models import ApiResponse, ErrorBody
from src.core.exceptions import (
    ConflictError,
    GameError,
    GameNotActiveError,
    GameNotFoundError,
    IllegalMoveError,
    InsufficientPlayersError,
    InternalError,
    InvalidRequestError,
    UserNotFoundError,
)
from src.core.shared_types import ErrorCode, PieceType, Status

logger = logging.getLogger(__name__)

ERRORS_BY_CODE: dict[str, type[GameError]] = {
    ErrorCode.GAME_NOT_FOUND: GameNotFoundError,
    ErrorCode.USER_NOT_FOUND: UserNotFoundError,
    ErrorCode.GAME_NOT_ACTIVE: GameNotActiveError,
    ErrorCode.INSUFFICIENT_PLAYERS: InsufficientPlayersError,
    ErrorCode.INVALID_MOVE: IllegalMoveError,
    ErrorCode.INVALID_INPUT: InvalidRequestError,
    ErrorCode.CONFLICT: ConflictError,
}


@dataclass
class ApiResult:
    """What a call returned. Never raised: a failed call is a result with success=False."""

    success: bool
    data: Any = None
    error: Optional[ErrorBody] = None
    status_code: Optional[int] = None
    attempts: int = 1

    @property
    def error_code(self) -> Optional[str]:
        return self.error.code if self.error else None

    def to_exception(self) -> GameError:
        """The classified exception matching the error in this result."""
        assert self.error is not None, "only failed results carry an error"
        error_type = ERRORS_BY_CODE.get(self.error.code, InternalError)
        return error_type(self.error.message, self.error.details)


class ChessApiClient:
    """Client for the routes in src/api/routes.py."""

    def __init__(
        self,
        base_url: str = "",
        http: Optional[httpx.Client] = None,
        retries: int = 3,
        timeout: float = 10.0,
        retry_delay: float = 1.0,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._owns_http = http is None
        self.http = http or httpx.Client(base_url=base_url)
        self.http.headers["Content-Type"] = "application/json"
        self.retries = retries
        self.timeout = timeout
        self.retry_delay = retry_delay
        self.sleep = sleep

    # --- GAMES ---
    def create_game(self, initial: Optional[int] = None, increment: Optional[int] = None) -> ApiResult:
        body: dict[str, Any] = {}
        if initial is not None or increment is not None:
            body["time_control"] = _without_none({"initial": initial, "increment": increment})
        return self.post("/games", body)

    def list_games(self, status: Optional[Status] = None, limit: Optional[int] = None) -> ApiResult:
        return self.get("/games", params=_without_none({"status": status, "limit": limit}))

    def get_game(self, game_id: UUID) -> ApiResult:
        return self.get(f"/games/{game_id}")

    def delete_game(self, game_id: UUID) -> ApiResult:
        return self.request("DELETE", f"/games/{game_id}")

    def make_move(
        self,
        game_id: UUID,
        from_square: str,
        to_square: str,
        promotion: Optional[PieceType] = None,
        time_taken: Optional[int] = None,
        time_left: Optional[int] = None,
    ) -> ApiResult:
        body = _without_none(
            {
                "from": from_square,
                "to": to_square,
                "promotion": promotion,
                "time_taken": time_taken,
                "time_left": time_left,
            }
        )
        return self.post(f"/games/{game_id}/move", body)

    def legal_moves(self, game_id: UUID) -> ApiResult:
        return self.get(f"/games/{game_id}/legal-moves")

    def resign(self, game_id: UUID, color: str) -> ApiResult:
        return self.post(f"/games/{game_id}/resign", {"color": color})

    # --- USERS ---
    def get_profile(self) -> ApiResult:
        return self.get("/users/profile")

    def update_profile(self, **changes: Any) -> ApiResult:
        return self.request("PUT", "/users/profile", json=changes)

    # --- AUTH HEADER ---
    def set_auth_token(self, token: str) -> None:
        self.http.headers["Authorization"] = f"Bearer {token}"

    def clear_auth_token(self) -> None:
        self.http.headers.pop("Authorization", None)

    # --- PLUMBING ---
    def get(self, endpoint: str, params: Optional[dict[str, Any]] = None) -> ApiResult:
        return self.request("GET", endpoint, params=params)

    def post(self, endpoint: str, json: Optional[dict[str, Any]] = None) -> ApiResult:
        return self.request("POST", endpoint, json=json)

    def request(
        self,
        method: str,
        endpoint: str,
        json: Optional[dict[str, Any]] = None,
        params: Optional[dict[str, Any]] = None,
    ) -> ApiResult:
        """
        Send a request, retrying transient failures.
        ----

        At most `retries + 1` attempts, each bounded by `timeout` seconds.
        Before attempt n+1 the client waits retry_delay * 2 ** (n - 1) seconds.
        """
        result = ApiResult(success=False)
        for attempt in range(1, self.retries + 2):
            logger.debug("API request: %s %s (attempt %d)", method, endpoint, attempt)
            try:
                response = self.http.request(
                    method, endpoint, json=json, params=params, timeout=self.timeout
                )
            except httpx.TransportError as exc:
                # Timeouts, refused connections, ... never reached a handler on the server
                logger.warning("API error: %s %s (attempt %d): %r", method, endpoint, attempt, exc)
                result = ApiResult(
                    success=False,
                    error=ErrorBody(code=ErrorCode.API_ERROR, message=f"{type(exc).__name__}: {exc}"),
                    attempts=attempt,
                )
            else:
                result = self._to_result(response, attempt)
                if result.success or not self._is_retryable(result):
                    return result
                logger.warning(
                    "API error: %s %s (attempt %d): HTTP %s %s",
                    method,
                    endpoint,
                    attempt,
                    response.status_code,
                    result.error_code,
                )

            if attempt <= self.retries:
                delay = self.retry_delay * 2 ** (attempt - 1)
                logger.info("Retrying %s %s in %.2fs", method, endpoint, delay)
                self.sleep(delay)

        return result

    def close(self) -> None:
        if self._owns_http:
            self.http.close()

    def __enter__(self) -> "ChessApiClient":
        return self

    def __exit__(self, *_exc: Any) -> None:
        self.close()

    # -- Internal helpers --
    def _to_result(self, response: httpx.Response, attempt: int) -> ApiResult:
        try:
            envelope = ApiResponse.model_validate(response.json())
        except ValueError:
            # Not one of ours (proxy error page, empty body, ...)
            return ApiResult(
                success=False,
                error=ErrorBody(code=ErrorCode.API_ERROR, message=f"HTTP {response.status_code}"),
                status_code=response.status_code,
                attempts=attempt,
            )
        return ApiResult(
            success=envelope.success and response.is_success,
            data=envelope.data,
            error=envelope.error,
            status_code=response.status_code,
            attempts=attempt,
        )

    def _is_retryable(self, result: ApiResult) -> bool:
        if result.status_code is None:
            return True
        if result.status_code >= 500:
            return True
        return result.status_code == httpx.codes.CONFLICT or result.error_code == ErrorCode.CONFLICT


def _without_none(values: dict[str, Any]) -> dict[str, Any]:
    return {key: value for key, value in values.items() if value is not None}
