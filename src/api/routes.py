"""HTTP routes. Thin: parse the request, call the service, wrap the result in the envelope."""

from typing import Annotated, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse

from src.api.dependencies import get_chess_service, get_user_service
from src.api.models import (
    CreateGameRequest,
    ListGamesRequest,
    MoveRequest,
    ResignRequest,
    UpdateProfileRequest,
)
from src.api.responses import success_response
from src.core.shared_types import Status
from src.services.chess_service import ChessService
from src.services.user_service import UserService

router = APIRouter()

Chess = Annotated[ChessService, Depends(get_chess_service)]
Users = Annotated[UserService, Depends(get_user_service)]


# --- GAMES ---
@router.post("/games")
def create_game(service: Chess, request: Optional[CreateGameRequest] = None) -> JSONResponse:
    return success_response(service.create_new_game(request or CreateGameRequest()))


@router.get("/games")
def list_games(
    service: Chess,
    status: Optional[Status] = None,
    limit: Annotated[int, Query(ge=1, le=100)] = 10,
) -> JSONResponse:
    return success_response(service.list_games(ListGamesRequest(status=status, limit=limit)))


@router.get("/games/{game_id}")
def get_game(game_id: UUID, service: Chess) -> JSONResponse:
    return success_response(service.get_game(game_id))


@router.delete("/games/{game_id}")
def delete_game(game_id: UUID, service: Chess) -> JSONResponse:
    service.delete_game(game_id)
    return success_response({"id": game_id})


@router.post("/games/{game_id}/move")
def make_move(game_id: UUID, request: MoveRequest, service: Chess) -> JSONResponse:
    return success_response(service.make_move(game_id, request))


@router.get("/games/{game_id}/legal-moves")
def legal_moves(game_id: UUID, service: Chess) -> JSONResponse:
    return success_response(service.legal_moves(game_id))


@router.post("/games/{game_id}/resign")
def resign(game_id: UUID, request: ResignRequest, service: Chess) -> JSONResponse:
    return success_response(service.resign(game_id, request))


# --- USERS ---
@router.get("/users/profile")
def get_profile(service: Users) -> JSONResponse:
    return success_response(service.get_profile())


@router.put("/users/profile")
def update_profile(request: UpdateProfileRequest, service: Users) -> JSONResponse:
    return success_response(service.update_profile(request))
