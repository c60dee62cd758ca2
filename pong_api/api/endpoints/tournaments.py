from typing import Optional

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from pong_api.models import user as user_model
from pong_api.schemas import tournament_schemas
from pong_api.services import auth_service, lifecycle_service, tournament_service
from pong_api.api.dependencies import get_db

router = APIRouter()


@router.get("/open")
async def list_open_tournaments_endpoint(
    db: Session = Depends(get_db),
    current_user: user_model.User = Depends(auth_service.get_current_user),
):
    tournaments = tournament_service.get_open_tournaments(db)
    return {"success": True, "data": [t.model_dump() for t in tournaments]}


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_tournament_endpoint(
    tournament_in: tournament_schemas.TournamentCreate,
    db: Session = Depends(get_db),
    current_user: user_model.User = Depends(auth_service.get_current_user),
):
    tournament = lifecycle_service.open_tournament(
        db,
        tournament_in.name,
        tournament_in.size,
        current_user.username,
        tournament_in.displayName,
    )
    data = tournament_service.get_tournament_with_players(db, tournament.id)
    return {"success": True, "data": data.model_dump(mode="json")}


@router.get("/{tournament_id}")
async def get_tournament_endpoint(
    tournament_id: str,
    db: Session = Depends(get_db),
    current_user: user_model.User = Depends(auth_service.get_current_user),
):
    data = tournament_service.get_tournament_with_players(db, tournament_id)
    return {"success": True, "data": data.model_dump(mode="json")}


@router.post("/{tournament_id}/join")
async def join_tournament_endpoint(
    tournament_id: str,
    join: Optional[tournament_schemas.TournamentJoin] = None,
    db: Session = Depends(get_db),
    current_user: user_model.User = Depends(auth_service.get_current_user),
):
    started = lifecycle_service.join_tournament(db, tournament_id, current_user.username, join.displayName if join else None)
    data = tournament_service.get_tournament_with_players(db, tournament_id)
    return {"success": True, "started": started, "data": data.model_dump(mode="json")}


@router.post("/{tournament_id}/leave")
async def leave_tournament_endpoint(
    tournament_id: str,
    db: Session = Depends(get_db),
    current_user: user_model.User = Depends(auth_service.get_current_user),
):
    lifecycle_service.leave_tournament(db, tournament_id, current_user.username)
    return {"success": True, "message": "Left tournament"}
