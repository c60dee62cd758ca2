from typing import List

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from pong_api.models import user as user_model
from pong_api.schemas import auth_schemas, match_schemas, user_schemas
from pong_api.services import auth_service, match_service, tournament_service, user_service
from pong_api.api.dependencies import get_db

router = APIRouter()


def _check_target(db: Session, current_user: user_model.User, target: str) -> None:
    if target == current_user.username:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Cannot target yourself")
    user_service.get_user_by_username(db, target)


# Fixed paths are registered before /{username} so they are not shadowed.

@router.get("/friends")
async def list_friends_endpoint(
    db: Session = Depends(get_db),
    current_user: user_model.User = Depends(auth_service.get_current_user),
):
    return {"success": True, "data": user_service.get_friends(db, current_user.username)}


@router.post("/friends/{friend}")
async def add_friend_endpoint(
    friend: str,
    db: Session = Depends(get_db),
    current_user: user_model.User = Depends(auth_service.get_current_user),
):
    _check_target(db, current_user, friend)
    user_service.add_friend(db, current_user.username, friend)
    return {"success": True, "data": user_service.get_friends(db, current_user.username)}


@router.delete("/friends/{friend}")
async def remove_friend_endpoint(
    friend: str,
    db: Session = Depends(get_db),
    current_user: user_model.User = Depends(auth_service.get_current_user),
):
    user_service.remove_friend(db, current_user.username, friend)
    return {"success": True, "data": user_service.get_friends(db, current_user.username)}


@router.get("/blocked")
async def list_blocked_endpoint(
    db: Session = Depends(get_db),
    current_user: user_model.User = Depends(auth_service.get_current_user),
):
    return {"success": True, "data": user_service.get_blocked(db, current_user.username)}


@router.post("/blocked/{target}")
async def block_user_endpoint(
    target: str,
    db: Session = Depends(get_db),
    current_user: user_model.User = Depends(auth_service.get_current_user),
):
    _check_target(db, current_user, target)
    user_service.block_user(db, current_user.username, target)
    return {"success": True, "data": user_service.get_blocked(db, current_user.username)}


@router.delete("/blocked/{target}")
async def unblock_user_endpoint(
    target: str,
    db: Session = Depends(get_db),
    current_user: user_model.User = Depends(auth_service.get_current_user),
):
    user_service.unblock_user(db, current_user.username, target)
    return {"success": True, "data": user_service.get_blocked(db, current_user.username)}


@router.get("/{username}")
async def get_user_endpoint(
    username: str,
    db: Session = Depends(get_db),
    session: auth_schemas.SessionPayload = Depends(auth_service.get_current_session),
):
    user = user_service.get_user_by_username(db, username)
    return {"success": True, "data": user_schemas.UserRead.model_validate(user).model_dump(mode="json")}


@router.get("/{username}/matches")
async def get_user_matches_endpoint(
    username: str,
    db: Session = Depends(get_db),
    session: auth_schemas.SessionPayload = Depends(auth_service.get_current_session),
):
    user_service.get_user_by_username(db, username)
    matches = match_service.get_single_game_matches_by_user(db, username)
    data: List[dict] = [match_schemas.MatchRead.model_validate(m).model_dump(mode="json") for m in matches]
    return {"success": True, "data": data}


@router.get("/{username}/tournaments")
async def get_user_tournaments_endpoint(
    username: str,
    db: Session = Depends(get_db),
    session: auth_schemas.SessionPayload = Depends(auth_service.get_current_session),
):
    user_service.get_user_by_username(db, username)
    history = tournament_service.get_tournaments_by_user(db, username)
    return {"success": True, "data": [t.model_dump(mode="json") for t in history]}


@router.get("/{username}/stats")
async def get_user_stats_endpoint(
    username: str,
    db: Session = Depends(get_db),
    session: auth_schemas.SessionPayload = Depends(auth_service.get_current_session),
):
    stats = user_service.compute_user_stats(db, username)
    return {"success": True, "data": stats.model_dump()}
