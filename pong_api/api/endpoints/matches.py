from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from pong_api.models import user as user_model
from pong_api.schemas import match_schemas
from pong_api.services import auth_service, lifecycle_service, match_service
from pong_api.api.dependencies import get_db

router = APIRouter()


def _match_data(db: Session, match_id: str) -> dict:
    match = match_service.get_match_by_id(db, match_id)
    return match_schemas.MatchRead.model_validate(match).model_dump(mode="json")


def _require_player(db: Session, match_id: str, username: str) -> None:
    match = match_service.get_match_by_id(db, match_id)
    if username not in (match.player_left, match.player_right):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not a player of this match")


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_match_endpoint(
    match_in: match_schemas.MatchCreate,
    db: Session = Depends(get_db),
    current_user: user_model.User = Depends(auth_service.get_current_user),
):
    match = lifecycle_service.schedule_match(db, match_in.mode, current_user.username)
    return {"success": True, "data": _match_data(db, match.id)}


@router.get("/{match_id}")
async def get_match_endpoint(
    match_id: str,
    db: Session = Depends(get_db),
    current_user: user_model.User = Depends(auth_service.get_current_user),
):
    return {"success": True, "data": _match_data(db, match_id)}


@router.post("/{match_id}/join")
async def join_match_endpoint(
    match_id: str,
    db: Session = Depends(get_db),
    current_user: user_model.User = Depends(auth_service.get_current_user),
):
    lifecycle_service.join_match(db, match_id, current_user.username)
    return {"success": True, "data": _match_data(db, match_id)}


@router.post("/{match_id}/leave")
async def leave_match_endpoint(
    match_id: str,
    db: Session = Depends(get_db),
    current_user: user_model.User = Depends(auth_service.get_current_user),
):
    lifecycle_service.leave_waiting_match(db, match_id, current_user.username)
    return {"success": True, "message": "Left match"}


@router.post("/{match_id}/score")
async def report_score_endpoint(
    match_id: str,
    score: match_schemas.ScoreReport,
    db: Session = Depends(get_db),
    current_user: user_model.User = Depends(auth_service.get_current_user),
):
    _require_player(db, match_id, current_user.username)
    lifecycle_service.report_score(db, match_id, score.left, score.right)
    return {"success": True, "data": _match_data(db, match_id)}


@router.post("/{match_id}/finish")
async def finish_match_endpoint(
    match_id: str,
    result: match_schemas.MatchFinish,
    db: Session = Depends(get_db),
    current_user: user_model.User = Depends(auth_service.get_current_user),
):
    _require_player(db, match_id, current_user.username)
    champion = lifecycle_service.finish_match(db, match_id, result.winner)
    return {"success": True, "tournamentWinner": champion, "data": _match_data(db, match_id)}


@router.post("/{match_id}/forfeit")
async def forfeit_match_endpoint(
    match_id: str,
    db: Session = Depends(get_db),
    current_user: user_model.User = Depends(auth_service.get_current_user),
):
    lifecycle_service.forfeit(db, match_id, current_user.username)
    return {"success": True, "data": _match_data(db, match_id)}
