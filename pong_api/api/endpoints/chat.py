import json
import logging

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect
from pydantic import ValidationError
from sqlalchemy.orm import Session

from pong_api.core.exceptions import PersistenceError, RecordNotFound
from pong_api.models import message as message_model
from pong_api.schemas import auth_schemas, message_schemas
from pong_api.services import auth_service, chat_service, message_service, tournament_service, user_service
from pong_api.api.dependencies import get_db

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/api/chat/history")
async def chat_history_endpoint(
    db: Session = Depends(get_db),
    session: auth_schemas.SessionPayload = Depends(auth_service.get_current_session),
):
    history = chat_service.build_chat_history(db, session.username)
    return {"success": True, "data": history.model_dump(mode="json", by_alias=True)}


async def _send_error(websocket: WebSocket, message: str) -> None:
    await websocket.send_json({"type": "error", "message": message})


async def _relay(db: Session, websocket: WebSocket, username: str, frame: message_schemas.MessageCreate) -> None:
    """Persist one chat frame and deliver it to its audience."""
    manager = chat_service.manager

    if frame.type == message_model.PRIVATE:
        if not frame.receiver:
            await _send_error(websocket, "Private messages need a receiver")
            return
        try:
            user_service.get_user_by_username(db, frame.receiver)
        except RecordNotFound:
            await _send_error(websocket, f"User {frame.receiver} not found")
            return
        if user_service.has_blocked(db, frame.receiver, username):
            await _send_error(websocket, f"{frame.receiver} does not accept your messages")
            return
        audience = {username, frame.receiver}
    elif frame.type == message_model.TOURNAMENT:
        if not frame.gameId:
            await _send_error(websocket, "Tournament messages need a gameId")
            return
        try:
            members = {p.username for p in tournament_service.get_players_for_tournament(db, frame.gameId)}
        except RecordNotFound:
            members = set()
        if username not in members:
            await _send_error(websocket, "You are not part of this tournament")
            return
        audience = members
    else:
        audience = None

    message = message_service.add_message(
        db, username, frame.type, frame.content, receiver=frame.receiver, game_id=frame.gameId
    )
    payload = {
        "type": "message",
        "data": message_schemas.MessageRead.model_validate(message).model_dump(mode="json"),
    }
    if audience is None:
        await manager.broadcast(payload)
    else:
        await manager.send_to_users(audience, payload)


@router.websocket("/api/user/ws")
async def chat_websocket_endpoint(websocket: WebSocket, db: Session = Depends(get_db)):
    session = await auth_service.authenticate_websocket(websocket)
    if session is None:
        return
    username = session.username

    await websocket.accept()
    manager = chat_service.manager
    manager.connect(username, websocket)
    try:
        history = chat_service.build_chat_history(db, username)
        await websocket.send_json({"type": "chat_history", "data": history.model_dump(mode="json", by_alias=True)})

        while True:
            raw = await websocket.receive_text()
            try:
                frame = message_schemas.MessageCreate.model_validate(json.loads(raw))
            except (ValueError, ValidationError) as e:
                logger.info("Invalid chat frame from %s: %s", username, e)
                await _send_error(websocket, "Invalid message")
                continue
            try:
                await _relay(db, websocket, username, frame)
            except (PersistenceError, ValueError) as e:
                logger.error("Could not deliver chat message from %s: %s", username, e)
                await _send_error(websocket, "Message could not be delivered")
    except WebSocketDisconnect:
        logger.info("Chat socket of %s disconnected", username)
    finally:
        manager.disconnect(username, websocket)
