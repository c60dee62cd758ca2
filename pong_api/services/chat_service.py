import logging
from collections import defaultdict
from typing import Any, Callable, Dict, Iterable, List, Set

from fastapi import WebSocket
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from pong_api.core.exceptions import PersistenceError
from pong_api.schemas import message_schemas
from pong_api.services import message_service

logger = logging.getLogger(__name__)


def _read_all(messages) -> list:
    return [message_schemas.MessageRead.model_validate(m) for m in messages]


def _tournament_view(db: Session, username: str):
    tournament_id = message_service.get_tournament_chat_id(db, username)
    if not tournament_id:
        return []
    return message_service.get_tournament_messages(db, tournament_id)


def _load_view(
    db: Session, history: message_schemas.ChatHistory, name: str, loader: Callable[[], Any]
) -> List[message_schemas.MessageRead]:
    try:
        return _read_all(loader())
    except (PersistenceError, SQLAlchemyError) as e:
        logger.error("Could not load %s chat for %s: %s", name, history.user, e)
        history.errors.append(f"{name}: {e}")
        # A failed statement leaves the transaction aborted on PostgreSQL
        db.rollback()
        return []


def build_chat_history(db: Session, username: str) -> message_schemas.ChatHistory:
    """
    Assemble the chat views of a user.

    A view that fails is left empty and named in `errors`; the other views
    are still returned.
    """
    history = message_schemas.ChatHistory(user=username)
    history.global_messages = _load_view(
        db, history, "global", lambda: message_service.get_global_messages(db)
    )
    history.private = _load_view(
        db, history, "private", lambda: message_service.get_private_messages(db, username)
    )
    history.tournament = _load_view(
        db, history, "tournament", lambda: _tournament_view(db, username)
    )
    return history


class ChatConnectionManager:
    """Open chat sockets per username. A user may hold several tabs."""

    def __init__(self):
        self.connections: Dict[str, Set[WebSocket]] = defaultdict(set)

    def connect(self, username: str, websocket: WebSocket) -> None:
        self.connections[username].add(websocket)
        logger.info("Chat socket opened for %s (%d open)", username, len(self.connections[username]))

    def disconnect(self, username: str, websocket: WebSocket) -> None:
        sockets = self.connections.get(username)
        if not sockets:
            return
        sockets.discard(websocket)
        if not sockets:
            del self.connections[username]
        logger.info("Chat socket closed for %s", username)

    def online_users(self) -> Set[str]:
        return set(self.connections)

    async def send_to_user(self, username: str, payload: Dict[str, Any]) -> int:
        """Send to every socket of `username`; returns how many sockets received it."""
        delivered = 0
        for websocket in list(self.connections.get(username, ())):
            try:
                await websocket.send_json(payload)
                delivered += 1
            except (RuntimeError, ConnectionError) as e:
                logger.warning("Dropping dead chat socket of %s: %s", username, e)
                self.disconnect(username, websocket)
        return delivered

    async def send_to_users(self, usernames: Iterable[str], payload: Dict[str, Any]) -> None:
        for username in set(usernames):
            await self.send_to_user(username, payload)

    async def broadcast(self, payload: Dict[str, Any]) -> None:
        await self.send_to_users(list(self.connections), payload)


manager = ChatConnectionManager()
