import datetime
import logging
import uuid
from typing import List, Optional

from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from pong_api.core.database import insert_row, require_rows
from pong_api.core.exceptions import ChatIntegrityError, RecordNotFound
from pong_api.models import message as message_model
from pong_api.models import tournament_player as player_model

logger = logging.getLogger(__name__)

Message = message_model.Message


def add_message(
    db: Session,
    sender: str,
    msg_type: str,
    content: str,
    receiver: Optional[str] = None,
    game_id: Optional[str] = None,
) -> Message:
    if msg_type not in (message_model.BROADCAST, message_model.PRIVATE, message_model.TOURNAMENT):
        raise ValueError(f"Unknown message type {msg_type!r}")
    if msg_type == message_model.PRIVATE and not receiver:
        raise ValueError("Private messages need a receiver")
    if msg_type == message_model.TOURNAMENT and not game_id:
        raise ValueError("Tournament messages need a game id")
    if msg_type != message_model.PRIVATE:
        receiver = None

    message_id = str(uuid.uuid4())
    insert_row(
        db,
        Message,
        {
            "id": message_id,
            "sender": sender,
            "receiver": receiver,
            "type": msg_type,
            "content": content,
            "game_id": game_id if msg_type == message_model.TOURNAMENT else None,
            "sent_at": datetime.datetime.utcnow(),
        },
        f"{msg_type} message from {sender}",
    )
    logger.info("Added message of type %s from %s", msg_type, sender)
    return db.query(Message).filter(Message.id == message_id).one()


def remove_message(db: Session, message_id: str) -> None:
    count = db.query(Message).filter(Message.id == message_id).delete(synchronize_session=False)
    db.commit()
    require_rows(count, f"Failed to remove message {message_id}")
    logger.info("Message %s removed", message_id)


def remove_tournament_messages(db: Session, tournament_id: str) -> int:
    count = db.query(Message).filter(
        Message.type == message_model.TOURNAMENT, Message.game_id == tournament_id
    ).delete(synchronize_session=False)
    db.commit()
    require_rows(count, f"Failed to remove tournament {tournament_id} messages")
    logger.info("Tournament %s messages removed (%d)", tournament_id, count)
    return count


def remove_user_tournament_messages(db: Session, tournament_id: str, username: str) -> int:
    """Drop what `username` wrote in a tournament chat; writing nothing is fine."""
    count = db.query(Message).filter(
        Message.type == message_model.TOURNAMENT,
        Message.game_id == tournament_id,
        Message.sender == username,
    ).delete(synchronize_session=False)
    db.commit()
    logger.info("Removed %d messages of %s from tournament %s chat", count, username, tournament_id)
    return count


def get_all_messages(db: Session) -> List[Message]:
    return db.query(Message).order_by(Message.sent_at.asc()).all()


def get_global_messages(db: Session) -> List[Message]:
    return db.query(Message).filter(
        Message.type == message_model.BROADCAST
    ).order_by(Message.sent_at.asc()).all()


def get_private_messages(db: Session, username: str) -> List[Message]:
    """Messages the user sent to or received from somebody in particular."""
    return db.query(Message).filter(
        or_(Message.sender == username, Message.receiver == username),
        Message.receiver.isnot(None),
    ).order_by(Message.sent_at.asc()).all()


def get_messages_sent_by(db: Session, username: str) -> List[Message]:
    return db.query(Message).filter(Message.sender == username).order_by(Message.sent_at.asc()).all()


def get_messages_received_by(db: Session, username: str) -> List[Message]:
    return db.query(Message).filter(Message.receiver == username).order_by(Message.sent_at.asc()).all()


def get_tournament_chat_id(db: Session, username: str) -> Optional[str]:
    """
    Id of the single tournament chat the user belongs to, or None.

    A user is part of a tournament chat when they wrote in it or are seated
    in the tournament. Seeing messages of more than one tournament means the
    chat was not cleaned up and raises ChatIntegrityError.
    """
    TournamentPlayer = player_model.TournamentPlayer
    seated = select(TournamentPlayer.tournament_id).where(TournamentPlayer.username == username)
    rows = db.query(Message.game_id).filter(
        Message.type == message_model.TOURNAMENT,
        or_(Message.sender == username, Message.game_id.in_(seated)),
    ).distinct().all()
    game_ids = {row.game_id for row in rows}
    if len(game_ids) > 1:
        raise ChatIntegrityError(f"Messages for multiple tournaments for {username}")
    return game_ids.pop() if game_ids else None


def get_tournament_messages(db: Session, tournament_id: str) -> List[Message]:
    return db.query(Message).filter(
        Message.type == message_model.TOURNAMENT, Message.game_id == tournament_id
    ).order_by(Message.sent_at.asc()).all()


def get_message_by_id(db: Session, message_id: str) -> Message:
    message = db.query(Message).filter(Message.id == message_id).first()
    if message is None:
        raise RecordNotFound(f"Message {message_id} not found")
    return message
