import logging
import secrets
from typing import List, Optional

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from pong_api.core.database import insert_row, require_rows
from pong_api.core.exceptions import ConstraintViolation, RecordNotFound
from pong_api.models import user as user_model
from pong_api.models import user_link as link_model
from pong_api.models import match as match_model
from pong_api.models import tournament as tournament_model
from pong_api.models import tournament_player as player_model
from pong_api.schemas import user_schemas

logger = logging.getLogger(__name__)

User = user_model.User
UserLink = link_model.UserLink


def register_user(db: Session, username: str, hashed_password: str, avatar: Optional[str] = None) -> User:
    insert_row(db, User, {"username": username, "password": hashed_password, "avatar": avatar}, f"user {username}")
    logger.info("Registered new user %s", username)
    return get_user_by_username(db, username)


def register_github_user(db: Session, username: str, provider_id: str, avatar: Optional[str] = None) -> User:
    # OAuth accounts never log in with a password; store an unguessable placeholder
    placeholder_password = secrets.token_hex(32)
    insert_row(
        db,
        User,
        {
            "username": username,
            "password": placeholder_password,
            "provider": "github",
            "provider_id": provider_id,
            "avatar": avatar,
        },
        f"GitHub user {username}",
    )
    logger.info("Registered new GitHub user %s", username)
    return get_user_by_username(db, username)


def get_all_users(db: Session) -> List[User]:
    return db.query(User).order_by(User.id.asc()).all()


def get_user_by_username(db: Session, username: str) -> User:
    user = db.query(User).filter(User.username == username).first()
    if user is None:
        raise RecordNotFound(f"User {username} not found")
    return user


def is_username_taken(db: Session, username: str) -> bool:
    return db.query(User.id).filter(User.username == username).first() is not None


def get_github_username(db: Session, provider_id: str) -> Optional[str]:
    """Username of the account linked to a GitHub id, or None on first sight."""
    row = db.query(User.username).filter(
        User.provider == "github", User.provider_id == provider_id
    ).first()
    return row.username if row else None


def _update_user_column(db: Session, username: str, values: dict, what: str) -> None:
    try:
        count = db.query(User).filter(User.username == username).update(values, synchronize_session=False)
        db.commit()
    except IntegrityError as e:
        db.rollback()
        raise ConstraintViolation(f"Cannot update {what} for user {username}: {e.orig}") from e
    require_rows(count, f"Failed to update {what} for user {username}")
    logger.info("Updated %s for user %s", what, username)


def update_username(db: Session, username: str, new_username: str) -> None:
    # Foreign keys cascade the rename into matches, memberships, links and messages
    _update_user_column(db, username, {"username": new_username}, "username")


def update_password(db: Session, username: str, hashed_password: str) -> None:
    _update_user_column(db, username, {"password": hashed_password}, "password")


def update_avatar(db: Session, username: str, avatar: str) -> None:
    _update_user_column(db, username, {"avatar": avatar}, "avatar")


def update_stats(db: Session, username: str, stats: str) -> None:
    _update_user_column(db, username, {"stats": stats}, "stats")


def remove_user(db: Session, username: str) -> None:
    """Delete a user; absent users are not an error, referenced users are."""
    try:
        db.query(User).filter(User.username == username).delete(synchronize_session=False)
        db.commit()
    except IntegrityError as e:
        db.rollback()
        raise ConstraintViolation(f"User {username} is still referenced: {e.orig}") from e
    logger.info("Removed user %s", username)


# --- Friends and blocked users ---

def _get_links(db: Session, username: str, kind: str) -> List[str]:
    get_user_by_username(db, username)
    rows = db.query(UserLink.target).filter(
        UserLink.owner == username, UserLink.kind == kind
    ).order_by(UserLink.target.asc()).all()
    return [row.target for row in rows]


def _add_link(db: Session, username: str, target: str, kind: str) -> None:
    exists = db.query(UserLink).filter(
        UserLink.owner == username, UserLink.target == target, UserLink.kind == kind
    ).first()
    if exists:
        return
    insert_row(db, UserLink, {"owner": username, "target": target, "kind": kind}, f"{kind} link {username}->{target}")
    logger.info("Added %s %s for user %s", kind, target, username)


def _remove_link(db: Session, username: str, target: str, kind: str) -> None:
    db.query(UserLink).filter(
        UserLink.owner == username, UserLink.target == target, UserLink.kind == kind
    ).delete(synchronize_session=False)
    db.commit()
    logger.info("Removed %s %s for user %s", kind, target, username)


def get_friends(db: Session, username: str) -> List[str]:
    return _get_links(db, username, link_model.FRIEND)


def add_friend(db: Session, username: str, friend: str) -> None:
    _add_link(db, username, friend, link_model.FRIEND)


def remove_friend(db: Session, username: str, friend: str) -> None:
    _remove_link(db, username, friend, link_model.FRIEND)


def get_blocked(db: Session, username: str) -> List[str]:
    return _get_links(db, username, link_model.BLOCKED)


def block_user(db: Session, username: str, target: str) -> None:
    _add_link(db, username, target, link_model.BLOCKED)


def unblock_user(db: Session, username: str, target: str) -> None:
    _remove_link(db, username, target, link_model.BLOCKED)


def has_blocked(db: Session, username: str, target: str) -> bool:
    return db.query(UserLink).filter(
        UserLink.owner == username, UserLink.target == target, UserLink.kind == link_model.BLOCKED
    ).first() is not None


def compute_user_stats(db: Session, username: str) -> user_schemas.UserStats:
    get_user_by_username(db, username)
    Match = match_model.Match

    played = db.query(Match).filter(
        or_(Match.player_left == username, Match.player_right == username),
        Match.ended_at.isnot(None),
    ).all()
    won = sum(
        1 for m in played
        if (m.winner == match_model.LEFT and m.player_left == username)
        or (m.winner == match_model.RIGHT and m.player_right == username)
    )

    tournaments_played = db.query(player_model.TournamentPlayer).filter(
        player_model.TournamentPlayer.username == username
    ).count()
    tournaments_won = db.query(tournament_model.Tournament).filter(
        tournament_model.Tournament.winner == username
    ).count()

    win_percentage = 0.0
    if played:
        win_percentage = (won / len(played)) * 100

    return user_schemas.UserStats(
        username=username,
        matches_played=len(played),
        matches_won=won,
        tournaments_played=tournaments_played,
        tournaments_won=tournaments_won,
        win_percentage=win_percentage,
    )
