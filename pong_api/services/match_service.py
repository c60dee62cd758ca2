import datetime
import json
import logging
import uuid
from typing import List, Optional, Sequence

from sqlalchemy import or_
from sqlalchemy.orm import Session

from pong_api.core.database import insert_row, require_rows
from pong_api.core.exceptions import RecordNotFound
from pong_api.models import match as match_model

logger = logging.getLogger(__name__)

Match = match_model.Match

GUEST_WINNER_NOTE = "The winner is the guest"


def _side_column(side: str) -> str:
    if side not in match_model.SIDES:
        raise ValueError(f"Invalid side {side!r}, expected 'left' or 'right'")
    return "player_left" if side == match_model.LEFT else "player_right"


def create_match(
    db: Session,
    mode: str,
    match_id: Optional[str] = None,
    tournament_id: Optional[str] = None,
    round: int = 0,
    in_tournament_type: Optional[str] = None,
    placement_range: Optional[Sequence[int]] = None,
) -> Match:
    """
    Create a match row.

    Standalone matches always have round 0 and no placement metadata;
    tournament matches need a round of at least 1 and a placement range.
    """
    match_id = match_id or str(uuid.uuid4())
    values = {"id": match_id, "mode": mode}
    if tournament_id:
        if round < 1 or not placement_range:
            raise ValueError("Tournament matches need a round >= 1 and a placement range")
        values.update(
            tournament_id=tournament_id,
            round=round,
            in_tournament_type=in_tournament_type,
            in_tournament_placement_range=json.dumps(list(placement_range)),
        )
    else:
        values.update(round=0)
    insert_row(db, Match, values, f"match {match_id}")
    if tournament_id:
        logger.info("Created match %s for round %d of tournament %s", match_id, round, tournament_id)
    else:
        logger.info("Created match %s for single game", match_id)
    return get_match_by_id(db, match_id)


def add_player_to_match(db: Session, match_id: str, username: str, side: str) -> None:
    column = _side_column(side)
    count = db.query(Match).filter(
        Match.id == match_id, getattr(Match, column).is_(None)
    ).update({column: username}, synchronize_session=False)
    db.commit()
    require_rows(count, f"Failed to add {side} player to match {match_id}")
    logger.info("Added %s as %s player of match %s", username, side, match_id)


def remove_player_from_match(db: Session, match_id: str, side: str) -> None:
    column = _side_column(side)
    count = db.query(Match).filter(Match.id == match_id).update({column: None}, synchronize_session=False)
    db.commit()
    require_rows(count, f"Failed to remove {side} player from match {match_id}")
    logger.info("Removed %s player from match %s", side, match_id)


def start_match(db: Session, match_id: str) -> None:
    count = db.query(Match).filter(
        Match.id == match_id, Match.started_at.is_(None)
    ).update({"started_at": datetime.datetime.utcnow()}, synchronize_session=False)
    db.commit()
    require_rows(count, f"Failed to start match {match_id}")
    logger.info("Started match %s", match_id)


def update_match_score(db: Session, match_id: str, score_left: int, score_right: int) -> None:
    count = db.query(Match).filter(
        Match.id == match_id, Match.ended_at.is_(None)
    ).update({"score_left": score_left, "score_right": score_right}, synchronize_session=False)
    db.commit()
    require_rows(count, f"Failed to update match {match_id}")
    logger.info("Match %s updated: %d-%d", match_id, score_left, score_right)


def end_match(db: Session, match_id: str, winner_side: str) -> None:
    """
    Record the winning side and close the match.

    A match that already ended is not touched again. There is no check
    that the match ever started.
    """
    _side_column(winner_side)
    match = get_match_by_id(db, match_id)
    notes = None
    if match.mode == "local" and winner_side == match_model.RIGHT:
        notes = GUEST_WINNER_NOTE
    count = db.query(Match).filter(
        Match.id == match_id, Match.ended_at.is_(None)
    ).update(
        {"winner": winner_side, "notes": notes, "ended_at": datetime.datetime.utcnow()},
        synchronize_session=False,
    )
    db.commit()
    require_rows(count, f"Failed to end match {match_id}")
    logger.info("Match %s ended: winner is %s", match_id, winner_side)


def forfeit_match(db: Session, match_id: str, username: str) -> None:
    count = db.query(Match).filter(
        Match.id == match_id, Match.ended_at.is_(None)
    ).update(
        {"notes": f"Match forfeited: player {username} left", "ended_at": datetime.datetime.utcnow()},
        synchronize_session=False,
    )
    db.commit()
    require_rows(count, f"Failed to forfeit match {match_id}")
    logger.info("Match %s forfeited: player %s left", match_id, username)


def remove_match(db: Session, match_id: str) -> None:
    count = db.query(Match).filter(Match.id == match_id).delete(synchronize_session=False)
    db.commit()
    require_rows(count, f"Failed to remove match {match_id}")
    logger.info("Match %s removed", match_id)


def get_all_matches(db: Session) -> List[Match]:
    return db.query(Match).order_by(Match.id.asc()).all()


def get_single_game_matches_by_user(db: Session, username: str) -> List[Match]:
    return db.query(Match).filter(
        Match.tournament_id.is_(None),
        or_(Match.player_left == username, Match.player_right == username),
    ).order_by(Match.started_at.desc()).all()


def get_match_by_id(db: Session, match_id: str) -> Match:
    match = db.query(Match).filter(Match.id == match_id).first()
    if match is None:
        raise RecordNotFound(f"Match {match_id} not found")
    return match


def get_tournament_matches(db: Session, tournament_id: str, round: Optional[int] = None) -> List[Match]:
    query = db.query(Match).filter(Match.tournament_id == tournament_id)
    if round is not None:
        query = query.filter(Match.round == round)
    return query.order_by(Match.round.asc(), Match.id.asc()).all()
