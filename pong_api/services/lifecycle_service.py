"""
Domain events of the game server mapped onto persistence calls.

Each function reads the current state, rejects transitions that make no
sense with a ValueError, and otherwise delegates to the service modules.
"""

import logging
from typing import Optional

from sqlalchemy.orm import Session

from pong_api.models import match as match_model
from pong_api.models import tournament as tournament_model
from pong_api.services import bracket_service, match_service, message_service, tournament_service

logger = logging.getLogger(__name__)

ALLOWED_SIZES = (2, 4, 8, 16)
STANDALONE_MODES = ("local", "online")


def open_tournament(
    db: Session, name: str, size: int, creator: str, display_name: Optional[str] = None
) -> tournament_model.Tournament:
    if size not in ALLOWED_SIZES:
        raise ValueError(f"Tournament size must be one of {', '.join(map(str, ALLOWED_SIZES))}")
    tournament = tournament_service.create_tournament(db, name, size, creator)
    tournament_service.add_tournament_player(db, tournament.id, creator, display_name)
    return tournament


def join_tournament(db: Session, tournament_id: str, username: str, display_name: Optional[str] = None) -> bool:
    """Seat a player; returns True when this join filled the lobby and started the tournament."""
    tournament = tournament_service.get_tournament_by_id(db, tournament_id)
    if tournament.started_at is not None or tournament.ended_at is not None:
        raise ValueError("Tournament has already started")
    size = tournament.size
    if tournament_service.count_tournament_players(db, tournament_id) >= size:
        raise ValueError("Tournament is full")

    tournament_service.add_tournament_player(db, tournament_id, username, display_name)

    if tournament_service.count_tournament_players(db, tournament_id) < size:
        return False
    tournament_service.start_tournament(db, tournament_id)
    bracket_service.schedule_first_round(db, tournament_id)
    return True


def _close_tournament_chat(db: Session, tournament_id: str) -> None:
    if message_service.get_tournament_messages(db, tournament_id):
        message_service.remove_tournament_messages(db, tournament_id)


def leave_tournament(db: Session, tournament_id: str, username: str) -> None:
    tournament = tournament_service.get_tournament_by_id(db, tournament_id)
    if tournament.ended_at is not None:
        raise ValueError("Tournament has already ended")
    if tournament.started_at is None:
        tournament_service.remove_tournament_player(db, tournament_id, username)
        # Their lobby messages leave with them
        message_service.remove_user_tournament_messages(db, tournament_id, username)
        return

    for match in match_service.get_tournament_matches(db, tournament_id):
        if match.ended_at is None and username in (match.player_left, match.player_right):
            match_service.forfeit_match(db, match.id, username)
    tournament_service.forfeit_tournament(db, tournament_id, username)
    _close_tournament_chat(db, tournament_id)


def schedule_match(db: Session, mode: str, username: str) -> match_model.Match:
    """
    Create a standalone match with `username` on the left.

    Local matches start right away against a guest; online matches wait
    for a second player.
    """
    if mode not in STANDALONE_MODES:
        raise ValueError(f"Unknown match mode {mode!r}")
    match = match_service.create_match(db, mode)
    match_id = match.id
    match_service.add_player_to_match(db, match_id, username, match_model.LEFT)
    if mode == "local":
        match_service.start_match(db, match_id)
    return match_service.get_match_by_id(db, match_id)


def join_match(db: Session, match_id: str, username: str) -> match_model.Match:
    match = match_service.get_match_by_id(db, match_id)
    if match.tournament_id is not None:
        raise ValueError("Tournament matches are seated by the bracket")
    if match.mode != "online":
        raise ValueError("Only online matches can be joined")
    if match.started_at is not None or match.ended_at is not None:
        raise ValueError("Match has already started")
    if username in (match.player_left, match.player_right):
        raise ValueError("Player is already in this match")

    if match.player_left is None:
        side = match_model.LEFT
    elif match.player_right is None:
        side = match_model.RIGHT
    else:
        raise ValueError("Match is full")
    match_service.add_player_to_match(db, match_id, username, side)

    match = match_service.get_match_by_id(db, match_id)
    if match.player_left is not None and match.player_right is not None:
        match_service.start_match(db, match_id)
    return match_service.get_match_by_id(db, match_id)


def leave_waiting_match(db: Session, match_id: str, username: str) -> None:
    match = match_service.get_match_by_id(db, match_id)
    if match.started_at is not None:
        raise ValueError("Match has already started")
    if match.player_left == username:
        side, other = match_model.LEFT, match.player_right
    elif match.player_right == username:
        side, other = match_model.RIGHT, match.player_left
    else:
        raise ValueError("Player is not in this match")

    if other is None:
        match_service.remove_match(db, match_id)
    else:
        match_service.remove_player_from_match(db, match_id, side)


def report_score(db: Session, match_id: str, score_left: int, score_right: int) -> None:
    match = match_service.get_match_by_id(db, match_id)
    if match.ended_at is not None:
        raise ValueError("Match has already ended")
    if score_left < 0 or score_right < 0:
        raise ValueError("Scores cannot be negative")
    if score_left < match.score_left or score_right < match.score_right:
        raise ValueError("Scores cannot decrease")
    match_service.update_match_score(db, match_id, score_left, score_right)


def finish_match(db: Session, match_id: str, winner_side: str) -> Optional[str]:
    """End a match; returns the tournament winner when this match decided one."""
    match = match_service.get_match_by_id(db, match_id)
    if match.ended_at is not None:
        raise ValueError("Match has already ended")
    tournament_id, round = match.tournament_id, match.round
    match_service.end_match(db, match_id, winner_side)
    if tournament_id is None:
        return None

    champion = bracket_service.advance_bracket(db, tournament_id, round)
    if champion is None:
        return None
    tournament_service.end_tournament(db, tournament_id, champion)
    _close_tournament_chat(db, tournament_id)
    return champion


def forfeit(db: Session, match_id: str, username: str) -> None:
    match = match_service.get_match_by_id(db, match_id)
    if username not in (match.player_left, match.player_right):
        raise ValueError("Player is not in this match")
    if match.ended_at is not None:
        raise ValueError("Match has already ended")
    tournament_id = match.tournament_id
    match_service.forfeit_match(db, match_id, username)
    if tournament_id is None:
        return
    if tournament_service.get_tournament_by_id(db, tournament_id).ended_at is None:
        tournament_service.forfeit_tournament(db, tournament_id, username)
    _close_tournament_chat(db, tournament_id)
