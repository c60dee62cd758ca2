import logging
import random
from typing import List, Optional

from sqlalchemy.orm import Session

from pong_api.models import match as match_model
from pong_api.services import match_service, tournament_service

logger = logging.getLogger(__name__)

TOURNAMENT_MODE = "tournament"
THIRD_PLACE = "third_place"

# Keyed by the number of matches in a round
ROUND_TYPES = {
    1: "final",
    2: "semifinal",
    4: "quarterfinal",
    8: "round_of_16",
}


def match_id_for(tournament_id: str, round: int, index: int) -> str:
    """Ids sort by round, then by position inside the round."""
    return f"{tournament_id}-r{round}-m{index:02d}"


def winner_username(match: match_model.Match) -> Optional[str]:
    if match.winner == match_model.LEFT:
        return match.player_left
    if match.winner == match_model.RIGHT:
        return match.player_right
    return None


def loser_username(match: match_model.Match) -> Optional[str]:
    if match.winner == match_model.LEFT:
        return match.player_right
    if match.winner == match_model.RIGHT:
        return match.player_left
    return None


def _schedule_round(db: Session, tournament_id: str, round: int, players: List[str]) -> List[match_model.Match]:
    """Pair `players` two by two into started matches of `round`."""
    match_count = len(players) // 2
    round_type = ROUND_TYPES.get(match_count, f"round_of_{len(players)}")
    matches = []
    for index in range(match_count):
        left, right = players[2 * index], players[2 * index + 1]
        match = match_service.create_match(
            db,
            TOURNAMENT_MODE,
            match_id=match_id_for(tournament_id, round, index + 1),
            tournament_id=tournament_id,
            round=round,
            in_tournament_type=round_type,
            placement_range=[1, len(players)],
        )
        match_service.add_player_to_match(db, match.id, left, match_model.LEFT)
        match_service.add_player_to_match(db, match.id, right, match_model.RIGHT)
        match_service.start_match(db, match.id)
        matches.append(match)
    logger.info("Scheduled round %d of tournament %s with %d matches", round, tournament_id, match_count)
    return matches


def schedule_first_round(db: Session, tournament_id: str) -> List[match_model.Match]:
    players = [p.username for p in tournament_service.get_players_for_tournament(db, tournament_id)]
    if len(players) < 2 or len(players) % 2:
        raise ValueError(f"Cannot build a bracket for {len(players)} players")
    seeded = random.sample(players, len(players))
    return _schedule_round(db, tournament_id, 1, seeded)


def advance_bracket(db: Session, tournament_id: str, round: int) -> Optional[str]:
    """
    Move the bracket forward once every match of `round` has ended.

    Returns the tournament winner when the final round is complete,
    otherwise None (round still running, or next round scheduled).
    """
    matches = match_service.get_tournament_matches(db, tournament_id, round=round)
    if not matches or any(m.ended_at is None for m in matches):
        return None

    main_matches = [m for m in matches if m.in_tournament_type != THIRD_PLACE]
    if len(main_matches) == 1:
        champion = winner_username(main_matches[0])
        logger.info("Bracket of tournament %s complete, winner %s", tournament_id, champion)
        return champion

    winners = [winner_username(m) for m in main_matches]
    if None in winners:
        raise ValueError(f"Round {round} of tournament {tournament_id} has a match without winner")
    next_round = round + 1
    _schedule_round(db, tournament_id, next_round, winners)

    if len(main_matches) == 2:
        losers = [loser_username(m) for m in main_matches]
        third = match_service.create_match(
            db,
            TOURNAMENT_MODE,
            match_id=match_id_for(tournament_id, next_round, 2),
            tournament_id=tournament_id,
            round=next_round,
            in_tournament_type=THIRD_PLACE,
            placement_range=[3, 4],
        )
        match_service.add_player_to_match(db, third.id, losers[0], match_model.LEFT)
        match_service.add_player_to_match(db, third.id, losers[1], match_model.RIGHT)
        match_service.start_match(db, third.id)
        logger.info("Scheduled third place match of tournament %s", tournament_id)
    return None
