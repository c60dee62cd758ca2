import datetime
import json
import logging
import uuid
from typing import Dict, List, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.orm import Session

from pong_api.core.database import insert_row, require_rows
from pong_api.core.exceptions import RecordNotFound
from pong_api.models import match as match_model
from pong_api.models import message as message_model
from pong_api.models import tournament as tournament_model
from pong_api.models import tournament_player as player_model
from pong_api.schemas import match_schemas, tournament_schemas

logger = logging.getLogger(__name__)

Tournament = tournament_model.Tournament
TournamentPlayer = player_model.TournamentPlayer
Match = match_model.Match
Message = message_model.Message


def create_tournament(db: Session, name: str, size: int, creator: str) -> Tournament:
    tournament_id = str(uuid.uuid4())
    insert_row(
        db,
        Tournament,
        {"id": tournament_id, "name": name, "size": size, "creator": creator},
        f"tournament {name}",
    )
    logger.info("Created tournament %s (%s) of size %d by %s", tournament_id, name, size, creator)
    return get_tournament_by_id(db, tournament_id)


def start_tournament(db: Session, tournament_id: str) -> None:
    count = db.query(Tournament).filter(
        Tournament.id == tournament_id, Tournament.started_at.is_(None)
    ).update({"started_at": datetime.datetime.utcnow()}, synchronize_session=False)
    db.commit()
    require_rows(count, f"Tournament {tournament_id} does not exist or has already started")
    logger.info("Started tournament %s", tournament_id)


def end_tournament(db: Session, tournament_id: str, winner: str) -> None:
    count = db.query(Tournament).filter(
        Tournament.id == tournament_id, Tournament.ended_at.is_(None)
    ).update({"winner": winner, "ended_at": datetime.datetime.utcnow()}, synchronize_session=False)
    db.commit()
    require_rows(count, f"Tournament {tournament_id} does not exist or has already ended")
    logger.info("Ended tournament %s, winner %s", tournament_id, winner)


def forfeit_tournament(db: Session, tournament_id: str, username: str) -> None:
    count = db.query(Tournament).filter(
        Tournament.id == tournament_id, Tournament.ended_at.is_(None)
    ).update(
        {"notes": f"Tournament forfeited: player {username} left", "ended_at": datetime.datetime.utcnow()},
        synchronize_session=False,
    )
    db.commit()
    require_rows(count, f"Tournament {tournament_id} does not exist or has already ended")
    logger.info("Tournament %s forfeited by %s", tournament_id, username)


def _delete_tournament_chats(db: Session, tournament_ids: List[str]) -> int:
    """Messages only reference tournaments by game id, so they are not cascaded."""
    if not tournament_ids:
        return 0
    return db.query(Message).filter(
        Message.type == message_model.TOURNAMENT, Message.game_id.in_(tournament_ids)
    ).delete(synchronize_session=False)


def remove_tournament(db: Session, tournament_id: str) -> None:
    # Players and matches go with it through ON DELETE CASCADE
    _delete_tournament_chats(db, [tournament_id])
    db.query(Tournament).filter(Tournament.id == tournament_id).delete(synchronize_session=False)
    db.commit()
    logger.info("Removed tournament %s", tournament_id)


def get_all_tournaments(db: Session) -> List[Tournament]:
    return db.query(Tournament).order_by(Tournament.created_at.desc()).all()


def get_open_tournaments(db: Session) -> List[tournament_schemas.OpenTournament]:
    """Lobbies that have not started and still have a free seat."""
    players_joined = func.count(TournamentPlayer.username)
    rows = db.query(Tournament, players_joined).outerjoin(
        TournamentPlayer, TournamentPlayer.tournament_id == Tournament.id
    ).filter(
        Tournament.started_at.is_(None), Tournament.ended_at.is_(None)
    ).group_by(Tournament.id).having(
        players_joined < Tournament.size
    ).order_by(Tournament.created_at.asc()).all()
    return [
        tournament_schemas.OpenTournament(id=t.id, name=t.name, size=t.size, playersJoined=joined)
        for t, joined in rows
    ]


def get_tournament_by_id(db: Session, tournament_id: str) -> Tournament:
    tournament = db.query(Tournament).filter(Tournament.id == tournament_id).first()
    if tournament is None:
        raise RecordNotFound(f"Tournament {tournament_id} not found")
    return tournament


def get_tournament_count_by_creator(db: Session, creator: str) -> int:
    return db.query(Tournament).filter(Tournament.creator == creator).count()


def _placement_range(raw: Optional[str]) -> Optional[List[int]]:
    if not raw:
        return None
    return json.loads(raw)


def get_tournaments_by_user(db: Session, username: str) -> List[tournament_schemas.TournamentHistory]:
    """
    Tournament history of a player, newest first.

    One LEFT JOIN pulls every tournament the user sat in together with its
    matches; rows are then grouped per tournament, keeping the SQL order
    (round descending, then match id descending).
    """
    rows = db.query(Tournament, Match).join(
        TournamentPlayer, TournamentPlayer.tournament_id == Tournament.id
    ).outerjoin(
        Match, Match.tournament_id == Tournament.id
    ).filter(
        TournamentPlayer.username == username
    ).order_by(
        Tournament.created_at.desc(), Tournament.id.desc(), Match.round.desc(), Match.id.desc()
    ).all()

    history: Dict[str, tournament_schemas.TournamentHistory] = {}
    for tournament, match in rows:
        entry = history.get(tournament.id)
        if entry is None:
            entry = tournament_schemas.TournamentHistory(
                id=tournament.id,
                name=tournament.name,
                winner=tournament.winner,
                created_at=tournament.created_at,
                notes=tournament.notes,
            )
            history[tournament.id] = entry
        if match is not None:
            entry.matches.append(match_schemas.MatchHistoryEntry(
                id=match.id,
                player_left=match.player_left,
                player_right=match.player_right,
                score_left=match.score_left,
                score_right=match.score_right,
                round=match.round,
                winner=match.winner,
                placement_range=_placement_range(match.in_tournament_placement_range),
                started_at=match.started_at,
                ended_at=match.ended_at,
            ))
    return list(history.values())


def sweep_abandoned_tournaments(db: Session, minutes_old: int = 3) -> int:
    """Delete lobbies that never started within `minutes_old`; started tournaments are kept."""
    cutoff = datetime.datetime.utcnow() - datetime.timedelta(minutes=minutes_old)
    abandoned = (Tournament.started_at.is_(None), Tournament.created_at < cutoff)
    stale_ids = [row.id for row in db.query(Tournament.id).filter(*abandoned).all()]
    if not stale_ids:
        return 0
    _delete_tournament_chats(db, stale_ids)
    count = db.query(Tournament).filter(
        Tournament.id.in_(stale_ids), *abandoned
    ).delete(synchronize_session=False)
    db.commit()
    if count:
        logger.info("Swept %d abandoned tournaments older than %d minutes", count, minutes_old)
    return count


def cleanup_incomplete_games(db: Session) -> Tuple[int, int]:
    """Delete matches and tournaments left without a winner or notes, e.g. after a crash."""
    matches = db.query(Match).filter(
        Match.winner.is_(None), Match.notes.is_(None)
    ).delete(synchronize_session=False)
    incomplete = (Tournament.winner.is_(None), Tournament.notes.is_(None))
    _delete_tournament_chats(db, [row.id for row in db.query(Tournament.id).filter(*incomplete).all()])
    tournaments = db.query(Tournament).filter(*incomplete).delete(synchronize_session=False)
    db.commit()
    logger.info("Cleaned up %d incomplete matches and %d incomplete tournaments", matches, tournaments)
    return matches, tournaments


# --- Tournament players ---

def add_tournament_player(db: Session, tournament_id: str, username: str, display_name: Optional[str] = None) -> None:
    insert_row(
        db,
        TournamentPlayer,
        {"tournament_id": tournament_id, "username": username, "display_name": display_name or username},
        f"membership of {username} in tournament {tournament_id}",
    )
    logger.info("Player %s joined tournament %s", username, tournament_id)


def remove_tournament_player(db: Session, tournament_id: str, username: str) -> None:
    db.query(TournamentPlayer).filter(
        TournamentPlayer.tournament_id == tournament_id, TournamentPlayer.username == username
    ).delete(synchronize_session=False)
    db.commit()
    logger.info("Player %s left tournament %s", username, tournament_id)


def count_tournament_players(db: Session, tournament_id: str) -> int:
    return db.query(TournamentPlayer).filter(TournamentPlayer.tournament_id == tournament_id).count()


def get_all_tournament_players(db: Session) -> List[TournamentPlayer]:
    return db.query(TournamentPlayer).all()


def get_players_for_tournament(db: Session, tournament_id: str) -> List[TournamentPlayer]:
    players = db.query(TournamentPlayer).filter(
        TournamentPlayer.tournament_id == tournament_id
    ).order_by(TournamentPlayer.username.asc()).all()
    if not players:
        raise RecordNotFound(f"No players found for tournament {tournament_id}")
    return players


def get_tournaments_for_user(db: Session, username: str) -> List[Tournament]:
    tournaments = db.query(Tournament).join(
        TournamentPlayer, TournamentPlayer.tournament_id == Tournament.id
    ).filter(TournamentPlayer.username == username).order_by(Tournament.created_at.desc()).all()
    if not tournaments:
        raise RecordNotFound(f"No tournaments found for user {username}")
    return tournaments


def _with_players(rows) -> List[tournament_schemas.TournamentWithPlayers]:
    grouped: Dict[str, tournament_schemas.TournamentWithPlayers] = {}
    for tournament, player in rows:
        entry = grouped.get(tournament.id)
        if entry is None:
            entry = tournament_schemas.TournamentWithPlayers(
                id=tournament.id,
                name=tournament.name,
                size=tournament.size,
                winner=tournament.winner,
                started_at=tournament.started_at,
                ended_at=tournament.ended_at,
                notes=tournament.notes,
            )
            grouped[tournament.id] = entry
        if player is not None:
            entry.players.append(tournament_schemas.TournamentPlayerRead(
                username=player.username, displayName=player.display_name
            ))
    return list(grouped.values())


def _tournaments_with_players_query(db: Session):
    return db.query(Tournament, TournamentPlayer).outerjoin(
        TournamentPlayer, TournamentPlayer.tournament_id == Tournament.id
    )


def get_tournament_with_players(db: Session, tournament_id: str) -> tournament_schemas.TournamentWithPlayers:
    rows = _tournaments_with_players_query(db).filter(
        Tournament.id == tournament_id
    ).order_by(TournamentPlayer.username.asc()).all()
    if not rows:
        raise RecordNotFound(f"Tournament {tournament_id} not found")
    return _with_players(rows)[0]


def get_all_tournaments_with_players(db: Session) -> List[tournament_schemas.TournamentWithPlayers]:
    rows = _tournaments_with_players_query(db).order_by(
        Tournament.created_at.desc(), Tournament.id.asc(), TournamentPlayer.username.asc()
    ).all()
    return _with_players(rows)
