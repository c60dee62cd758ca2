from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime
from .match_schemas import MatchHistoryEntry

class TournamentCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    size: int = 4
    displayName: Optional[str] = None

class TournamentJoin(BaseModel):
    displayName: Optional[str] = None

class TournamentRead(BaseModel):
    id: str
    name: str
    size: Optional[int] = None
    creator: Optional[str] = None
    winner: Optional[str] = None
    created_at: Optional[datetime] = None
    started_at: Optional[datetime] = None
    ended_at: Optional[datetime] = None
    notes: Optional[str] = None

    class Config:
        from_attributes = True

class TournamentPlayerRead(BaseModel):
    username: str
    displayName: str

class TournamentWithPlayers(BaseModel):
    id: str
    name: str
    size: Optional[int] = None
    winner: Optional[str] = None
    started_at: Optional[datetime] = None
    ended_at: Optional[datetime] = None
    notes: Optional[str] = None
    players: List[TournamentPlayerRead] = Field(default_factory=list)

class OpenTournament(BaseModel):
    id: str
    name: str
    size: int
    playersJoined: int

class TournamentHistory(BaseModel):
    """One tournament in a user's history, newest first, final round first."""
    id: str
    name: str
    winner: Optional[str] = None
    created_at: Optional[datetime] = None
    notes: Optional[str] = None
    matches: List[MatchHistoryEntry] = Field(default_factory=list)
