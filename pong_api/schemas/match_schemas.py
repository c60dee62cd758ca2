from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime

class MatchCreate(BaseModel):
    mode: str = Field("online", pattern="^(local|online)$")

class MatchRead(BaseModel):
    id: str
    mode: Optional[str] = None
    player_left: Optional[str] = None
    player_right: Optional[str] = None
    tournament_id: Optional[str] = None
    round: Optional[int] = None
    in_tournament_type: Optional[str] = None
    in_tournament_placement_range: Optional[str] = None
    score_left: int = 0
    score_right: int = 0
    winner: Optional[str] = None # "left" or "right"
    started_at: Optional[datetime] = None
    ended_at: Optional[datetime] = None
    notes: Optional[str] = None

    class Config:
        from_attributes = True

class MatchHistoryEntry(BaseModel):
    """A match as nested inside a user's tournament history."""
    id: str
    player_left: Optional[str] = None
    player_right: Optional[str] = None
    score_left: Optional[int] = None
    score_right: Optional[int] = None
    round: Optional[int] = None
    winner: Optional[str] = None
    placement_range: Optional[List[int]] = None
    started_at: Optional[datetime] = None
    ended_at: Optional[datetime] = None

class ScoreReport(BaseModel):
    left: int = Field(..., ge=0)
    right: int = Field(..., ge=0)

class MatchFinish(BaseModel):
    winner: str = Field(..., pattern="^(left|right)$")
