from pydantic import BaseModel
from typing import Optional
from datetime import datetime

class UserRead(BaseModel):
    id: int
    username: str
    avatar: Optional[str] = None
    provider: str
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True

class UserStats(BaseModel):
    username: str
    matches_played: int
    matches_won: int
    tournaments_played: int
    tournaments_won: int
    win_percentage: float

class UserLinkRequest(BaseModel):
    username: str
