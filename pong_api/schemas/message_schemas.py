from pydantic import BaseModel, ConfigDict, Field
from typing import Optional, List
from datetime import datetime

class MessageCreate(BaseModel):
    type: str = Field(..., pattern="^(broadcast|private|tournament)$")
    content: str = Field(..., min_length=1, max_length=1000)
    receiver: Optional[str] = None
    gameId: Optional[str] = None

class MessageRead(BaseModel):
    id: str
    sender: str
    receiver: Optional[str] = None
    type: str
    content: Optional[str] = None
    game_id: Optional[str] = None
    sent_at: Optional[datetime] = None

    class Config:
        from_attributes = True

class ChatHistory(BaseModel):
    """
    Per-user chat views. `errors` lists the views that could not be
    assembled; the other views are still returned.
    """
    model_config = ConfigDict(populate_by_name=True)

    user: str
    global_messages: List[MessageRead] = Field(default_factory=list, alias="global")
    private: List[MessageRead] = Field(default_factory=list)
    tournament: List[MessageRead] = Field(default_factory=list)
    errors: List[str] = Field(default_factory=list)
