import datetime

from sqlalchemy import Column, String, ForeignKey, DateTime, Text
from pong_api.core.database import Base

BROADCAST = "broadcast"
PRIVATE = "private"
TOURNAMENT = "tournament"

class Message(Base):
    __tablename__ = "messages"

    id = Column(String, primary_key=True, index=True)
    sender = Column(String, ForeignKey("users.username", ondelete="CASCADE", onupdate="CASCADE"), nullable=False)
    receiver = Column(String, ForeignKey("users.username", ondelete="CASCADE", onupdate="CASCADE"), nullable=True)
    type = Column(String, nullable=False) # BROADCAST, PRIVATE or TOURNAMENT
    content = Column(Text)
    game_id = Column(String, nullable=True, index=True) # tournament id for TOURNAMENT messages
    sent_at = Column(DateTime, default=datetime.datetime.utcnow)
