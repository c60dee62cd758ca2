import datetime

from sqlalchemy import Column, Integer, String, ForeignKey, DateTime
from sqlalchemy.orm import relationship
from pong_api.core.database import Base

class Tournament(Base):
    __tablename__ = "tournaments"

    id = Column(String, primary_key=True, index=True)
    name = Column(String, nullable=False)
    size = Column(Integer)
    creator = Column(String, nullable=True)
    winner = Column(String, ForeignKey("users.username", onupdate="CASCADE"), nullable=True)
    created_at = Column(DateTime, default=datetime.datetime.utcnow)
    started_at = Column(DateTime, nullable=True)
    ended_at = Column(DateTime, nullable=True)
    notes = Column(String, nullable=True)

    players = relationship("TournamentPlayer", back_populates="tournament", passive_deletes=True)
    matches = relationship("Match", back_populates="tournament", passive_deletes=True)
