from sqlalchemy import Column, Integer, String, ForeignKey, DateTime
from sqlalchemy.orm import relationship
from pong_api.core.database import Base

LEFT = "left"
RIGHT = "right"
SIDES = (LEFT, RIGHT)

class Match(Base):
    __tablename__ = "matches"

    id = Column(String, primary_key=True, index=True)
    mode = Column(String) # "local", "online" or "tournament"
    player_left = Column(String, ForeignKey("users.username", onupdate="CASCADE"), nullable=True)
    player_right = Column(String, ForeignKey("users.username", onupdate="CASCADE"), nullable=True)
    tournament_id = Column(String, ForeignKey("tournaments.id", ondelete="CASCADE"), nullable=True, index=True)
    round = Column(Integer, default=0)
    in_tournament_type = Column(String, nullable=True) # e.g. "semifinal", "final", "third_place"
    in_tournament_placement_range = Column(String, nullable=True) # JSON list, e.g. "[1, 4]"
    score_left = Column(Integer, default=0, nullable=False)
    score_right = Column(Integer, default=0, nullable=False)
    winner = Column(String, nullable=True) # winning side, LEFT or RIGHT
    started_at = Column(DateTime, nullable=True)
    ended_at = Column(DateTime, nullable=True)
    notes = Column(String, nullable=True)

    tournament = relationship("Tournament", back_populates="matches")
