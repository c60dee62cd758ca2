from sqlalchemy import Column, String, ForeignKey
from sqlalchemy.orm import relationship
from pong_api.core.database import Base

class TournamentPlayer(Base):
    __tablename__ = "tournament_players"

    tournament_id = Column(String, ForeignKey("tournaments.id", ondelete="CASCADE"), primary_key=True)
    username = Column(String, ForeignKey("users.username", onupdate="CASCADE"), primary_key=True)
    display_name = Column(String, nullable=False)

    user = relationship("User", back_populates="memberships")
    tournament = relationship("Tournament", back_populates="players")
