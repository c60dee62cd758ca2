import datetime

from sqlalchemy import Column, Integer, String, Text, DateTime
from sqlalchemy.orm import relationship
from pong_api.core.database import Base

class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String, unique=True, index=True, nullable=False)
    password = Column(String, nullable=False)
    provider = Column(String, default="local", nullable=False) # "local" or "github"
    provider_id = Column(String, nullable=True, index=True)
    avatar = Column(String, nullable=True)
    stats = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.datetime.utcnow)

    memberships = relationship("TournamentPlayer", back_populates="user", passive_deletes=True)
