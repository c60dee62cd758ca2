from sqlalchemy import Column, String, ForeignKey
from pong_api.core.database import Base

FRIEND = "friend"
BLOCKED = "blocked"

class UserLink(Base):
    """Directed relation between two users; the composite key keeps each set duplicate-free."""
    __tablename__ = "user_links"

    owner = Column(String, ForeignKey("users.username", ondelete="CASCADE", onupdate="CASCADE"), primary_key=True)
    target = Column(String, ForeignKey("users.username", ondelete="CASCADE", onupdate="CASCADE"), primary_key=True)
    kind = Column(String, primary_key=True) # FRIEND or BLOCKED
