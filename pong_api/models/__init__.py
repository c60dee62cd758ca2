from pong_api.core.database import Base

# Import all models here to ensure they are registered with Base
from .user import User
from .user_link import UserLink
from .tournament import Tournament
from .tournament_player import TournamentPlayer
from .match import Match
from .message import Message

# Tables are created by pong_api.core.database.init_db, called from the app lifespan.
