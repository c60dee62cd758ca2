from typing import Optional

from pydantic_settings import BaseSettings

DEFAULT_SESSION_SECRET = "dev-session-secret-change-me"

class Settings(BaseSettings):
    DATABASE_URL: str = "sqlite:///./pong.db"
    SQL_ECHO: bool = False

    SESSION_SECRET: str = DEFAULT_SESSION_SECRET
    SESSION_TTL_MINUTES: int = 60
    ENVIRONMENT: str = "development" # "production" forces Secure cookies

    FRONTEND_ORIGIN: Optional[str] = None
    GITHUB_CLIENT_ID: Optional[str] = None
    GITHUB_CLIENT_SECRET: Optional[str] = None
    GITHUB_REDIRECT_URI: Optional[str] = None
    OAUTH_STATE_MAX_AGE: int = 600

    ABANDONED_TOURNAMENT_MINUTES: int = 3
    JANITOR_INTERVAL_SECONDS: int = 60

    LOG_LEVEL: str = "INFO"

    class Config:
        env_file = ".env"

settings = Settings()
