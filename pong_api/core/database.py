"""
Database setup for the Pong platform.
Uses SQLite locally; set DATABASE_URL (e.g. PostgreSQL) for production.
"""

from sqlalchemy import create_engine, event, insert
from sqlalchemy.exc import IntegrityError
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker, declarative_base

from pong_api.core.config import settings
from pong_api.core.exceptions import ConstraintViolation, NoRowsAffected


def _normalize_url(raw_url: str) -> str:
    # Hosting platforms hand out postgres://; SQLAlchemy expects postgresql://
    if raw_url.startswith("postgres://"):
        return raw_url.replace("postgres://", "postgresql://", 1)
    return raw_url


def make_engine(url: str, **kwargs) -> Engine:
    """Create an engine; SQLite gets thread sharing and enforced foreign keys."""
    url = _normalize_url(url)
    if url.startswith("sqlite"):
        kwargs.setdefault("connect_args", {"check_same_thread": False})
        new_engine = create_engine(url, echo=settings.SQL_ECHO, **kwargs)

        # Cascades on tournaments/users rely on SQLite enforcing foreign keys
        @event.listens_for(new_engine, "connect")
        def _enable_foreign_keys(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

        return new_engine
    return create_engine(url, echo=settings.SQL_ECHO, pool_pre_ping=True, **kwargs)


engine = make_engine(settings.DATABASE_URL)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()


def init_db(bind: Engine = engine):
    """Create all tables."""
    import pong_api.models  # noqa: F401  registers every model on Base.metadata
    Base.metadata.create_all(bind=bind)


def require_rows(count: int, message: str) -> int:
    """Mutations that were expected to hit a row treat zero as a hard failure."""
    if not count:
        raise NoRowsAffected(message)
    return count


def insert_row(db: Session, model, values: dict, description: str) -> None:
    """Run a parameterized INSERT and commit; constraint violations roll back and re-raise."""
    try:
        result = db.execute(insert(model).values(**values))
        db.commit()
    except IntegrityError as e:
        db.rollback()
        raise ConstraintViolation(f"Cannot create {description}: {e.orig}") from e
    require_rows(result.rowcount, f"Failed to create {description}")
