import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request
from starlette.exceptions import HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from pong_api.api.endpoints import auth as auth_endpoints
from pong_api.api.endpoints import chat as chat_endpoints
from pong_api.api.endpoints import matches as match_endpoints
from pong_api.api.endpoints import oauth as oauth_endpoints
from pong_api.api.endpoints import tournaments as tournament_endpoints
from pong_api.api.endpoints import users as user_endpoints
from pong_api.core import security
from pong_api.core.config import settings
from pong_api.core.database import init_db
from pong_api.core.exceptions import ConstraintViolation, PersistenceError, RecordNotFound
from pong_api.services import janitor_service

numeric_level = getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)
logging.basicConfig(
    level=numeric_level, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create tables and clear out stale games before serving; run the janitor meanwhile."""
    logger.info("Starting up Pong API...")
    security.warn_if_default_secret()
    init_db()
    janitor_service.run_startup_sweep()

    janitor = janitor_service.TournamentJanitor()
    janitor.start()
    app.state.janitor = janitor

    yield

    logger.info("Shutting down Pong API...")
    await janitor.stop()


app = FastAPI(title="Pong API", lifespan=lifespan)

if settings.FRONTEND_ORIGIN:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.FRONTEND_ORIGIN],
        allow_credentials=True,
        allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
        allow_headers=["*"],
    )


def _failure(status_code: int, message: str, headers=None) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "message": message}, headers=headers)


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    return _failure(exc.status_code, str(exc.detail), headers=getattr(exc, "headers", None))


@app.exception_handler(RecordNotFound)
async def record_not_found_handler(request: Request, exc: RecordNotFound):
    return _failure(404, str(exc))


@app.exception_handler(ConstraintViolation)
async def constraint_violation_handler(request: Request, exc: ConstraintViolation):
    logger.warning("Constraint violation on %s: %s", request.url.path, exc)
    return _failure(409, "Conflicting data, the record already exists or is still referenced")


@app.exception_handler(PersistenceError)
async def persistence_error_handler(request: Request, exc: PersistenceError):
    logger.error("Persistence failure on %s: %s", request.url.path, exc)
    return _failure(500, "Internal server error")


@app.exception_handler(ValueError)
async def value_error_handler(request: Request, exc: ValueError):
    return _failure(400, str(exc))


# Chat goes first so /api/user/ws is never matched as a username
app.include_router(chat_endpoints.router, tags=["Chat"])
app.include_router(oauth_endpoints.router, tags=["OAuth"])
app.include_router(auth_endpoints.router, prefix="/api/user", tags=["Authentication"])
app.include_router(user_endpoints.router, prefix="/api/user", tags=["Users"])
app.include_router(tournament_endpoints.router, prefix="/api/tournaments", tags=["Tournaments"])
app.include_router(match_endpoints.router, prefix="/api/matches", tags=["Matches"])


@app.get("/")
async def root():
    return {"message": "Pong API"}


if __name__ == "__main__":
    uvicorn.run("pong_api.main:app", host="0.0.0.0", port=8000, reload=False)
