import logging
import re
from typing import Dict, Mapping, Optional
from urllib.parse import unquote

from fastapi import Depends, HTTPException, Request, Response, WebSocket, status
from sqlalchemy.orm import Session

from pong_api.api.dependencies import get_db
from pong_api.core import security
from pong_api.core.config import settings
from pong_api.core.exceptions import RecordNotFound
from pong_api.models import user as user_model
from pong_api.schemas import auth_schemas
from pong_api.services import user_service

logger = logging.getLogger(__name__)

USERNAME_PATTERN = re.compile(r"^[A-Za-z0-9_.-]{2,32}$")
# Fixed paths under /api/user that would shadow a profile of the same name
RESERVED_USERNAMES = frozenset({"me", "friends", "blocked"})
WS_UNAUTHORIZED_CODE = 4401


def parse_cookies(header: Optional[str]) -> Dict[str, str]:
    """Parse a Cookie header; later duplicates of a key win."""
    cookies: Dict[str, str] = {}
    if not header:
        return cookies
    for segment in header.split(";"):
        key, sep, value = segment.partition("=")
        key = key.strip()
        if not sep or not key:
            continue
        cookies[key] = unquote(value.strip())
    return cookies


def token_from_request(
    headers: Mapping[str, str],
    query_params: Optional[Mapping[str, str]] = None,
    websocket: bool = False,
) -> Optional[str]:
    """Session cookie first, then a bearer header, then `?token=` for WebSocket handshakes."""
    token = parse_cookies(headers.get("cookie")).get(security.SESSION_COOKIE_NAME)
    if token:
        return token
    authorization = headers.get("authorization") or ""
    scheme, _, credentials = authorization.partition(" ")
    if scheme.lower() == "bearer" and credentials.strip():
        return credentials.strip()
    if websocket and query_params:
        return query_params.get("token") or None
    return None


def _is_secure(request_or_ws) -> bool:
    return security.is_secure_context(request_or_ws.headers, request_or_ws.url.scheme)


def authenticate_http(request: Request, response: Response) -> Optional[auth_schemas.SessionPayload]:
    token = token_from_request(request.headers)
    session = security.verify_session_token(token)
    if session is None:
        response.headers.append("set-cookie", security.clear_session_cookie(_is_secure(request)))
    return session


async def authenticate_websocket(websocket: WebSocket) -> Optional[auth_schemas.SessionPayload]:
    token = token_from_request(websocket.headers, websocket.query_params, websocket=True)
    session = security.verify_session_token(token)
    if session is None:
        logger.info("Rejecting unauthenticated WebSocket from %s", websocket.client)
        await websocket.accept()
        await websocket.close(code=WS_UNAUTHORIZED_CODE, reason="Unauthorized")
    return session


def _unauthorized(request: Request) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Unauthorized",
        headers={"set-cookie": security.clear_session_cookie(_is_secure(request))},
    )


def get_current_session(request: Request, response: Response) -> auth_schemas.SessionPayload:
    session = authenticate_http(request, response)
    if session is None:
        raise _unauthorized(request)
    return session


def get_current_user(
    request: Request,
    session: auth_schemas.SessionPayload = Depends(get_current_session),
    db: Session = Depends(get_db),
) -> user_model.User:
    try:
        return user_service.get_user_by_username(db, session.username)
    except RecordNotFound:
        logger.info("Session for %s refers to a removed account", session.username)
        raise _unauthorized(request)


def validate_username(username: str) -> str:
    if not USERNAME_PATTERN.match(username):
        raise ValueError("Username may only contain letters, digits, '_', '.' and '-' (2-32 characters)")
    if username in RESERVED_USERNAMES:
        raise ValueError(f"Username {username!r} is reserved")
    return username


def register_local_user(db: Session, credentials: auth_schemas.Credentials) -> user_model.User:
    validate_username(credentials.username)
    return user_service.register_user(
        db, credentials.username, security.get_password_hash(credentials.password)
    )


def authenticate_local_user(db: Session, username: str, password: str) -> Optional[user_model.User]:
    """The user when the password matches a local account, otherwise None."""
    try:
        user = user_service.get_user_by_username(db, username)
    except RecordNotFound:
        return None
    if user.provider != "local" or not security.verify_password(password, user.password):
        return None
    return user


def issue_session(response: Response, request: Request, username: str) -> auth_schemas.SessionToken:
    """Mint a token for `username` and attach it to the response as the session cookie."""
    token, max_age = security.create_session_token(username, settings.SESSION_TTL_MINUTES)
    response.headers.append("set-cookie", security.make_session_cookie(token, _is_secure(request), max_age))
    return auth_schemas.SessionToken(username=username, token=token, maxAgeSec=max_age)
