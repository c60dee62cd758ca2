import hashlib
import hmac
import json
import logging
import time
from typing import Mapping, Optional, Tuple
from urllib.parse import quote

from jose.utils import base64url_decode, base64url_encode
from passlib.context import CryptContext

from pong_api.core.config import settings, DEFAULT_SESSION_SECRET
from pong_api.schemas import auth_schemas

logger = logging.getLogger(__name__)

SESSION_COOKIE_NAME = "sid"
OAUTH_STATE_COOKIE_NAME = "oauth_state"

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def warn_if_default_secret() -> None:
    if settings.SESSION_SECRET == DEFAULT_SESSION_SECRET:
        logger.warning("SESSION_SECRET not set, using the development default")


def _now() -> int:
    return int(time.time())


def _sign(data: bytes, secret: str) -> bytes:
    mac = hmac.new(secret.encode("utf-8"), data, hashlib.sha256).digest()
    return base64url_encode(mac)


def create_session_token(
    username: str,
    ttl_minutes: float = 60,
    secret: Optional[str] = None,
    now: Optional[int] = None,
) -> Tuple[str, int]:
    """
    Mint a signed session token for `username`.

    The token is `base64url(payload) + "." + base64url(HMAC-SHA256(payload))`
    where payload is `{"username": ..., "exp": <unix seconds>}`.
    Returns the token and its remaining lifetime in seconds (for Max-Age).
    """
    now_sec = _now() if now is None else now
    exp = now_sec + int(ttl_minutes * 60)
    payload = json.dumps({"username": username, "exp": exp}, separators=(",", ":"))
    payload_b64 = base64url_encode(payload.encode("utf-8"))
    signature = _sign(payload_b64, secret or settings.SESSION_SECRET)
    token = (payload_b64 + b"." + signature).decode("ascii")
    return token, exp - now_sec


def verify_session_token(
    token,
    secret: Optional[str] = None,
    now: Optional[int] = None,
) -> Optional[auth_schemas.SessionPayload]:
    """Return the payload of a valid, unexpired token, otherwise None. Never raises."""
    if not token or not isinstance(token, str):
        logger.debug("Session token missing or not a string")
        return None
    payload_b64, dot, signature = token.rpartition(".")
    if not dot:
        logger.info("Session token has no separator")
        return None
    try:
        payload_bytes = payload_b64.encode("ascii")
        given = signature.encode("ascii")
    except UnicodeEncodeError:
        logger.info("Session token contains non-ascii characters")
        return None
    expected = _sign(payload_bytes, secret or settings.SESSION_SECRET)
    if len(given) != len(expected):
        logger.info("Session token signature length mismatch")
        return None
    if not hmac.compare_digest(given, expected):
        logger.info("Session token signature invalid")
        return None
    try:
        data = json.loads(base64url_decode(payload_bytes).decode("utf-8"))
    except ValueError as e:
        logger.info("Session token payload could not be decoded: %s", e)
        return None
    if not isinstance(data, dict):
        return None
    username = data.get("username")
    exp = data.get("exp")
    if not isinstance(username, str) or not username:
        logger.info("Session token payload missing username")
        return None
    if isinstance(exp, bool) or not isinstance(exp, (int, float)):
        logger.info("Session token payload missing exp")
        return None
    now_sec = _now() if now is None else now
    if exp <= now_sec:
        logger.info("Session token expired (exp=%s now=%s)", exp, now_sec)
        return None
    return auth_schemas.SessionPayload(username=username, exp=int(exp))


def is_secure_context(headers: Mapping[str, str], scheme: str = "http") -> bool:
    """HTTPS directly or behind a proxy, or a production deployment."""
    if settings.ENVIRONMENT == "production":
        return True
    return headers.get("x-forwarded-proto") == "https" or scheme in ("https", "wss")


def _same_site(secure: bool) -> str:
    # Cross-origin frontends only receive the cookie with SameSite=None, which requires Secure
    return "SameSite=None" if secure else "SameSite=Lax"


def make_session_cookie(token: str, secure: bool = False, max_age_sec: Optional[int] = None) -> str:
    """Build the Set-Cookie value carrying the session token."""
    attrs = [
        f"{SESSION_COOKIE_NAME}={quote(token, safe='')}",
        "Path=/",
        "HttpOnly",
        _same_site(secure),
    ]
    if secure:
        attrs.append("Secure")
    if max_age_sec and max_age_sec > 0:
        attrs.append(f"Max-Age={int(max_age_sec)}")
    return "; ".join(attrs)


def clear_session_cookie(secure: bool = False) -> str:
    """Build the Set-Cookie value that removes the session cookie."""
    value = f"{SESSION_COOKIE_NAME}=; Path=/; HttpOnly; {_same_site(secure)}; Max-Age=0"
    if secure:
        value += "; Secure"
    return value


def make_state_cookie(state: str, secure: bool = False) -> str:
    value = (
        f"{OAUTH_STATE_COOKIE_NAME}={quote(state, safe='')}; Path=/; HttpOnly; "
        f"{_same_site(secure)}; Max-Age={settings.OAUTH_STATE_MAX_AGE}"
    )
    if secure:
        value += "; Secure"
    return value
