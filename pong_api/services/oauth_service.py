import logging
import random
from pathlib import Path
from typing import Mapping, Optional, Tuple

from authlib.integrations.starlette_client import OAuth
from fastapi import Request
from sqlalchemy.orm import Session

from pong_api.core.config import settings
from pong_api.services import auth_service, user_service

logger = logging.getLogger(__name__)

GITHUB_AUTHORIZE_URL = "https://github.com/login/oauth/authorize"
GITHUB_ACCESS_TOKEN_URL = "https://github.com/login/oauth/access_token"
GITHUB_API_BASE_URL = "https://api.github.com/"
GITHUB_SCOPE = "read:user user:email"
SECRETS_DIR = Path("/run/secrets")


def _read_secret_file(name: str) -> Optional[str]:
    # Docker/Kubernetes style secrets, used when the environment does not provide them
    try:
        value = (SECRETS_DIR / name).read_text(encoding="utf-8").strip()
    except OSError:
        return None
    return value or None


def github_credentials() -> Tuple[Optional[str], Optional[str]]:
    client_id = settings.GITHUB_CLIENT_ID or _read_secret_file("github_client_id")
    client_secret = settings.GITHUB_CLIENT_SECRET or _read_secret_file("github_client_secret")
    return client_id, client_secret


def get_redirect_uri(headers: Mapping[str, str], scheme: str = "http") -> Optional[str]:
    """GITHUB_REDIRECT_URI, else the callback path on the host the request came in on."""
    configured = (settings.GITHUB_REDIRECT_URI or "").strip()
    if configured:
        return configured
    proto = "https" if headers.get("x-forwarded-proto") == "https" else scheme
    host = headers.get("host")
    if not host:
        return None
    return f"{proto}://{host}/api/oauth/callback"


def get_github_client():
    """FastAPI dependency returning the authlib GitHub client, or None when unconfigured."""
    client_id, client_secret = github_credentials()
    if not client_id or not client_secret:
        return None
    oauth = OAuth()
    oauth.register(
        name="github",
        client_id=client_id,
        client_secret=client_secret,
        authorize_url=GITHUB_AUTHORIZE_URL,
        access_token_url=GITHUB_ACCESS_TOKEN_URL,
        api_base_url=GITHUB_API_BASE_URL,
        client_kwargs={"scope": GITHUB_SCOPE},
    )
    return oauth.github


def request_redirect_uri(request: Request) -> Optional[str]:
    return get_redirect_uri(request.headers, request.url.scheme)


def resolve_github_user(db: Session, profile: dict) -> str:
    """
    Map a GitHub profile to a local username, provisioning the account on first login.

    The GitHub login is the preferred username; when a local account already
    holds it, or it names a fixed route, a random numeric suffix is appended.
    """
    provider_id = str(profile["id"])
    username = user_service.get_github_username(db, provider_id)
    if username:
        return username

    candidate = profile["login"]
    if candidate in auth_service.RESERVED_USERNAMES or user_service.is_username_taken(db, candidate):
        candidate = f"{candidate}_{random.randint(0, 9999)}"
    user_service.register_github_user(db, candidate, provider_id, profile.get("avatar_url"))
    logger.info("Provisioned GitHub account %s as %s", provider_id, candidate)
    return candidate
