import logging
import uuid
from typing import Optional
from urllib.parse import quote

import httpx
from authlib.integrations.base_client import OAuthError
from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse, RedirectResponse
from sqlalchemy.orm import Session

from pong_api.core import security
from pong_api.core.config import settings
from pong_api.services import auth_service, oauth_service
from pong_api.api.dependencies import get_db

logger = logging.getLogger(__name__)

router = APIRouter()


def _failure(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "message": message})


@router.get("/api/auth/github/start")
async def github_start_endpoint(request: Request, github=Depends(oauth_service.get_github_client)):
    if github is None:
        return _failure(500, "GitHub OAuth not configured")
    redirect_uri = oauth_service.request_redirect_uri(request)
    if not redirect_uri:
        return _failure(500, "GITHUB_REDIRECT_URI or Host header required")

    state = str(uuid.uuid4())
    authorization = await github.create_authorization_url(redirect_uri, state=state)
    response = RedirectResponse(authorization["url"], status_code=302)
    secure = security.is_secure_context(request.headers, request.url.scheme)
    response.headers.append("set-cookie", security.make_state_cookie(state, secure))
    return response


async def _handle_callback(
    request: Request,
    db: Session,
    github,
    code: Optional[str],
    state: Optional[str],
):
    expected = auth_service.parse_cookies(request.headers.get("cookie")).get(security.OAUTH_STATE_COOKIE_NAME)
    if not code or not state or not expected or state != expected:
        logger.warning("OAuth callback with missing or mismatched state")
        return _failure(400, "Invalid OAuth state")
    if github is None:
        return _failure(500, "GitHub OAuth not configured")
    redirect_uri = oauth_service.request_redirect_uri(request)
    if not redirect_uri:
        return _failure(500, "GITHUB_REDIRECT_URI or Host header required")
    if not settings.FRONTEND_ORIGIN:
        return _failure(500, "FRONTEND_ORIGIN not configured")

    try:
        token = await github.fetch_access_token(redirect_uri=redirect_uri, code=code)
    except (OAuthError, httpx.HTTPError) as e:
        logger.error("OAuth token exchange failed: %s", e)
        return _failure(400, "OAuth token exchange failed")
    if not token or not token.get("access_token"):
        logger.error("OAuth token exchange returned no access token")
        return _failure(400, "OAuth token exchange failed")

    try:
        profile_response = await github.get("user", token=token)
        profile_response.raise_for_status()
        profile = profile_response.json()
    except (httpx.HTTPError, ValueError) as e:
        logger.error("Fetching the GitHub profile failed: %s", e)
        return _failure(400, "OAuth profile lookup failed")
    if not isinstance(profile, dict) or "id" not in profile or "login" not in profile:
        return _failure(400, "OAuth profile lookup failed")

    username = oauth_service.resolve_github_user(db, profile)
    session_token, max_age = security.create_session_token(username, settings.SESSION_TTL_MINUTES)
    # The token also travels in the URL for browsers that block third-party cookies
    response = RedirectResponse(
        f"{settings.FRONTEND_ORIGIN}/#/menu?token={quote(session_token, safe='')}", status_code=302
    )
    secure = security.is_secure_context(request.headers, request.url.scheme)
    response.headers.append("set-cookie", security.make_session_cookie(session_token, secure, max_age))
    logger.info("GitHub login completed for %s", username)
    return response


@router.get("/api/auth/github/callback")
async def github_callback_endpoint(
    request: Request,
    code: Optional[str] = None,
    state: Optional[str] = None,
    db: Session = Depends(get_db),
    github=Depends(oauth_service.get_github_client),
):
    return await _handle_callback(request, db, github, code, state)


@router.get("/api/oauth/callback")
async def oauth_callback_endpoint(
    request: Request,
    code: Optional[str] = None,
    state: Optional[str] = None,
    db: Session = Depends(get_db),
    github=Depends(oauth_service.get_github_client),
):
    return await _handle_callback(request, db, github, code, state)
