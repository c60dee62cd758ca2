"""
Small synchronous client for the Pong HTTP API.

The client keeps the session cookie in its httpx cookie jar and, after a
successful login or registration, also sends the token as a bearer header
so it keeps working when cookies are dropped.
"""

import logging
from typing import Any, List, Optional, Union
from urllib.parse import quote, urlsplit, urlunsplit

import httpx

logger = logging.getLogger(__name__)


class ApiError(Exception):
    def __init__(self, status: int, message: str):
        super().__init__(f"{status}: {message}")
        self.status = status
        self.message = message


class PongApiClient:
    def __init__(self, base_url: Union[str, httpx.Client] = "http://localhost:8000", timeout: float = 10.0):
        if isinstance(base_url, httpx.Client):
            self.http = base_url
        else:
            self.http = httpx.Client(base_url=base_url, timeout=timeout)
        self.token: Optional[str] = None

    def close(self) -> None:
        self.http.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.close()

    def _headers(self) -> dict:
        return {"Authorization": f"Bearer {self.token}"} if self.token else {}

    def _request(self, method: str, path: str, default_error: str, **kwargs) -> httpx.Response:
        response = self.http.request(method, path, headers=self._headers(), **kwargs)
        if response.is_success:
            return response
        message = default_error
        try:
            body = response.json()
        except ValueError:
            body = None
        if isinstance(body, dict) and body.get("message"):
            message = body["message"]
        logger.debug("%s %s failed with %d: %s", method, path, response.status_code, message)
        raise ApiError(response.status_code, message)

    def _data(self, response: httpx.Response) -> Any:
        return response.json().get("data")

    def _store_session(self, response: httpx.Response) -> dict:
        session = self._data(response) or {}
        self.token = session.get("token")
        return session

    def register(self, username: str, password: str) -> dict:
        response = self._request(
            "POST", "/api/user/register", "register failed", json={"username": username, "password": password}
        )
        return self._store_session(response)

    def login(self, username: str, password: str) -> dict:
        response = self._request(
            "POST", "/api/user/login", "login failed", json={"username": username, "password": password}
        )
        return self._store_session(response)

    def logout(self) -> None:
        try:
            self._request("POST", "/api/user/logout", "logout failed")
        finally:
            self.token = None
            self.http.cookies.clear()

    def fetch_me(self) -> Optional[dict]:
        """The logged in user, or None when the session is missing or expired."""
        try:
            response = self._request("GET", "/api/user/me", "me fetch failed")
        except ApiError as e:
            if e.status == 401:
                return None
            raise
        return self._data(response)

    def update_user(
        self,
        new_username: Optional[str] = None,
        new_password: Optional[str] = None,
        new_avatar: Optional[str] = None,
    ) -> dict:
        payload = {
            key: value
            for key, value in (("newUsername", new_username), ("newPassword", new_password), ("newAvatar", new_avatar))
            if value is not None
        }
        body = self._request("POST", "/api/user/update", "update failed", json=payload).json()
        if body.get("success") is False:
            raise ApiError(200, body.get("message") or "update failed")
        session = body.get("data")
        if isinstance(session, dict) and session.get("token"):
            self.token = session["token"]
        return body

    def fetch_open_tournaments(self) -> List[dict]:
        try:
            response = self._request("GET", "/api/tournaments/open", "Failed to fetch tournament list")
        except ApiError as e:
            if e.status == 404:
                return []
            raise
        return self._data(response) or []

    def fetch_user(self, username: str) -> dict:
        return self._data(self._request("GET", f"/api/user/{quote(username, safe='')}", "user fetch failed"))

    def fetch_user_matches(self, username: str) -> List[dict]:
        path = f"/api/user/{quote(username, safe='')}/matches"
        return self._data(self._request("GET", path, "matches fetch failed")) or []

    def fetch_user_stats(self, username: str) -> dict:
        path = f"/api/user/{quote(username, safe='')}/stats"
        return self._data(self._request("GET", path, "stats fetch failed"))

    def fetch_chat_history(self) -> dict:
        return self._data(self._request("GET", "/api/chat/history", "chat history fetch failed"))

    def chat_ws_url(self) -> str:
        """WebSocket URL of the chat, carrying the token when one is held."""
        parts = urlsplit(str(self.http.base_url))
        scheme = "wss" if parts.scheme == "https" else "ws"
        path = parts.path.rstrip("/") + "/api/user/ws"
        query = f"token={quote(self.token, safe='')}" if self.token else ""
        return urlunsplit((scheme, parts.netloc, path, query, ""))
