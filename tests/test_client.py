import pytest
from fastapi.testclient import TestClient

from pong_api.client import ApiError, PongApiClient


@pytest.fixture
def api(client: TestClient) -> PongApiClient:
    # TestClient is an httpx.Client, so requests go straight to the app
    return PongApiClient(client)


class TestPongApiClient:

    def test_register_and_me(self, api: PongApiClient):
        session = api.register("alice", "secret-pw")
        assert session["username"] == "alice"
        assert api.token == session["token"]
        assert api.fetch_me()["username"] == "alice"

    def test_login_failure_raises(self, api: PongApiClient):
        api.register("alice", "secret-pw")
        api.logout()
        with pytest.raises(ApiError) as exc_info:
            api.login("alice", "wrong")
        assert exc_info.value.status == 401
        assert exc_info.value.message == "Invalid username or password"

    def test_logout_forgets_session(self, api: PongApiClient):
        api.register("alice", "secret-pw")
        api.logout()
        assert api.token is None
        assert api.fetch_me() is None

    def test_rename_switches_token(self, api: PongApiClient):
        api.register("alice", "secret-pw")
        old_token = api.token
        api.update_user(new_username="alicia")
        assert api.token != old_token
        api.http.cookies.clear()
        assert api.fetch_me()["username"] == "alicia"

    def test_lookups(self, api: PongApiClient):
        api.register("alice", "secret-pw")
        assert api.fetch_open_tournaments() == []
        assert api.fetch_user("alice")["provider"] == "local"
        assert api.fetch_user_matches("alice") == []
        assert api.fetch_user_stats("alice")["matches_played"] == 0
        assert api.fetch_chat_history()["user"] == "alice"
        with pytest.raises(ApiError) as exc_info:
            api.fetch_user("ghost")
        assert exc_info.value.status == 404

    def test_chat_ws_url(self, api: PongApiClient):
        assert api.chat_ws_url() == "ws://testserver/api/user/ws"
        api.register("alice", "secret-pw")
        assert api.chat_ws_url() == f"ws://testserver/api/user/ws?token={api.token}"
