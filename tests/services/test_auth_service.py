import pytest

from pong_api.schemas import auth_schemas
from pong_api.services import auth_service, user_service


class TestParseCookies:

    def test_basic_pairs_are_trimmed(self):
        assert auth_service.parse_cookies(" a=1 ;  b = 2") == {"a": "1", "b": "2"}

    def test_values_are_url_decoded(self):
        assert auth_service.parse_cookies("sid=a%20b%2Bc") == {"sid": "a b+c"}

    def test_value_keeps_later_equal_signs(self):
        assert auth_service.parse_cookies("k=a=b") == {"k": "a=b"}

    def test_segments_without_key_or_separator_are_skipped(self):
        assert auth_service.parse_cookies("junk; =orphan; ok=1") == {"ok": "1"}

    def test_duplicate_keys_last_wins(self):
        assert auth_service.parse_cookies("sid=first; other=x; sid=last")["sid"] == "last"

    @pytest.mark.parametrize("header", [None, ""])
    def test_empty_header(self, header):
        assert auth_service.parse_cookies(header) == {}


class TestTokenFromRequest:

    def test_cookie_wins_over_bearer(self):
        headers = {"cookie": "sid=from-cookie", "authorization": "Bearer from-header"}
        assert auth_service.token_from_request(headers) == "from-cookie"

    def test_bearer_header(self):
        assert auth_service.token_from_request({"authorization": "Bearer abc.def"}) == "abc.def"

    def test_non_bearer_authorization_ignored(self):
        assert auth_service.token_from_request({"authorization": "Basic Zm9vOmJhcg=="}) is None

    def test_query_token_only_for_websockets(self):
        assert auth_service.token_from_request({}, {"token": "q"}) is None
        assert auth_service.token_from_request({}, {"token": "q"}, websocket=True) == "q"

    def test_websocket_prefers_cookie_over_query(self):
        assert auth_service.token_from_request({"cookie": "sid=c"}, {"token": "q"}, websocket=True) == "c"

    def test_nothing_found(self):
        assert auth_service.token_from_request({}, {}, websocket=True) is None


class TestLocalAccounts:

    def test_username_pattern(self):
        assert auth_service.validate_username("pong_master-1.0") == "pong_master-1.0"
        with pytest.raises(ValueError):
            auth_service.validate_username("no spaces")

    @pytest.mark.parametrize("name", ["me", "friends", "blocked"])
    def test_route_names_are_reserved(self, name):
        with pytest.raises(ValueError, match="reserved"):
            auth_service.validate_username(name)
        assert auth_service.validate_username(name.capitalize()) == name.capitalize()

    def test_register_and_authenticate(self, db):
        auth_service.register_local_user(db, auth_schemas.Credentials(username="alice", password="pw-1234"))
        user = auth_service.authenticate_local_user(db, "alice", "pw-1234")
        assert user is not None and user.username == "alice"
        assert auth_service.authenticate_local_user(db, "alice", "wrong") is None
        assert auth_service.authenticate_local_user(db, "nobody", "pw-1234") is None

    def test_github_accounts_cannot_use_passwords(self, db):
        user = user_service.register_github_user(db, "octocat", "42")
        assert auth_service.authenticate_local_user(db, "octocat", user.password) is None
