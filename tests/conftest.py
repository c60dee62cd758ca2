import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from pong_api.api.dependencies import get_db
from pong_api.core.database import init_db, make_engine
from pong_api.main import app
from pong_api.services import user_service

# --- Database Fixtures ---
@pytest.fixture
def engine():
    # One shared in-memory connection so every session sees the same tables
    test_engine = make_engine("sqlite://", poolclass=StaticPool)
    init_db(bind=test_engine)
    yield test_engine
    test_engine.dispose()

@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)

@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()

@pytest.fixture
def users(db):
    """Four local accounts; the password column holds a placeholder, not a real hash."""
    names = ["alice", "bob", "carol", "dave"]
    for name in names:
        user_service.register_user(db, name, "not-a-real-hash")
    return names

# --- Test Client Fixture ---
@pytest.fixture
def client(session_factory):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()

@pytest.fixture
def register(client):
    """Register through the API and return bearer headers; the cookie jar is emptied."""
    def _register(username: str, password: str = "secret-pw") -> dict:
        response = client.post("/api/user/register", json={"username": username, "password": password})
        assert response.status_code == 201, response.text
        client.cookies.clear()
        return {"Authorization": f"Bearer {response.json()['data']['token']}"}
    return _register
