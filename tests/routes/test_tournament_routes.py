import pytest
from fastapi.testclient import TestClient


@pytest.fixture
def players(register):
    return {name: register(name) for name in ["alice", "bob", "carol", "dave"]}


def _create(client: TestClient, headers: dict, size: int = 4, **extra) -> dict:
    response = client.post("/api/tournaments", json={"name": "Cup", "size": size, **extra}, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()["data"]


class TestTournamentRoutes:

    def test_create_seats_creator(self, client: TestClient, players):
        data = _create(client, players["alice"], displayName="Ace")
        assert data["name"] == "Cup"
        assert data["size"] == 4
        assert data["started_at"] is None
        assert data["players"] == [{"username": "alice", "displayName": "Ace"}]

    def test_create_requires_session(self, client: TestClient):
        response = client.post("/api/tournaments", json={"name": "Cup", "size": 4})
        assert response.status_code == 401

    def test_invalid_size(self, client: TestClient, players):
        response = client.post("/api/tournaments", json={"name": "Cup", "size": 3}, headers=players["alice"])
        assert response.status_code == 400
        assert response.json()["success"] is False

    def test_open_list(self, client: TestClient, players):
        data = _create(client, players["alice"])
        response = client.get("/api/tournaments/open", headers=players["bob"])
        assert response.status_code == 200
        assert response.json()["data"] == [{"id": data["id"], "name": "Cup", "size": 4, "playersJoined": 1}]

    def test_join_until_full_starts(self, client: TestClient, players):
        tournament_id = _create(client, players["alice"])["id"]

        for name in ["bob", "carol"]:
            response = client.post(f"/api/tournaments/{tournament_id}/join", headers=players[name])
            assert response.status_code == 200
            assert response.json()["started"] is False

        response = client.post(
            f"/api/tournaments/{tournament_id}/join", json={"displayName": "D"}, headers=players["dave"]
        )
        body = response.json()
        assert body["started"] is True
        assert body["data"]["started_at"] is not None
        assert {"username": "dave", "displayName": "D"} in body["data"]["players"]

        assert client.get("/api/tournaments/open", headers=players["alice"]).json()["data"] == []

        late = client.post(f"/api/tournaments/{tournament_id}/join", headers=players["alice"])
        assert late.status_code == 400
        assert late.json()["message"] == "Tournament has already started"

    def test_join_twice_conflicts(self, client: TestClient, players):
        tournament_id = _create(client, players["alice"])["id"]
        response = client.post(f"/api/tournaments/{tournament_id}/join", headers=players["alice"])
        assert response.status_code == 409

    def test_unknown_tournament(self, client: TestClient, players):
        assert client.get("/api/tournaments/missing", headers=players["alice"]).status_code == 404
        assert client.post("/api/tournaments/missing/join", headers=players["alice"]).status_code == 404

    def test_leave_lobby(self, client: TestClient, players):
        tournament_id = _create(client, players["alice"])["id"]
        client.post(f"/api/tournaments/{tournament_id}/join", headers=players["bob"])
        response = client.post(f"/api/tournaments/{tournament_id}/leave", headers=players["bob"])
        assert response.status_code == 200
        data = client.get(f"/api/tournaments/{tournament_id}", headers=players["alice"]).json()["data"]
        assert [p["username"] for p in data["players"]] == ["alice"]

    def test_leave_started_tournament_forfeits(self, client: TestClient, players):
        tournament_id = _create(client, players["alice"], size=2)["id"]
        client.post(f"/api/tournaments/{tournament_id}/join", headers=players["bob"])
        client.post(f"/api/tournaments/{tournament_id}/leave", headers=players["bob"])
        data = client.get(f"/api/tournaments/{tournament_id}", headers=players["alice"]).json()["data"]
        assert data["notes"] == "Tournament forfeited: player bob left"
        assert data["ended_at"] is not None

    def test_played_tournament_in_history(self, client: TestClient, players):
        tournament_id = _create(client, players["alice"], size=2)["id"]
        client.post(f"/api/tournaments/{tournament_id}/join", headers=players["bob"])

        history = client.get("/api/user/alice/tournaments", headers=players["carol"]).json()["data"]
        assert [t["id"] for t in history] == [tournament_id]
        (match,) = history[0]["matches"]
        assert match["id"] == f"{tournament_id}-r1-m01"
        assert match["placement_range"] == [1, 2]

        finish = client.post(f"/api/matches/{match['id']}/finish", json={"winner": "left"}, headers=players["alice"])
        assert finish.json()["tournamentWinner"] == match["player_left"]
        data = client.get(f"/api/tournaments/{tournament_id}", headers=players["alice"]).json()["data"]
        assert data["winner"] == match["player_left"]
