"""Unit tests for the HTTP catalog routes, admin routes and the /ws endpoint."""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from live_auction.config import get_server_config
from live_auction.main import app


@pytest.fixture
def client(monkeypatch):
    """TestClient running the full lifespan on the packaged in-memory config."""
    monkeypatch.delenv("LIVE_AUCTION_CONFIG_PATH", raising=False)
    get_server_config.cache_clear()
    with TestClient(app) as client:
        yield client
    get_server_config.cache_clear()


def create_team(client: TestClient, name: str, budget: int = 1000) -> dict:
    response = client.post("/api/auctions/spl-1/teams", json={"name": name, "budget": budget})
    assert response.status_code == 200
    return response.json()


def create_player(client: TestClient, name: str, base_price: int = 100) -> dict:
    response = client.post(
        "/api/auctions/spl-1/players",
        json={"name": name, "role": "Bowler", "category": "B", "base_price": base_price},
    )
    assert response.status_code == 200
    return response.json()


class TestMetaRoutes:
    def test_ping(self, client):
        response = client.get("/ping")

        assert response.status_code == 200
        assert response.json()["status"] == "ok"

    def test_root_reports_backend(self, client):
        assert client.get("/").json()["storage_backend"] == "in_memory"

    def test_admin_health(self, client):
        """Test that health reports room and viewer counts."""
        body = client.get("/admin/health").json()

        assert body["status"] == "healthy"
        assert body["rooms"] == 0
        assert body["pending_commits"] == 0

    def test_admin_config(self, client):
        body = client.get("/admin/config").json()

        assert body["storage_backend"] == "in_memory"
        assert body["acknowledge_rejections"] is False


class TestCatalogRoutes:
    """Test suite for team and player management."""

    def test_created_records_appear_in_init(self, client):
        """Test that added teams and players are returned by the init route."""
        team = create_team(client, "Chennai")
        first = create_player(client, "Ravi")
        second = create_player(client, "Arjun", base_price=50)

        body = client.get("/api/auctions/spl-1/init").json()

        assert [entry["team_id"] for entry in body["teams"]] == [team["team_id"]]
        assert body["teams"][0]["spent"] == 0
        assert [entry["player_id"] for entry in body["players"]] == [first["player_id"], second["player_id"]]
        assert [entry["order"] for entry in body["players"]] == [0, 1]
        assert client.get("/api/auctions/spl-2/init").json() == {"teams": [], "players": []}

    @pytest.mark.parametrize(
        "path,payload",
        [
            ("teams", {"budget": 100}),
            ("teams", {"name": "X", "budget": -1}),
            ("players", {"name": ""}),
            ("players", {"name": "Ravi", "shirt": 7}),
        ],
    )
    def test_invalid_records_rejected(self, client, path, payload):
        response = client.post(f"/api/auctions/spl-1/{path}", json=payload)

        assert response.status_code == 422

    def test_delete_unknown_records(self, client):
        assert client.delete("/api/auctions/spl-1/teams/team_missing").status_code == 404
        assert client.delete("/api/auctions/spl-1/players/player_missing").status_code == 404

    def test_delete_records(self, client):
        team = create_team(client, "Mumbai")
        player = create_player(client, "Kiran")

        assert client.delete(f"/api/auctions/spl-1/players/{player['player_id']}").status_code == 200
        assert client.delete(f"/api/auctions/spl-1/teams/{team['team_id']}").status_code == 200
        assert client.get("/api/auctions/spl-1/init").json() == {"teams": [], "players": []}


class TestViewerSocket:
    """Test suite for the live bidding WebSocket."""

    def test_bid_and_sale_round_trip(self, client):
        """Test join, bidding and sale, then the persisted result via init."""
        team_a = create_team(client, "Chennai")
        team_b = create_team(client, "Mumbai")
        player = create_player(client, "Ravi")

        with client.websocket_connect("/ws") as ws:
            ws.send_json({"action": "join", "auction_id": "spl-1"})
            joined = ws.receive_json()
            assert joined["type"] == "auction_state"
            assert joined["data"]["status"] == "IDLE"

            ws.send_json({
                "action": "start_player",
                "auction_id": "spl-1",
                "payload": {"player_id": player["player_id"], "base_price": 100},
            })
            assert ws.receive_json()["data"]["status"] == "ACTIVE"

            for team, amount in ((team_a, 100), (team_b, 100), (team_b, 150)):
                ws.send_json({
                    "action": "place_bid",
                    "auction_id": "spl-1",
                    "payload": {"team_id": team["team_id"], "amount": amount},
                })
            # the equal bid from team_b is dropped silently
            assert ws.receive_json()["data"]["current_bid"] == 100
            assert ws.receive_json()["data"]["current_bid"] == 150

            ws.send_json({"action": "undo_bid", "auction_id": "spl-1"})
            undone = ws.receive_json()["data"]
            assert undone["current_bid"] == 100
            assert undone["leading_team_id"] == team_a["team_id"]

            ws.send_json({"action": "sell_player", "auction_id": "spl-1"})
            sold = ws.receive_json()
            assert sold["type"] == "auction_state"
            assert sold["data"]["status"] == "SOLD"
            settled = ws.receive_json()
            assert settled["type"] == "auction_state"
            assert settled["data"]["commit"]["state"] == "committed"
            assert ws.receive_json() == {"type": "data_update", "auction_id": "spl-1", "data": None}

        body = client.get("/api/auctions/spl-1/init").json()
        teams = {team["team_id"]: team for team in body["teams"]}
        assert teams[team_a["team_id"]]["spent"] == 100
        assert teams[team_a["team_id"]]["players"] == [player["player_id"]]
        assert teams[team_b["team_id"]]["spent"] == 0
        [sold_player] = body["players"]
        assert sold_player["is_sold"] is True
        assert sold_player["sold_to"] == team_a["team_id"]

        room = client.get("/admin/rooms/spl-1").json()
        assert room["room"]["status"] == "SOLD"
        assert room["room"]["commit"]["state"] == "committed"
        assert room["failed_commits"] == []

    def test_two_viewers_share_room_state(self, client):
        """Test that one viewer's bid is broadcast to every viewer of the room."""
        with client.websocket_connect("/ws") as auctioneer, client.websocket_connect("/ws") as screen:
            auctioneer.send_json({"action": "join", "auction_id": "spl-1"})
            auctioneer.receive_json()
            screen.send_json({"action": "join", "auction_id": "spl-1"})
            screen.receive_json()

            auctioneer.send_json({
                "action": "start_player",
                "auction_id": "spl-1",
                "payload": {"player_id": "p1", "base_price": 20},
            })

            assert auctioneer.receive_json()["data"]["current_player_id"] == "p1"
            assert screen.receive_json()["data"]["current_player_id"] == "p1"

    def test_binary_frames_accepted(self, client):
        """Test that an envelope sent as a binary frame is handled like text."""
        with client.websocket_connect("/ws") as ws:
            ws.send_bytes(b"\xff not json")
            ws.send_bytes(b'{"action": "join", "auction_id": "spl-1"}')

            joined = ws.receive_json()

            assert joined["type"] == "auction_state"
            assert joined["auction_id"] == "spl-1"

    def test_unknown_room_detail(self, client):
        assert client.get("/admin/rooms/nowhere").status_code == 404
