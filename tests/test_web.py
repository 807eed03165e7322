"""Tests for the HTTP and WebSocket API."""

import pytest
from fastapi.testclient import TestClient

from game2048.web.server import create_app


@pytest.fixture
def client(settings, storage):
    with TestClient(create_app(settings, storage)) as client:
        yield client


def move_any(client) -> dict:
    for direction in ("left", "up", "right", "down"):
        data = client.post("/api/move", json={"direction": direction}).json()
        if data["status"] == "ok":
            return data
    raise AssertionError("no direction moves")


class TestState:
    def test_fresh_game(self, client):
        data = client.get("/api/state").json()
        assert data["status"] == "ok"
        state = data["state"]
        assert state["game_id"] == 1
        assert state["position"]["plyNumber"] == 2
        assert len([t for t in state["position"]["board"]["tiles"] if t]) == 2
        assert not state["game_over"]


class TestMoves:
    def test_unknown_direction(self, client):
        data = client.post("/api/move", json={"direction": "sideways"}).json()
        assert data["status"] == "error"

    def test_move_returns_plies(self, client):
        data = move_any(client)
        assert [p["player"] for p in data["plies"]] == ["user", "computer"]
        assert data["state"]["position"]["plyNumber"] == 4
        assert data["state"]["can_undo"]

    def test_undo_redo(self, client):
        move_any(client)
        undo = client.post("/api/undo").json()
        assert undo["status"] == "ok"
        assert undo["state"]["position"]["plyNumber"] == 2
        assert undo["state"]["can_redo"]
        redo = client.post("/api/redo").json()
        assert redo["state"]["position"]["plyNumber"] == 4

    def test_nothing_to_redo(self, client):
        assert client.post("/api/redo").json()["status"] == "noop"


class TestBookmarks:
    def test_create_and_goto(self, client):
        move_any(client)
        data = client.post("/api/bookmark").json()
        assert data["state"]["bookmarks"] == [4]
        client.post("/api/undo")
        data = client.post("/api/bookmark/goto", json={"ply_number": 4}).json()
        assert data["state"]["bookmarked"]
        data = client.delete("/api/bookmark").json()
        assert data["state"]["bookmarks"] == []


class TestGames:
    def test_save_and_list(self, client):
        client.post("/api/game/save")
        data = client.get("/api/games").json()
        assert data["current"] == 1
        assert [g["id"] for g in data["games"]] == [1]

    def test_new_game_and_restore(self, client):
        client.post("/api/game/save")
        data = client.post("/api/new-game").json()
        assert data["state"]["game_id"] == 2
        data = client.post("/api/game/1").json()
        assert data["status"] == "ok"
        assert data["state"]["game_id"] == 1

    def test_restore_missing_game(self, client):
        assert client.post("/api/game/42").json()["status"] == "error"

    def test_export_and_import(self, client):
        move_any(client)
        record = client.get("/api/game/export").json()["record"]
        data = client.post("/api/game/import", json={"record": record}).json()
        assert data["status"] == "ok"
        assert data["state"]["position"] == record["finalPosition"]

    def test_import_garbage(self, client):
        data = client.post("/api/game/import", json={"record": {"id": 1}}).json()
        assert data["status"] == "error"


class TestAutomaticPlay:
    def test_replay_mode_must_be_known(self, client):
        data = client.post("/api/replay", json={"mode": "sideways"}).json()
        assert data["status"] == "error"

    def test_speed(self, client):
        data = client.post("/api/speed", json={"delta": 2}).json()
        assert data["mode"]["speed"] == 2
        data = client.post("/api/speed", json={"speed": 100}).json()
        assert data["mode"]["speed"] == 6

    def test_stop(self, client):
        data = client.post("/api/ai/stop").json()
        assert data["status"] == "ok"
        assert data["mode"]["mode"] in ("play", "stop")


class TestWebSocket:
    def test_state_on_connect_and_ping(self, client):
        with client.websocket_connect("/ws") as ws:
            assert ws.receive_json()["type"] == "state"
            ws.send_json({"type": "ping"})
            assert ws.receive_json() == {"type": "pong"}

    def test_move_is_broadcast(self, client):
        with client.websocket_connect("/ws") as ws:
            ws.receive_json()
            move_any(client)
            # Directions that don't move only broadcast the state
            for _ in range(8):
                message = ws.receive_json()
                if message["type"] == "plies":
                    break
            assert message["type"] == "plies"
            assert message["reversed"] is False
