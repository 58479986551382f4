"""
Application Tests
=================

The FastAPI relay end to end over the test client's WebSocket support.
"""

import pytest
from fastapi.testclient import TestClient

from framecast.main import app


@pytest.fixture
def client():
    with TestClient(app) as test_client:
        yield test_client


class TestHttp:
    """Tests for HTTP endpoints."""

    def test_health(self, client):
        """Liveness probe answers 200."""
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_info(self, client):
        """Service info names the service."""
        assert client.get("/info").json()["service"] == "FrameCast"

    def test_metrics_start_at_zero(self, client):
        """A fresh relay reports no peers."""
        body = client.get("/metrics").json()
        assert body["peers_connected"] == 0
        assert body["frames_received"] == 0


class TestPeerChannel:
    """Tests for the /ws relay protocol."""

    def test_three_peer_scenario(self, client):
        """Connect A, B, C; A streams; C leaves."""
        with client.websocket_connect("/ws") as a:
            a_id = a.receive_json()["data"]
            assert a.receive_json() == {"event": "existing-users", "data": []}

            with client.websocket_connect("/ws") as b:
                b_id = b.receive_json()["data"]
                assert b.receive_json() == {"event": "existing-users", "data": [a_id]}
                assert a.receive_json() == {"event": "new-user", "data": b_id}

                with client.websocket_connect("/ws") as c:
                    c_id = c.receive_json()["data"]
                    roster = c.receive_json()
                    assert roster["event"] == "existing-users"
                    assert set(roster["data"]) == {a_id, b_id}
                    assert a.receive_json() == {"event": "new-user", "data": c_id}
                    assert b.receive_json() == {"event": "new-user", "data": c_id}

                    a.send_json({"event": "stream", "data": "P"})
                    frame = {"event": "stream", "data": {"userId": a_id, "data": "P"}}
                    assert b.receive_json() == frame
                    assert c.receive_json() == frame

                gone = {"event": "user-disconnected", "data": c_id}
                # A's next event is C leaving: it never got its own frame back
                assert a.receive_json() == gone
                assert b.receive_json() == gone

                b.send_json({"event": "stream", "data": "Q"})
                assert a.receive_json() == {"event": "stream", "data": {"userId": b_id, "data": "Q"}}

        assert client.get("/metrics").json()["peers_connected"] == 0

    def test_identities_are_distinct(self, client):
        """Each connection gets its own identity."""
        with client.websocket_connect("/ws") as a, client.websocket_connect("/ws") as b:
            a_id = a.receive_json()["data"]
            b_id = b.receive_json()["data"]
            assert a_id != b_id

    def test_malformed_message_keeps_connection(self, client):
        """Garbage from a peer is ignored and the peer stays connected."""
        with client.websocket_connect("/ws") as a:
            a.receive_json()
            a.receive_json()

            with client.websocket_connect("/ws") as b:
                b_id = b.receive_json()["data"]
                b.receive_json()
                assert a.receive_json()["event"] == "new-user"

                b.send_text("definitely not json")
                b.send_bytes(b"\x00\x01")
                b.send_json({"event": "stream", "data": "ok"})

                assert a.receive_json() == {"event": "stream", "data": {"userId": b_id, "data": "ok"}}

            assert a.receive_json() == {"event": "user-disconnected", "data": b_id}

        assert client.get("/metrics").json()["malformed_messages"] == 2


class TestRun:
    """Tests for the uvicorn entry point."""

    def test_run_uses_configured_port(self, monkeypatch):
        """run() binds the port already resolved by the settings loader."""
        import uvicorn

        from framecast.config import settings
        from framecast.main import run

        calls = []
        monkeypatch.setattr(uvicorn, "run", lambda *args, **kwargs: calls.append(kwargs))
        monkeypatch.setattr(settings.server, "port", 4321)
        monkeypatch.setenv("PORT", "9999")

        run()

        assert calls[0]["port"] == 4321
        assert calls[0]["host"] == settings.server.host
