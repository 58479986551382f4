"""
Peer Client Tests
=================

Inbound event routing and outbound frame handling, without a network.
"""

import json

from conftest import RecordingView, run
from framecast.client.peer import PeerClient


def wire(event, data=None) -> str:
    return json.dumps({"event": event, "data": data})


class FakeWebSocket:
    """Stands in for a connected websockets client connection."""

    def __init__(self) -> None:
        self.sent = []

    async def send(self, message: str) -> None:
        self.sent.append(json.loads(message))


class TestDispatch:
    """Tests for inbound message routing."""

    def test_presence_events_reach_session(self):
        """connected / existing-users / new-user / user-disconnected update the session."""
        client = PeerClient("ws://unused", view=RecordingView())

        client.dispatch(wire("connected", "me"))
        client.dispatch(wire("existing-users", ["a", "b"]))
        client.dispatch(wire("new-user", "c"))
        client.dispatch(wire("user-disconnected", "a"))

        assert client.session.identity == "me"
        assert client.session.known_peers == frozenset({"b", "c"})
        assert client.metrics.events_received == 4

    def test_stream_event_fills_slot(self, jpeg_payload):
        """A relayed frame lands in the sender's slot."""
        client = PeerClient("ws://unused", view=RecordingView())
        client.dispatch(wire("connected", "me"))
        client.dispatch(wire("stream", {"userId": "a", "data": jpeg_payload}))

        assert "a" in client.session.slots
        assert client.metrics.frames_received == 1

    def test_malformed_messages_are_skipped(self):
        """Garbage and badly shaped payloads are counted and ignored."""
        client = PeerClient("ws://unused", view=RecordingView())

        client.dispatch("{{{")
        client.dispatch(wire("existing-users", "not-a-list"))
        client.dispatch(wire("stream", {"data": "missing sender"}))
        client.dispatch(wire("new-user", None))

        assert client.metrics.parse_errors == 4
        assert client.session.peer_count == 0


class TestSendFrame:
    """Tests for outbound frames."""

    def test_frames_dropped_while_disconnected(self):
        """Frames produced before an identity arrives are skipped."""
        client = PeerClient("ws://unused", view=RecordingView())
        run(client.send_frame("data:image/jpeg;base64,AAAA"))

        assert client.metrics.frames_skipped == 1
        assert client.metrics.frames_sent == 0

    def test_frames_sent_as_stream_events(self):
        """Once identified, frames go out as stream envelopes."""
        async def scenario():
            client = PeerClient("ws://unused", view=RecordingView())
            ws = FakeWebSocket()
            client._websocket = ws
            client.dispatch(wire("connected", "me"))

            await client.send_frame("data:image/jpeg;base64,AAAA")

            assert client.connected
            assert ws.sent == [{"event": "stream", "data": "data:image/jpeg;base64,AAAA"}]

        run(scenario())
