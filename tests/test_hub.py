"""
Relay Hub Tests
===============

End-to-end relay behaviour through the serialized hub, using real
PeerChannels over fake transports.
"""

import asyncio
import json

import pytest

from conftest import FakeTransport, run
from framecast.relay import PeerChannel, RelayHub


def stream(payload: str) -> str:
    return json.dumps({"event": "stream", "data": payload})


async def connect(hub: RelayHub, transport: FakeTransport):
    return await hub.connect(PeerChannel(transport))


class TestRelayHub:
    """Tests for the serialized relay hub."""

    def test_connect_requires_running_hub(self):
        """connect() on a stopped hub fails loudly."""
        async def scenario():
            hub = RelayHub()
            with pytest.raises(RuntimeError):
                await connect(hub, FakeTransport())

        run(scenario())

    def test_presence_and_frame_scenario(self):
        """A, B, C connect; A sends P; B disconnects; A sends Q."""
        async def scenario():
            hub = RelayHub()
            await hub.start()
            ta, tb, tc = FakeTransport(), FakeTransport(), FakeTransport()

            a = await connect(hub, ta)
            b = await connect(hub, tb)
            c = await connect(hub, tc)

            hub.handle_message(a, stream("P"))
            await hub.drain()

            assert tb.events("existing-users") == [{"event": "existing-users", "data": [a]}]
            assert set(tc.events("existing-users")[0]["data"]) == {a, b}
            assert ta.events("new-user") == [
                {"event": "new-user", "data": b},
                {"event": "new-user", "data": c},
            ]
            assert tb.events("new-user") == [{"event": "new-user", "data": c}]

            frame = {"event": "stream", "data": {"userId": a, "data": "P"}}
            assert tb.events("stream") == [frame]
            assert tc.events("stream") == [frame]
            assert ta.events("stream") == []

            b_seen = len(tb.sent)
            await hub.disconnect(b)
            hub.handle_message(a, stream("Q"))
            await hub.drain()

            notice = {"event": "user-disconnected", "data": b}
            assert ta.events("user-disconnected") == [notice]
            assert tc.events("user-disconnected") == [notice]
            assert len(tb.sent) == b_seen
            assert tc.events("stream")[-1]["data"]["data"] == "Q"

            assert hub.metrics.connections_total == 3
            assert hub.metrics.disconnections_total == 1
            await hub.stop()

        run(scenario())

    def test_join_precedes_first_frame(self):
        """Others hear new-user for D before any frame from D."""
        async def scenario():
            hub = RelayHub()
            await hub.start()
            ta = FakeTransport()
            await connect(hub, ta)

            d = await connect(hub, FakeTransport())
            hub.handle_message(d, stream("hello"))
            await hub.drain()

            events = [m["event"] for m in ta.sent]
            assert events.index("new-user") < events.index("stream")
            await hub.stop()

        run(scenario())

    def test_connected_is_first_event(self):
        """The newcomer's first two events are its identity then the roster."""
        async def scenario():
            hub = RelayHub()
            await hub.start()
            transport = FakeTransport()
            identity = await connect(hub, transport)
            await hub.drain()

            assert transport.sent[0] == {"event": "connected", "data": identity}
            assert transport.sent[1] == {"event": "existing-users", "data": []}
            await hub.stop()

        run(scenario())

    def test_malformed_messages_are_ignored(self):
        """Bad JSON, wrong events and bad payloads are counted, not relayed."""
        async def scenario():
            hub = RelayHub()
            await hub.start()
            ta, tb = FakeTransport(), FakeTransport()
            a = await connect(hub, ta)
            await connect(hub, tb)

            hub.handle_message(a, "not json")
            hub.handle_message(a, json.dumps({"event": "new-user", "data": "spoof"}))
            hub.handle_message(a, json.dumps({"event": "stream", "data": {"x": 1}}))
            hub.handle_message(a, json.dumps({"event": "bogus"}))
            await hub.drain()

            assert hub.metrics.malformed_messages == 4
            assert tb.events("stream") == []
            assert tb.events("new-user") == []
            await hub.stop()

        run(scenario())

    def test_stale_frame_is_dropped(self):
        """A frame queued for an already-removed sender is dropped silently."""
        async def scenario():
            hub = RelayHub()
            await hub.start()
            ta, tb = FakeTransport(), FakeTransport()
            a = await connect(hub, ta)
            b = await connect(hub, tb)

            await hub.disconnect(b)
            hub.submit_frame(b, "late")
            await hub.drain()

            assert ta.events("stream") == []
            assert hub.metrics.stale_frames_dropped == 1
            await hub.stop()

        run(scenario())

    def test_dead_recipient_is_isolated(self):
        """A peer whose writes fail does not stop delivery to others."""
        async def scenario():
            hub = RelayHub()
            await hub.start()
            ta, tb, tc = FakeTransport(), FakeTransport(fail=True), FakeTransport()
            a = await connect(hub, ta)
            await connect(hub, tb)
            await connect(hub, tc)

            hub.handle_message(a, stream("P1"))
            hub.handle_message(a, stream("P2"))
            await hub.drain()

            assert [m["data"]["data"] for m in tc.events("stream")] == ["P1", "P2"]
            assert hub.metrics.delivery_failures >= 1
            await hub.stop()

        run(scenario())

    def test_disconnect_unknown_is_noop(self):
        """Disconnecting an identity twice notifies once."""
        async def scenario():
            hub = RelayHub()
            await hub.start()
            ta = FakeTransport()
            await connect(hub, ta)
            b = await connect(hub, FakeTransport())

            await hub.disconnect(b)
            await hub.disconnect(b)
            await hub.drain()

            assert len(ta.events("user-disconnected")) == 1
            assert hub.metrics.disconnections_total == 1
            await hub.stop()

        run(scenario())

    def test_stop_closes_channels(self):
        """stop() closes every channel and leaves the hub not running."""
        async def scenario():
            hub = RelayHub()
            await hub.start()
            channel = PeerChannel(FakeTransport())
            await hub.connect(channel)

            await hub.stop()

            assert not hub.running
            assert channel.closed
            await hub.disconnect("anything")

        run(scenario())
