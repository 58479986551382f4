"""
Test Configuration
==================

Pytest fixtures and fakes for FrameCast.

The relay core and peer session are exercised without a network or camera:
    - FakeTransport stands in for a peer's WebSocket send side
    - RecordingChannel captures deliveries synchronously
    - FakeCamera counts device acquire/release calls
    - RecordingView records every UI callback
"""

import asyncio
import time
from typing import List, Optional

import numpy as np
import pytest

from framecast.client.capture import CaptureUnavailable, encode_frame
from framecast.models.messages import Envelope
from framecast.relay.channel import PeerChannel


class FakeTransport:
    """In-memory send side of a peer connection."""

    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.sent: List[dict] = []

    async def send_json(self, data: dict) -> None:
        if self.fail:
            raise ConnectionError("peer went away")
        self.sent.append(data)

    def events(self, name: Optional[str] = None) -> List[dict]:
        return [m for m in self.sent if name is None or m["event"] == name]


class RecordingChannel(PeerChannel):
    """PeerChannel that records deliveries instead of queueing them."""

    def __init__(self) -> None:
        super().__init__(FakeTransport())
        self.received: List[Envelope] = []

    def deliver(self, envelope: Envelope) -> bool:
        if self.closed:
            return False
        self.received.append(envelope)
        return True

    def wire(self) -> List[dict]:
        return [e.to_wire() for e in self.received]


class FakeCamera:
    """Camera that counts acquire/release calls."""

    def __init__(self, fail: bool = False, open_delay: float = 0.0) -> None:
        self.fail = fail
        self.open_delay = open_delay
        self.open_calls = 0
        self.release_calls = 0
        self.opened = False

    def open(self) -> None:
        self.open_calls += 1
        if self.open_delay:
            time.sleep(self.open_delay)
        if self.fail:
            raise CaptureUnavailable("no device")
        self.opened = True

    def read(self) -> Optional[np.ndarray]:
        if not self.opened:
            return None
        return np.full((16, 16, 3), 128, dtype=np.uint8)

    def release(self) -> None:
        self.release_calls += 1
        self.opened = False


class RecordingView:
    """SessionView that records (callback, argument) pairs."""

    def __init__(self) -> None:
        self.calls: List[tuple] = []

    def connection_changed(self, identity):
        self.calls.append(("connection", identity))

    def peer_count_changed(self, count):
        self.calls.append(("count", count))

    def slot_created(self, identity):
        self.calls.append(("slot_created", identity))

    def slot_updated(self, slot):
        self.calls.append(("slot_updated", slot.identity))

    def slot_removed(self, identity):
        self.calls.append(("slot_removed", identity))

    def placeholder_changed(self, visible):
        self.calls.append(("placeholder", visible))

    def capture_changed(self, active):
        self.calls.append(("capture", active))

    def alert(self, message):
        self.calls.append(("alert", message))

    def named(self, name: str) -> list:
        return [arg for call, arg in self.calls if call == name]


def run(coro):
    """Drive a coroutine to completion on a fresh event loop."""
    return asyncio.run(coro)


@pytest.fixture
def jpeg_payload() -> str:
    """A small valid JPEG data URL."""
    return encode_frame(np.full((8, 8, 3), 200, dtype=np.uint8))


@pytest.fixture
def recording_view() -> RecordingView:
    return RecordingView()
