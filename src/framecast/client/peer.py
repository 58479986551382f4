"""
Peer Client
===========

WebSocket client that connects a PeerSession to the relay.

This client:
    - Connects to the relay's /ws endpoint
    - Validates inbound envelopes and dispatches them to the session
    - Transmits the session's outbound frames
    - Treats any closure (clean or not) as a disconnect

Design Rules:
    - No automatic reconnection; a new connection is a new identity
    - Malformed inbound messages are logged and skipped
    - Frames produced while disconnected are dropped
"""

import asyncio
import json
import logging
from typing import Optional, Union

import websockets
from websockets.exceptions import ConnectionClosed, ConnectionClosedOK

from framecast.client.capture import CameraSource
from framecast.client.session import PeerSession
from framecast.client.view import SessionView
from framecast.models import messages
from framecast.models.events import EventName
from framecast.models.messages import MessageError, parse_envelope


logger = logging.getLogger(__name__)


class PeerClientMetrics:
    """Metrics for PeerClient observability."""

    __slots__ = (
        "events_received",
        "frames_received",
        "frames_sent",
        "frames_skipped",
        "parse_errors",
    )

    def __init__(self) -> None:
        self.events_received: int = 0
        self.frames_received: int = 0
        self.frames_sent: int = 0
        self.frames_skipped: int = 0
        self.parse_errors: int = 0

    def to_dict(self) -> dict:
        """Export metrics as dict."""
        return {name: getattr(self, name) for name in self.__slots__}


class PeerClient:
    """
    One peer's connection to the relay.

    Attributes:
        url: WebSocket URL of the relay
        session: The PeerSession driven by this connection
        metrics: Operational metrics

    Example:
        async with PeerClient("ws://localhost:3000/ws", camera=OpenCVCamera()) as client:
            runner = asyncio.create_task(client.run())
            await client.wait_connected()
            await client.session.start()
            await runner
    """

    def __init__(
        self,
        url: str,
        camera: Optional[CameraSource] = None,
        view: Optional[SessionView] = None,
        interval_ms: int = 100,
        jpeg_quality: int = 50,
        open_timeout: float = 10.0,
    ) -> None:
        self.url = url
        self.open_timeout = open_timeout
        self.session = PeerSession(
            send=self.send_frame,
            camera=camera,
            view=view,
            interval_ms=interval_ms,
            jpeg_quality=jpeg_quality,
        )
        self.metrics = PeerClientMetrics()

        self._websocket: Optional[websockets.ClientConnection] = None
        self._identified = asyncio.Event()

    @property
    def connected(self) -> bool:
        """Whether the relay has assigned us an identity on a live connection."""
        return self._websocket is not None and self._identified.is_set()

    async def wait_connected(self, timeout: Optional[float] = None) -> None:
        """Wait until the relay has sent our identity."""
        await asyncio.wait_for(self._identified.wait(), timeout)

    async def run(self) -> None:
        """
        Connect and process events until the connection closes.

        Returns normally on any closure; the session is torn down first.
        """
        logger.info(f"Connecting to relay: {self.url}")

        try:
            async with websockets.connect(
                self.url,
                open_timeout=self.open_timeout,
                ping_interval=20,
                ping_timeout=10,
                close_timeout=5,
            ) as ws:
                self._websocket = ws
                try:
                    async for message in ws:
                        self.dispatch(message)
                except ConnectionClosedOK:
                    logger.info("Connection closed normally")
                except ConnectionClosed as e:
                    logger.warning(f"Connection closed: {e}")
        finally:
            self._websocket = None
            self._identified.clear()
            await self.session.on_disconnected()

    async def send_frame(self, payload: str) -> None:
        """Transmit one encoded frame; dropped if not connected."""
        ws = self._websocket
        if ws is None or not self._identified.is_set():
            self.metrics.frames_skipped += 1
            return

        await ws.send(json.dumps(messages.outbound_frame(payload).to_wire()))
        self.metrics.frames_sent += 1

    async def close(self) -> None:
        """Stop capturing and close the connection."""
        await self.session.close()
        if self._websocket is not None:
            await self._websocket.close()

    async def __aenter__(self) -> "PeerClient":
        return self

    async def __aexit__(self, *args) -> None:
        await self.close()

    def dispatch(self, raw: Union[str, bytes]) -> None:
        """Validate one inbound message and route it to the session."""
        try:
            envelope = parse_envelope(raw)
            event = envelope.event
            self.metrics.events_received += 1

            if event == EventName.CONNECTED:
                self.session.on_connected(messages.identity_payload(envelope))
                self._identified.set()
            elif event == EventName.EXISTING_USERS:
                self.session.on_roster_snapshot(messages.roster_payload(envelope))
            elif event == EventName.NEW_USER:
                self.session.on_join(messages.identity_payload(envelope))
            elif event == EventName.USER_DISCONNECTED:
                self.session.on_leave(messages.identity_payload(envelope))
            elif event == EventName.STREAM:
                frame = messages.stream_payload(envelope)
                self.metrics.frames_received += 1
                self.session.on_frame(frame.user_id, frame.data)
        except MessageError as e:
            self.metrics.parse_errors += 1
            logger.warning(f"Ignoring relay message: {e}")
