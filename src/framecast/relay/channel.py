"""
Peer Channel
============

Outbound mailbox for one connected peer.

The relay never writes to a transport directly. It drops envelopes into the
peer's mailbox and a dedicated writer task pushes them to the transport in
order. A slow or dead peer therefore cannot stall the hub or other peers.

Design Rules:
    - deliver() never blocks and never raises
    - A failed write closes the channel; later deliveries are refused
    - Closing the channel does NOT close the transport (the endpoint owns it)
"""

import asyncio
import logging
from typing import Optional, Protocol

from framecast.models.identity import PeerIdentity
from framecast.models.messages import Envelope


logger = logging.getLogger(__name__)


class PeerTransport(Protocol):
    """
    Protocol for the per-peer send side of a transport.

    Starlette/FastAPI ``WebSocket`` objects satisfy it as-is; tests use an
    in-memory fake.
    """

    async def send_json(self, data: dict) -> None:
        """Send one JSON message to the peer."""
        ...


class PeerChannel:
    """
    Ordered, unbounded outbound mailbox with its own writer task.

    Attributes:
        transport: Send side of the peer's connection
        identity: Assigned by the registry on admission
        delivered: Number of envelopes written to the transport
    """

    def __init__(self, transport: PeerTransport) -> None:
        self.transport = transport
        self.identity: Optional[PeerIdentity] = None
        self.delivered: int = 0

        self._outbox: asyncio.Queue[Envelope] = asyncio.Queue()
        self._writer_task: Optional[asyncio.Task] = None
        self._closed: bool = False

    @property
    def closed(self) -> bool:
        """Whether the channel refuses further deliveries."""
        return self._closed

    @property
    def pending(self) -> int:
        """Envelopes queued but not yet written."""
        return self._outbox.qsize()

    def start(self) -> None:
        """Start the writer task. Must be called from the event loop."""
        if self._writer_task is None and not self._closed:
            self._writer_task = asyncio.create_task(
                self._write_loop(),
                name="peer_channel_writer",
            )

    def deliver(self, envelope: Envelope) -> bool:
        """
        Queue an envelope for the peer.

        Returns:
            True if queued, False if the channel is closed.
        """
        if self._closed:
            return False
        self._outbox.put_nowait(envelope)
        return True

    async def flush(self) -> None:
        """Wait until every queued envelope has been written or discarded."""
        if self._writer_task is None and not self._closed:
            return
        await self._outbox.join()

    async def close(self) -> None:
        """Stop the writer and discard anything still queued."""
        self._closed = True

        if self._writer_task is not None:
            self._writer_task.cancel()
            try:
                await self._writer_task
            except asyncio.CancelledError:
                pass
            self._writer_task = None

        self._discard_pending()

    async def _write_loop(self) -> None:
        while True:
            envelope = await self._outbox.get()
            try:
                await self.transport.send_json(envelope.to_wire())
                self.delivered += 1
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.warning(f"Write to peer {self.identity} failed, closing channel: {e}")
                self._closed = True
                self._discard_pending()
                return
            finally:
                self._outbox.task_done()

    def _discard_pending(self) -> int:
        discarded = 0
        while True:
            try:
                self._outbox.get_nowait()
            except asyncio.QueueEmpty:
                break
            self._outbox.task_done()
            discarded += 1
        if discarded:
            logger.debug(f"Discarded {discarded} undelivered envelope(s) for {self.identity}")
        return discarded
