"""
Relay Hub
=========

Single serialized entry point for every relay event.

Connect, frame and disconnect events from all peers are pushed onto one
asyncio queue and handled by exactly one worker task, in arrival order. This
is what makes the roster safe to share without locks and what guarantees that
a peer's ``new-user`` announcement always precedes its first relayed frame.

Example:
    hub = RelayHub()
    await hub.start()

    identity = await hub.connect(PeerChannel(websocket))
    hub.handle_message(identity, raw_text)
    await hub.disconnect(identity)

    await hub.stop()
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Optional, Union

from framecast.models.events import EventName
from framecast.models.identity import PeerIdentity
from framecast.models.messages import MessageError, frame_payload, parse_envelope
from framecast.relay.broadcast import BroadcastRelay
from framecast.relay.channel import PeerChannel
from framecast.relay.metrics import RelayMetrics
from framecast.relay.notifier import PresenceNotifier
from framecast.relay.registry import ConnectionRegistry


logger = logging.getLogger(__name__)


@dataclass
class _ConnectEvent:
    channel: PeerChannel
    done: asyncio.Future


@dataclass
class _FrameEvent:
    sender: PeerIdentity
    payload: str


@dataclass
class _DisconnectEvent:
    identity: PeerIdentity
    done: asyncio.Future


_Event = Union[_ConnectEvent, _FrameEvent, _DisconnectEvent]


class RelayHub:
    """
    Owns the roster and the components that act on it.

    Attributes:
        registry: Connection registry (the roster)
        notifier: Presence notifier, registered on the registry
        relay: Broadcast relay
        metrics: Relay counters
    """

    def __init__(self, registry: Optional[ConnectionRegistry] = None) -> None:
        self.metrics = RelayMetrics()
        self.registry = registry or ConnectionRegistry()
        self.notifier = PresenceNotifier(self.registry)
        self.relay = BroadcastRelay(self.registry, self.metrics)

        self._events: asyncio.Queue[_Event] = asyncio.Queue()
        self._worker: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._worker is not None and not self._worker.done()

    @property
    def peer_count(self) -> int:
        return len(self.registry)

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def start(self) -> None:
        """Start the worker task."""
        if self.running:
            return
        self._worker = asyncio.create_task(self._run(), name="relay_hub")
        logger.info("Relay hub started")

    async def stop(self) -> None:
        """Stop the worker, close every channel and abandon queued events."""
        if self._worker is not None:
            self._worker.cancel()
            try:
                await self._worker
            except asyncio.CancelledError:
                pass
            self._worker = None

        while True:
            try:
                event = self._events.get_nowait()
            except asyncio.QueueEmpty:
                break
            if isinstance(event, (_ConnectEvent, _DisconnectEvent)) and not event.done.done():
                event.done.cancel()
            self._events.task_done()

        for channel in self.registry.recipients():
            await channel.close()

        logger.info("Relay hub stopped")

    async def drain(self) -> None:
        """Wait until queued events are handled and every mailbox is flushed."""
        await self._events.join()
        for channel in self.registry.recipients():
            await channel.flush()

    # -------------------------------------------------------------------------
    # Event intake
    # -------------------------------------------------------------------------

    async def connect(self, channel: PeerChannel) -> PeerIdentity:
        """
        Admit a connection and wait for its identity.

        By the time this returns, the peer's ``connected`` and
        ``existing-users`` events are queued on its channel and every other
        peer has been sent ``new-user``.
        """
        if not self.running:
            raise RuntimeError("Relay hub is not running")

        channel.start()
        done = asyncio.get_running_loop().create_future()
        self._events.put_nowait(_ConnectEvent(channel=channel, done=done))
        return await done

    def submit_frame(self, sender: PeerIdentity, payload: str) -> None:
        """Queue a frame for fan-out. Never blocks."""
        self._events.put_nowait(_FrameEvent(sender=sender, payload=payload))

    def handle_message(self, sender: PeerIdentity, raw: str) -> None:
        """
        Route one raw text message received from ``sender``.

        Only ``stream`` is accepted from peers; anything else is logged,
        counted and ignored. The connection stays open either way.
        """
        try:
            envelope = parse_envelope(raw)
            if envelope.event != EventName.STREAM:
                raise MessageError(f"peers may not send '{envelope.event.value}'")
            payload = frame_payload(envelope)
        except MessageError as e:
            self.metrics.malformed_messages += 1
            logger.warning(f"Ignoring message from {sender}: {e}")
            return

        self.submit_frame(sender, payload)

    async def disconnect(self, identity: PeerIdentity) -> None:
        """Remove a peer and wait until remaining peers have been notified."""
        if not self.running:
            return

        done = asyncio.get_running_loop().create_future()
        self._events.put_nowait(_DisconnectEvent(identity=identity, done=done))
        await done

    # -------------------------------------------------------------------------
    # Worker
    # -------------------------------------------------------------------------

    async def _run(self) -> None:
        while True:
            event = await self._events.get()
            try:
                await self._dispatch(event)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(f"Relay hub error on {type(event).__name__}: {e}")
                if isinstance(event, (_ConnectEvent, _DisconnectEvent)) and not event.done.done():
                    event.done.set_exception(e)
            finally:
                self._events.task_done()

    async def _dispatch(self, event: _Event) -> None:
        if isinstance(event, _FrameEvent):
            self.relay.on_frame(event.sender, event.payload)

        elif isinstance(event, _ConnectEvent):
            identity = self.registry.on_connect(event.channel)
            self.metrics.connections_total += 1
            if event.done.cancelled():
                # Caller went away before admission completed; nobody will
                # ever disconnect this identity, so undo it now.
                self.registry.on_disconnect(identity)
                self.metrics.disconnections_total += 1
                await event.channel.close()
            elif not event.done.done():
                event.done.set_result(identity)

        elif isinstance(event, _DisconnectEvent):
            channel = self.registry.on_disconnect(event.identity)
            if channel is not None:
                self.metrics.disconnections_total += 1
                await channel.close()
            if not event.done.done():
                event.done.set_result(None)
