"""
Peer Session
============

Client-side state for one connected peer.

Outbound (capture) side is an explicit state machine:

    IDLE --start()--> ACQUIRING --camera opened--> CAPTURING
      ^                   |                            |
      +-----stop()--------+-----------stop()-----------+

While CAPTURING, a timer task grabs a frame every ``interval_ms``, encodes it
as a JPEG data URL and hands it to ``send``. At most one timer exists at any
time; start() outside IDLE and stop() in IDLE are no-ops.

Inbound (presence/render) side keeps:
    - known peers: identities announced by the relay (roster minus self)
    - remote slots: one per peer whose frames are being rendered
    - departed: recently departed identities (late frames for them are dropped)

Example:
    async with PeerSession(send=client.send_frame, camera=OpenCVCamera()) as session:
        await session.start()
        ...
"""

import asyncio
import logging
import time
from collections import OrderedDict
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, Dict, FrozenSet, Iterable, Optional, Set

import numpy as np

from framecast.client.capture import CameraSource, CaptureUnavailable, encode_frame
from framecast.client.image_decoder import ImageDecodeError, decode_frame
from framecast.client.view import LoggingView, SessionView
from framecast.models.identity import PeerIdentity


logger = logging.getLogger(__name__)


CAPTURE_ALERT = "Could not access webcam. Please check your permissions."

# Late frames only arrive shortly after a leave; older departures are forgotten
DEPARTED_HISTORY = 256


class CaptureState(str, Enum):
    """
    Outbound capture states.

    Attributes:
        IDLE: No camera held, no timer running
        ACQUIRING: Waiting for the camera to open
        CAPTURING: Camera held, timer producing frames
    """

    IDLE = "IDLE"
    ACQUIRING = "ACQUIRING"
    CAPTURING = "CAPTURING"


@dataclass
class RemoteSlot:
    """
    Rendering target for one remote peer.

    Attributes:
        identity: Remote peer identity
        image: Last decoded frame (BGR), None until one decodes
        frames_rendered: Frames successfully decoded into this slot
        updated_at: UNIX timestamp of the last update
    """

    identity: PeerIdentity
    image: Optional[np.ndarray] = None
    frames_rendered: int = 0
    updated_at: float = 0.0


class PeerSession:
    """
    Capture state machine plus presence/render bookkeeping for one peer.

    All methods must be called from the event loop that owns the session.
    """

    def __init__(
        self,
        send: Callable[[str], Awaitable[None]],
        camera: Optional[CameraSource] = None,
        view: Optional[SessionView] = None,
        interval_ms: int = 100,
        jpeg_quality: int = 50,
    ) -> None:
        """
        Initialize peer session.

        Args:
            send: Coroutine that transmits one encoded frame
            camera: Local capture device (None for view-only peers)
            view: UI callbacks (defaults to LoggingView)
            interval_ms: Capture period
            jpeg_quality: JPEG quality for outbound frames
        """
        self._send = send
        self._camera = camera
        self._view: SessionView = view or LoggingView()
        self._interval = interval_ms / 1000.0
        self._jpeg_quality = jpeg_quality

        self.identity: Optional[PeerIdentity] = None

        # Outbound
        self._state = CaptureState.IDLE
        self._timer: Optional[asyncio.Task] = None
        self._device_lock = asyncio.Lock()
        self._generation: int = 0
        self.frames_sent: int = 0
        self.capture_errors: int = 0

        # Inbound
        self._known: Set[PeerIdentity] = set()
        self._departed: "OrderedDict[PeerIdentity, None]" = OrderedDict()
        self._slots: Dict[PeerIdentity, RemoteSlot] = {}
        self._placeholder_visible: bool = True
        self.frames_dropped: int = 0

    # -------------------------------------------------------------------------
    # Properties
    # -------------------------------------------------------------------------

    @property
    def capture_state(self) -> CaptureState:
        return self._state

    @property
    def capturing(self) -> bool:
        return self._state == CaptureState.CAPTURING

    @property
    def known_peers(self) -> FrozenSet[PeerIdentity]:
        return frozenset(self._known)

    @property
    def peer_count(self) -> int:
        """Displayed count of other peers."""
        return len(self._known)

    @property
    def slots(self) -> Dict[PeerIdentity, RemoteSlot]:
        return dict(self._slots)

    @property
    def placeholder_visible(self) -> bool:
        return self._placeholder_visible

    # -------------------------------------------------------------------------
    # Capture side
    # -------------------------------------------------------------------------

    async def start(self) -> None:
        """
        Acquire the camera and begin sending frames.

        No-op unless IDLE.

        Raises:
            CaptureUnavailable: If the camera cannot be acquired. The session
                stays usable and returns to IDLE.
        """
        if self._state != CaptureState.IDLE:
            logger.debug(f"start() ignored in state {self._state.value}")
            return

        if self._camera is None:
            self._view.alert(CAPTURE_ALERT)
            raise CaptureUnavailable("No camera configured")

        self._state = CaptureState.ACQUIRING
        self._generation += 1
        generation = self._generation

        try:
            # One open/release at a time on the device
            async with self._device_lock:
                if generation != self._generation:
                    return

                try:
                    await asyncio.to_thread(self._camera.open)
                except asyncio.CancelledError:
                    self._camera.release()
                    raise
                except Exception as e:
                    if generation == self._generation:
                        self._state = CaptureState.IDLE
                    logger.error(f"Error accessing webcam: {e}")
                    self._view.alert(CAPTURE_ALERT)
                    if isinstance(e, CaptureUnavailable):
                        raise
                    raise CaptureUnavailable(str(e)) from e

                if generation != self._generation:
                    # stop() ran while the camera was opening
                    await asyncio.to_thread(self._camera.release)
                    return

                self._state = CaptureState.CAPTURING
                self._timer = asyncio.create_task(self._capture_loop(), name="capture_timer")
                self._view.capture_changed(True)
        except asyncio.CancelledError:
            if generation == self._generation:
                self._state = CaptureState.IDLE
            raise

    async def stop(self) -> None:
        """
        Cancel the timer and release the camera. No-op when IDLE.

        A stop() during ACQUIRING waits for the pending open to finish; that
        acquisition is then abandoned and its handle released.
        """
        if self._state == CaptureState.IDLE:
            return

        previous = self._state
        self._state = CaptureState.IDLE
        self._generation += 1

        async with self._device_lock:
            if self._timer is not None:
                self._timer.cancel()
                try:
                    await self._timer
                except asyncio.CancelledError:
                    pass
                self._timer = None

            if previous == CaptureState.CAPTURING and self._camera is not None:
                await asyncio.to_thread(self._camera.release)
                self._view.capture_changed(False)

    async def close(self) -> None:
        """Session teardown; safe on every exit path."""
        await self.stop()

    async def __aenter__(self) -> "PeerSession":
        return self

    async def __aexit__(self, *args) -> None:
        await self.close()

    async def _capture_loop(self) -> None:
        loop = asyncio.get_running_loop()
        next_tick = loop.time()

        while True:
            next_tick += self._interval
            await asyncio.sleep(max(0.0, next_tick - loop.time()))

            try:
                await self._capture_once()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                self.capture_errors += 1
                logger.error(f"Capture tick failed: {e}")

            # Skip ticks we fell behind on instead of bursting
            if loop.time() - next_tick > self._interval:
                next_tick = loop.time()

    async def _capture_once(self) -> None:
        image = await asyncio.to_thread(self._camera.read)
        if image is None:
            logger.debug("Camera returned no frame")
            return

        payload = encode_frame(image, self._jpeg_quality)
        await self._send(payload)
        self.frames_sent += 1

    # -------------------------------------------------------------------------
    # Presence / render side
    # -------------------------------------------------------------------------

    def on_connected(self, identity: PeerIdentity) -> None:
        self.identity = identity
        self._view.connection_changed(identity)

    def on_roster_snapshot(self, identities: Iterable[PeerIdentity]) -> None:
        """Replace the known peers with the relay's roster snapshot."""
        self._known = {i for i in identities if i != self.identity}
        for identity in self._known:
            self._departed.pop(identity, None)
        self._view.peer_count_changed(self.peer_count)

    def on_join(self, identity: PeerIdentity) -> None:
        if identity == self.identity:
            logger.warning("Relay announced our own identity as a new user")
            return

        self._departed.pop(identity, None)
        self._known.add(identity)
        self._view.peer_count_changed(self.peer_count)

    def on_leave(self, identity: PeerIdentity) -> None:
        if self._slots.pop(identity, None) is not None:
            self._view.slot_removed(identity)

        if identity in self._known:
            self._known.discard(identity)
            self._view.peer_count_changed(self.peer_count)

        self._remember_departed(identity)

        if not self._slots and not self._placeholder_visible:
            self._placeholder_visible = True
            self._view.placeholder_changed(True)

    def on_frame(self, identity: PeerIdentity, payload: str) -> bool:
        """
        Render a relayed frame into the sender's slot.

        Creates the slot on first frame, even if the sender's join has not
        arrived yet. Frames from departed peers are dropped.

        Returns:
            True if the slot now shows this frame.
        """
        if identity == self.identity or identity in self._departed:
            self.frames_dropped += 1
            logger.debug(f"Dropped frame from {identity}")
            return False

        slot = self._slots.get(identity)
        if slot is None:
            if self._placeholder_visible:
                self._placeholder_visible = False
                self._view.placeholder_changed(False)

            slot = RemoteSlot(identity=identity)
            self._slots[identity] = slot
            self._view.slot_created(identity)

            if identity not in self._known:
                self._known.add(identity)
                self._view.peer_count_changed(self.peer_count)

        try:
            image = decode_frame(payload)
        except ImageDecodeError as e:
            self.frames_dropped += 1
            logger.warning(f"Undecodable frame from {identity}: {e}")
            return False

        slot.image = image
        slot.frames_rendered += 1
        slot.updated_at = time.time()
        self._view.slot_updated(slot)
        return True

    def _remember_departed(self, identity: PeerIdentity) -> None:
        self._departed[identity] = None
        self._departed.move_to_end(identity)
        while len(self._departed) > DEPARTED_HISTORY:
            self._departed.popitem(last=False)

    async def on_disconnected(self) -> None:
        """Transport closed: stop capturing and forget our identity."""
        await self.stop()
        self.identity = None
        self._view.connection_changed(None)
