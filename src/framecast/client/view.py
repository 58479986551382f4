"""
Session View
============

Rendering/UI side of a peer session.

The session decides WHAT changed; a view decides how to show it. Real UIs
implement SessionView; the shipped LoggingView reports through logging,
which is enough for headless peers and the CLI.
"""

import logging
from typing import TYPE_CHECKING, Optional, Protocol

from framecast.models.identity import PeerIdentity

if TYPE_CHECKING:
    from framecast.client.session import RemoteSlot


logger = logging.getLogger(__name__)


NO_STREAMS_MESSAGE = "No active streams yet"


class SessionView(Protocol):
    """Callbacks a peer session makes into its UI."""

    def connection_changed(self, identity: Optional[PeerIdentity]) -> None:
        """Own identity assigned (connected) or cleared (disconnected)."""
        ...

    def peer_count_changed(self, count: int) -> None:
        ...

    def slot_created(self, identity: PeerIdentity) -> None:
        ...

    def slot_updated(self, slot: "RemoteSlot") -> None:
        ...

    def slot_removed(self, identity: PeerIdentity) -> None:
        ...

    def placeholder_changed(self, visible: bool) -> None:
        ...

    def capture_changed(self, active: bool) -> None:
        ...

    def alert(self, message: str) -> None:
        """Show a user-visible error."""
        ...


class LoggingView:
    """SessionView that reports everything through the logging module."""

    def connection_changed(self, identity: Optional[PeerIdentity]) -> None:
        if identity is None:
            logger.info("Disconnected from server")
        else:
            logger.info(f"Connected as: {identity}")

    def peer_count_changed(self, count: int) -> None:
        logger.info(f"Active users: {count}")

    def slot_created(self, identity: PeerIdentity) -> None:
        logger.info(f"Receiving stream from {identity}")

    def slot_updated(self, slot: "RemoteSlot") -> None:
        if slot.frames_rendered % 100 == 1:
            logger.debug(f"{slot.identity}: {slot.frames_rendered} frame(s) rendered")

    def slot_removed(self, identity: PeerIdentity) -> None:
        logger.info(f"Stream from {identity} ended")

    def placeholder_changed(self, visible: bool) -> None:
        if visible:
            logger.info(NO_STREAMS_MESSAGE)

    def capture_changed(self, active: bool) -> None:
        logger.info("Streaming started" if active else "Streaming stopped")

    def alert(self, message: str) -> None:
        logger.error(message)
