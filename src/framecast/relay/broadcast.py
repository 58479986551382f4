"""
Broadcast Relay
===============

Fans each inbound frame out to every other connected peer.

Delivery is best-effort and at-most-once per arrival per recipient: no
acknowledgement, no retry, no buffering for peers that are not connected yet.
A frame from a sender that is no longer in the roster (it raced its own
disconnect) is dropped silently.
"""

import logging

from framecast.models import messages
from framecast.models.identity import PeerIdentity
from framecast.relay.metrics import RelayMetrics
from framecast.relay.registry import ConnectionRegistry


logger = logging.getLogger(__name__)


class BroadcastRelay:
    """
    Frame fan-out over the current roster.

    Attributes:
        metrics: Shared relay counters
    """

    def __init__(self, registry: ConnectionRegistry, metrics: RelayMetrics) -> None:
        self._registry = registry
        self.metrics = metrics

    def on_frame(self, sender: PeerIdentity, payload: str) -> int:
        """
        Deliver ``payload`` tagged with ``sender`` to every other peer.

        Recipients are read from the roster at fan-out time. A failure for one
        recipient does not affect the others.

        Returns:
            Number of recipients the frame was queued for.
        """
        self.metrics.frames_received += 1

        if sender not in self._registry:
            self.metrics.stale_frames_dropped += 1
            logger.debug(f"Dropped frame from departed peer {sender}")
            return 0

        envelope = messages.relayed_frame(sender, payload)
        delivered = 0

        for channel in self._registry.recipients(exclude=sender):
            try:
                accepted = channel.deliver(envelope)
            except Exception as e:
                logger.warning(f"Delivery to {channel.identity} failed: {e}")
                accepted = False

            if accepted:
                delivered += 1
            else:
                self.metrics.delivery_failures += 1

        self.metrics.frames_delivered += delivered
        return delivered
