"""
Presence Notifier
=================

Keeps every peer's view of the roster consistent with actual membership.

On join of N:
    1. N receives ``connected`` with its own identity
    2. N receives ``existing-users`` with the roster minus N
    3. Every other peer receives ``new-user`` N

On leave of N:
    Every remaining peer receives ``user-disconnected`` N

Because the snapshot is taken before the join is broadcast and the hub
handles one event at a time, a newcomer never hears about itself and no peer
sees a frame from N before N's ``new-user``: N's frames are queued behind its
own connect event.
"""

import logging
from typing import Optional

from framecast.models import messages
from framecast.models.identity import PeerIdentity
from framecast.models.messages import Envelope
from framecast.relay.registry import ConnectionRegistry


logger = logging.getLogger(__name__)


class PresenceNotifier:
    """Presence listener that turns roster changes into wire events."""

    def __init__(self, registry: ConnectionRegistry) -> None:
        self._registry = registry
        registry.add_listener(self)

    def peer_joined(self, identity: PeerIdentity) -> None:
        channel = self._registry.get(identity)
        if channel is None:
            logger.warning(f"Join for unknown peer {identity}, skipping")
            return

        roster = self._registry.snapshot(exclude=identity)
        channel.deliver(messages.connected(identity))
        channel.deliver(messages.existing_users(roster))

        notified = self._broadcast(messages.new_user(identity), exclude=identity)
        logger.debug(f"Announced {identity} to {notified} peer(s); sent roster of {len(roster)}")

    def peer_left(self, identity: PeerIdentity) -> None:
        notified = self._broadcast(messages.user_disconnected(identity), exclude=identity)
        logger.debug(f"Announced departure of {identity} to {notified} peer(s)")

    def _broadcast(self, envelope: Envelope, exclude: Optional[PeerIdentity]) -> int:
        notified = 0
        for channel in self._registry.recipients(exclude=exclude):
            if channel.deliver(envelope):
                notified += 1
        return notified
