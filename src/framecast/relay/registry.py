"""
Connection Registry
===================

Authoritative set of live peer identities (the roster).

The registry is a leaf component: it allocates identities, tracks which
channel belongs to which identity, and tells its listeners about joins and
leaves. It does not talk to peers itself.

Guarantees:
    An identity is in the roster iff its connection is open. The roster is
    mutated only by on_connect() and on_disconnect(), never by frame traffic.
"""

import logging
from typing import Callable, Dict, FrozenSet, List, Optional, Protocol

from framecast.models.identity import PeerIdentity, new_identity
from framecast.relay.channel import PeerChannel


logger = logging.getLogger(__name__)


class PresenceListener(Protocol):
    """Receives roster changes, in the order they happen."""

    def peer_joined(self, identity: PeerIdentity) -> None:
        ...

    def peer_left(self, identity: PeerIdentity) -> None:
        ...


class ConnectionRegistry:
    """
    In-memory roster: identity → channel.

    Not thread-safe and not meant to be: only the hub worker calls the
    mutating methods.

    Example:
        registry = ConnectionRegistry()
        identity = registry.on_connect(channel)
        others = registry.snapshot(exclude=identity)
        registry.on_disconnect(identity)
    """

    def __init__(
        self,
        identity_factory: Callable[[], PeerIdentity] = new_identity,
    ) -> None:
        self._identity_factory = identity_factory
        self._members: Dict[PeerIdentity, PeerChannel] = {}
        self._listeners: List[PresenceListener] = []

    def add_listener(self, listener: PresenceListener) -> None:
        self._listeners.append(listener)

    def on_connect(self, channel: PeerChannel) -> PeerIdentity:
        """
        Admit a new connection.

        Allocates a fresh identity, binds it to the channel, inserts it into
        the roster and then notifies listeners.

        Returns:
            The identity assigned to the connection.
        """
        identity = self._identity_factory()
        while identity in self._members:
            identity = self._identity_factory()

        channel.identity = identity
        self._members[identity] = channel
        logger.info(f"Peer connected: {identity} ({len(self._members)} online)")

        for listener in self._listeners:
            listener.peer_joined(identity)

        return identity

    def on_disconnect(self, identity: PeerIdentity) -> Optional[PeerChannel]:
        """
        Remove a connection from the roster.

        Idempotent: removing an unknown or already-removed identity is a no-op
        and does not notify listeners.

        Returns:
            The removed channel, or None if nothing was removed.
        """
        channel = self._members.pop(identity, None)
        if channel is None:
            return None

        logger.info(f"Peer disconnected: {identity} ({len(self._members)} online)")

        for listener in self._listeners:
            listener.peer_left(identity)

        return channel

    def snapshot(self, exclude: Optional[PeerIdentity] = None) -> FrozenSet[PeerIdentity]:
        """Current roster, minus ``exclude``."""
        return frozenset(i for i in self._members if i != exclude)

    def recipients(self, exclude: Optional[PeerIdentity] = None) -> List[PeerChannel]:
        """
        Channels of the current roster, minus ``exclude``.

        Returns a copy taken now; later roster changes do not affect it.
        """
        return [c for i, c in self._members.items() if i != exclude]

    def get(self, identity: PeerIdentity) -> Optional[PeerChannel]:
        return self._members.get(identity)

    def __contains__(self, identity: object) -> bool:
        return identity in self._members

    def __len__(self) -> int:
        return len(self._members)
