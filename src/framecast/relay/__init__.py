"""
Relay Module
============

Server side of FrameCast: presence tracking and frame fan-out.

This module provides:
    - ConnectionRegistry: Authoritative roster of live peer identities
    - PresenceNotifier: Join/leave notifications and roster snapshots
    - BroadcastRelay: Fan-out of each frame to every other peer
    - PeerChannel: Per-peer outbound mailbox with its own writer task
    - RelayHub: Serialized event processor tying them together

Example:
    from framecast.relay import PeerChannel, RelayHub

    hub = RelayHub()
    await hub.start()
    identity = await hub.connect(PeerChannel(websocket))
"""

from framecast.relay.broadcast import BroadcastRelay
from framecast.relay.channel import PeerChannel, PeerTransport
from framecast.relay.hub import RelayHub
from framecast.relay.metrics import RelayMetrics
from framecast.relay.notifier import PresenceNotifier
from framecast.relay.registry import ConnectionRegistry, PresenceListener


__all__ = [
    "BroadcastRelay",
    "ConnectionRegistry",
    "PeerChannel",
    "PeerTransport",
    "PresenceListener",
    "PresenceNotifier",
    "RelayHub",
    "RelayMetrics",
]
