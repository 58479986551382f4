"""
Data Models
===========

Identity, event names and wire envelopes shared by the relay and peers.

Models:
    - PeerIdentity: Opaque per-connection identity token
    - EventName: Wire event names
    - Envelope: One JSON message on the wire
    - StreamPayload: Frame re-tagged with its sender identity
"""

from framecast.models.events import EventName
from framecast.models.identity import PeerIdentity, new_identity
from framecast.models.messages import Envelope, MessageError, StreamPayload

__all__ = [
    "EventName",
    "PeerIdentity",
    "new_identity",
    "Envelope",
    "MessageError",
    "StreamPayload",
]
