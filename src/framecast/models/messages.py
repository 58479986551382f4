"""
Wire Messages
=============

Pydantic models for the JSON envelopes exchanged between peers and the relay.

Every WebSocket text frame carries exactly one envelope:

    {"event": "<event name>", "data": <payload>}

Payloads per event:
    connected          -> "<own identity>"
    existing-users     -> ["<identity>", ...]
    new-user           -> "<identity>"
    user-disconnected  -> "<identity>"
    stream (inbound)   -> "data:image/jpeg;base64,..."
    stream (outbound)  -> {"userId": "<sender identity>", "data": "data:image/jpeg;base64,..."}

Example:
    from framecast.models.messages import Envelope, parse_envelope

    envelope = parse_envelope(raw)
    if envelope.event == EventName.STREAM:
        ...
"""

from typing import Any, Iterable, List

from pydantic import BaseModel, Field, ValidationError

from framecast.models.events import EventName
from framecast.models.identity import PeerIdentity


class MessageError(ValueError):
    """Raised when an inbound message is not a valid envelope."""
    pass


class Envelope(BaseModel):
    """
    Single wire message.

    Attributes:
        event: Event name
        data: Event payload (shape depends on event)
    """

    event: EventName = Field(..., description="Event name")
    data: Any = Field(default=None, description="Event payload")

    def to_wire(self) -> dict:
        """Serialize to a JSON-compatible dict."""
        return self.model_dump(mode="json", by_alias=True)


class StreamPayload(BaseModel):
    """
    Frame re-tagged by the relay with its sender identity.

    The sender is never taken from the client; the relay attaches it.
    """

    user_id: str = Field(..., alias="userId", description="Sender identity")
    data: str = Field(..., description="Encoded image payload")

    class Config:
        """Pydantic model configuration."""

        populate_by_name = True


# =============================================================================
# Parsing
# =============================================================================

def parse_envelope(raw: str) -> Envelope:
    """
    Parse one raw WebSocket text frame.

    Raises:
        MessageError: If the frame is not JSON or not a known envelope
    """
    try:
        return Envelope.model_validate_json(raw)
    except ValidationError as e:
        raise MessageError(f"Invalid envelope: {e.error_count()} error(s)") from e


def frame_payload(envelope: Envelope) -> str:
    """
    Extract the encoded image from a client→server ``stream`` envelope.

    Raises:
        MessageError: If the payload is not a non-empty string
    """
    if not isinstance(envelope.data, str) or not envelope.data:
        raise MessageError("stream payload must be a non-empty string")
    return envelope.data


def identity_payload(envelope: Envelope) -> PeerIdentity:
    """Extract a single identity from a presence envelope."""
    if not isinstance(envelope.data, str) or not envelope.data:
        raise MessageError(f"{envelope.event.value} payload must be an identity")
    return PeerIdentity(envelope.data)


def roster_payload(envelope: Envelope) -> List[PeerIdentity]:
    """Extract the identity list from an ``existing-users`` envelope."""
    if not isinstance(envelope.data, list) or not all(
        isinstance(item, str) for item in envelope.data
    ):
        raise MessageError("existing-users payload must be a list of identities")
    return [PeerIdentity(item) for item in envelope.data]


def stream_payload(envelope: Envelope) -> StreamPayload:
    """Extract the re-tagged frame from a server→client ``stream`` envelope."""
    try:
        return StreamPayload.model_validate(envelope.data)
    except ValidationError as e:
        raise MessageError("stream payload must carry userId and data") from e


# =============================================================================
# Builders
# =============================================================================

def connected(identity: PeerIdentity) -> Envelope:
    return Envelope(event=EventName.CONNECTED, data=identity)


def existing_users(identities: Iterable[PeerIdentity]) -> Envelope:
    # Sorted so the snapshot is deterministic on the wire
    return Envelope(event=EventName.EXISTING_USERS, data=sorted(identities))


def new_user(identity: PeerIdentity) -> Envelope:
    return Envelope(event=EventName.NEW_USER, data=identity)


def user_disconnected(identity: PeerIdentity) -> Envelope:
    return Envelope(event=EventName.USER_DISCONNECTED, data=identity)


def outbound_frame(payload: str) -> Envelope:
    """Frame as sent by a capturing peer (no identity)."""
    return Envelope(event=EventName.STREAM, data=payload)


def relayed_frame(sender: PeerIdentity, payload: str) -> Envelope:
    """Frame as delivered by the relay, tagged with its sender."""
    return Envelope(
        event=EventName.STREAM,
        data=StreamPayload(user_id=sender, data=payload).model_dump(by_alias=True),
    )
