"""
Event Names
===========

Fixed set of event names carried in the ``event`` field of every envelope.

The names match the ones browser peers already use, so Python and browser
peers can share one relay.
"""

from enum import Enum


class EventName(str, Enum):
    """
    Wire event names.

    Attributes:
        CONNECTED: server→client, the peer's own identity
        EXISTING_USERS: server→newcomer, roster snapshot excluding itself
        NEW_USER: server→others, a peer joined
        USER_DISCONNECTED: server→remaining peers, a peer left
        STREAM: client→server raw frame, server→others re-tagged frame
    """

    CONNECTED = "connected"
    EXISTING_USERS = "existing-users"
    NEW_USER = "new-user"
    USER_DISCONNECTED = "user-disconnected"
    STREAM = "stream"
