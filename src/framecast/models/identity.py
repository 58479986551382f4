"""
Peer Identity
=============

Opaque per-connection identity tokens.

Identities are allocated by the connection registry, never by the transport,
so the relay core can run against fake transports in tests. A reconnecting
peer always receives a fresh identity.
"""

import secrets
from typing import NewType


PeerIdentity = NewType("PeerIdentity", str)

# 15 random bytes -> 20 URL-safe characters
_IDENTITY_BYTES = 15


def new_identity() -> PeerIdentity:
    """Allocate a fresh, unguessable identity token."""
    return PeerIdentity(secrets.token_urlsafe(_IDENTITY_BYTES))
