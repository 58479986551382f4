"""
FrameCast
=========

Presence-aware frame relay for many-to-many ephemeral video sessions.

Every connected peer may publish still frames from a local camera. The relay
fans each frame out to all other connected peers and keeps every peer informed
of who joins and leaves.

Components:
    - relay: Connection registry, presence notifier, broadcast relay, hub
    - client: Peer session state machine, camera capture, peer client
    - models: Wire envelope and event payload schemas

Example:
    # Server
    uvicorn framecast.main:app --port 3000

    # Peer (capturing)
    python -m framecast.client --capture
"""

__version__ = "0.1.0"
__author__ = "FrameCast Project"

__all__ = [
    "__version__",
]
