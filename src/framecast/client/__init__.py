"""
Client Module
=============

Peer side of FrameCast.

This module provides:
    - PeerSession: Capture state machine + presence/render bookkeeping
    - PeerClient: WebSocket connection driving a PeerSession
    - OpenCVCamera / SyntheticCamera: Capture devices
    - encode_frame / decode_frame: JPEG data-URL codec
    - SessionView / LoggingView: UI callbacks

Example:
    from framecast.client import OpenCVCamera, PeerClient

    async with PeerClient("ws://localhost:3000/ws", camera=OpenCVCamera()) as client:
        runner = asyncio.create_task(client.run())
        await client.wait_connected()
        await client.session.start()
        await runner
"""

from framecast.client.capture import (
    CameraSource,
    CaptureUnavailable,
    OpenCVCamera,
    SyntheticCamera,
    encode_frame,
)
from framecast.client.image_decoder import ImageDecodeError, decode_frame
from framecast.client.peer import PeerClient, PeerClientMetrics
from framecast.client.session import CaptureState, PeerSession, RemoteSlot
from framecast.client.view import LoggingView, SessionView


__all__ = [
    "CameraSource",
    "CaptureUnavailable",
    "CaptureState",
    "ImageDecodeError",
    "LoggingView",
    "OpenCVCamera",
    "PeerClient",
    "PeerClientMetrics",
    "PeerSession",
    "RemoteSlot",
    "SessionView",
    "SyntheticCamera",
    "decode_frame",
    "encode_frame",
]
