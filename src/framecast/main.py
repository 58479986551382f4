"""
FrameCast Relay Application
===========================

FastAPI entry point for the presence-and-broadcast relay.

Endpoints:
    GET  /info    - Service information
    GET  /health  - Liveness probe
    GET  /metrics - Relay counters
    WS   /ws      - Peer channel (presence events + frame relay)
    GET  /*       - Static client assets (when server.static_dir exists)
"""

import asyncio
import logging
import signal
import time
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, Optional

from fastapi import FastAPI, WebSocket
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from framecast import __version__
from framecast.config import settings
from framecast.models.identity import PeerIdentity
from framecast.relay import PeerChannel, RelayHub


logger = logging.getLogger(__name__)


# =============================================================================
# Global State
# =============================================================================

_hub: Optional[RelayHub] = None
_startup_time: float = 0.0


def get_hub() -> Optional[RelayHub]:
    return _hub


# =============================================================================
# Signal Handlers
# =============================================================================

def _handle_sigterm(signum, frame):
    """Log SIGTERM; uvicorn drives the actual shutdown through the lifespan."""
    logger.info("Received SIGTERM, initiating graceful shutdown...")


# =============================================================================
# Lifespan Management
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Create the roster at startup and tear it down at exit."""
    global _hub, _startup_time

    try:
        signal.signal(signal.SIGTERM, _handle_sigterm)
    except ValueError:
        # Not on the main thread (e.g. under a test client)
        pass

    _startup_time = time.time()
    logger.info(f"Starting {settings.server.name} {__version__}")
    logger.info(f"Configured port: {settings.server.port}")

    _hub = RelayHub()
    await _hub.start()

    yield

    logger.info("Shutting down gracefully...")
    try:
        await asyncio.wait_for(_hub.drain(), timeout=5.0)
    except asyncio.TimeoutError:
        logger.warning("Timed out flushing peer mailboxes")
    await _hub.stop()
    _hub = None
    logger.info("Shutdown complete")


# =============================================================================
# FastAPI Application
# =============================================================================

app = FastAPI(
    title="FrameCast",
    description="Presence-aware many-to-many frame relay",
    version=__version__,
    lifespan=lifespan,
)


# =============================================================================
# HTTP Endpoints
# =============================================================================

@app.get("/info")
async def info() -> JSONResponse:
    """Service information endpoint."""
    return JSONResponse({
        "service": "FrameCast",
        "version": __version__,
        "name": settings.server.name,
        "status": "running",
    })


@app.get("/health")
async def health() -> JSONResponse:
    """
    Liveness probe - is the process alive?

    Always returns 200 if the service is running.
    """
    return JSONResponse({
        "status": "healthy",
        "uptime_seconds": round(time.time() - _startup_time, 1),
    })


@app.get("/metrics")
async def metrics() -> JSONResponse:
    """Relay counters for observability."""
    hub = get_hub()
    if hub is None:
        return JSONResponse({"error": "Relay not running"}, status_code=503)

    return JSONResponse({
        "uptime_seconds": round(time.time() - _startup_time, 1),
        "peers_connected": hub.peer_count,
        **hub.metrics.to_dict(),
    })


# =============================================================================
# WebSocket Endpoints
# =============================================================================

@app.websocket("/ws")
async def peer_channel(websocket: WebSocket) -> None:
    """
    One peer's bidirectional channel.

    Inbound text frames are handed to the hub; outbound events are written
    by the peer's channel. Any kind of closure counts as a disconnect.
    """
    hub = get_hub()
    if hub is None:
        await websocket.close(code=1013)
        return

    await websocket.accept()
    identity: Optional[PeerIdentity] = None

    try:
        identity = await hub.connect(PeerChannel(websocket))

        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                break

            text = message.get("text")
            if text is None:
                hub.metrics.malformed_messages += 1
                logger.warning(f"Ignoring binary message from {identity}")
                continue

            hub.handle_message(identity, text)

    except Exception as e:
        logger.warning(f"WebSocket error for {identity}: {e}")
    finally:
        if identity is not None:
            await hub.disconnect(identity)


# =============================================================================
# Static Client Assets
# =============================================================================

_static_dir = Path(settings.server.static_dir)
if _static_dir.is_dir():
    app.mount("/", StaticFiles(directory=_static_dir, html=True), name="static")
    logger.info(f"Serving client assets from {_static_dir.resolve()}")


# =============================================================================
# Main Entry Point
# =============================================================================

def run() -> None:
    """Console entry point: serve the relay with uvicorn."""
    import uvicorn

    uvicorn.run(
        "framecast.main:app",
        host=settings.server.host,
        port=settings.server.port,
        reload=False,
    )


if __name__ == "__main__":
    run()
