"""
FrameCast Peer CLI
==================

Run a headless peer against a relay.

Usage:
    python -m framecast.client                       # watch only
    python -m framecast.client --capture             # publish webcam frames
    python -m framecast.client --capture --synthetic # publish a test pattern
    python -m framecast.client --url ws://relay:3000/ws --duration 60
"""

import argparse
import asyncio
import logging
import signal
from typing import Optional

from framecast.config import settings
from framecast.client.capture import CaptureUnavailable, OpenCVCamera, SyntheticCamera
from framecast.client.peer import PeerClient
from framecast.client.view import LoggingView


logger = logging.getLogger("framecast.client")


async def run_peer(
    url: str,
    capture: bool,
    synthetic: bool,
    camera_index: int,
    duration: Optional[float],
) -> dict:
    """
    Connect, optionally capture, and run until closed, interrupted or timed out.

    Returns:
        Final client metrics dict
    """
    camera = SyntheticCamera(label="framecast") if synthetic else OpenCVCamera(camera_index)
    client = PeerClient(
        url,
        camera=camera,
        view=LoggingView(),
        interval_ms=settings.capture.interval_ms,
        jpeg_quality=settings.capture.jpeg_quality,
        open_timeout=settings.client.open_timeout,
    )

    loop = asyncio.get_running_loop()
    main_task = asyncio.current_task()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, main_task.cancel)
        except (NotImplementedError, RuntimeError):
            pass

    runner: Optional[asyncio.Task] = None
    try:
        async with client:
            runner = asyncio.create_task(client.run(), name="peer_client")

            if capture:
                try:
                    await client.wait_connected(timeout=settings.client.open_timeout)
                    await client.session.start()
                except asyncio.TimeoutError:
                    logger.error("Relay did not assign an identity, not capturing")
                except CaptureUnavailable:
                    logger.warning("Continuing without capture")

            try:
                await asyncio.wait_for(asyncio.shield(runner), timeout=duration)
            except asyncio.TimeoutError:
                logger.info(f"Duration of {duration}s reached, leaving")
    except asyncio.CancelledError:
        logger.info("Interrupted, leaving")
    except OSError as e:
        logger.error(f"Could not reach relay at {url}: {e}")
    finally:
        if runner is not None and not runner.done():
            runner.cancel()
            try:
                await runner
            except asyncio.CancelledError:
                pass

    return client.metrics.to_dict()


def main() -> int:
    parser = argparse.ArgumentParser(description="FrameCast peer")
    parser.add_argument("--url", default=settings.client.server_url, help="Relay WebSocket URL")
    parser.add_argument("--capture", action="store_true", help="Publish frames from the camera")
    parser.add_argument("--synthetic", action="store_true", help="Use a test pattern instead of a webcam")
    parser.add_argument("--camera", type=int, default=settings.capture.camera_index, help="OpenCV camera index")
    parser.add_argument("--duration", type=float, default=None, help="Leave after N seconds")
    args = parser.parse_args()

    stats = asyncio.run(run_peer(
        url=args.url,
        capture=args.capture,
        synthetic=args.synthetic,
        camera_index=args.camera,
        duration=args.duration,
    ))
    logger.info(f"Final stats: {stats}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
