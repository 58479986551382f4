#!/usr/bin/env python3
"""
Relay Smoke Test Script
=======================

Standalone script to exercise a running relay with several headless peers.

This script:
    1. Connects N peers to a running relay
    2. Makes the first peer publish a synthetic test pattern
    3. Logs presence and frame stats every few seconds
    4. Reports a final summary (passes if every viewer received frames)

Prerequisites:
    - The relay must be running at the configured URL
      (uvicorn framecast.main:app --port 3000)

Usage:
    python scripts/smoke_relay.py --peers 3 --duration 30
    python scripts/smoke_relay.py --url ws://localhost:3000/ws
"""

import argparse
import asyncio
import logging
import os
import sys
import time

from framecast.client import PeerClient, SyntheticCamera


logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    datefmt="%Y-%m-%dT%H:%M:%S",
)
logger = logging.getLogger(__name__)


async def run_smoke(
    url: str,
    peers: int,
    duration: int,
    report_interval: int,
) -> dict:
    """
    Run the smoke test.

    Args:
        url: WebSocket URL of the relay
        peers: Number of peers to connect (first one publishes)
        duration: Test duration in seconds
        report_interval: Seconds between progress reports

    Returns:
        Final metrics dict
    """
    logger.info("=" * 60)
    logger.info("Relay Smoke Test")
    logger.info("=" * 60)
    logger.info(f"Relay URL: {url}")
    logger.info(f"Peers: {peers}")
    logger.info(f"Duration: {duration} seconds")
    logger.info("=" * 60)

    clients = [
        PeerClient(url, camera=SyntheticCamera(label=f"peer-{n}"))
        for n in range(peers)
    ]
    tasks = [asyncio.create_task(c.run(), name=f"peer-{n}") for n, c in enumerate(clients)]

    start_time = time.time()
    last_report_time = start_time

    try:
        for client in clients:
            await client.wait_connected(timeout=10.0)
        await clients[0].session.start()

        while time.time() - start_time < duration:
            if time.time() - last_report_time >= report_interval:
                logger.info("-" * 40)
                logger.info(f"Progress Report (elapsed: {time.time() - start_time:.0f}s)")
                for n, client in enumerate(clients):
                    logger.info(
                        f"  peer-{n}: connected={client.connected} "
                        f"peers={client.session.peer_count} "
                        f"sent={client.metrics.frames_sent} "
                        f"received={client.metrics.frames_received}"
                    )
                last_report_time = time.time()

            await asyncio.sleep(0.5)

    except asyncio.TimeoutError:
        logger.error("Some peer never received an identity from the relay")
    except KeyboardInterrupt:
        logger.info("Test interrupted by user")
    finally:
        for client in clients:
            await client.close()
        for task in tasks:
            try:
                await asyncio.wait_for(task, timeout=5.0)
            except asyncio.TimeoutError:
                task.cancel()

    total_time = time.time() - start_time
    sent = clients[0].metrics.frames_sent
    received = [c.metrics.frames_received for c in clients[1:]]

    logger.info("=" * 60)
    logger.info("FINAL SUMMARY")
    logger.info("=" * 60)
    logger.info(f"Total runtime: {total_time:.1f} seconds")
    logger.info(f"Frames sent by publisher: {sent}")
    logger.info(f"Frames received per viewer: {received}")
    logger.info(f"Publisher FPS: {sent / total_time if total_time > 0 else 0:.1f}")
    logger.info("=" * 60)

    passed = sent > 0 and all(r > 0 for r in received)
    if passed:
        logger.info("TEST PASSED - every viewer received frames")
    else:
        logger.error("TEST FAILED - some viewer received no frames")

    return {
        "duration": total_time,
        "frames_sent": sent,
        "frames_received": received,
        "passed": passed,
    }


def main():
    parser = argparse.ArgumentParser(description="Smoke test for a running FrameCast relay")
    parser.add_argument(
        "--url",
        type=str,
        default=os.environ.get("FRAMECAST_SERVER_URL", "ws://localhost:3000/ws"),
        help="WebSocket URL of the relay",
    )
    parser.add_argument("--peers", type=int, default=3, help="Number of peers (default: 3)")
    parser.add_argument("--duration", type=int, default=30, help="Test duration in seconds (default: 30)")
    parser.add_argument(
        "--report-interval",
        type=int,
        default=5,
        help="Seconds between progress reports (default: 5)",
    )

    args = parser.parse_args()
    if args.peers < 2:
        parser.error("--peers must be at least 2")

    result = asyncio.run(run_smoke(
        url=args.url,
        peers=args.peers,
        duration=args.duration,
        report_interval=args.report_interval,
    ))

    sys.exit(0 if result["passed"] else 1)


if __name__ == "__main__":
    main()
