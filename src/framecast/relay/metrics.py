"""
Relay Metrics
=============

Counters for relay observability, exposed by ``GET /metrics``.

Counters are mutated only from the hub worker task, so no locking is needed.
"""


class RelayMetrics:
    """Metrics for relay observability."""

    __slots__ = (
        "connections_total",
        "disconnections_total",
        "frames_received",
        "frames_delivered",
        "stale_frames_dropped",
        "delivery_failures",
        "malformed_messages",
    )

    def __init__(self) -> None:
        self.connections_total: int = 0
        self.disconnections_total: int = 0
        self.frames_received: int = 0
        self.frames_delivered: int = 0
        self.stale_frames_dropped: int = 0
        self.delivery_failures: int = 0
        self.malformed_messages: int = 0

    def to_dict(self) -> dict:
        """Export metrics as dict."""
        return {name: getattr(self, name) for name in self.__slots__}
