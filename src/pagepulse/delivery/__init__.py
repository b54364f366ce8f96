"""Event buffering and delivery."""

from .buffer import BufferStats, EventBuffer
from .transport import (
    DeliveryAttempt,
    DeliveryTransport,
    HttpTransport,
    NullTransport,
    TransportStats,
)

__all__ = [
    "BufferStats",
    "DeliveryAttempt",
    "DeliveryTransport",
    "EventBuffer",
    "HttpTransport",
    "NullTransport",
    "TransportStats",
]
