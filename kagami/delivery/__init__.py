"""Outbound delivery: render-mode cascade and multi-chunk coordination."""

from kagami.delivery.cascade import DeliveryCascade, DeliveryOutcome
from kagami.delivery.coordinator import (
    ChunkPosition,
    DeliveryReport,
    DeliveryStatus,
    MessageSender,
    annotate_chunk,
)
from kagami.delivery.modes import RenderMode
from kagami.delivery.transport import ChatTransport

__all__ = [
    "ChatTransport",
    "ChunkPosition",
    "DeliveryCascade",
    "DeliveryOutcome",
    "DeliveryReport",
    "DeliveryStatus",
    "MessageSender",
    "RenderMode",
    "annotate_chunk",
]
