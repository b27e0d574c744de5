"""Exception taxonomy shared by the splitting and delivery stages."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from kagami.delivery.coordinator import DeliveryReport


class DeliveryError(Exception):
    """Base class for failures reported by a chat transport."""


class FormatError(DeliveryError):
    """The transport rejected the text because of malformed markup."""


class TransportError(DeliveryError):
    """Any delivery failure that a weaker rendering mode cannot fix."""


class NoticeDeliveryError(DeliveryError):
    """The failure notice for a chunk could not be delivered either."""

    def __init__(self, index: int, report: DeliveryReport) -> None:
        super().__init__(f"failure notice for chunk {index + 1} could not be sent")
        self.index = index
        self.report = report


class StructuralViolation(RuntimeError):
    """An internal invariant of the splitter was broken."""
