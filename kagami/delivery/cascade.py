"""Per-chunk delivery with render-mode fallback."""

from __future__ import annotations

from dataclasses import dataclass, field

from loguru import logger

from kagami.delivery.modes import RenderMode
from kagami.delivery.transport import ChatTransport
from kagami.errors import DeliveryError, FormatError


@dataclass(frozen=True)
class DeliveryOutcome:
    """Result of delivering one chunk."""

    mode: RenderMode | None = None
    error: DeliveryError | None = None
    attempts: tuple[RenderMode, ...] = field(default_factory=tuple)

    @property
    def delivered(self) -> bool:
        return self.mode is not None

    @classmethod
    def ok(cls, mode: RenderMode, attempts: list[RenderMode]) -> DeliveryOutcome:
        return cls(mode=mode, attempts=tuple(attempts))

    @classmethod
    def failed(cls, error: DeliveryError, attempts: list[RenderMode]) -> DeliveryOutcome:
        return cls(error=error, attempts=tuple(attempts))


class DeliveryCascade:
    """
    Send a chunk, weakening the rendering mode on each format rejection.

    Modes are visited strictly forward (RICH, SANITIZED, STRICT_ESCAPED,
    PLAIN), so a chunk costs at most four sends. Non-format errors end the
    cascade at once.
    """

    def __init__(self, transport: ChatTransport):
        self.transport = transport

    async def deliver(self, chunk: str) -> DeliveryOutcome:
        attempts: list[RenderMode] = []
        last_error: DeliveryError | None = None
        mode: RenderMode | None = RenderMode.RICH

        while mode is not None:
            attempts.append(mode)
            try:
                await self.transport.send(mode.render(chunk), mode)
            except FormatError as e:
                logger.warning(f"Chunk rejected under {mode.value} mode: {e}")
                last_error = e
                mode = mode.advance()
                continue
            except DeliveryError as e:
                logger.error(f"Chunk delivery failed under {mode.value} mode: {e}")
                return DeliveryOutcome.failed(e, attempts)

            if len(attempts) > 1:
                logger.info(f"Chunk delivered under {mode.value} mode after {len(attempts)} attempts")
            return DeliveryOutcome.ok(mode, attempts)

        logger.error(f"Chunk rejected under every render mode: {last_error}")
        return DeliveryOutcome.failed(last_error, attempts)
