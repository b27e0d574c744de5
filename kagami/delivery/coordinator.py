"""Multi-chunk delivery of one logical reply."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from enum import Enum

from loguru import logger

from kagami.config.schema import DeliveryConfig
from kagami.delivery.cascade import DeliveryCascade, DeliveryOutcome
from kagami.delivery.modes import RenderMode
from kagami.delivery.transport import ChatTransport
from kagami.errors import DeliveryError, NoticeDeliveryError
from kagami.markdown.balance import repair_markdown
from kagami.markdown.chunk import chunk_text, find_fences
from kagami.markdown.normalize import normalize_text


_MAX_PLANS = 8


class ChunkPosition(str, Enum):
    ONLY = "only"
    FIRST = "first"
    MIDDLE = "middle"
    LAST = "last"

    @classmethod
    def of(cls, index: int, total: int) -> ChunkPosition:
        if total <= 1:
            return cls.ONLY
        if index == 0:
            return cls.FIRST
        if index == total - 1:
            return cls.LAST
        return cls.MIDDLE


class DeliveryStatus(str, Enum):
    SENT = "sent"
    PARTIALLY_FAILED = "partially_failed"


@dataclass
class DeliveryReport:
    """Aggregate result of :meth:`MessageSender.send_long`."""

    total: int = 0
    outcomes: list[DeliveryOutcome] = field(default_factory=list)

    @property
    def failed_indices(self) -> list[int]:
        return [i for i, outcome in enumerate(self.outcomes) if not outcome.delivered]

    @property
    def status(self) -> DeliveryStatus:
        if self.failed_indices or len(self.outcomes) < self.total:
            return DeliveryStatus.PARTIALLY_FAILED
        return DeliveryStatus.SENT


def annotate_chunk(chunk: str, index: int, total: int, config: DeliveryConfig) -> str:
    """Wrap *chunk* with its continuation banner (``index`` is 0-based)."""
    position = ChunkPosition.of(index, total)
    if position is ChunkPosition.ONLY:
        return chunk
    template = {
        ChunkPosition.FIRST: config.first_banner,
        ChunkPosition.MIDDLE: config.middle_banner,
        ChunkPosition.LAST: config.last_banner,
    }[position]
    return template.format(chunk=chunk, index=index + 1, total=total)


def banner_overhead(total: int, config: DeliveryConfig) -> int:
    """Longest banner wrapper, in characters, for a reply of *total* chunks."""
    if total <= 1:
        return 0
    templates = (config.first_banner, config.middle_banner, config.last_banner)
    return max(len(t.format(chunk="", index=total, total=total)) for t in templates)


def _is_code_block(chunk: str) -> bool:
    return find_fences(chunk) == [(0, len(chunk))]


class MessageSender:
    """
    Deliver one long reply as an ordered series of chunks.

    Each chunk goes through the full cascade before the next one starts;
    continuation banners carry ``i/N`` so order matters.
    """

    def __init__(self, transport: ChatTransport, config: DeliveryConfig | None = None):
        self.transport = transport
        self.config = config or DeliveryConfig()
        self.cascade = DeliveryCascade(transport)

    async def send_long(self, text: str) -> DeliveryReport:
        normalized = normalize_text(text)
        if not normalized:
            logger.warning("Nothing to send after normalization")
            return DeliveryReport()

        chunks = self.prepare(normalized)
        report = DeliveryReport(total=len(chunks))
        if len(chunks) > 1:
            logger.info(f"Splitting long message into {len(chunks)} chunks")

        for i, final_chunk in enumerate(chunks):
            if i > 0:
                await asyncio.sleep(self.config.chunk_delay)
                await self._typing()

            outcome = await self.cascade.deliver(final_chunk)
            report.outcomes.append(outcome)
            if outcome.delivered:
                continue

            logger.error(f"Chunk {i + 1}/{len(chunks)} failed: {outcome.error}")
            await self._send_failure_notice(i, report)
            if self.config.abort_on_failure:
                logger.warning(f"Aborting delivery after chunk {i + 1}/{len(chunks)}")
                break

        if report.status is DeliveryStatus.PARTIALLY_FAILED:
            logger.warning(f"Delivered with {len(report.failed_indices)} of {report.total} chunks failed")
        return report

    def prepare(self, normalized: str) -> list[str]:
        """Split, repair and annotate *normalized* into the texts to send.

        The split limit is shrunk by the banner and repair overhead until
        every chunk fits ``max_length``; an oversized code block is the only
        exception.
        """
        cfg = self.config
        limit = cfg.max_length
        if len(normalized) > limit:
            limit -= banner_overhead(2, cfg)

        finals: list[str] = []
        for _ in range(_MAX_PLANS):
            chunks = chunk_text(normalized, max(limit, 1), cfg.lookback)
            finals = [self._finish(chunk, i, len(chunks)) for i, chunk in enumerate(chunks)]
            excess = max(
                (len(final) - cfg.max_length for final, chunk in zip(finals, chunks) if not _is_code_block(chunk)),
                default=0,
            )
            if excess <= 0:
                return finals
            if limit <= 1:
                break
            limit = max(limit - excess, 1)

        logger.warning(f"Some chunks still exceed {cfg.max_length} chars")
        return finals

    def _finish(self, chunk: str, index: int, total: int) -> str:
        # Repair first so appended closers stay ahead of the banner
        annotated = annotate_chunk(repair_markdown(chunk), index, total, self.config)
        return repair_markdown(annotated)

    async def _send_failure_notice(self, index: int, report: DeliveryReport) -> None:
        notice = self.config.failure_notice.format(index=index + 1, total=report.total)
        try:
            await self.transport.send(notice, RenderMode.PLAIN)
        except DeliveryError as e:
            raise NoticeDeliveryError(index, report) from e

    async def _typing(self) -> None:
        try:
            await self.transport.send_typing()
        except Exception as e:
            logger.debug(f"Typing indicator failed: {e}")
