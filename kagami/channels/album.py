"""Time-boxed collection of album (media group) messages."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Generic, TypeVar

from loguru import logger

T = TypeVar("T")

FlushFn = Callable[[str, list[T]], Awaitable[None]]


@dataclass
class _PendingGroup(Generic[T]):
    items: list[T] = field(default_factory=list)
    timer: asyncio.Task | None = None


class MediaGroupBuffer(Generic[T]):
    """Collect items per key until no new item arrives for *wait* seconds.

    Telegram delivers an album as separate messages sharing a
    ``media_group_id``; each arrival restarts the key's timer and the whole
    batch is handed to *on_flush* once the timer expires.
    """

    def __init__(self, on_flush: FlushFn, wait: float = 1.0) -> None:
        self._on_flush = on_flush
        self.wait = wait
        self._groups: dict[str, _PendingGroup[T]] = {}

    def __len__(self) -> int:
        return len(self._groups)

    def add(self, key: str, item: T) -> None:
        group = self._groups.setdefault(key, _PendingGroup())
        group.items.append(item)
        if group.timer and not group.timer.done():
            group.timer.cancel()
        group.timer = asyncio.create_task(self._expire(key))

    def pending(self, key: str) -> list[T]:
        group = self._groups.get(key)
        return list(group.items) if group else []

    async def aclose(self) -> None:
        """Drop every pending group without flushing."""
        timers = [g.timer for g in self._groups.values() if g.timer and not g.timer.done()]
        self._groups.clear()
        for timer in timers:
            timer.cancel()
        if timers:
            await asyncio.gather(*timers, return_exceptions=True)

    async def _expire(self, key: str) -> None:
        try:
            await asyncio.sleep(self.wait)
        except asyncio.CancelledError:
            return

        group = self._groups.pop(key, None)
        if not group or not group.items:
            return

        logger.info(f"Flushing media group {key} with {len(group.items)} items")
        try:
            await self._on_flush(key, group.items)
        except Exception as e:
            logger.error(f"Error processing media group {key}: {e}")
