"""Interface the delivery stages expect from a chat transport."""

from __future__ import annotations

from typing import Protocol

from kagami.delivery.modes import RenderMode


class ChatTransport(Protocol):
    """Sends single messages to one chat.

    ``send`` raises :class:`~kagami.errors.FormatError` when the markup was
    rejected and :class:`~kagami.errors.TransportError` for anything else.
    """

    async def send(self, text: str, mode: RenderMode) -> None: ...

    async def send_typing(self) -> None: ...
