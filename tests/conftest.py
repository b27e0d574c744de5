"""Shared fixtures."""

from __future__ import annotations

import pytest

from kagami.delivery.modes import RenderMode


class RecordingTransport:
    """In-memory transport that records sends and replays scripted failures.

    ``script`` is consumed one entry per ``send``; an exception entry is
    raised, anything else means success. Once exhausted every send succeeds.
    ``fail_when`` maps a substring to an exception raised for any text
    containing it.
    """

    def __init__(self, script=None, fail_when=None):
        self.script = list(script or [])
        self.fail_when = dict(fail_when or {})
        self.sent: list[tuple[str, RenderMode]] = []
        self.typing = 0

    async def send(self, text: str, mode: RenderMode) -> None:
        self.sent.append((text, mode))
        if self.script:
            step = self.script.pop(0)
            if isinstance(step, BaseException):
                raise step
        for needle, exc in self.fail_when.items():
            if needle in text:
                raise exc

    async def send_typing(self) -> None:
        self.typing += 1

    @property
    def modes(self) -> list[RenderMode]:
        return [mode for _, mode in self.sent]


@pytest.fixture
def transport():
    return RecordingTransport()
