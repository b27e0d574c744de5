"""Chat platform integrations."""

from kagami.channels.album import MediaGroupBuffer
from kagami.channels.telegram import TelegramChannel, TelegramTransport

__all__ = ["MediaGroupBuffer", "TelegramChannel", "TelegramTransport"]
