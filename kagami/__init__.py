"""kagami - Telegram reply delivery with markup-safe splitting and fallback."""

__version__ = "0.1.0"
