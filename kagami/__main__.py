"""Run the Telegram bot: ``python -m kagami``."""

from __future__ import annotations

import asyncio
import sys

from loguru import logger

from kagami.channels.telegram import TelegramChannel
from kagami.config.schema import Config
from kagami.llm.client import LLMClient


async def _run(config: Config) -> None:
    llm = LLMClient(config.llm.api_url, timeout=config.llm.timeout)
    channel = TelegramChannel(config, llm)
    try:
        await channel.start()
    finally:
        await channel.stop()
        await llm.aclose()


def main() -> None:
    config = Config()
    logger.remove()
    logger.add(sys.stderr, level=config.log_level.upper())

    if not config.telegram.token:
        logger.error("KAGAMI_TELEGRAM__TOKEN is not set")
        sys.exit(1)

    try:
        asyncio.run(_run(config))
    except KeyboardInterrupt:
        logger.info("Interrupted, shutting down")


if __name__ == "__main__":
    main()
