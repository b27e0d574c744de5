"""Configuration schema.

Values come from the environment (or a ``.env`` file) with the ``KAGAMI_``
prefix; nested fields use ``__``, e.g. ``KAGAMI_TELEGRAM__TOKEN``.
"""

from __future__ import annotations

from typing import Annotated

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


class TelegramConfig(BaseModel):
    """Telegram bot configuration."""

    token: str = ""
    proxy: str | None = None
    allow_from: Annotated[list[str], NoDecode] = Field(default_factory=list)  # empty = everyone

    @field_validator("allow_from", mode="before")
    @classmethod
    def parse_allow_from(cls, v):
        if isinstance(v, str):
            return [x.strip() for x in v.split(",") if x.strip()]
        if isinstance(v, int):
            return [str(v)]
        return v


class LLMConfig(BaseModel):
    """Upstream chat API configuration."""

    api_url: str = "http://localhost:3000/api/chat/"
    timeout: float = 120.0


class DeliveryConfig(BaseModel):
    """Outbound message splitting and fallback configuration."""

    max_length: int = Field(default=4000, ge=1)  # headroom below Telegram's 4096
    chunk_delay: float = 0.3  # seconds between chunks
    lookback: int = 100  # forced-split search window
    album_wait: float = 1.0  # seconds to collect an album
    first_banner: str = "{chunk}\n\n*(continued... {index}/{total})*"
    middle_banner: str = "*(part {index}/{total})*\n\n{chunk}\n\n*(continued...)*"
    last_banner: str = "*(part {index}/{total})*\n\n{chunk}"
    failure_notice: str = "[Failed to send part {index} of {total}]"
    abort_on_failure: bool = False


class Config(BaseSettings):
    """Root configuration."""

    model_config = SettingsConfigDict(
        env_prefix="KAGAMI_",
        env_nested_delimiter="__",
        env_file=".env",
        extra="ignore",
    )

    log_level: str = "INFO"
    telegram: TelegramConfig = Field(default_factory=TelegramConfig)
    llm: LLMConfig = Field(default_factory=LLMConfig)
    delivery: DeliveryConfig = Field(default_factory=DeliveryConfig)
