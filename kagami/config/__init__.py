"""Configuration module for kagami."""

from kagami.config.schema import Config, DeliveryConfig, LLMConfig, TelegramConfig

__all__ = ["Config", "DeliveryConfig", "LLMConfig", "TelegramConfig"]
