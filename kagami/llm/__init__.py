"""Upstream chat API client."""

from kagami.llm.client import LLMClient, LLMClientError

__all__ = ["LLMClient", "LLMClientError"]
