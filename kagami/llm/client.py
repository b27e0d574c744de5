"""HTTP client for the upstream chat API."""

from __future__ import annotations

from typing import Any

import httpx
from loguru import logger

DEFAULT_REPLY = "Sorry, I didn't get that."


class LLMClientError(Exception):
    """The upstream API could not produce a reply."""


class LLMClient:
    """
    Thin async wrapper over the chat API.

    ``POST {base_url}`` answers a message, ``GET {base_url}latest`` returns the
    most recent assistant message.
    """

    def __init__(self, base_url: str, timeout: float = 120.0, client: httpx.AsyncClient | None = None):
        self.base_url = base_url if base_url.endswith("/") else base_url + "/"
        self._client = client or httpx.AsyncClient(timeout=timeout)

    async def chat(self, text: str, images: list[str] | None = None) -> str:
        """Send a user message (optionally with data-URL images) and return the reply."""
        payload: dict[str, Any] = {"text": text, "images": images} if images else {"msg": text}
        logger.info(f"Sending to LLM API: {text[:100]!r} ({len(images or [])} images)")
        body = await self._request("POST", self.base_url, json=payload)

        data = body.get("data") or {}
        return data.get("response") or body.get("text") or DEFAULT_REPLY

    async def latest(self) -> str | None:
        """Return the latest assistant message, or None when there is none."""
        body = await self._request("GET", self.base_url + "latest")
        data = body.get("data")
        if not isinstance(data, dict):
            raise LLMClientError("Invalid response data from LLM API")
        return data.get("latestMessage") or None

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(self, method: str, url: str, **kwargs: Any) -> dict[str, Any]:
        try:
            r = await self._client.request(method, url, **kwargs)
            r.raise_for_status()
            body = r.json()
        except httpx.HTTPError as e:
            raise LLMClientError(f"{method} {url} failed: {e}") from e
        except ValueError as e:
            raise LLMClientError(f"{method} {url} returned invalid JSON") from e
        if not isinstance(body, dict):
            raise LLMClientError(f"{method} {url} returned {type(body).__name__}, expected object")
        return body
