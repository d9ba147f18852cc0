"""Anthropic Messages API provider.

Talks to ``POST {base_url}/v1/messages`` over aiohttp. Streaming
requests set ``stream: true`` and read the server-sent event stream,
yielding the text of every ``content_block_delta`` event.

Auth: ANTHROPIC_API_KEY (passed in via ``TutorConfig.api_key``).
"""
from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, AsyncIterator

import aiohttp

from ..errors import (
    AuthenticationError,
    CompletionError,
    RateLimitError,
    ServiceError,
    TransportError,
)
from .base import CancellationToken, ChatTurn, CompletionClient

logger = logging.getLogger(__name__)

API_VERSION = "2023-06-01"


def _retry_after(headers: Any) -> float | None:
    raw = headers.get("retry-after") if headers is not None else None
    if not raw:
        return None
    try:
        return float(raw)
    except ValueError:
        return None


def _error_message(body: str, status: int) -> str:
    """Pull the human-readable message out of an API error body."""
    try:
        payload = json.loads(body)
    except ValueError:
        return body.strip() or f"HTTP {status}"
    if isinstance(payload, dict):
        error = payload.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
    return body.strip() or f"HTTP {status}"


def raise_for_api_status(status: int, body: str, headers: Any = None) -> None:
    """Map a non-2xx response to the matching ``CompletionError``."""
    if 200 <= status < 300:
        return
    message = _error_message(body, status)
    if status in (401, 403):
        raise AuthenticationError(message, status)
    if status == 429:
        raise RateLimitError(message, status, retry_after=_retry_after(headers))
    raise ServiceError(message, status)


def parse_sse_line(line: str) -> dict[str, Any] | None:
    """Decode one ``data:`` line of the event stream."""
    line = line.strip()
    if not line.startswith("data:"):
        return None
    data = line[len("data:"):].strip()
    if not data or data == "[DONE]":
        return None
    try:
        event = json.loads(data)
    except ValueError:
        logger.debug("Skipping undecodable SSE payload: %.80s", data)
        return None
    return event if isinstance(event, dict) else None


def text_delta(event: dict[str, Any]) -> str | None:
    if event.get("type") != "content_block_delta":
        return None
    delta = event.get("delta") or {}
    if delta.get("type") in (None, "text_delta"):
        text = delta.get("text")
        return text if isinstance(text, str) else None
    return None


class AnthropicProvider(CompletionClient):
    """Completion client backed by the Anthropic Messages API."""

    def __init__(
        self,
        api_key: str | None,
        base_url: str = "https://api.anthropic.com",
        timeout_seconds: float = 120.0,
        session: aiohttp.ClientSession | None = None,
    ) -> None:
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")
        self._timeout = aiohttp.ClientTimeout(total=timeout_seconds)
        self._session = session
        self._owns_session = session is None

    @property
    def name(self) -> str:
        return "anthropic"

    def is_available(self) -> bool:
        return bool(self._api_key)

    @property
    def url(self) -> str:
        return f"{self._base_url}/v1/messages"

    def _headers(self) -> dict[str, str]:
        if not self._api_key:
            raise AuthenticationError("No API key configured (set ANTHROPIC_API_KEY)")
        return {
            "x-api-key": self._api_key,
            "anthropic-version": API_VERSION,
            "content-type": "application/json",
        }

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self._timeout)
            self._owns_session = True
        return self._session

    @staticmethod
    def build_payload(
        system_prompt: str | None,
        history: list[ChatTurn],
        max_output_tokens: int,
        model_id: str,
        stream: bool,
    ) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "model": model_id,
            "max_tokens": max_output_tokens,
            "messages": [
                {"role": turn.role, "content": turn.text} for turn in history
            ],
        }
        if system_prompt:
            payload["system"] = system_prompt
        if stream:
            payload["stream"] = True
        return payload

    async def stream(
        self,
        system_prompt: str,
        history: list[ChatTurn],
        *,
        max_output_tokens: int,
        model_id: str,
        cancel_token: CancellationToken | None = None,
    ) -> AsyncIterator[str]:
        payload = self.build_payload(
            system_prompt, history, max_output_tokens, model_id, stream=True,
        )
        headers = self._headers()
        logger.info(
            "Streaming request: model=%s turns=%d max_tokens=%d",
            model_id, len(history), max_output_tokens,
        )
        session = self._get_session()
        fragments = 0
        try:
            async with session.post(self.url, json=payload, headers=headers) as resp:
                if resp.status >= 300:
                    body = await resp.text()
                    raise_for_api_status(resp.status, body, resp.headers)
                async for raw_line in resp.content:
                    if cancel_token is not None and cancel_token.cancelled:
                        logger.info("Stream cancelled after %d fragments", fragments)
                        return
                    event = parse_sse_line(raw_line.decode("utf-8", errors="replace"))
                    if event is None:
                        continue
                    if event.get("type") == "error":
                        error = event.get("error") or {}
                        raise ServiceError(str(error.get("message") or "Stream error"))
                    if event.get("type") == "message_stop":
                        break
                    text = text_delta(event)
                    if text:
                        fragments += 1
                        yield text
        except CompletionError:
            raise
        except asyncio.TimeoutError as exc:
            raise TransportError(f"Request timed out: {exc}") from exc
        except aiohttp.ClientConnectionError as exc:
            raise TransportError(f"Connection failed: {exc}") from exc
        except aiohttp.ClientError as exc:
            raise ServiceError(str(exc)) from exc
        logger.info("Stream finished: %d fragments", fragments)

    async def complete(
        self,
        system_prompt: str | None,
        history: list[ChatTurn],
        *,
        max_output_tokens: int,
        model_id: str,
    ) -> str:
        payload = self.build_payload(
            system_prompt, history, max_output_tokens, model_id, stream=False,
        )
        headers = self._headers()
        session = self._get_session()
        try:
            async with session.post(self.url, json=payload, headers=headers) as resp:
                body = await resp.text()
                raise_for_api_status(resp.status, body, resp.headers)
        except CompletionError:
            raise
        except asyncio.TimeoutError as exc:
            raise TransportError(f"Request timed out: {exc}") from exc
        except aiohttp.ClientConnectionError as exc:
            raise TransportError(f"Connection failed: {exc}") from exc
        except aiohttp.ClientError as exc:
            raise ServiceError(str(exc)) from exc

        try:
            data = json.loads(body)
        except ValueError as exc:
            raise ServiceError(f"Invalid JSON response: {exc}") from exc
        if not isinstance(data, dict):
            raise ServiceError(f"Unexpected response body: {body[:200]}")
        parts = [
            block.get("text", "")
            for block in data.get("content") or []
            if isinstance(block, dict) and block.get("type") == "text"
        ]
        return "".join(parts).strip()

    async def shutdown(self) -> None:
        if self._session is not None and self._owns_session and not self._session.closed:
            await self._session.close()
