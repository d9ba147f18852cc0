"""Abstract base for completion providers.

A provider turns a system prompt plus an ordered chat history into
text, either as a cancelable stream of fragments (tutoring replies) or
as one complete response (session titles). Providers raise
``CompletionError`` subclasses; classification into user notices is
the engine's job.
"""
from __future__ import annotations

import abc
import asyncio
from dataclasses import dataclass
import logging
from typing import AsyncIterator

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ChatTurn:
    """One entry of the history sent to the completion service."""
    role: str  # "user" or "assistant"
    text: str


class CancellationToken:
    """Cooperative cancellation flag for one in-flight request.

    Providers check ``cancelled`` between fragments and may await
    ``wait()`` to race cancellation against network reads.
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        if not self._event.is_set():
            logger.debug("Cancellation requested")
        self._event.set()

    async def wait(self) -> None:
        await self._event.wait()


class CompletionClient(abc.ABC):
    """Abstract completion service interface."""

    @property
    @abc.abstractmethod
    def name(self) -> str:
        """Short provider name (e.g. 'anthropic')."""

    @abc.abstractmethod
    def stream(
        self,
        system_prompt: str,
        history: list[ChatTurn],
        *,
        max_output_tokens: int,
        model_id: str,
        cancel_token: CancellationToken | None = None,
    ) -> AsyncIterator[str]:
        """Stream response text fragments in delivery order.

        Stops early, without raising, once *cancel_token* is cancelled.
        """

    @abc.abstractmethod
    async def complete(
        self,
        system_prompt: str | None,
        history: list[ChatTurn],
        *,
        max_output_tokens: int,
        model_id: str,
    ) -> str:
        """Return the full response text for a single request."""

    def is_available(self) -> bool:
        """Whether the provider has what it needs to make requests."""
        return True

    async def shutdown(self) -> None:
        """Release network resources. Default no-op."""
        return None
