"""Async event bus bridging engine callbacks to UI consumers.

The engine fires events via ``TutorConfig.event_callback``. The
EventBus parses them into typed events and queues them for the UI's
consumer loop.
"""
from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from typing import Any

from tutorly.adapters.events import TutorEvent, dict_to_event

logger = logging.getLogger(__name__)


class EventBus:
    """Async queue bridging engine callbacks to UI event consumers."""

    def __init__(self, maxsize: int = 2000, put_timeout: float = 30.0) -> None:
        self._queue: asyncio.Queue[TutorEvent] = asyncio.Queue(maxsize=maxsize)
        self._put_timeout = put_timeout
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def qsize(self) -> int:
        return self._queue.qsize()

    async def _callback(self, data: dict[str, Any]) -> None:
        """Callback to pass to TutorConfig.event_callback."""
        await self.emit(dict_to_event(data))

    def make_callback(self):
        """Return the async callback for TutorConfig.event_callback."""
        return self._callback

    async def emit(self, event: TutorEvent) -> None:
        """Queue an event, waiting for space rather than dropping it."""
        if self._closed:
            return
        try:
            await asyncio.wait_for(self._queue.put(event), timeout=self._put_timeout)
        except asyncio.TimeoutError:
            logger.error(
                "EventBus queue blocked for %.0fs, dropping: %s (queue size: %d)",
                self._put_timeout, event.event_type, self._queue.qsize(),
            )

    async def consume(self) -> AsyncIterator[TutorEvent]:
        """Yield events as they arrive. Stops on close()."""
        while not self._closed:
            try:
                event = await asyncio.wait_for(self._queue.get(), timeout=0.5)
            except asyncio.TimeoutError:
                continue
            yield event

    def drain(self) -> list[TutorEvent]:
        """Remove and return everything currently queued."""
        events: list[TutorEvent] = []
        while not self._queue.empty():
            events.append(self._queue.get_nowait())
        return events

    def close(self) -> None:
        """Stop the consumer loop permanently."""
        self._closed = True
