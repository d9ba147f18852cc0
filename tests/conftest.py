"""Shared fakes for engine tests."""
from __future__ import annotations

from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Any, AsyncIterator

import pytest

from tutorly.engine.config import TutorConfig
from tutorly.engine.engine import ConversationEngine
from tutorly.engine.pacing import PacingTimer
from tutorly.engine.providers.base import CancellationToken, ChatTurn, CompletionClient
from tutorly.shared.services.persistence import SessionPersistence


class FakeClock:
    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class ScriptedClient(CompletionClient):
    """Completion client that replays scripted replies.

    Each script entry is either a list of fragments or an exception to
    raise when the stream is iterated. ``on_fragment`` is awaited after
    every yielded fragment with its index.
    """

    def __init__(
        self,
        replies: list[Any] | None = None,
        title: str | Exception = "",
        available: bool = True,
    ) -> None:
        self.replies = list(replies or [])
        self.title = title
        self.available = available
        self.calls: list[tuple[str, list[ChatTurn]]] = []
        self.on_call: Callable[[], None] | None = None
        self.on_fragment: Callable[[int], Awaitable[None]] | None = None
        self.closed = False

    @property
    def name(self) -> str:
        return "scripted"

    def is_available(self) -> bool:
        return self.available

    def queue(self, *replies: Any) -> None:
        self.replies.extend(replies)

    async def stream(
        self,
        system_prompt: str,
        history: list[ChatTurn],
        *,
        max_output_tokens: int,
        model_id: str,
        cancel_token: CancellationToken | None = None,
    ) -> AsyncIterator[str]:
        self.calls.append((system_prompt, list(history)))
        if self.on_call is not None:
            self.on_call()
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        if isinstance(reply, str):
            reply = [reply]
        for index, fragment in enumerate(reply):
            if cancel_token is not None and cancel_token.cancelled:
                return
            yield fragment
            if self.on_fragment is not None:
                await self.on_fragment(index)

    async def complete(
        self,
        system_prompt: str | None,
        history: list[ChatTurn],
        *,
        max_output_tokens: int,
        model_id: str,
    ) -> str:
        if isinstance(self.title, Exception):
            raise self.title
        return self.title

    async def shutdown(self) -> None:
        self.closed = True


class EventLog:
    def __init__(self) -> None:
        self.events: list[dict[str, Any]] = []

    async def __call__(self, event: dict[str, Any]) -> None:
        self.events.append(event)

    def of(self, name: str) -> list[dict[str, Any]]:
        return [e for e in self.events if e["event"] == name]

    def names(self) -> list[str]:
        return [e["event"] for e in self.events]


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def events() -> EventLog:
    return EventLog()


@pytest.fixture
def store(tmp_path: Path) -> SessionPersistence:
    return SessionPersistence(tmp_path / "sessions")


@pytest.fixture
def make_engine(tmp_path: Path, store: SessionPersistence, events: EventLog, clock: FakeClock):
    def _make(client: ScriptedClient | None = None, **config_overrides: Any) -> ConversationEngine:
        config = TutorConfig(
            api_key="test-key",
            generate_titles=False,
            data_dir=tmp_path,
            event_callback=events,
        )
        for name, value in config_overrides.items():
            setattr(config, name, value)
        return ConversationEngine(
            client or ScriptedClient(),
            store,
            config=config,
            timer=PacingTimer(clock=clock),
        )
    return _make
