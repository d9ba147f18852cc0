from __future__ import annotations

from types import SimpleNamespace

import pytest

from tutorly.adapters.events import (
    ErrorOccurred,
    QuizRetry,
    QuizTypeRequested,
    StreamCancelled,
    StreamChunk,
    StreamFinished,
    StreamStarted,
    TitleChanged,
)
from tutorly.shared.models.message import Message, MessageRole
from tutorly.tui.handlers.event_processor import EventProcessor


class _FakeConversation:
    def __init__(self) -> None:
        self.calls: list[tuple] = []

    async def begin_stream(self, msg) -> None:
        self.calls.append(("begin", msg.id))

    async def write_stream(self, message_id: str, text: str) -> None:
        self.calls.append(("write", message_id, text))

    async def finish_stream(self, message_id: str, replace: bool = False) -> None:
        self.calls.append(("finish", message_id))

    async def discard_stream(self, message_id: str | None = None) -> None:
        self.calls.append(("discard", message_id))

    def append_message(self, msg) -> None:
        self.calls.append(("append", msg.id))

    def add_notice(self, markup: str) -> None:
        self.calls.append(("notice", markup))


def _screen(engine):
    conv = _FakeConversation()
    screen = SimpleNamespace(
        bridge=SimpleNamespace(engine=engine),
        app=SimpleNamespace(sub_title=""),
        statuses=[],
        quiz_prompts=[],
        notifications=[],
    )
    screen.query_one = lambda *_args: conv
    screen.set_request_status = screen.statuses.append
    screen.refresh_status = lambda: None
    screen.prompt_quiz_type = screen.quiz_prompts.append
    screen.notify = lambda message, **_kw: screen.notifications.append(message)
    return screen, conv


def _assistant(engine) -> Message:
    return engine.session.add_message(Message(role=MessageRole.ASSISTANT, content="", streaming=True))


@pytest.mark.asyncio
async def test_standard_reply_is_streamed(make_engine) -> None:
    engine = make_engine()
    screen, conv = _screen(engine)
    processor = EventProcessor(screen)
    msg = _assistant(engine)
    sid = engine.session.session_id

    await processor.handle_event(StreamStarted(session_id=sid, message_id=msg.id, mode="standard"))
    await processor.handle_event(StreamChunk(session_id=sid, message_id=msg.id, text="Hi"))
    await processor.handle_event(StreamFinished(session_id=sid, message_id=msg.id, content="Hi"))

    assert conv.calls == [("begin", msg.id), ("write", msg.id, "Hi"), ("finish", msg.id)]
    assert screen.statuses == ["streaming", "ready"]


@pytest.mark.asyncio
async def test_quiz_reply_renders_only_when_finished(make_engine) -> None:
    engine = make_engine()
    screen, conv = _screen(engine)
    processor = EventProcessor(screen)
    msg = _assistant(engine)

    await processor.handle_event(StreamStarted(message_id=msg.id, mode="quiz"))
    await processor.handle_event(StreamChunk(message_id=msg.id, text='{"type"'))
    await processor.handle_event(StreamFinished(message_id=msg.id, is_quiz=True))

    assert conv.calls == [("append", msg.id)]


@pytest.mark.asyncio
async def test_quiz_retry_drops_pending_reply(make_engine) -> None:
    engine = make_engine()
    screen, conv = _screen(engine)
    processor = EventProcessor(screen)

    await processor.handle_event(StreamStarted(message_id="m1", mode="quiz"))
    await processor.handle_event(QuizRetry(attempt=1, max_attempts=5, violation="no JSON"))

    assert conv.calls[0] == ("discard", "m1")
    assert "attempt 1 of 5" in conv.calls[1][1]


@pytest.mark.asyncio
async def test_events_for_other_sessions_are_ignored(make_engine) -> None:
    engine = make_engine()
    screen, conv = _screen(engine)
    processor = EventProcessor(screen)

    await processor.handle_event(TitleChanged(session_id="someone-else", title="Old"))
    await processor.handle_event(TitleChanged(session_id=engine.session.session_id, title="New"))

    assert screen.app.sub_title == "New"


@pytest.mark.asyncio
async def test_error_discards_stream_and_shows_notice(make_engine) -> None:
    engine = make_engine()
    screen, conv = _screen(engine)
    processor = EventProcessor(screen)

    await processor.handle_event(ErrorOccurred(kind="transport", message="Offline [retry]"))

    assert conv.calls[0] == ("discard", None)
    assert conv.calls[1][1].startswith("[red]Offline \\[retry][/red]")
    assert screen.statuses == ["error"]


@pytest.mark.asyncio
async def test_cancel_and_quiz_type_prompt(make_engine) -> None:
    engine = make_engine()
    screen, conv = _screen(engine)
    processor = EventProcessor(screen)

    await processor.handle_event(StreamCancelled(message_id="m1"))
    await processor.handle_event(QuizTypeRequested(topic="volcanoes"))

    assert ("discard", "m1") in conv.calls
    assert screen.statuses == ["ready"]
    assert screen.quiz_prompts == ["volcanoes"]
