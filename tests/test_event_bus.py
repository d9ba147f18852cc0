"""Tests for typed events and the async EventBus."""
from __future__ import annotations

import asyncio

import pytest

from tutorly.adapters.event_bus import EventBus
from tutorly.adapters.events import (
    ErrorOccurred,
    QuizRecordReceived,
    StreamChunk,
    TutorEvent,
    dict_to_event,
    event_to_dict,
)


def test_dict_to_event_picks_class_and_drops_unknown_fields() -> None:
    event = dict_to_event({
        "event": "stream_chunk",
        "session_id": "s1",
        "message_id": "m1",
        "text": "Hel",
        "unexpected": True,
    })
    assert isinstance(event, StreamChunk)
    assert event.event_type == "stream_chunk"
    assert event.session_id == "s1"
    assert event.text == "Hel"


def test_unknown_event_falls_back_to_base_type() -> None:
    event = dict_to_event({"event": "something_new", "session_id": "s1"})
    assert type(event) is TutorEvent
    assert event.event_type == "something_new"


def test_event_to_dict_uses_engine_key_names() -> None:
    data = event_to_dict(ErrorOccurred(kind="transport", message="offline"))
    assert data["event"] == "error"
    assert "event_type" not in data
    assert "session_id" not in data
    assert data["retryable"] is True


def test_quiz_record_event_keeps_wire_payload() -> None:
    record = {"type": "feedback", "isCorrect": False, "explanation": "Close."}
    event = dict_to_event({
        "event": "quiz_record", "message_id": "m", "record_type": "feedback", "record": record,
    })
    assert isinstance(event, QuizRecordReceived)
    assert event.record == record


@pytest.mark.asyncio
async def test_callback_queues_typed_events_in_order() -> None:
    bus = EventBus()
    callback = bus.make_callback()

    await callback({"event": "stream_chunk", "text": "a"})
    await callback({"event": "stream_chunk", "text": "b"})

    assert bus.qsize() == 2
    assert [e.text for e in bus.drain()] == ["a", "b"]
    assert bus.qsize() == 0


@pytest.mark.asyncio
async def test_consume_stops_after_close() -> None:
    bus = EventBus()
    await bus.emit(StreamChunk(text="x"))
    received: list[TutorEvent] = []

    async def consumer() -> None:
        async for event in bus.consume():
            received.append(event)
            bus.close()

    await asyncio.wait_for(consumer(), timeout=2)

    assert [e.text for e in received] == ["x"]
    await bus.emit(StreamChunk(text="late"))
    assert bus.qsize() == 0


@pytest.mark.asyncio
async def test_emit_gives_up_when_queue_stays_full() -> None:
    bus = EventBus(maxsize=1, put_timeout=0.01)
    await bus.emit(StreamChunk(text="first"))
    await bus.emit(StreamChunk(text="dropped"))
    assert [e.text for e in bus.drain()] == ["first"]
