"""Event types emitted by the conversation engine.

Each event corresponds to an engine callback dict, parsed into
a typed dataclass for safe consumption by the TUI.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass
class TutorEvent:
    """Base event from the conversation engine."""
    event_type: str = ""
    session_id: str | None = None


@dataclass
class UserMessageAdded(TutorEvent):
    event_type: str = "user_message"
    message_id: str = ""
    content: str = ""


@dataclass
class StreamStarted(TutorEvent):
    event_type: str = "stream_started"
    message_id: str = ""
    mode: str = ""


@dataclass
class StreamChunk(TutorEvent):
    event_type: str = "stream_chunk"
    message_id: str = ""
    text: str = ""


@dataclass
class StreamFinished(TutorEvent):
    event_type: str = "stream_finished"
    message_id: str = ""
    content: str = ""
    is_quiz: bool = False


@dataclass
class StreamCancelled(TutorEvent):
    event_type: str = "stream_cancelled"
    message_id: str = ""


@dataclass
class ModeChanged(TutorEvent):
    event_type: str = "mode_changed"
    mode: str = ""
    previous_mode: str | None = None
    entity_name: str | None = None


@dataclass
class LensChanged(TutorEvent):
    event_type: str = "lens_changed"
    lens: str | None = None


@dataclass
class QuizTypeRequested(TutorEvent):
    event_type: str = "quiz_type_requested"
    topic: str = ""


@dataclass
class QuizRecordReceived(TutorEvent):
    event_type: str = "quiz_record"
    message_id: str = ""
    record_type: str = ""
    record: dict[str, Any] = field(default_factory=dict)


@dataclass
class QuizRetry(TutorEvent):
    event_type: str = "quiz_retry"
    attempt: int = 0
    max_attempts: int = 0
    violation: str = ""


@dataclass
class QuizFailed(TutorEvent):
    event_type: str = "quiz_failed"
    message_id: str = ""
    attempts: int = 0


@dataclass
class QuizCompleted(TutorEvent):
    event_type: str = "quiz_completed"
    topic: str = ""
    score: str = ""
    percentage: int = 0
    strengths: list[str] = field(default_factory=list)
    weaknesses: list[str] = field(default_factory=list)
    improvement_plan: str = ""


@dataclass
class TitleChanged(TutorEvent):
    event_type: str = "title_changed"
    title: str = ""


@dataclass
class ErrorOccurred(TutorEvent):
    event_type: str = "error"
    kind: str = ""
    message: str = ""
    retryable: bool = True


_EVENT_MAP: dict[str, type[TutorEvent]] = {
    "user_message": UserMessageAdded,
    "stream_started": StreamStarted,
    "stream_chunk": StreamChunk,
    "stream_finished": StreamFinished,
    "stream_cancelled": StreamCancelled,
    "mode_changed": ModeChanged,
    "lens_changed": LensChanged,
    "quiz_type_requested": QuizTypeRequested,
    "quiz_record": QuizRecordReceived,
    "quiz_retry": QuizRetry,
    "quiz_failed": QuizFailed,
    "quiz_completed": QuizCompleted,
    "title_changed": TitleChanged,
    "error": ErrorOccurred,
}


def event_to_dict(event: TutorEvent) -> dict[str, Any]:
    """Convert a typed event dataclass to a plain dict."""
    d: dict[str, Any] = {}
    for f in event.__dataclass_fields__:
        val = getattr(event, f)
        if val is not None:
            d[f] = val
    # Engine callbacks use "event" rather than "event_type".
    if "event_type" in d:
        d["event"] = d.pop("event_type")
    return d


def dict_to_event(data: dict[str, Any]) -> TutorEvent:
    """Convert an engine callback dict to a typed event dataclass."""
    event_type = data.get("event", "")
    cls = _EVENT_MAP.get(event_type, TutorEvent)
    valid_fields = {f.name for f in cls.__dataclass_fields__.values()}
    filtered = {k: v for k, v in data.items() if k in valid_fields}
    if "event" in data and "event_type" not in filtered:
        filtered["event_type"] = data["event"]
    return cls(**filtered)
