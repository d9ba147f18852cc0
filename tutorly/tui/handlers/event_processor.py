"""Event processor extracted from MainScreen.

Consumes engine events from the EventBus and updates the TUI:
conversation view, streaming state, status bar and quiz prompts.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from tutorly.adapters.events import (
    ErrorOccurred,
    LensChanged,
    ModeChanged,
    QuizCompleted,
    QuizFailed,
    QuizRecordReceived,
    QuizRetry,
    QuizTypeRequested,
    StreamCancelled,
    StreamChunk,
    StreamFinished,
    StreamStarted,
    TitleChanged,
    TutorEvent,
    UserMessageAdded,
)
from tutorly.engine.models import ErrorKind, Mode

if TYPE_CHECKING:
    from tutorly.tui.screens.main import MainScreen
    from tutorly.tui.widgets.conversation import ConversationView

logger = logging.getLogger(__name__)


def _esc(text: str) -> str:
    return text.replace("[", "\\[")


class EventProcessor:
    """Processes engine events on behalf of *MainScreen*.

    Owns the event-consumption loop and the set of replies that are
    being generated in quiz mode. Quiz replies are structured JSON, so
    their chunks are not streamed to the screen; the finished record
    is rendered as a quiz card instead.
    """

    def __init__(self, screen: MainScreen) -> None:
        self._screen = screen
        self._quiz_replies: set[str] = set()

    @property
    def _conv(self) -> ConversationView:
        from tutorly.tui.widgets.conversation import ConversationView

        return self._screen.query_one("#conversation", ConversationView)

    # ── Main event loop ─────────────────────────────────────────────

    async def consume_events(self) -> None:
        """Consume engine events until the bus is closed."""
        s = self._screen
        async for event in s.bridge.event_bus.consume():
            try:
                await self.handle_event(event)
            except Exception:
                logger.exception("Failed to process %s event", event.event_type)

    async def handle_event(self, event: TutorEvent) -> None:
        s = self._screen
        engine = s.bridge.engine
        if event.session_id and event.session_id != engine.session.session_id:
            logger.debug("Skipping %s for inactive session", event.event_type)
            return

        conv = self._conv
        if isinstance(event, StreamChunk):
            if event.message_id not in self._quiz_replies:
                await conv.write_stream(event.message_id, event.text)
        elif isinstance(event, UserMessageAdded):
            msg = engine.session.get_message(event.message_id)
            if msg is not None:
                conv.append_message(msg)
        elif isinstance(event, StreamStarted):
            await self._handle_stream_started(event, conv)
        elif isinstance(event, StreamFinished):
            await self._handle_stream_finished(event, conv)
        elif isinstance(event, StreamCancelled):
            self._quiz_replies.discard(event.message_id)
            await conv.discard_stream(event.message_id)
            conv.add_notice("[dim]Response stopped[/dim]")
            s.set_request_status("ready")
        elif isinstance(event, (ModeChanged, LensChanged)):
            s.refresh_status()
        elif isinstance(event, QuizTypeRequested):
            s.prompt_quiz_type(event.topic)
        elif isinstance(event, QuizRecordReceived):
            logger.debug("Quiz record %s for %s", event.record_type, event.message_id[:8])
        elif isinstance(event, QuizRetry):
            await self._drop_quiz_replies(conv)
            conv.add_notice(
                f"[dim]Reformatting quiz reply (attempt {event.attempt} "
                f"of {event.max_attempts})...[/dim]"
            )
        elif isinstance(event, QuizFailed):
            await self._drop_quiz_replies(conv)
            msg = engine.session.get_message(event.message_id)
            if msg is not None:
                conv.append_message(msg)
        elif isinstance(event, QuizCompleted):
            s.notify(
                f"Quiz complete: {event.score} ({event.percentage}%)",
                title=event.topic[:40],
            )
        elif isinstance(event, TitleChanged):
            s.app.sub_title = event.title
        elif isinstance(event, ErrorOccurred):
            await self._handle_error(event, conv)

    # ── Individual handlers ─────────────────────────────────────────

    async def _handle_stream_started(self, event: StreamStarted, conv) -> None:
        s = self._screen
        s.set_request_status("streaming")
        if event.mode == Mode.QUIZ.value:
            self._quiz_replies.add(event.message_id)
            return
        msg = s.bridge.engine.session.get_message(event.message_id)
        if msg is not None:
            await conv.begin_stream(msg)

    async def _handle_stream_finished(self, event: StreamFinished, conv) -> None:
        s = self._screen
        if event.message_id in self._quiz_replies:
            self._quiz_replies.discard(event.message_id)
            msg = s.bridge.engine.session.get_message(event.message_id)
            if msg is not None:
                conv.append_message(msg)
        else:
            await conv.finish_stream(event.message_id)
        s.set_request_status("ready")
        s.refresh_status()

    async def _handle_error(self, event: ErrorOccurred, conv) -> None:
        s = self._screen
        if event.kind != ErrorKind.QUIZ_FORMAT.value:
            self._quiz_replies.clear()
            await conv.discard_stream()
        suffix = " [dim](try again)[/dim]" if event.retryable else ""
        conv.add_notice(f"[red]{_esc(event.message)}[/red]{suffix}")
        s.set_request_status("error")

    async def _drop_quiz_replies(self, conv) -> None:
        for message_id in list(self._quiz_replies):
            await conv.discard_stream(message_id)
        self._quiz_replies.clear()
