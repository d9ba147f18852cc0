"""Scrollable message area with streaming and quiz cards."""

from __future__ import annotations

from textual.app import ComposeResult
from textual.containers import VerticalScroll
from textual.css.query import NoMatches
from textual.widget import Widget
from textual.widgets import Markdown, Static

from tutorly.engine.models import MODE_PRESENTATION, Mode
from tutorly.shared.formatters.quiz_record import render_record
from tutorly.shared.models.message import Message, MessageRole
from tutorly.shared.models.session import Session


def _esc(text: str) -> str:
    """Escape Rich markup characters in dynamic content."""
    return text.replace("[", "\\[")


class QuizCard(Static):
    """Structured quiz record rendered from a message's quiz payload."""

    DEFAULT_CSS = """
    QuizCard {
        height: auto;
        padding: 1 2;
        border: round $accent;
    }
    """

    def __init__(self, message: Message, **kwargs) -> None:
        assert message.quiz_payload is not None
        self.record = message.quiz_payload
        super().__init__(render_record(self.record), markup=True, **kwargs)


class MessageWidget(Widget):
    """A single rendered message with timestamp and role badge.

    Message bodies use Textual's ``Markdown`` widget; assistant replies
    carrying a quiz payload render as a ``QuizCard`` instead.
    """

    DEFAULT_CSS = """
    MessageWidget {
        height: auto;
    }
    MessageWidget .msg-header {
        height: auto;
    }
    MessageWidget .msg-body {
        height: auto;
        margin: 0;
        padding: 0;
    }
    """

    def __init__(self, message: Message, **kwargs) -> None:
        self.message = message
        css_class = {
            MessageRole.USER: "message-user",
            MessageRole.ASSISTANT: "message-assistant",
        }[message.role]
        super().__init__(classes=css_class, **kwargs)

    def compose(self) -> ComposeResult:
        msg = self.message
        ts = msg.timestamp.astimezone().strftime("%H:%M:%S")
        timestamp_str = f"[dim]{ts}[/dim]"

        if msg.role == MessageRole.USER:
            yield Static(
                f"[bold $primary]You[/bold $primary] {timestamp_str}",
                classes="msg-header",
                markup=True,
            )
            yield Markdown(msg.content, classes="msg-body")
            return

        badge = ""
        if msg.mode != Mode.STANDARD:
            badge = f" [dim]{MODE_PRESENTATION[msg.mode].icon} {MODE_PRESENTATION[msg.mode].label}[/dim]"
        if msg.lens:
            badge += f" [dim]· {_esc(msg.lens)}[/dim]"
        yield Static(
            f"[bold cyan]Tutor[/bold cyan] {timestamp_str}{badge}",
            classes="msg-header",
            markup=True,
        )
        if msg.quiz_payload is not None:
            yield QuizCard(msg, classes="msg-body")
        else:
            yield Markdown(msg.content, classes="msg-body")

    @property
    def body(self) -> Markdown | None:
        try:
            return self.query_one(".msg-body", Markdown)
        except NoMatches:
            return None


class ConversationView(Widget):
    """Scrollable conversation pane for the active session."""

    def __init__(self, session: Session | None = None, welcome: str = "", **kwargs) -> None:
        super().__init__(**kwargs)
        self.session = session or Session()
        self.welcome = welcome
        # message_id → (widget, MarkdownStream) for replies still streaming
        self._streams: dict[str, tuple[MessageWidget, object]] = {}

    def compose(self) -> ComposeResult:
        yield VerticalScroll(id="message-container")

    def on_mount(self) -> None:
        self.rebuild()

    # ── Scroll helpers ──

    def is_near_bottom(self) -> bool:
        """Check if the scroll container is at or near the bottom."""
        container = self._message_container()
        if container is None:
            return False
        if container.max_scroll_y == 0:
            return True
        return container.scroll_y >= container.max_scroll_y - 3

    def _smart_scroll(self) -> None:
        """Scroll to bottom only if already near the bottom."""
        if self.is_near_bottom():
            container = self._message_container()
            if container is None:
                return
            container.scroll_end(animate=False)

    def _message_container(self) -> VerticalScroll | None:
        try:
            return self.query_one("#message-container", VerticalScroll)
        except NoMatches:
            return None

    def _widget_for(self, message_id: str) -> MessageWidget | None:
        container = self._message_container()
        if container is None:
            return None
        for widget in container.query(MessageWidget):
            if widget.message.id == message_id:
                return widget
        return None

    def _remove_welcome(self) -> None:
        container = self._message_container()
        if container is None:
            return
        for widget in container.query(".welcome"):
            widget.remove()

    # ── Rendering ──

    def rebuild(self, session: Session | None = None, welcome: str | None = None) -> None:
        """Re-render every visible message from the session."""
        if session is not None:
            self.session = session
        if welcome is not None:
            self.welcome = welcome
        container = self._message_container()
        if container is None:
            return
        self._streams.clear()
        container.remove_children()
        visible = [
            m for m in self.session.visible_messages
            if not m.streaming and (m.content.strip() or m.quiz_payload is not None)
        ]
        if not visible and self.welcome:
            container.mount(Static(f"[bold]{_esc(self.welcome)}[/bold]", classes="welcome"))
            return
        for msg in visible:
            container.mount(MessageWidget(msg))
        container.scroll_end(animate=False)

    def append_message(self, message: Message) -> None:
        """Render a newly committed message at the bottom."""
        container = self._message_container()
        if container is None or message.is_hidden:
            return
        self._remove_welcome()
        container.mount(MessageWidget(message))
        self._smart_scroll()

    def add_notice(self, markup: str) -> None:
        """Show a transient system line inside the conversation."""
        container = self._message_container()
        if container is None:
            return
        container.mount(Static(markup, classes="message-system", markup=True))
        self._smart_scroll()

    # ── Streaming ──

    async def begin_stream(self, message: Message) -> None:
        """Mount the streaming placeholder and open a Markdown stream on it."""
        container = self._message_container()
        if container is None:
            return
        self._remove_welcome()
        widget = MessageWidget(message)
        await container.mount(widget)
        if self.is_near_bottom():
            container.anchor()
        body = widget.body
        if body is None:
            return
        self._streams[message.id] = (widget, Markdown.get_stream(body))

    async def write_stream(self, message_id: str, text: str) -> None:
        entry = self._streams.get(message_id)
        if entry is not None:
            await entry[1].write(text)

    async def finish_stream(self, message_id: str, replace: bool = False) -> None:
        """Close the stream. With *replace*, re-render from the committed message."""
        entry = self._streams.pop(message_id, None)
        if entry is not None:
            await entry[1].stop()
        widget = entry[0] if entry else self._widget_for(message_id)
        if not replace or widget is None:
            return
        message = self.session.get_message(message_id)
        if message is None:
            await widget.remove()
            return
        container = self._message_container()
        if container is None:
            return
        await container.mount(MessageWidget(message), after=widget)
        await widget.remove()
        self._smart_scroll()

    async def discard_stream(self, message_id: str | None = None) -> None:
        """Drop a cancelled or failed reply. ``None`` drops every open stream."""
        ids = [message_id] if message_id else list(self._streams)
        for mid in ids:
            entry = self._streams.pop(mid, None)
            if entry is not None:
                await entry[1].stop()
            widget = entry[0] if entry else self._widget_for(mid)
            if widget is not None:
                await widget.remove()
