"""Session state: ordered message history plus title and activity dates."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
import uuid

from tutorly.shared.models.message import Message


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


DEFAULT_TITLE = "New Chat"
TITLE_MAX_LENGTH = 50
PREVIEW_MAX_LENGTH = 100


def generate_title(message: str) -> str:
    """Derive a session title from the first user message.

    Uses the first line only. Lines longer than 50 characters are cut at
    the last word boundary inside the limit and suffixed with ``...``.
    """
    cleaned = (message or "").strip()
    if not cleaned:
        return DEFAULT_TITLE
    first_line = cleaned.splitlines()[0].strip()
    if len(first_line) <= TITLE_MAX_LENGTH:
        return first_line
    truncated = first_line[:TITLE_MAX_LENGTH]
    last_space = truncated.rfind(" ")
    if last_space > 0:
        return truncated[:last_space].rstrip() + "..."
    return truncated + "..."


@dataclass
class Session:
    """Holds all conversation state for one chat session."""

    session_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    title: str = DEFAULT_TITLE
    created_at: datetime = field(default_factory=_utcnow)
    last_message_at: datetime = field(default_factory=_utcnow)
    messages: list[Message] = field(default_factory=list)
    # False until the first message is sent and the session hits the store.
    persisted: bool = False

    def add_message(self, message: Message) -> Message:
        self.messages.append(message)
        return message

    def remove_message(self, message_id: str) -> Message | None:
        for index, msg in enumerate(self.messages):
            if msg.id == message_id:
                return self.messages.pop(index)
        return None

    def get_message(self, message_id: str) -> Message | None:
        for msg in self.messages:
            if msg.id == message_id:
                return msg
        return None

    @property
    def visible_messages(self) -> list[Message]:
        return [m for m in self.messages if not m.is_hidden]

    @property
    def user_message_count(self) -> int:
        """Number of real (non-hidden) user messages."""
        return sum(1 for m in self.messages if m.is_visible_user_message)

    def first_user_message(self) -> Message | None:
        for msg in self.messages:
            if msg.is_visible_user_message:
                return msg
        return None

    def update_title(self) -> None:
        first = self.first_user_message()
        if first is not None:
            self.title = generate_title(first.content)

    def touch(self) -> None:
        self.last_message_at = _utcnow()

    @property
    def last_message_preview(self) -> str:
        visible = [m for m in self.visible_messages if m.content.strip()]
        if not visible:
            return "No messages yet"
        preview = visible[-1].content.strip()
        if len(preview) <= PREVIEW_MAX_LENGTH:
            return preview
        return preview[:PREVIEW_MAX_LENGTH] + "..."
