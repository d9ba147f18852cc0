"""Chat message model."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
import uuid

from tutorly.engine.models import Mode
from tutorly.shared.models.quiz import QuizRecord


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _gen_id() -> str:
    return str(uuid.uuid4())


class MessageRole(Enum):
    USER = "user"
    ASSISTANT = "assistant"


@dataclass
class Message:
    role: MessageRole
    content: str
    mode: Mode = Mode.STANDARD
    lens: str | None = None
    # Parsed quiz record; when set the visible content is cleared and the
    # UI renders from this payload instead.
    quiz_payload: QuizRecord | None = None
    # Hidden messages are sent to the completion service but never rendered.
    is_hidden: bool = False
    id: str = field(default_factory=_gen_id)
    timestamp: datetime = field(default_factory=_utcnow)
    streaming: bool = False

    @property
    def is_visible_user_message(self) -> bool:
        return self.role == MessageRole.USER and not self.is_hidden

    def context_text(self) -> str:
        """Text sent to the completion service for this turn."""
        if not self.content.strip() and self.quiz_payload is not None:
            return self.quiz_payload.as_context_text()
        return self.content
