"""Core data models for the conversation engine.

Behavioral enums and small value types. Presentation metadata (labels,
icons, descriptions) lives in separate lookup tables keyed by the same
enums so control flow never depends on UI strings.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class Mode(str, Enum):
    """Pedagogical mode governing the conversation. Exactly one is active."""
    STANDARD = "standard"
    WRITING = "writing"
    DEBATE = "debate"
    MIMIC = "mimic"
    QUIZ = "quiz"


class QuizType(str, Enum):
    MULTIPLE_CHOICE = "multiple_choice"
    EXTENDED_RESPONSE = "extended_response"


class RecordType(str, Enum):
    """Structured record kinds emitted by the model while in quiz mode."""
    QUIZ_START = "quiz_start"
    QUESTION = "question"
    FEEDBACK = "feedback"
    QUIZ_COMPLETE = "quiz_complete"


class SendOutcome(str, Enum):
    """Result of a send-like engine operation."""
    COMPLETED = "completed"
    IGNORED = "ignored"
    AWAITING_QUIZ_TYPE = "awaiting_quiz_type"
    CANCELLED = "cancelled"
    FAILED = "failed"
    QUIZ_FORMAT_FAILED = "quiz_format_failed"


class ErrorKind(str, Enum):
    """Classification of failures surfaced to the user."""
    TRANSPORT = "transport"
    AUTHENTICATION = "authentication"
    RATE_LIMIT = "rate_limit"
    SERVICE = "service"
    QUIZ_FORMAT = "quiz_format"


@dataclass(frozen=True)
class Lens:
    """Thematic overlay applied to tutoring responses."""
    name: str
    description: str = ""

    @property
    def is_none(self) -> bool:
        return self.name.strip().lower() == "none"


NO_LENS = Lens(name="None", description="No thematic lens")

DEFAULT_LENSES: tuple[Lens, ...] = (
    Lens("Star Wars", "Learn through Star Wars analogies"),
    Lens("Minecraft", "Learn through Minecraft building and crafting"),
    Lens("Pokemon", "Learn through Pokemon battles and training"),
    Lens("Marvel Avengers", "Learn through Marvel superheroes and powers"),
    NO_LENS,
)


def normalize_lens(lens: Lens | None) -> Lens | None:
    """Collapse the "None" catalogue entry to a real ``None``."""
    if lens is None or lens.is_none:
        return None
    return lens


def parse_mode(value: str | None) -> Mode:
    """Parse a mode name or label, defaulting to standard."""
    if not value:
        return Mode.STANDARD
    key = value.strip().lower()
    for mode in Mode:
        if key in (mode.value, MODE_PRESENTATION[mode].label.lower()):
            return mode
    raise ValueError(f"Unknown mode: {value!r}")


def parse_quiz_type(value: str | None) -> QuizType | None:
    if not value:
        return None
    key = value.strip().lower().replace("-", "_").replace(" ", "_")
    aliases = {
        "mc": QuizType.MULTIPLE_CHOICE,
        "multiple_choice": QuizType.MULTIPLE_CHOICE,
        "extended": QuizType.EXTENDED_RESPONSE,
        "extended_response": QuizType.EXTENDED_RESPONSE,
    }
    return aliases.get(key)


@dataclass(frozen=True)
class Presentation:
    label: str
    icon: str
    description: str


MODE_PRESENTATION: dict[Mode, Presentation] = {
    Mode.STANDARD: Presentation("Standard", "💬", "Regular tutoring and Q&A"),
    Mode.WRITING: Presentation("Writing", "✍", "Guided writing without ghost-writing"),
    Mode.DEBATE: Presentation("Debate Me", "⚖", "Engage in constructive debate"),
    Mode.MIMIC: Presentation("Mimic", "🎭", "Chat with a custom character"),
    Mode.QUIZ: Presentation("Quiz Me", "❓", "Test your knowledge with questions"),
}

QUIZ_TYPE_PRESENTATION: dict[QuizType, Presentation] = {
    QuizType.MULTIPLE_CHOICE: Presentation(
        "Multiple Choice", "☰", "Quick questions with 4 options",
    ),
    QuizType.EXTENDED_RESPONSE: Presentation(
        "Extended Response", "¶", "Write detailed answers to test deep understanding",
    ),
}
