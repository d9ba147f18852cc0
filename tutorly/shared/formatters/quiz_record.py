"""Quiz record formatting with per-record-type rendering.

Parsed quiz records are turned into a small intermediate representation
first; ``render_quiz_rich`` converts that into Rich markup for the TUI
and the plain console.

Adding a new record format requires only a single decorated function:

    @record_formatter(RecordType.QUESTION)
    def _format_question(record):
        return FormattedQuizRecord(icon="?", label="Question", sections=[...])
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable

from tutorly.engine.models import RecordType
from tutorly.shared.models.quiz import QuizRecord


def _esc(text: str) -> str:
    """Escape Rich markup characters in dynamic content."""
    return text.replace("[", "\\[")


# ── Intermediate Representation ──


@dataclass
class Section:
    """A typed content section of a rendered quiz card.

    Supported kinds:
        "text"     → content: str
        "options"  → content: list[str]
        "verdict"  → content: bool (True = correct)
        "bullets"  → content: list[str]
        "score"    → content: {"score": str, "percentage": int}
        "hint"     → content: str
    """

    kind: str
    title: str = ""
    content: Any = None


@dataclass
class FormattedQuizRecord:
    icon: str = ""
    label: str = ""
    summary: str = ""
    sections: list[Section] = field(default_factory=list)


_FORMATTERS: dict[RecordType, Callable[[QuizRecord], FormattedQuizRecord]] = {}


def record_formatter(record_type: RecordType):
    """Register a formatter for a record type."""
    def decorator(fn: Callable[[QuizRecord], FormattedQuizRecord]):
        _FORMATTERS[record_type] = fn
        return fn
    return decorator


def format_quiz_record(record: QuizRecord) -> FormattedQuizRecord:
    formatter = _FORMATTERS.get(record.type)
    if formatter is None:
        return FormattedQuizRecord(label=record.type.value, summary=record.as_context_text())
    return formatter(record)


# ── Formatters ──


@record_formatter(RecordType.QUIZ_START)
def _format_start(record: QuizRecord) -> FormattedQuizRecord:
    return FormattedQuizRecord(
        icon="❓",
        label="Quiz",
        summary=record.topic or "",
        sections=[Section("text", content=record.preamble)] if record.preamble else [],
    )


@record_formatter(RecordType.QUESTION)
def _format_question(record: QuizRecord) -> FormattedQuizRecord:
    sections: list[Section] = []
    if record.preamble:
        sections.append(Section("text", content=record.preamble))
    sections.append(Section("text", content=record.question_text or ""))
    if record.options:
        sections.append(Section("options", content=list(record.options)))
    if record.hint:
        sections.append(Section("hint", title="Hint", content=record.hint))
    progress = ""
    if record.number and record.total:
        progress = f"{record.number} of {record.total}"
    return FormattedQuizRecord(
        icon="❓", label="Question", summary=progress, sections=sections,
    )


@record_formatter(RecordType.FEEDBACK)
def _format_feedback(record: QuizRecord) -> FormattedQuizRecord:
    sections = [Section("verdict", content=bool(record.is_correct))]
    if record.explanation:
        sections.append(Section("text", content=record.explanation))
    if record.encouragement:
        sections.append(Section("text", content=record.encouragement))
    return FormattedQuizRecord(icon="✎", label="Feedback", sections=sections)


@record_formatter(RecordType.QUIZ_COMPLETE)
def _format_complete(record: QuizRecord) -> FormattedQuizRecord:
    sections = [
        Section("score", content={
            "score": record.score or "",
            "percentage": record.percentage or 0,
        }),
    ]
    if record.summary:
        sections.append(Section("text", content=record.summary))
    if record.strengths:
        sections.append(Section("bullets", title="Strengths", content=list(record.strengths)))
    if record.weaknesses:
        sections.append(Section("bullets", title="To work on", content=list(record.weaknesses)))
    if record.improvement_plan:
        sections.append(Section("text", title="Next steps", content=record.improvement_plan))
    if record.closing_message:
        sections.append(Section("text", content=record.closing_message))
    return FormattedQuizRecord(icon="🏁", label="Quiz complete", sections=sections)


# ── Rich rendering ──


def _score_style(percentage: int) -> str:
    if percentage >= 80:
        return "bold green"
    if percentage >= 50:
        return "bold yellow"
    return "bold red"


def render_quiz_rich(fmt: FormattedQuizRecord) -> str:
    """Render a formatted record as a Rich markup string."""
    header = [fmt.icon] if fmt.icon else []
    header.append(f"[bold]{_esc(fmt.label)}[/bold]")
    if fmt.summary:
        header.append(f"[dim]{_esc(fmt.summary)}[/dim]")
    lines = ["  ".join(header)]

    for section in fmt.sections:
        if section.kind == "options":
            lines.append("")
            lines.extend(f"  [cyan]{_esc(opt)}[/cyan]" for opt in section.content)
        elif section.kind == "verdict":
            lines.append("")
            lines.append(
                "[bold green]✓ Correct[/bold green]" if section.content
                else "[bold red]✗ Not quite[/bold red]"
            )
        elif section.kind == "bullets":
            lines.append("")
            lines.append(f"[bold]{_esc(section.title)}[/bold]")
            lines.extend(f"  • {_esc(item)}" for item in section.content)
        elif section.kind == "score":
            pct = int(section.content.get("percentage") or 0)
            lines.append("")
            lines.append(
                f"[{_score_style(pct)}]{_esc(section.content.get('score', ''))} "
                f"({pct}%)[/{_score_style(pct)}]"
            )
        elif section.kind == "hint":
            lines.append("")
            lines.append(f"[dim italic]{section.title}: {_esc(section.content)}[/dim italic]")
        else:
            lines.append("")
            if section.title:
                lines.append(f"[bold]{_esc(section.title)}[/bold]")
            lines.append(_esc(section.content or ""))
    return "\n".join(lines)


def render_record(record: QuizRecord) -> str:
    """Shortcut: format and render in one call."""
    return render_quiz_rich(format_quiz_record(record))
