"""Quiz reply parsing, validation and format-correction prompts.

While in quiz mode the model must answer with a single JSON object
describing a question, feedback on an answer, or the final summary.
Models do not always comply, so extraction tries several strategies in
order and takes the first that yields a JSON object:

    1. the whole reply
    2. a fenced block tagged ``json``
    3. any fenced block
    4. the first balanced top-level ``{...}`` span

A decoded object is then checked against the contract for its record
type. Any failure produces a human-readable violation that feeds the
correction prompt sent on retry.
"""
from __future__ import annotations

import json
import logging
import re
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from tutorly.shared.models.quiz import QuizRecord

from .models import QuizType, RecordType
from .prompts import quiz_schema_example

logger = logging.getLogger(__name__)

ECHO_LIMIT = 300

_JSON_FENCE_RE = re.compile(r"```json\s*(.*?)```", re.DOTALL | re.IGNORECASE)
_ANY_FENCE_RE = re.compile(r"```[\w+-]*[ \t]*\n?(.*?)```", re.DOTALL)
_SCORE_RE = re.compile(r"^\s*\d+\s*/\s*\d+\s*$")
_LETTER_RE = re.compile(r"^[A-Za-z]$")


# ── Extraction ──


def _decode_object(text: str) -> dict[str, Any] | None:
    try:
        value = json.loads(text)
    except (ValueError, TypeError):
        return None
    return value if isinstance(value, dict) else None


def _from_whole(text: str) -> dict[str, Any] | None:
    return _decode_object(text.strip())


def _from_json_fence(text: str) -> dict[str, Any] | None:
    for match in _JSON_FENCE_RE.finditer(text):
        obj = _decode_object(match.group(1).strip())
        if obj is not None:
            return obj
    return None


def _from_any_fence(text: str) -> dict[str, Any] | None:
    for match in _ANY_FENCE_RE.finditer(text):
        obj = _decode_object(match.group(1).strip())
        if obj is not None:
            return obj
    return None


def _balanced_spans(text: str):
    """Yield top-level ``{...}`` spans, skipping braces inside JSON strings."""
    depth = 0
    start = -1
    in_string = False
    escaped = False
    for i, ch in enumerate(text):
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"' and depth > 0:
            in_string = True
        elif ch == "{":
            if depth == 0:
                start = i
            depth += 1
        elif ch == "}" and depth > 0:
            depth -= 1
            if depth == 0:
                yield text[start:i + 1]


def _from_brace_span(text: str) -> dict[str, Any] | None:
    for span in _balanced_spans(text):
        obj = _decode_object(span)
        if obj is not None:
            return obj
    return None


EXTRACTION_STRATEGIES: tuple[tuple[str, Callable[[str], dict[str, Any] | None]], ...] = (
    ("whole", _from_whole),
    ("json_fence", _from_json_fence),
    ("any_fence", _from_any_fence),
    ("brace_span", _from_brace_span),
)


def extract_json_object(text: str) -> tuple[dict[str, Any], str] | None:
    """Return the first decodable object and the strategy that found it."""
    for name, strategy in EXTRACTION_STRATEGIES:
        try:
            obj = strategy(text)
        except Exception:
            logger.debug("Extraction strategy %s raised", name, exc_info=True)
            continue
        if obj is not None:
            logger.debug("Quiz reply decoded via %s", name)
            return obj, name
    return None


# ── Validation ──


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _is_text(value: Any) -> bool:
    return isinstance(value, str) and bool(value.strip())


def _is_text_list(value: Any) -> bool:
    return (
        isinstance(value, list)
        and bool(value)
        and all(isinstance(item, str) for item in value)
    )


def _validate_question(data: dict[str, Any], quiz_type: QuizType | None) -> str | None:
    for name in ("number", "total"):
        if not _is_int(data.get(name)):
            return f'question record requires an integer "{name}"'
    if not _is_text(data.get("questionText")):
        return 'question record requires a non-empty "questionText" string'
    question_type = data.get("questionType")
    valid_types = {t.value for t in QuizType}
    if question_type not in valid_types:
        return (
            '"questionType" must be "multiple_choice" or "extended_response"'
        )
    if quiz_type is not None and question_type != quiz_type.value:
        return (
            f'"questionType" must be "{quiz_type.value}" for this quiz '
            f'(got "{question_type}")'
        )

    options = data.get("options")
    answer = data.get("correctAnswer")
    if question_type == QuizType.MULTIPLE_CHOICE.value:
        if not _is_text_list(options):
            return 'multiple_choice questions require a non-empty "options" list of strings'
        if not isinstance(answer, str) or not _LETTER_RE.match(answer.strip()):
            return '"correctAnswer" must be a single letter such as "A"'
        index = ord(answer.strip().upper()) - ord("A")
        if index >= len(options):
            return (
                f'"correctAnswer" "{answer}" does not match any of the '
                f"{len(options)} options"
            )
    else:
        if options is not None or answer is not None:
            return (
                'extended_response questions must not include "options" or '
                '"correctAnswer"'
            )
    return None


def _validate_feedback(data: dict[str, Any]) -> str | None:
    if not isinstance(data.get("isCorrect"), bool):
        return 'feedback record requires a boolean "isCorrect" (true or false)'
    if not isinstance(data.get("explanation"), str):
        return 'feedback record requires an "explanation" string'
    return None


def _validate_complete(data: dict[str, Any]) -> str | None:
    score = data.get("score")
    if not isinstance(score, str) or not _SCORE_RE.match(score):
        return 'quiz_complete record requires "score" formatted like "4/5"'
    percentage = data.get("percentage")
    if not _is_int(percentage) or not 0 <= percentage <= 100:
        return '"percentage" must be an integer from 0 to 100'
    if not _is_text_list(data.get("strengths")):
        return 'quiz_complete record requires a non-empty "strengths" list'
    if not _is_text_list(data.get("weaknesses")):
        return 'quiz_complete record requires a non-empty "weaknesses" list'
    if not isinstance(data.get("improvementPlan"), str):
        return 'quiz_complete record requires an "improvementPlan" string'
    return None


def validate_record(data: dict[str, Any], quiz_type: QuizType | None) -> str | None:
    """Check a decoded object against its record contract.

    Returns a description of the first violated rule, or None when valid.
    Unknown fields are ignored.
    """
    raw_type = data.get("type")
    try:
        record_type = RecordType(raw_type)
    except ValueError:
        return (
            f'"type" must be one of question, feedback, quiz_complete or '
            f"quiz_start (got {raw_type!r})"
        )
    if record_type == RecordType.QUESTION:
        return _validate_question(data, quiz_type)
    if record_type == RecordType.FEEDBACK:
        return _validate_feedback(data)
    if record_type == RecordType.QUIZ_COMPLETE:
        return _validate_complete(data)
    return None


# ── Parse entry point ──


@dataclass
class ParseResult:
    """Outcome of parsing one quiz reply."""
    record: QuizRecord | None = None
    violation: str | None = None
    strategy: str | None = None

    @property
    def ok(self) -> bool:
        return self.record is not None


def parse_quiz_reply(text: str, quiz_type: QuizType | None) -> ParseResult:
    extracted = extract_json_object(text)
    if extracted is None:
        logger.debug("Quiz reply contained no JSON object (%d chars)", len(text))
        return ParseResult(
            violation="the reply was not a single valid JSON object",
        )
    data, strategy = extracted
    violation = validate_record(data, quiz_type)
    if violation is not None:
        logger.debug("Quiz record rejected: %s", violation)
        return ParseResult(violation=violation, strategy=strategy)
    return ParseResult(record=QuizRecord.from_wire(data), strategy=strategy)


# ── Retry escalation ──


@dataclass
class RetryState:
    """Failed-reply bookkeeping for the current quiz exchange."""
    failures: int = 0

    def record_failure(self) -> int:
        self.failures += 1
        return self.failures

    def reset(self) -> None:
        self.failures = 0


_COMMON_MISTAKES: tuple[str, ...] = (
    "Do not wrap the JSON in markdown code fences.",
    "Do not write any text before or after the JSON object.",
    "Use double quotes around every key and every string value.",
    "Include every required field for the record type.",
    "Use true or false for isCorrect and a plain integer for percentage.",
)

_TYPE_MISTAKES: dict[QuizType, str] = {
    QuizType.MULTIPLE_CHOICE: (
        'For questions, "options" is a list of strings and "correctAnswer" '
        'is a single letter such as "B".'
    ),
    QuizType.EXTENDED_RESPONSE: (
        'Extended response questions never include "options" or '
        '"correctAnswer".'
    ),
}


def truncate_reply(reply: str, limit: int = ECHO_LIMIT) -> str:
    reply = reply.strip()
    if len(reply) <= limit:
        return reply
    return reply[:limit] + "..."


def build_correction_prompt(
    attempt: int,
    max_attempts: int,
    quiz_type: QuizType,
    violation: str,
    invalid_reply: str,
) -> str:
    """Hidden instruction asking the model to resend a well-formed record.

    Severity grows with *attempt*: the first correction is a gentle
    reminder, the second echoes the rejected reply, the third and later
    are marked critical, and the last allowed attempt says so.
    """
    is_last = attempt >= max_attempts - 1
    parts: list[str] = []

    if attempt >= 3:
        parts.append(
            f"CRITICAL: FORMAT ERROR (attempt {attempt} of {max_attempts - 1}). "
            "Your reply could not be processed again."
        )
    elif attempt == 2:
        parts.append(
            "Your reply still could not be processed as a quiz record."
        )
    else:
        parts.append(
            "Quick reminder: your last reply could not be read as a quiz record."
        )

    parts.append(f"Problem: {violation}.")

    if attempt >= 2 and invalid_reply.strip():
        parts.append(
            "Your previous reply was:\n---\n"
            f"{truncate_reply(invalid_reply)}\n---"
        )

    reminders = list(_COMMON_MISTAKES[:min(len(_COMMON_MISTAKES), attempt + 1)])
    if attempt >= 2:
        reminders.append(_TYPE_MISTAKES[quiz_type])
    parts.append(
        "Common mistakes to avoid:\n"
        + "\n".join(f"- {item}" for item in reminders)
    )

    parts.append(
        "A valid question record looks like this:\n"
        f"{quiz_schema_example(quiz_type)}\n"
        "Feedback and quiz_complete records follow the schemas in your "
        "instructions."
    )

    if is_last:
        parts.append(
            "This is your LAST CHANCE: reply with ONLY the JSON object for "
            "the record you meant to send."
        )
    else:
        parts.append(
            "Reply again with ONLY the JSON object for the record you meant "
            "to send."
        )
    return "\n\n".join(parts)


QUIZ_FAILED_MESSAGE = (
    "Sorry, I had trouble formatting that quiz step and couldn't recover. "
    "Send another answer or ask for the next question to keep going, or "
    "leave quiz mode with /mode quiz."
)
