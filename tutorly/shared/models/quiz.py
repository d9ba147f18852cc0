"""Quiz state models: session, questions and parsed quiz records."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any
import uuid

from tutorly.engine.models import QuizType, RecordType


# Wire name → attribute name for every field a quiz record may carry.
_WIRE_FIELDS: dict[str, str] = {
    "topic": "topic",
    "number": "number",
    "total": "total",
    "preamble": "preamble",
    "questionText": "question_text",
    "hint": "hint",
    "questionType": "question_type",
    "options": "options",
    "correctAnswer": "correct_answer",
    "isCorrect": "is_correct",
    "userAnswer": "user_answer",
    "explanation": "explanation",
    "encouragement": "encouragement",
    "score": "score",
    "percentage": "percentage",
    "summary": "summary",
    "strengths": "strengths",
    "weaknesses": "weaknesses",
    "improvementPlan": "improvement_plan",
    "closingMessage": "closing_message",
}


@dataclass
class QuizRecord:
    """One structured reply from the model while in quiz mode.

    Only the fields relevant to ``type`` are populated; validation of
    required fields happens in the quiz protocol handler.
    """
    type: RecordType
    topic: str | None = None
    number: int | None = None
    total: int | None = None
    preamble: str | None = None
    question_text: str | None = None
    hint: str | None = None
    question_type: str | None = None
    options: list[str] | None = None
    correct_answer: str | None = None
    is_correct: bool | None = None
    user_answer: str | None = None
    explanation: str | None = None
    encouragement: str | None = None
    score: str | None = None
    percentage: int | None = None
    summary: str | None = None
    strengths: list[str] | None = None
    weaknesses: list[str] | None = None
    improvement_plan: str | None = None
    closing_message: str | None = None

    @classmethod
    def from_wire(cls, data: dict[str, Any]) -> QuizRecord:
        """Build a record from a decoded JSON object. Unknown keys are ignored."""
        kwargs: dict[str, Any] = {"type": RecordType(data["type"])}
        for wire_name, attr in _WIRE_FIELDS.items():
            if wire_name in data and data[wire_name] is not None:
                kwargs[attr] = data[wire_name]
        return cls(**kwargs)

    def to_wire(self) -> dict[str, Any]:
        d: dict[str, Any] = {"type": self.type.value}
        for wire_name, attr in _WIRE_FIELDS.items():
            value = getattr(self, attr)
            if value is not None:
                d[wire_name] = value
        return d

    def as_context_text(self) -> str:
        """Readable rendering used when a cleared quiz reply is sent back as context."""
        if self.type == RecordType.QUESTION:
            parts = [p for p in (self.preamble, self.question_text) if p]
            text = "\n\n".join(parts)
            if self.options:
                text += "\n" + "\n".join(self.options)
            if self.hint:
                text += f"\n\nHint: {self.hint}"
            return text or "[Quiz Question]"
        if self.type == RecordType.FEEDBACK:
            text = self.explanation or "[Quiz Feedback]"
            if self.encouragement:
                text += f"\n\n{self.encouragement}"
            return text
        if self.type == RecordType.QUIZ_COMPLETE:
            text = self.summary or "[Quiz Complete]"
            if self.closing_message:
                text += f"\n\n{self.closing_message}"
            return text
        if self.topic:
            return f"Starting quiz on: {self.topic}"
        return "[Quiz Started]"


@dataclass
class QuizQuestion:
    number: int
    total: int
    text: str
    question_type: QuizType
    options: list[str] | None = None
    correct_answer: str | None = None
    preamble: str | None = None
    hint: str | None = None
    user_answer: str | None = None
    is_correct: bool | None = None
    feedback: str | None = None
    id: str = field(default_factory=lambda: str(uuid.uuid4()))

    @classmethod
    def from_record(cls, record: QuizRecord, quiz_type: QuizType) -> QuizQuestion:
        return cls(
            number=int(record.number or 0),
            total=int(record.total or 0),
            text=record.question_text or "",
            question_type=quiz_type,
            options=list(record.options) if record.options else None,
            correct_answer=record.correct_answer,
            preamble=record.preamble,
            hint=record.hint,
        )


@dataclass
class QuizSession:
    """Live quiz state. Exists only while the engine is in quiz mode."""

    topic: str
    quiz_type: QuizType
    questions: list[QuizQuestion] = field(default_factory=list)
    current_question_index: int = 0
    is_complete: bool = False
    score: str | None = None
    percentage: int | None = None
    strengths: list[str] = field(default_factory=list)
    weaknesses: list[str] = field(default_factory=list)
    improvement_plan: str | None = None
    summary: str | None = None
    closing_message: str | None = None

    @property
    def current_question(self) -> QuizQuestion | None:
        if self.current_question_index < len(self.questions):
            return self.questions[self.current_question_index]
        return None

    @property
    def is_awaiting_answer(self) -> bool:
        current = self.current_question
        return current is not None and current.user_answer is None

    def add_question(self, question: QuizQuestion) -> None:
        self.questions.append(question)
        # A question arriving after the index ran past the list becomes current.
        if self.current_question_index > len(self.questions) - 1:
            self.current_question_index = len(self.questions) - 1

    def record_answer(self, answer: str) -> None:
        current = self.current_question
        if current is not None:
            current.user_answer = answer

    def record_feedback(
        self,
        is_correct: bool,
        feedback: str,
        user_answer: str | None = None,
    ) -> None:
        current = self.current_question
        if current is None:
            return
        current.is_correct = is_correct
        current.feedback = feedback
        if current.user_answer is None and user_answer is not None:
            current.user_answer = user_answer

    def move_to_next_question(self) -> None:
        self.current_question_index += 1

    def complete(self, record: QuizRecord) -> None:
        self.score = record.score
        self.percentage = record.percentage
        self.strengths = list(record.strengths or [])
        self.weaknesses = list(record.weaknesses or [])
        self.improvement_plan = record.improvement_plan
        self.summary = record.summary
        self.closing_message = record.closing_message
        self.is_complete = True
