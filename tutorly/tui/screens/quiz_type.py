"""Quiz format selection modal.

Shown after the first message in quiz mode, when the engine is holding
the topic and waiting for a quiz type.
"""
from __future__ import annotations

from textual.app import ComposeResult
from textual.containers import Vertical
from textual.screen import ModalScreen
from textual.widgets import Button, Label

from tutorly.engine.models import QUIZ_TYPE_PRESENTATION, QuizType

_TYPE_MAP = {
    "btn-multiple-choice": QuizType.MULTIPLE_CHOICE,
    "btn-extended-response": QuizType.EXTENDED_RESPONSE,
}


class QuizTypeScreen(ModalScreen[QuizType | None]):
    """Modal dialog for choosing the quiz format."""

    BINDINGS = [
        ("escape", "cancel", "Cancel"),
        ("m", "select('btn-multiple-choice')", "Multiple choice"),
        ("e", "select('btn-extended-response')", "Extended response"),
    ]

    CSS = """
    QuizTypeScreen {
        align: center middle;
    }
    QuizTypeScreen > Vertical {
        width: 64;
        height: auto;
        background: $surface;
        border: thick $accent;
        padding: 1 2;
    }
    QuizTypeScreen Label {
        width: 100%;
        text-align: center;
        margin-bottom: 1;
    }
    QuizTypeScreen Button {
        width: 100%;
        margin-bottom: 1;
    }
    """

    def __init__(self, topic: str) -> None:
        super().__init__()
        self.topic = topic

    def compose(self) -> ComposeResult:
        mc = QUIZ_TYPE_PRESENTATION[QuizType.MULTIPLE_CHOICE]
        er = QUIZ_TYPE_PRESENTATION[QuizType.EXTENDED_RESPONSE]
        with Vertical():
            yield Label(f"How should I quiz you on: {self.topic[:80]}")
            yield Button(
                f"\\[m] {mc.icon} {mc.label} - {mc.description}",
                id="btn-multiple-choice",
                variant="primary",
            )
            yield Button(
                f"\\[e] {er.icon} {er.label} - {er.description}",
                id="btn-extended-response",
                variant="primary",
            )
            yield Button("\\[Esc] Not now", id="btn-cancel")

    def on_mount(self) -> None:
        self.query_one("#btn-multiple-choice", Button).focus()

    def on_button_pressed(self, event: Button.Pressed) -> None:
        event.stop()
        self.dismiss(_TYPE_MAP.get(event.button.id or ""))

    def action_select(self, button_id: str) -> None:
        self.dismiss(_TYPE_MAP.get(button_id))

    def action_cancel(self) -> None:
        self.dismiss(None)
