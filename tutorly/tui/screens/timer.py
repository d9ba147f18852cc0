"""Session duration picker modal."""
from __future__ import annotations

from textual.app import ComposeResult
from textual.containers import Grid, Vertical
from textual.screen import ModalScreen
from textual.widgets import Button, Label

from tutorly.engine.pacing import PRESET_DURATIONS_MINUTES, format_duration


class TimerScreen(ModalScreen[int | None]):
    """Pick a preset session length. Dismisses with minutes or None."""

    BINDINGS = [("escape", "cancel", "Cancel")]

    CSS = """
    TimerScreen {
        align: center middle;
    }
    TimerScreen > Vertical {
        width: 50;
        height: auto;
        background: $surface;
        border: thick $accent;
        padding: 1 2;
    }
    TimerScreen Label {
        width: 100%;
        text-align: center;
        margin-bottom: 1;
    }
    TimerScreen Grid {
        grid-size: 3;
        grid-gutter: 1;
        height: auto;
    }
    TimerScreen Button {
        width: 100%;
    }
    """

    def compose(self) -> ComposeResult:
        with Vertical():
            yield Label("How long is this study session?")
            with Grid():
                for minutes in PRESET_DURATIONS_MINUTES:
                    yield Button(
                        format_duration(minutes * 60),
                        id=f"preset-{minutes}",
                        variant="primary",
                    )
            yield Button("Cancel", id="btn-cancel")

    def on_button_pressed(self, event: Button.Pressed) -> None:
        event.stop()
        button_id = event.button.id or ""
        if button_id.startswith("preset-"):
            self.dismiss(int(button_id.removeprefix("preset-")))
        else:
            self.dismiss(None)

    def action_cancel(self) -> None:
        self.dismiss(None)
