"""Help modal showing slash commands and key mappings."""

from __future__ import annotations

from textual.app import ComposeResult
from textual.containers import Vertical
from textual.screen import ModalScreen
from textual.widgets import Button, Static

from tutorly.shared.commands import COMMAND_HELP


class HelpScreen(ModalScreen[None]):
    """Display usage instructions and keyboard shortcuts."""

    BINDINGS = [
        ("escape", "close", "Close"),
        ("f1", "close", "Close"),
    ]

    CSS = """
    HelpScreen {
        align: center middle;
    }
    #help-dialog {
        width: 80;
        height: auto;
        max-height: 90%;
        background: $surface;
        border: thick $accent;
        padding: 1 2;
    }
    #help-body {
        margin: 1 0;
    }
    """

    def compose(self) -> ComposeResult:
        commands = "\n".join(
            f"- `/{name}`: {desc.replace('[', '(').replace(']', ')')}"
            for name, desc in COMMAND_HELP.items()
        )
        with Vertical(id="help-dialog"):
            yield Static(
                "[bold $primary]Tutorly Help[/bold $primary]",
                id="help-title",
                markup=True,
            )
            yield Static(
                "[bold]Keyboard shortcuts[/bold]\n"
                "- `F1`: open help\n"
                "- `Ctrl+N`: new session\n"
                "- `Ctrl+T`: set a session timer\n"
                "- `Ctrl+E`: focus prompt input\n"
                "- `Ctrl+Q`: quit\n"
                "- `Esc`: stop the streaming reply\n\n"
                "[bold]Slash commands[/bold]\n"
                f"{commands}\n\n"
                "[bold]Prompt tips[/bold]\n"
                "- Press `Enter` to send, `Shift+Enter` for newline\n"
                "- `I'm stuck` resets to plain tutoring with a fresh explanation",
                id="help-body",
                markup=True,
            )
            yield Button("Close", id="help-close", variant="primary")

    def on_button_pressed(self, event: Button.Pressed) -> None:
        if event.button.id == "help-close":
            self.dismiss(None)

    def action_close(self) -> None:
        self.dismiss(None)
