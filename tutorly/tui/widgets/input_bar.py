"""Prompt input with submit handling, history and quick actions."""

from __future__ import annotations

from textual import events
from textual.app import ComposeResult
from textual.containers import Horizontal
from textual.message import Message
from textual.widget import Widget
from textual.widgets import Button, TextArea

from tutorly.shared.commands import parse_command


class PromptInput(TextArea):
    """TextArea that fires SubmitRequested on Enter (Shift+Enter for newlines)."""

    class SubmitRequested(Message):
        """Fired when bare Enter is pressed."""

    async def _on_key(self, event: events.Key) -> None:
        if event.key == "enter":
            event.stop()
            event.prevent_default()
            self.post_message(self.SubmitRequested())
            return
        if event.key == "shift+enter":
            event.stop()
            event.prevent_default()
            self._replace_via_keyboard("\n", *self.selection)
            return
        await super()._on_key(event)


class InputBar(Widget):
    """Prompt input area with send and "I'm stuck" buttons plus Up/Down history."""

    class Submitted(Message):
        """Posted when user submits a prompt."""

        def __init__(self, text: str) -> None:
            self.text = text
            super().__init__()

    class CommandSubmitted(Message):
        """Posted when user submits a slash command."""

        def __init__(self, name: str, args: list[str], raw: str) -> None:
            self.name = name
            self.args = args
            self.raw = raw
            super().__init__()

    class StuckRequested(Message):
        """Posted when user clicks the "I'm stuck" button."""

    DEFAULT_CSS = """
    InputBar {
        height: auto;
    }
    InputBar #prompt-input {
        height: 3;
        width: 1fr;
    }
    InputBar #stuck-btn {
        min-width: 10;
        margin: 0 1 0 0;
    }
    """

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self._history: list[str] = []
        self._history_index: int = -1
        self._draft: str = ""

    def compose(self) -> ComposeResult:
        with Horizontal():
            yield Button("I'm stuck", id="stuck-btn", variant="warning")
            yield PromptInput(id="prompt-input")
            yield Button("Send", id="send-btn", variant="primary")

    def on_button_pressed(self, event: Button.Pressed) -> None:
        if event.button.id == "send-btn":
            self._submit()
        elif event.button.id == "stuck-btn":
            self.post_message(self.StuckRequested())

    def on_prompt_input_submit_requested(self) -> None:
        self._submit()

    def on_key(self, event) -> None:
        editor = self.query_one("#prompt-input", PromptInput)
        if not editor.has_focus:
            return
        if event.key == "up":
            if self._history and editor.cursor_location[0] == 0:
                event.prevent_default()
                event.stop()
                self._navigate_history(-1)
        elif event.key == "down":
            if self._history_index >= 0:
                event.prevent_default()
                event.stop()
                self._navigate_history(1)

    def _submit(self) -> None:
        editor = self.query_one("#prompt-input", PromptInput)
        text = editor.text.strip()
        if not text:
            return

        self._history.append(text)
        self._history_index = -1
        self._draft = ""

        cmd = parse_command(text)
        if cmd is not None:
            self.post_message(self.CommandSubmitted(
                name=cmd.name, args=cmd.args, raw=cmd.raw,
            ))
        else:
            self.post_message(self.Submitted(text))

        editor.clear()
        editor.focus()

    def _navigate_history(self, direction: int) -> None:
        """Navigate prompt history. direction: -1=older, 1=newer."""
        editor = self.query_one("#prompt-input", PromptInput)

        if self._history_index == -1 and direction == -1:
            self._draft = editor.text
            self._history_index = len(self._history) - 1
        elif direction == -1 and self._history_index > 0:
            self._history_index -= 1
        elif direction == 1:
            if self._history_index < len(self._history) - 1:
                self._history_index += 1
            else:
                self._history_index = -1
                editor.clear()
                editor.insert(self._draft)
                return

        if 0 <= self._history_index < len(self._history):
            editor.clear()
            editor.insert(self._history[self._history_index])

    def set_stuck_enabled(self, enabled: bool) -> None:
        self.query_one("#stuck-btn", Button).disabled = not enabled

    def set_placeholder(self, text: str) -> None:
        """Update the prompt input placeholder text."""
        self.query_one("#prompt-input", PromptInput).placeholder = text

    def focus_input(self) -> None:
        self.query_one("#prompt-input", PromptInput).focus()
