"""Textual application class for the Tutorly TUI."""

from __future__ import annotations

from pathlib import Path

from textual.app import App

from tutorly.tui.screens.main import MainScreen


class TutorlyApp(App):
    """Terminal UI for AI-assisted tutoring."""

    TITLE = "Tutorly"
    SUB_TITLE = "New Chat"
    CSS_PATH = Path("styles/app.tcss")
    cli_args = None  # Set by main() before run()
    tutor_config = None  # Resolved TutorlyConfig, set by main() before run()

    BINDINGS = [
        ("ctrl+q", "quit", "Quit"),
        ("f1", "open_help", "Help"),
        ("ctrl+n", "new_session", "New Session"),
        ("ctrl+t", "open_timer", "Timer"),
        ("ctrl+e", "focus_editor", "Input"),
        ("escape", "cancel_stream", "Stop"),
    ]

    def on_mount(self) -> None:
        self.push_screen(MainScreen())

    def _main_screen(self) -> MainScreen | None:
        screen = self.screen
        return screen if isinstance(screen, MainScreen) else None

    def action_focus_editor(self) -> None:
        from tutorly.tui.widgets.input_bar import InputBar

        screen = self._main_screen()
        if screen is not None:
            screen.query_one(InputBar).focus_input()

    def action_new_session(self) -> None:
        screen = self._main_screen()
        if screen is not None:
            screen._run_command("new", [])

    def action_open_timer(self) -> None:
        screen = self._main_screen()
        if screen is not None:
            screen.open_timer_picker()

    def action_cancel_stream(self) -> None:
        screen = self._main_screen()
        if screen is not None and screen.bridge.engine.is_busy:
            screen.cancel_stream()

    def action_open_help(self) -> None:
        from tutorly.tui.screens.help import HelpScreen

        self.push_screen(HelpScreen())

    async def action_quit(self) -> None:
        """Stop in-flight work and release the HTTP session before quitting."""
        for screen in self.screen_stack:
            if isinstance(screen, MainScreen):
                await screen.shutdown()
        await super().action_quit()
