"""Slash command parser and help table."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class ParsedCommand:
    """A parsed slash command."""

    name: str
    args: list[str]
    raw: str

    @property
    def rest(self) -> str:
        """Everything after the command name, with original spacing collapsed."""
        return " ".join(self.args)


def parse_command(text: str) -> ParsedCommand | None:
    """Parse a /command from input text.

    Returns None if text does not start with '/'.
    """
    stripped = text.strip()
    if not stripped.startswith("/") or stripped == "/":
        return None
    parts = stripped.split()
    name = parts[0][1:].lower()  # remove leading '/'
    args = parts[1:] if len(parts) > 1 else []
    return ParsedCommand(name=name, args=args, raw=stripped)


COMMAND_HELP: dict[str, str] = {
    "mode": "/mode standard|writing|debate|quiz|mimic [CHARACTER] — switch mode (repeat to toggle off)",
    "lens": "/lens [NAME|none] — apply a thematic lens, or list lenses",
    "quiz": "/quiz mc|extended — choose the quiz format for the pending topic",
    "next": "Ask for the next quiz question",
    "timer": "/timer MINUTES|pause|resume|stop — pace the session (5-120 minutes)",
    "stuck": "Tell the tutor you're stuck and get a fresh explanation",
    "cancel": "Stop the response that is streaming",
    "new": "Start a fresh session",
    "sessions": "List saved sessions",
    "session": "/session SESSION_ID — load a saved session",
    "delete": "/delete SESSION_ID — delete a saved session",
    "help": "Show this help message",
}
