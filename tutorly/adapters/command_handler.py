"""Slash-command handler shared by the TUI and the plain console.

Dispatches /commands and free text to the conversation engine and
reports results through a ``write`` callable that accepts Rich markup,
so each frontend decides where the notices end up.
"""

from __future__ import annotations

import logging
from collections.abc import Callable

from tutorly.engine.engine import ConversationEngine
from tutorly.engine.errors import TutorError
from tutorly.engine.models import (
    MODE_PRESENTATION,
    QUIZ_TYPE_PRESENTATION,
    Mode,
    QuizType,
    SendOutcome,
    parse_mode,
    parse_quiz_type,
)
from tutorly.engine.pacing import MAX_DURATION_MINUTES, MIN_DURATION_MINUTES
from tutorly.shared.commands import COMMAND_HELP, parse_command

logger = logging.getLogger(__name__)

Writer = Callable[[str], None]


def _esc(text: str) -> str:
    return text.replace("[", "\\[")


QUIZ_TYPE_HINT = (
    "[bold]Choose a quiz format:[/bold] "
    + "  ".join(
        f"[cyan]/quiz {alias}[/cyan] ({QUIZ_TYPE_PRESENTATION[qt].label})"
        for alias, qt in (("mc", QuizType.MULTIPLE_CHOICE), ("extended", QuizType.EXTENDED_RESPONSE))
    )
)


class CommandHandler:
    """Processes user input on behalf of a frontend.

    ``on_session_changed`` is called after the active session is
    replaced (``/new``, ``/session``, ``/delete`` of the open session)
    so the frontend can re-render.
    """

    def __init__(
        self,
        engine: ConversationEngine,
        write: Writer,
        on_session_changed: Callable[[], None] | None = None,
    ) -> None:
        self._engine = engine
        self._write = write
        self._on_session_changed = on_session_changed

    # ── public entry points ──────────────────────────────────────────

    async def handle_input(self, text: str) -> SendOutcome | None:
        """Route raw input: slash commands are dispatched, anything else is sent."""
        cmd = parse_command(text)
        if cmd is not None:
            await self.handle_command(cmd.name, cmd.args)
            return None
        return await self.send_text(text)

    async def send_text(self, text: str) -> SendOutcome | None:
        try:
            outcome = await self._engine.send_message(text)
        except TutorError as exc:
            self._error(exc)
            return None
        if outcome == SendOutcome.AWAITING_QUIZ_TYPE:
            self._write(QUIZ_TYPE_HINT)
        return outcome

    async def handle_command(self, name: str, args: list[str]) -> bool:
        """Dispatch a slash command. Returns True if handled."""
        name = name.lower()
        dispatch = {
            "help": lambda: self._cmd_help(),
            "mode": lambda: self._cmd_mode(args),
            "lens": lambda: self._cmd_lens(args),
            "quiz": lambda: self._cmd_quiz(args),
            "next": lambda: self._cmd_next(),
            "timer": lambda: self._cmd_timer(args),
            "stuck": lambda: self._cmd_stuck(),
            "cancel": lambda: self._cmd_cancel(),
            "new": lambda: self._cmd_new(),
            "sessions": lambda: self._cmd_sessions(),
            "session": lambda: self._cmd_session(args),
            "delete": lambda: self._cmd_delete(args),
        }
        handler = dispatch.get(name)
        if handler is None:
            self._write(
                f"[red]Unknown command:[/red] /{_esc(name)}. "
                "Type /help for available commands."
            )
            return False
        try:
            await handler()
        except TutorError as exc:
            self._error(exc)
        return True

    # ── helpers ──────────────────────────────────────────────────────

    def _error(self, exc: Exception) -> None:
        logger.debug("Command failed: %s", exc)
        self._write(f"[red]{_esc(str(exc))}[/red]")

    def _session_changed(self) -> None:
        if self._on_session_changed is not None:
            self._on_session_changed()

    def _resolve_session_id(self, prefix: str) -> str | None:
        """Match a full session ID or a unique prefix of one."""
        matches = [
            s.session_id for s in self._engine.list_sessions()
            if s.session_id.startswith(prefix)
        ]
        if len(matches) == 1:
            return matches[0]
        if len(matches) > 1:
            self._write(f"[yellow]Ambiguous session prefix[/yellow] '{_esc(prefix)}'")
        return None

    # ── individual commands ─────────────────────────────────────────

    async def _cmd_help(self) -> None:
        self._write("[bold]Available commands:[/bold]")
        for cmd, desc in COMMAND_HELP.items():
            self._write(f"  [cyan]/{cmd}[/cyan] -- {_esc(desc)}")

    async def _cmd_mode(self, args: list[str]) -> None:
        if not args:
            current = self._engine.mode
            self._write(f"Mode: [bold]{MODE_PRESENTATION[current].label}[/bold]")
            for mode in Mode:
                p = MODE_PRESENTATION[mode]
                self._write(f"  {p.icon} [cyan]{mode.value}[/cyan] -- {p.description}")
            return
        try:
            mode = parse_mode(args[0])
        except ValueError as exc:
            self._error(exc)
            return
        entity = " ".join(args[1:]).strip() or None
        if mode == Mode.MIMIC and mode != self._engine.mode and entity is None:
            self._write("[red]Usage:[/red] /mode mimic CHARACTER")
            return
        result = await self._engine.switch_mode(mode, entity)
        label = MODE_PRESENTATION[result].label
        if result == Mode.MIMIC and self._engine.entity_name:
            label += f" ({_esc(self._engine.entity_name)})"
        self._write(f"[green]Mode:[/green] {label}")
        if result == Mode.QUIZ:
            self._write("[dim]Send a topic to be quizzed on.[/dim]")

    async def _cmd_lens(self, args: list[str]) -> None:
        if not args:
            active = self._engine.lens
            for lens in self._engine.lenses:
                marker = "●" if (
                    (active is None and lens.is_none)
                    or (active is not None and active.name == lens.name)
                ) else " "
                self._write(f"  {marker} [cyan]{_esc(lens.name)}[/cyan] -- {_esc(lens.description)}")
            return
        name = " ".join(args)
        lens = self._engine.find_lens(name)
        if lens is None:
            self._write(f"[red]Unknown lens:[/red] {_esc(name)}")
            return
        applied = await self._engine.apply_lens(lens)
        if applied is None:
            self._write("[green]Lens cleared[/green]")
        else:
            self._write(f"[green]Lens:[/green] {_esc(applied.name)}")

    async def _cmd_quiz(self, args: list[str]) -> None:
        quiz_type = parse_quiz_type(" ".join(args)) if args else None
        if quiz_type is None:
            self._write(QUIZ_TYPE_HINT)
            return
        await self._engine.select_quiz_type(quiz_type)

    async def _cmd_next(self) -> None:
        await self._engine.request_next_question()

    async def _cmd_timer(self, args: list[str]) -> None:
        timer = self._engine.timer
        if not args:
            if not timer.is_started:
                self._write("[dim]No session timer running[/dim]")
                return
            state = "paused" if timer.is_paused else ("expired" if timer.has_expired else "running")
            self._write(
                f"Timer {state}: {timer.elapsed_text} elapsed, "
                f"{timer.remaining_text} left of {timer.duration_text}"
            )
            return
        action = args[0].lower()
        if action == "pause":
            self._engine.pause_timer()
            self._write("[yellow]Timer paused[/yellow]")
        elif action == "resume":
            self._engine.resume_timer()
            self._write("[green]Timer resumed[/green]")
        elif action == "stop":
            self._engine.stop_timer()
            self._write("[dim]Timer stopped[/dim]")
        else:
            try:
                minutes = int(action)
            except ValueError:
                self._write(
                    f"[red]Usage:[/red] /timer MINUTES ({MIN_DURATION_MINUTES}-"
                    f"{MAX_DURATION_MINUTES})|pause|resume|stop"
                )
                return
            self._engine.start_timer(minutes)
            self._write(f"[green]Timer started:[/green] {timer.duration_text}")

    async def _cmd_stuck(self) -> None:
        await self._engine.trigger_frustration()

    async def _cmd_cancel(self) -> None:
        if not self._engine.cancel():
            self._write("[dim]Nothing to cancel[/dim]")

    async def _cmd_new(self) -> None:
        self._engine.new_session()
        self._session_changed()
        self._write("[green]New session started[/green]")

    async def _cmd_sessions(self) -> None:
        sessions = self._engine.list_sessions()
        if not sessions:
            self._write("[dim]No saved sessions[/dim]")
            return
        current = self._engine.session.session_id
        self._write(f"[bold]Saved sessions ({len(sessions)}):[/bold]")
        for session in sessions:
            marker = "●" if session.session_id == current else " "
            stamp = session.last_message_at.astimezone().strftime("%Y-%m-%d %H:%M")
            self._write(
                f"  {marker} [cyan]{session.session_id[:8]}[/cyan] "
                f"{_esc(session.title)} [dim]{stamp}[/dim]"
            )

    async def _cmd_session(self, args: list[str]) -> None:
        if not args:
            self._write("[red]Usage:[/red] /session SESSION_ID")
            return
        session_id = self._resolve_session_id(args[0]) or args[0]
        session = self._engine.load_session(session_id)
        self._session_changed()
        self._write(f"[green]Loaded[/green] session '{_esc(session.title)}'")

    async def _cmd_delete(self, args: list[str]) -> None:
        if not args:
            self._write("[red]Usage:[/red] /delete SESSION_ID")
            return
        session_id = self._resolve_session_id(args[0]) or args[0]
        was_current = session_id == self._engine.session.session_id
        if not self._engine.delete_session(session_id):
            self._write(f"[red]Session '{_esc(args[0])}' not found[/red]")
        else:
            self._write(f"[green]Deleted[/green] session {session_id[:8]}")
        if was_current:
            self._session_changed()
