"""Tutorly CLI entry point."""

from __future__ import annotations

import asyncio
import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

import yaml

logger = logging.getLogger(__name__)


def _configure_logging(log_dir: Path, level: str, verbose: bool, to_stderr: bool) -> Path:
    """Route all logging to a rotating file (and stderr in plain mode)."""
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / "tutorly.log"

    root = logging.getLogger()
    root.setLevel(logging.DEBUG if verbose else getattr(logging, level.upper(), logging.INFO))
    root.handlers.clear()
    formatter = logging.Formatter(
        "%(asctime)s %(levelname)s %(name)s [pid=%(process)d] %(message)s"
    )
    file_handler = RotatingFileHandler(
        log_file, maxBytes=2_000_000, backupCount=5, encoding="utf-8"
    )
    file_handler.setFormatter(formatter)
    root.addHandler(file_handler)
    if to_stderr and verbose:
        stream_handler = logging.StreamHandler(sys.stderr)
        stream_handler.setFormatter(formatter)
        root.addHandler(stream_handler)
    return log_file


def _print_sessions(config) -> None:
    from tutorly.shared.services.persistence import SessionPersistence

    sessions = SessionPersistence(config.engine.sessions_dir).load_all()
    if not sessions:
        print("No saved sessions.")
        return
    for session in sessions:
        stamp = session.last_message_at.astimezone().strftime("%Y-%m-%d %H:%M")
        print(f"  {session.session_id}  {stamp}  {session.title}")


async def _run_plain(config, resume: str | None = None) -> None:
    """Line-oriented chat loop on a Rich console, for terminals without a TUI."""
    from rich.console import Console
    from rich.markdown import Markdown

    from tutorly.adapters.command_handler import CommandHandler
    from tutorly.adapters.events import (
        ErrorOccurred,
        QuizFailed,
        QuizRecordReceived,
        QuizRetry,
        StreamCancelled,
        StreamChunk,
        StreamFinished,
        StreamStarted,
        TitleChanged,
    )
    from tutorly.adapters.tutor_bridge import TutorBridge
    from tutorly.engine.errors import TutorError
    from tutorly.engine.models import Mode
    from tutorly.shared.formatters.quiz_record import render_record
    from tutorly.shared.models.message import MessageRole
    from tutorly.shared.models.quiz import QuizRecord

    console = Console()
    bridge = TutorBridge()
    engine = bridge.configure(config=config)

    def show_session() -> None:
        console.rule(f"[bold]{engine.session.title}[/bold]")
        visible = [
            m for m in engine.visible_messages
            if m.content.strip() or m.quiz_payload is not None
        ]
        if not visible:
            console.print(f"[bold]{engine.welcome_message}[/bold]")
        for msg in visible:
            who = "[bold blue]You[/bold blue]" if msg.role == MessageRole.USER else "[bold cyan]Tutor[/bold cyan]"
            console.print(who)
            if msg.quiz_payload is not None:
                console.print(render_record(msg.quiz_payload))
            else:
                console.print(Markdown(msg.content))

    handler = CommandHandler(engine, write=console.print, on_session_changed=show_session)

    async def consume() -> None:
        quiz_replies: set[str] = set()
        async for event in bridge.event_bus.consume():
            if isinstance(event, StreamStarted):
                if event.mode == Mode.QUIZ.value:
                    quiz_replies.add(event.message_id)
                    console.print("[dim]Tutor is preparing the quiz...[/dim]")
                else:
                    console.print("[bold cyan]Tutor[/bold cyan]")
            elif isinstance(event, StreamChunk):
                if event.message_id not in quiz_replies:
                    console.out(event.text, end="", highlight=False)
            elif isinstance(event, StreamFinished):
                if event.message_id not in quiz_replies:
                    console.out("")
                quiz_replies.discard(event.message_id)
            elif isinstance(event, QuizRecordReceived):
                console.print(render_record(QuizRecord.from_wire(event.record)))
            elif isinstance(event, QuizRetry):
                console.print(
                    f"[dim]Reformatting quiz reply ({event.attempt}/{event.max_attempts})[/dim]"
                )
            elif isinstance(event, QuizFailed):
                msg = engine.session.get_message(event.message_id)
                if msg is not None:
                    console.print(msg.content)
            elif isinstance(event, StreamCancelled):
                console.out("")
                console.print("[dim]Response stopped[/dim]")
            elif isinstance(event, TitleChanged):
                logger.debug("Session titled %r", event.title)
            elif isinstance(event, ErrorOccurred):
                console.print(f"[red]{event.message}[/red]")

    consumer = asyncio.create_task(consume(), name="event-consumer")
    if resume:
        try:
            engine.load_session(resume)
        except TutorError as exc:
            console.print(f"[red]{exc}[/red]")
    show_session()
    console.print("[dim]Type /help for commands, Ctrl+D to quit.[/dim]")

    try:
        while True:
            try:
                line = await asyncio.to_thread(console.input, "[bold blue]> [/bold blue]")
            except EOFError:
                break
            if line.strip() in {"/quit", "/exit"}:
                break
            await handler.handle_input(line)
            # Drain pending output before prompting again.
            while bridge.event_bus.qsize():
                await asyncio.sleep(0.05)
            if engine.tick_timer():
                console.print("[yellow]Time's up! The tutor will start wrapping up.[/yellow]")
    except KeyboardInterrupt:
        pass
    finally:
        await bridge.shutdown()
        consumer.cancel()
        try:
            await consumer
        except asyncio.CancelledError:
            pass


def main() -> None:
    import argparse

    parser = argparse.ArgumentParser(
        prog="tutorly",
        description="Tutorly — AI tutoring chat in the terminal",
    )
    parser.add_argument(
        "--config", metavar="PATH",
        help="YAML config file (default: .tutorly/tutorly.yaml or tutorly.yaml)",
    )
    parser.add_argument(
        "--subject", metavar="NAME",
        help="Subject the tutor specializes in (overrides config)",
    )
    parser.add_argument(
        "--resume", metavar="SESSION_ID",
        help="Open a saved session",
    )
    parser.add_argument(
        "--list", action="store_true",
        help="List saved sessions and exit (no TUI)",
    )
    parser.add_argument(
        "--plain", action="store_true",
        help="Use a plain line-oriented console instead of the TUI",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true",
        help="Debug logging (mirrored to stderr in --plain mode)",
    )
    args = parser.parse_args()

    from tutorly.adapters.tutor_bridge import resolve_config

    try:
        config = resolve_config(args.config, args.subject)
    except (OSError, ValueError, yaml.YAMLError) as exc:
        print(f"tutorly: could not load config: {exc}", file=sys.stderr)
        sys.exit(2)

    log_file = _configure_logging(
        config.engine.logs_dir,
        os.getenv("TUTORLY_LOG_LEVEL", config.engine.log_level),
        args.verbose,
        to_stderr=args.plain,
    )
    logger.info(
        "Starting Tutorly cwd=%s config=%s plain=%s log=%s",
        Path.cwd(), args.config or "<auto>", args.plain, log_file,
    )

    if args.list:
        _print_sessions(config)
        sys.exit(0)

    if args.plain:
        asyncio.run(_run_plain(config, resume=args.resume))
        sys.exit(0)

    # TUI mode
    from tutorly.tui.app import TutorlyApp

    app = TutorlyApp()
    app.cli_args = args
    app.tutor_config = config
    app.run()


if __name__ == "__main__":
    main()
