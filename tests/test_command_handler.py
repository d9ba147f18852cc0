"""Tests for slash command parsing and the shared CommandHandler."""
from __future__ import annotations

import pytest

from tutorly.adapters.command_handler import QUIZ_TYPE_HINT, CommandHandler
from tutorly.engine.models import Mode, QuizType, SendOutcome
from tutorly.shared.commands import COMMAND_HELP, parse_command

from conftest import ScriptedClient


class Output:
    def __init__(self) -> None:
        self.lines: list[str] = []

    def __call__(self, text: str) -> None:
        self.lines.append(text)

    @property
    def text(self) -> str:
        return "\n".join(self.lines)


@pytest.fixture
def out() -> Output:
    return Output()


@pytest.fixture
def handler_for(make_engine, out):
    def _make(client: ScriptedClient | None = None, on_session_changed=None):
        engine = make_engine(client)
        return engine, CommandHandler(engine, write=out, on_session_changed=on_session_changed)
    return _make


def test_parse_command() -> None:
    cmd = parse_command("  /Mode mimic Ada Lovelace ")
    assert cmd.name == "mode"
    assert cmd.args == ["mimic", "Ada", "Lovelace"]
    assert cmd.rest == "mimic Ada Lovelace"
    assert parse_command("hello /mode") is None
    assert parse_command("/") is None


def test_every_command_has_help() -> None:
    assert {"mode", "lens", "quiz", "timer", "stuck", "new", "sessions", "help"} <= set(COMMAND_HELP)


@pytest.mark.asyncio
async def test_plain_text_is_sent(handler_for) -> None:
    engine, handler = handler_for(ScriptedClient([["Hello!"]]))
    assert await handler.handle_input("hi tutor") == SendOutcome.COMPLETED
    assert engine.messages[-1].content == "Hello!"


@pytest.mark.asyncio
async def test_unknown_command(handler_for, out) -> None:
    _, handler = handler_for()
    assert await handler.handle_command("dance", []) is False
    assert "Unknown command" in out.text


@pytest.mark.asyncio
async def test_help_lists_commands(handler_for, out) -> None:
    _, handler = handler_for()
    await handler.handle_input("/help")
    assert "[cyan]/timer[/cyan]" in out.text
    assert "\\[CHARACTER]" in out.text


@pytest.mark.asyncio
async def test_mode_switching_and_mimic_usage(handler_for, out) -> None:
    engine, handler = handler_for()

    await handler.handle_command("mode", ["mimic"])
    assert engine.mode == Mode.STANDARD
    assert "Usage" in out.lines[-1]

    await handler.handle_command("mode", ["mimic", "Marie", "Curie"])
    assert engine.mode == Mode.MIMIC
    assert engine.entity_name == "Marie Curie"
    assert "Mimic (Marie Curie)" in out.lines[-1]

    await handler.handle_command("mode", ["mimic"])
    assert engine.mode == Mode.STANDARD

    await handler.handle_command("mode", ["dance"])
    assert engine.mode == Mode.STANDARD
    assert "Unknown mode" in out.lines[-1]

    await handler.handle_command("mode", ["debate"])
    assert engine.mode == Mode.DEBATE


@pytest.mark.asyncio
async def test_mode_without_args_lists_modes(handler_for, out) -> None:
    _, handler = handler_for()
    await handler.handle_command("mode", [])
    assert "Mode: [bold]Standard[/bold]" in out.lines[0]
    assert len(out.lines) == 1 + len(Mode)


@pytest.mark.asyncio
async def test_lens_commands(handler_for, out) -> None:
    engine, handler = handler_for()

    await handler.handle_command("lens", ["marvel", "avengers"])
    assert engine.lens.name == "Marvel Avengers"

    out.lines.clear()
    await handler.handle_command("lens", [])
    active = [line for line in out.lines if line.lstrip().startswith("●")]
    assert len(active) == 1 and "Marvel Avengers" in active[0]

    await handler.handle_command("lens", ["Dinosaurs"])
    assert "Unknown lens" in out.lines[-1]

    await handler.handle_command("lens", ["none"])
    assert engine.lens is None
    assert "Lens cleared" in out.lines[-1]


@pytest.mark.asyncio
async def test_quiz_topic_prompts_for_type(handler_for, out) -> None:
    question = (
        '{"type": "question", "number": 1, "total": 1, "questionText": "Define osmosis.",'
        ' "questionType": "extended_response"}'
    )
    engine, handler = handler_for(ScriptedClient([[question]]))
    await handler.handle_command("mode", ["quiz"])

    assert await handler.handle_input("osmosis") == SendOutcome.AWAITING_QUIZ_TYPE
    assert out.lines[-1] == QUIZ_TYPE_HINT

    await handler.handle_command("quiz", ["essay"])
    assert out.lines[-1] == QUIZ_TYPE_HINT

    await handler.handle_command("quiz", ["extended"])
    assert engine.quiz_session.quiz_type == QuizType.EXTENDED_RESPONSE
    assert engine.quiz_session.current_question.text == "Define osmosis."


@pytest.mark.asyncio
async def test_engine_errors_are_written_not_raised(handler_for, out) -> None:
    _, handler = handler_for()
    assert await handler.handle_command("next", []) is True
    assert out.lines[-1] == "[red]No quiz is in progress[/red]"

    await handler.handle_command("stuck", [])
    assert "Frustration reset unavailable" in out.lines[-1]


@pytest.mark.asyncio
async def test_timer_commands(handler_for, out, clock) -> None:
    engine, handler = handler_for()

    await handler.handle_command("timer", [])
    assert "No session timer" in out.lines[-1]

    await handler.handle_command("timer", ["45"])
    assert engine.timer.is_active
    assert "45 min" in out.lines[-1]

    clock.advance(600)
    await handler.handle_command("timer", ["pause"])
    await handler.handle_command("timer", [])
    assert out.lines[-1] == "Timer paused: 10 min elapsed, 35 min left of 45 min"

    await handler.handle_command("timer", ["resume"])
    assert engine.timer.is_active

    await handler.handle_command("timer", ["200"])
    assert "between 5 and 120" in out.lines[-1]

    await handler.handle_command("timer", ["soon"])
    assert "Usage" in out.lines[-1]

    await handler.handle_command("timer", ["stop"])
    assert not engine.timer.is_started


@pytest.mark.asyncio
async def test_session_commands(handler_for, out, store) -> None:
    changes: list[int] = []
    engine, handler = handler_for(
        ScriptedClient([["Sure."]]), on_session_changed=lambda: changes.append(1),
    )
    await handler.handle_input("Teach me about volcanoes")
    saved_id = engine.session.session_id

    await handler.handle_command("sessions", [])
    assert saved_id[:8] in out.text
    assert "Teach me about volcanoes" in out.text

    await handler.handle_command("new", [])
    assert engine.session.session_id != saved_id
    assert len(changes) == 1

    await handler.handle_command("session", [saved_id[:6]])
    assert engine.session.session_id == saved_id
    assert len(changes) == 2

    await handler.handle_command("session", ["zzz"])
    assert "Session not found" in out.lines[-1]

    await handler.handle_command("delete", [saved_id[:8]])
    assert store.get(saved_id) is None
    assert engine.session.session_id != saved_id
    assert len(changes) == 3

    await handler.handle_command("delete", ["missing"])
    assert "not found" in out.lines[-1]
