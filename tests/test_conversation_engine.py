"""Tests for ConversationEngine send, streaming, mode/lens and session handling."""
from __future__ import annotations

import asyncio

import pytest

from tutorly.engine.errors import (
    InvalidDurationError,
    RequestInFlightError,
    SessionNotFoundError,
    TransportError,
)
from tutorly.engine.models import Mode, SendOutcome
from tutorly.shared.models.message import MessageRole

from conftest import ScriptedClient


@pytest.mark.asyncio
async def test_send_concatenates_fragments_in_order(make_engine, events, store):
    client = ScriptedClient([["Photo", "synthesis ", "uses light."]])
    engine = make_engine(client)

    outcome = await engine.send_message("  What is photosynthesis?  ")

    assert outcome == SendOutcome.COMPLETED
    user, reply = engine.messages
    assert user.role == MessageRole.USER
    assert user.content == "What is photosynthesis?"
    assert reply.role == MessageRole.ASSISTANT
    assert reply.content == "Photosynthesis uses light."
    assert reply.streaming is False
    assert [e["text"] for e in events.of("stream_chunk")] == ["Photo", "synthesis ", "uses light."]
    assert events.of("stream_finished")[0]["content"] == "Photosynthesis uses light."

    saved = store.get(engine.session.session_id)
    assert saved is not None
    assert [m.content for m in saved.messages] == [
        "What is photosynthesis?", "Photosynthesis uses light.",
    ]


@pytest.mark.asyncio
async def test_blank_input_is_ignored(make_engine):
    client = ScriptedClient()
    engine = make_engine(client)

    assert await engine.send_message("   ") == SendOutcome.IGNORED
    assert engine.messages == []
    assert client.calls == []


@pytest.mark.asyncio
async def test_history_is_limited_to_context_window(make_engine):
    client = ScriptedClient([["reply 1"], ["reply 2"], ["reply 3"]])
    engine = make_engine(client, context_window=2)

    await engine.send_message("first")
    await engine.send_message("second")
    await engine.send_message("third")

    _, history = client.calls[-1]
    assert [t.text for t in history] == ["second", "reply 2", "third"]
    assert [t.role for t in history] == ["user", "assistant", "user"]


@pytest.mark.asyncio
async def test_first_message_sets_truncated_title(make_engine, events):
    engine = make_engine(ScriptedClient([["ok"]]))

    await engine.send_message(
        "What is Newton's first law of motion and why does it matter so much?"
    )

    assert engine.session.title == "What is Newton's first law of motion and why does..."
    assert events.of("title_changed")[0]["title"] == engine.session.title


@pytest.mark.asyncio
async def test_generated_title_replaces_fallback(make_engine, events):
    client = ScriptedClient([["ok"]], title='"Newton\'s First Law"')
    engine = make_engine(client, generate_titles=True)

    await engine.send_message("Explain inertia to me please")
    await asyncio.gather(*list(engine._title_tasks))

    assert engine.session.title == "Newton's First Law"
    assert events.of("title_changed")[-1]["title"] == "Newton's First Law"


@pytest.mark.asyncio
async def test_transport_error_rolls_back_placeholder(make_engine, events):
    client = ScriptedClient([TransportError("connection refused")])
    engine = make_engine(client)

    outcome = await engine.send_message("hello?")

    assert outcome == SendOutcome.FAILED
    assert [m.role for m in engine.messages] == [MessageRole.USER]
    error = events.of("error")[0]
    assert error["kind"] == "transport"
    assert error["retryable"] is True
    assert engine.is_busy is False


@pytest.mark.asyncio
async def test_cancel_mid_stream_keeps_no_assistant_content(make_engine, events, store):
    client = ScriptedClient([["Par", "tial", " answer"]])
    engine = make_engine(client)

    async def cancel_after_first(index: int) -> None:
        if index == 0:
            assert engine.cancel() is True

    client.on_fragment = cancel_after_first
    outcome = await engine.send_message("Tell me a long story")

    assert outcome == SendOutcome.CANCELLED
    assert [m.role for m in engine.messages] == [MessageRole.USER]
    assert events.of("stream_cancelled")
    saved = store.get(engine.session.session_id)
    assert [m.role for m in saved.messages] == [MessageRole.USER]
    assert engine.cancel() is False


@pytest.mark.asyncio
async def test_send_while_streaming_is_rejected(make_engine):
    client = ScriptedClient([["a", "b"]])
    engine = make_engine(client)
    rejected: list[Exception] = []

    async def send_again(index: int) -> None:
        if index == 0:
            try:
                await engine.send_message("second")
            except RequestInFlightError as exc:
                rejected.append(exc)

    client.on_fragment = send_again
    await engine.send_message("first")

    assert len(rejected) == 1
    assert len(client.calls) == 1


@pytest.mark.asyncio
async def test_mode_switch_notice_is_sent_once(make_engine):
    client = ScriptedClient([["hi"], ["Let's debate."], ["Counterpoint."]])
    engine = make_engine(client)

    await engine.send_message("hello")
    assert await engine.switch_mode(Mode.DEBATE) == Mode.DEBATE
    await engine.send_message("Homework should be banned")
    await engine.send_message("Because it is boring")

    assert "MODE SWITCH" not in client.calls[0][0]
    assert "from Standard mode to Debate Me mode" in client.calls[1][0]
    assert "DEBATE MODE ACTIVE" in client.calls[1][0]
    assert "MODE SWITCH" not in client.calls[2][0]


@pytest.mark.asyncio
async def test_selecting_active_mode_toggles_back_to_standard(make_engine, events):
    engine = make_engine()

    assert await engine.switch_mode(Mode.WRITING) == Mode.WRITING
    assert await engine.switch_mode(Mode.WRITING) == Mode.STANDARD
    assert [e["mode"] for e in events.of("mode_changed")] == ["writing", "standard"]


@pytest.mark.asyncio
async def test_mimic_keeps_entity_name_only_in_mimic(make_engine):
    client = ScriptedClient([["Eureka!"]])
    engine = make_engine(client)

    await engine.switch_mode(Mode.MIMIC, "Archimedes")
    await engine.send_message("Why do boats float?")
    assert engine.entity_name == "Archimedes"
    assert "Acting as Archimedes" in client.calls[0][0]

    await engine.switch_mode(Mode.STANDARD)
    assert engine.entity_name is None


@pytest.mark.asyncio
async def test_lens_and_non_standard_mode_are_exclusive(make_engine, events):
    engine = make_engine()
    star_wars = engine.find_lens("star wars")

    await engine.apply_lens(star_wars)
    assert engine.lens == star_wars

    await engine.switch_mode(Mode.WRITING)
    assert engine.lens is None
    assert events.of("lens_changed")[-1]["lens"] is None

    await engine.apply_lens(engine.find_lens("Minecraft"))
    assert engine.mode == Mode.STANDARD
    assert engine.lens.name == "Minecraft"

    await engine.apply_lens(engine.find_lens("None"))
    assert engine.lens is None


@pytest.mark.asyncio
async def test_lens_activation_is_sent_as_hidden_context(make_engine):
    client = ScriptedClient([["These are the droids you're looking for."], ["ok"]])
    engine = make_engine(client)

    await engine.apply_lens(engine.find_lens("Star Wars"))
    await engine.send_message("Explain gravity")

    hidden, user = engine.messages[0], engine.messages[1]
    assert hidden.is_hidden and "Learning lens activated: Star Wars" in hidden.content
    assert user.content == "Explain gravity"
    assert "LEARNING LENS (Star Wars)" in client.calls[0][0]
    assert [m.content for m in engine.visible_messages][0] == "Explain gravity"

    await engine.apply_lens(engine.find_lens("Pokemon"))
    transition = engine.messages[-1]
    assert transition.is_hidden
    assert "from Star Wars to Pokemon" in transition.content


@pytest.mark.asyncio
async def test_pacing_directive_reaches_system_prompt(make_engine, clock):
    client = ScriptedClient([["ok"], ["wrap up"]])
    engine = make_engine(client)

    engine.start_timer(30)
    clock.advance(10 * 60)
    await engine.send_message("Where were we?")
    assert "SESSION PACING:" in client.calls[0][0]
    assert "10 minutes have elapsed with 20 minutes remaining" in client.calls[0][0]

    clock.advance(25 * 60)
    assert engine.tick_timer() is True
    await engine.send_message("Are we done?")
    assert "has now expired (running 5 minutes over)" in client.calls[1][0]

    with pytest.raises(InvalidDurationError):
        engine.start_timer(3)


@pytest.mark.asyncio
async def test_paused_timer_drops_pacing_directive(make_engine, clock):
    client = ScriptedClient([["ok"]])
    engine = make_engine(client)

    engine.start_timer(30)
    engine.pause_timer()
    await engine.send_message("hello")

    assert "SESSION PACING" not in client.calls[0][0]


@pytest.mark.asyncio
async def test_new_load_and_delete_sessions(make_engine, store):
    engine = make_engine(ScriptedClient([["Mitochondria."]]))
    await engine.send_message("What is the powerhouse of the cell?")
    first_id = engine.session.session_id
    await engine.switch_mode(Mode.DEBATE)

    engine.new_session()
    assert engine.messages == []
    assert engine.mode == Mode.STANDARD
    assert engine.session.session_id != first_id

    loaded = engine.load_session(first_id)
    assert [m.content for m in loaded.messages][:2] == [
        "What is the powerhouse of the cell?", "Mitochondria.",
    ]
    assert [s.session_id for s in engine.list_sessions()] == [first_id]

    with pytest.raises(SessionNotFoundError):
        engine.load_session("does-not-exist")

    assert engine.delete_session(first_id) is True
    assert store.get(first_id) is None
    assert engine.session.session_id != first_id


@pytest.mark.asyncio
async def test_welcome_message_depends_on_subject(make_engine):
    assert make_engine().welcome_message == "What are we learning today?"
    assert make_engine(subject="Biology").welcome_message.startswith("Welcome to Biology!")


@pytest.mark.asyncio
async def test_shutdown_releases_client(make_engine):
    client = ScriptedClient()
    engine = make_engine(client)

    await engine.shutdown()

    assert client.closed is True
