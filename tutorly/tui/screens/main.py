"""Main screen with conversation, input and status for one tutoring session."""

from __future__ import annotations

import logging

from textual import work
from textual.app import ComposeResult
from textual.screen import Screen
from textual.widgets import Header

from tutorly.adapters.command_handler import CommandHandler
from tutorly.adapters.tutor_bridge import TutorBridge
from tutorly.engine.errors import TutorError
from tutorly.engine.models import MODE_PRESENTATION, Mode, QuizType
from tutorly.tui.handlers.event_processor import EventProcessor
from tutorly.tui.widgets.conversation import ConversationView
from tutorly.tui.widgets.input_bar import InputBar
from tutorly.tui.widgets.status_bar import StatusBar

logger = logging.getLogger(__name__)


class MainScreen(Screen):
    """Primary workspace: conversation pane, prompt input and status bar."""

    def __init__(self, bridge: TutorBridge | None = None, **kwargs) -> None:
        super().__init__(**kwargs)
        self.bridge = bridge or TutorBridge()
        self.event_processor = EventProcessor(self)
        self.command_handler: CommandHandler | None = None

    def compose(self) -> ComposeResult:
        yield Header()
        yield ConversationView(id="conversation")
        yield InputBar(id="input-bar")
        yield StatusBar(id="status-bar")

    def on_mount(self) -> None:
        if not self.bridge.configured:
            self.bridge.configure(config=getattr(self.app, "tutor_config", None))
        engine = self.bridge.engine
        conv = self.query_one("#conversation", ConversationView)
        self.command_handler = CommandHandler(
            engine,
            write=conv.add_notice,
            on_session_changed=self.rebuild_conversation,
        )

        cli_args = getattr(self.app, "cli_args", None)
        resume_id = getattr(cli_args, "resume", None)
        if resume_id:
            try:
                engine.load_session(resume_id)
            except TutorError as exc:
                self.notify(str(exc), severity="error")

        sb = self.query_one("#status-bar", StatusBar)
        sb.model = engine.config.model_id
        if not engine.config.api_key:
            sb.status = "offline"
            self.notify(
                "ANTHROPIC_API_KEY is not set. Set it and restart to chat.",
                severity="warning",
                timeout=10,
            )

        self.run_worker(
            self.event_processor.consume_events(),
            name="event-consumer",
            group="events",
            exclusive=True,
        )
        self.set_interval(1.0, self._tick_pacing)
        self.rebuild_conversation()

        input_bar = self.query_one(InputBar)
        input_bar.set_placeholder("Ask anything, or type /help...")
        input_bar.focus_input()

    # ── Rendering helpers ──

    def rebuild_conversation(self) -> None:
        engine = self.bridge.engine
        conv = self.query_one("#conversation", ConversationView)
        conv.rebuild(engine.session, engine.welcome_message)
        self.app.sub_title = engine.session.title
        self.refresh_status()

    def set_request_status(self, status: str) -> None:
        self.query_one("#status-bar", StatusBar).status = status

    def refresh_status(self) -> None:
        engine = self.bridge.engine
        sb = self.query_one("#status-bar", StatusBar)
        mode = engine.mode
        label = f"{MODE_PRESENTATION[mode].icon} {MODE_PRESENTATION[mode].label}"
        if mode == Mode.MIMIC and engine.entity_name:
            label += f": {engine.entity_name}"
        elif mode == Mode.QUIZ and engine.quiz_session is not None:
            quiz = engine.quiz_session
            answered = sum(1 for q in quiz.questions if q.is_correct is not None)
            label += f" ({answered} answered)"
        sb.mode = label
        sb.lens = engine.lens.name if engine.lens else ""
        self._refresh_pacing(sb)
        stuck = engine.can_trigger_frustration()
        sb.stuck_available = stuck
        self.query_one(InputBar).set_stuck_enabled(stuck)

    def _refresh_pacing(self, sb: StatusBar) -> None:
        timer = self.bridge.engine.timer
        if not timer.is_started:
            sb.pacing = ""
            sb.pacing_state = ""
        elif timer.is_paused:
            sb.pacing = f"⏸ {timer.remaining_text} left"
            sb.pacing_state = "paused"
        elif timer.has_expired:
            sb.pacing = f"⏱ time's up ({timer.elapsed_text})"
            sb.pacing_state = "expired"
        else:
            sb.pacing = f"⏱ {timer.remaining_text} left of {timer.duration_text}"
            sb.pacing_state = "low" if timer.remaining <= 5 * 60 else ""

    def _tick_pacing(self) -> None:
        if self.bridge.engine.tick_timer():
            self.notify("Time's up! The tutor will start wrapping up.", timeout=10)
        self._refresh_pacing(self.query_one("#status-bar", StatusBar))

    # ── Input handling ──

    def on_input_bar_submitted(self, event: InputBar.Submitted) -> None:
        self._send_text(event.text)

    def on_input_bar_command_submitted(self, event: InputBar.CommandSubmitted) -> None:
        if event.name == "help":
            from tutorly.tui.screens.help import HelpScreen

            self.app.push_screen(HelpScreen())
            return
        if event.name == "timer" and not event.args:
            self.open_timer_picker()
            return
        if event.name == "cancel":
            self.cancel_stream()
            return
        self._run_command(event.name, event.args)

    def on_input_bar_stuck_requested(self) -> None:
        self._run_command("stuck", [])

    def cancel_stream(self) -> None:
        if not self.bridge.engine.cancel():
            self.notify("Nothing to cancel")

    def prompt_quiz_type(self, topic: str) -> None:
        from tutorly.tui.screens.quiz_type import QuizTypeScreen

        self.app.push_screen(QuizTypeScreen(topic), self._handle_quiz_type)

    def _handle_quiz_type(self, quiz_type: QuizType | None) -> None:
        if quiz_type is None:
            self.query_one("#conversation", ConversationView).add_notice(
                "[dim]Choose later with /quiz mc or /quiz extended[/dim]"
            )
            return
        self._run_command("quiz", [quiz_type.value])

    def open_timer_picker(self) -> None:
        from tutorly.tui.screens.timer import TimerScreen

        self.app.push_screen(TimerScreen(), self._handle_timer_choice)

    def _handle_timer_choice(self, minutes: int | None) -> None:
        if minutes is not None:
            self._run_command("timer", [str(minutes)])

    # ── Workers ──

    @work(group="engine", name="send")
    async def _send_text(self, text: str) -> None:
        assert self.command_handler is not None
        await self.command_handler.send_text(text)
        self.refresh_status()

    @work(group="engine", name="command")
    async def _run_command(self, name: str, args: list[str]) -> None:
        assert self.command_handler is not None
        await self.command_handler.handle_command(name, args)
        self.refresh_status()

    async def shutdown(self) -> None:
        logger.info("Shutting down main screen")
        await self.bridge.shutdown()
