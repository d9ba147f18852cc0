"""Conversation orchestration engine.

Owns one tutoring session at a time: the message list, the active mode
and lens, the quiz state machine and the single in-flight completion
request. Every operation runs on one asyncio event loop; a busy flag
rejects overlapping sends rather than queueing them.

Usage:
    engine = ConversationEngine(client, SessionPersistence(config.sessions_dir), config)
    outcome = await engine.send_message("Why is the sky blue?")
"""
from __future__ import annotations

import asyncio
import logging
from typing import Any

from tutorly.shared.models.message import Message, MessageRole
from tutorly.shared.models.quiz import QuizQuestion, QuizRecord, QuizSession
from tutorly.shared.models.session import Session
from tutorly.shared.services.persistence import SessionPersistence
from tutorly.shared.services.session_naming import generate_session_title

from .config import TutorConfig, fire_event
from .errors import (
    FrustrationCooldownError,
    NoActiveQuizError,
    QuizTypeNotPendingError,
    RequestInFlightError,
    SessionNotFoundError,
    classify_error,
)
from .models import (
    DEFAULT_LENSES,
    ErrorKind,
    Lens,
    Mode,
    QuizType,
    RecordType,
    SendOutcome,
    normalize_lens,
)
from .pacing import PacingTimer
from .prompts import (
    FRUSTRATION_PROMPT,
    NEXT_QUESTION_PROMPT,
    QUIZ_ENDED_MESSAGE,
    PromptComposer,
    lens_activation_message,
    lens_transition_message,
    welcome_message,
)
from .providers.base import CancellationToken, ChatTurn, CompletionClient
from .quiz_protocol import (
    QUIZ_FAILED_MESSAGE,
    RetryState,
    build_correction_prompt,
    parse_quiz_reply,
)

logger = logging.getLogger(__name__)


class ConversationEngine:
    """Drives a tutoring session against a completion client.

    Collaborators are injected: the completion client, the session
    store, the prompt composer and the pacing timer. State changes are
    reported through ``config.event_callback``.
    """

    def __init__(
        self,
        client: CompletionClient,
        store: SessionPersistence,
        config: TutorConfig | None = None,
        composer: PromptComposer | None = None,
        timer: PacingTimer | None = None,
        session: Session | None = None,
        lenses: list[Lens] | tuple[Lens, ...] | None = None,
    ) -> None:
        self._client = client
        self._store = store
        self._config = config or TutorConfig.from_env()
        self._composer = composer or PromptComposer(self._config.subject_prompt)
        self._timer = timer or PacingTimer()
        self._session = session or Session()
        self._lenses = list(lenses) if lenses else list(DEFAULT_LENSES)

        self._mode = Mode.STANDARD
        self._lens: Lens | None = None
        self._entity_name: str | None = None
        self._previous_mode: Mode | None = None
        self._is_mode_switching = False

        self._quiz_session: QuizSession | None = None
        self._pending_quiz_topic: str | None = None
        self._retry = RetryState()

        self._busy = False
        self._cancel_token: CancellationToken | None = None
        self._frustration_activated_at: int | None = None
        self._title_tasks: set[asyncio.Task] = set()

    # ── State accessors ──

    @property
    def config(self) -> TutorConfig:
        return self._config

    @property
    def session(self) -> Session:
        return self._session

    @property
    def messages(self) -> list[Message]:
        return self._session.messages

    @property
    def visible_messages(self) -> list[Message]:
        return self._session.visible_messages

    @property
    def mode(self) -> Mode:
        return self._mode

    @property
    def lens(self) -> Lens | None:
        return self._lens

    @property
    def lenses(self) -> list[Lens]:
        return list(self._lenses)

    @property
    def entity_name(self) -> str | None:
        return self._entity_name

    @property
    def quiz_session(self) -> QuizSession | None:
        return self._quiz_session

    @property
    def pending_quiz_topic(self) -> str | None:
        return self._pending_quiz_topic

    @property
    def retry_count(self) -> int:
        return self._retry.failures

    @property
    def is_busy(self) -> bool:
        return self._busy

    @property
    def timer(self) -> PacingTimer:
        return self._timer

    @property
    def welcome_message(self) -> str:
        """Greeting shown for an empty session. Not stored or sent as context."""
        return welcome_message(self._config.subject)

    def find_lens(self, name: str) -> Lens | None:
        key = name.strip().lower()
        for lens in self._lenses:
            if lens.name.lower() == key:
                return lens
        return None

    # ── Sending ──

    async def send_message(self, text: str) -> SendOutcome:
        """Send a real user message and stream the reply."""
        text = (text or "").strip()
        if not text:
            return SendOutcome.IGNORED
        if self._busy:
            raise RequestInFlightError()

        if self._mode == Mode.QUIZ and self._quiz_session is None:
            if self._pending_quiz_topic is None:
                self._pending_quiz_topic = text
                logger.info("Quiz topic captured: %.60s", text)
                await self._emit("quiz_type_requested", topic=text)
            return SendOutcome.AWAITING_QUIZ_TYPE

        if self._quiz_session is not None and self._quiz_session.is_awaiting_answer:
            self._quiz_session.record_answer(text)

        return await self._send_user_turn(text)

    async def submit_quiz_answer(self, answer: str) -> SendOutcome:
        if self._quiz_session is None:
            raise NoActiveQuizError()
        return await self.send_message(answer)

    async def select_quiz_type(self, quiz_type: QuizType) -> SendOutcome:
        """Start the quiz for the pending topic with *quiz_type*."""
        if self._busy:
            raise RequestInFlightError()
        topic = self._pending_quiz_topic
        if self._mode != Mode.QUIZ or topic is None:
            raise QuizTypeNotPendingError()
        self._quiz_session = QuizSession(topic=topic, quiz_type=quiz_type)
        self._pending_quiz_topic = None
        self._retry.reset()
        logger.info("Quiz started: topic=%.60s type=%s", topic, quiz_type.value)
        return await self._send_user_turn(topic)

    async def request_next_question(self) -> SendOutcome:
        if self._busy:
            raise RequestInFlightError()
        if self._quiz_session is None:
            raise NoActiveQuizError()
        return await self._send_hidden_trigger(NEXT_QUESTION_PROMPT)

    def can_trigger_frustration(self) -> bool:
        count = self._session.user_message_count
        if count < 1:
            return False
        if self._frustration_activated_at is None:
            return True
        return count >= self._frustration_activated_at + self._config.frustration_cooldown

    @property
    def frustration_available_at(self) -> int:
        """User message count at which the frustration control unlocks."""
        if self._frustration_activated_at is None:
            return 1
        return self._frustration_activated_at + self._config.frustration_cooldown

    async def trigger_frustration(self) -> SendOutcome:
        """Reset to plain tutoring and ask for a gentler re-explanation."""
        if self._busy:
            raise RequestInFlightError()
        if not self.can_trigger_frustration():
            raise FrustrationCooldownError(
                self._session.user_message_count, self.frustration_available_at,
            )

        previous_activation = self._frustration_activated_at
        self._frustration_activated_at = self._session.user_message_count
        logger.info(
            "Frustration reset at %d user messages", self._frustration_activated_at,
        )

        if self._mode != Mode.STANDARD:
            await self._set_mode(Mode.STANDARD)
        self._entity_name = None
        if self._lens is not None:
            self._lens = None
            await self._emit("lens_changed", lens=None)

        outcome = await self._send_hidden_trigger(FRUSTRATION_PROMPT)
        if outcome == SendOutcome.FAILED:
            self._frustration_activated_at = previous_activation
        return outcome

    def cancel(self) -> bool:
        """Cancel the in-flight request, if any."""
        if self._cancel_token is None or self._cancel_token.cancelled:
            return False
        logger.info("Cancelling in-flight request")
        self._cancel_token.cancel()
        return True

    async def _send_user_turn(self, text: str) -> SendOutcome:
        self._busy = True
        try:
            self._cancel_stale()
            if self._lens is not None and self._session.user_message_count == 0:
                self._session.add_message(Message(
                    role=MessageRole.USER,
                    content=lens_activation_message(self._lens),
                    lens=self._lens.name,
                    is_hidden=True,
                ))

            user_msg = self._session.add_message(Message(
                role=MessageRole.USER,
                content=text,
                mode=self._mode,
                lens=self._lens.name if self._lens else None,
            ))
            self._session.touch()
            if self._session.user_message_count == 1:
                self._session.update_title()
                await self._emit("title_changed", title=self._session.title)
                self._schedule_title_generation(text)
            self._save()
            await self._emit("user_message", message_id=user_msg.id, content=text)

            return await self._run_exchange(user_msg)
        finally:
            self._busy = False

    async def _send_hidden_trigger(self, prompt: str) -> SendOutcome:
        self._busy = True
        try:
            self._cancel_stale()
            hidden = self._session.add_message(Message(
                role=MessageRole.USER,
                content=prompt,
                mode=self._mode,
                is_hidden=True,
            ))
            self._session.touch()
            self._save()
            return await self._run_exchange(hidden, paired_hidden=hidden)
        finally:
            self._busy = False

    def _cancel_stale(self) -> None:
        if self._cancel_token is not None and not self._cancel_token.cancelled:
            logger.warning("Cancelling stale in-flight request")
            self._cancel_token.cancel()
        self._cancel_token = None

    # ── Streaming ──

    def _context_before(self, prompt_message: Message) -> list[Message]:
        """Most recent messages preceding *prompt_message*, oldest first."""
        prior: list[Message] = []
        for msg in self._session.messages:
            if msg.id == prompt_message.id:
                break
            if not msg.streaming:
                prior.append(msg)
        window = self._config.context_window
        return prior[-window:] if window > 0 else []

    def _compose_system_prompt(self) -> str:
        return self._composer.compose(
            self._mode,
            self._lens,
            pacing_description=self._timer.pacing_description(),
            entity_name=self._entity_name,
            quiz_type=self._quiz_session.quiz_type if self._quiz_session else None,
            is_mode_switching=self._is_mode_switching,
            previous_mode=self._previous_mode,
            subject=self._config.subject,
        )

    async def _run_exchange(
        self,
        prompt_message: Message,
        paired_hidden: Message | None = None,
    ) -> SendOutcome:
        """Stream one reply to *prompt_message* and commit it."""
        history = [
            ChatTurn(m.role.value, m.context_text())
            for m in self._context_before(prompt_message)
        ]
        history.append(ChatTurn(MessageRole.USER.value, prompt_message.content))
        system_prompt = self._compose_system_prompt()

        placeholder = self._session.add_message(Message(
            role=MessageRole.ASSISTANT,
            content="",
            mode=self._mode,
            lens=self._lens.name if self._lens else None,
            streaming=True,
        ))
        token = CancellationToken()
        self._cancel_token = token
        await self._emit("stream_started", message_id=placeholder.id, mode=self._mode.value)

        fragments: list[str] = []
        stream = self._client.stream(
            system_prompt,
            history,
            max_output_tokens=self._config.max_output_tokens,
            model_id=self._config.model_id,
            cancel_token=token,
        )
        # The switch notice has now been handed to the client exactly once.
        self._is_mode_switching = False
        self._previous_mode = None

        try:
            try:
                async for fragment in stream:
                    if token.cancelled:
                        break
                    placeholder.content += fragment
                    fragments.append(fragment)
                    await self._emit(
                        "stream_chunk", message_id=placeholder.id, text=fragment,
                    )
            finally:
                aclose = getattr(stream, "aclose", None)
                if aclose is not None:
                    await aclose()
        except Exception as exc:
            if not token.cancelled:
                return await self._fail_exchange(exc, placeholder, paired_hidden)
        finally:
            if self._cancel_token is token:
                self._cancel_token = None

        if token.cancelled:
            self._retry.reset()
            self._session.remove_message(placeholder.id)
            if paired_hidden is not None:
                self._session.remove_message(paired_hidden.id)
                if self._session.persisted:
                    self._save()
            logger.info("Request cancelled after %d fragments", len(fragments))
            await self._emit("stream_cancelled", message_id=placeholder.id)
            return SendOutcome.CANCELLED

        full_response = "".join(fragments)
        placeholder.streaming = False
        if self._mode == Mode.QUIZ and self._quiz_session is not None:
            return await self._handle_quiz_reply(placeholder, full_response)

        placeholder.content = full_response
        self._session.touch()
        self._save()
        logger.info("Stream finished: %d fragments, %d chars", len(fragments), len(full_response))
        await self._emit(
            "stream_finished",
            message_id=placeholder.id,
            content=full_response,
            is_quiz=False,
        )
        return SendOutcome.COMPLETED

    async def _fail_exchange(
        self,
        exc: Exception,
        placeholder: Message,
        paired_hidden: Message | None,
    ) -> SendOutcome:
        notice = classify_error(exc)
        if notice.kind == ErrorKind.SERVICE:
            logger.error("Completion request failed: %s", exc, exc_info=True)
        else:
            logger.warning("Completion request failed (%s): %s", notice.kind.value, exc)
        self._retry.reset()
        self._session.remove_message(placeholder.id)
        if paired_hidden is not None:
            self._session.remove_message(paired_hidden.id)
        if self._session.persisted:
            self._save()
        await self._emit(
            "error",
            kind=notice.kind.value,
            message=notice.message,
            retryable=notice.retryable,
        )
        return SendOutcome.FAILED

    # ── Quiz protocol ──

    async def _handle_quiz_reply(self, placeholder: Message, reply: str) -> SendOutcome:
        quiz = self._quiz_session
        assert quiz is not None
        result = parse_quiz_reply(reply, quiz.quiz_type)

        if result.ok:
            record = result.record
            assert record is not None
            if self._retry.failures:
                logger.info("Quiz reply recovered after %d retries", self._retry.failures)
            self._retry.reset()
            placeholder.quiz_payload = record
            placeholder.content = ""
            self._session.touch()
            await self._emit(
                "stream_finished", message_id=placeholder.id, content="", is_quiz=True,
            )
            await self._emit(
                "quiz_record",
                message_id=placeholder.id,
                record_type=record.type.value,
                record=record.to_wire(),
            )
            await self._apply_quiz_record(quiz, record)
            self._save()
            return SendOutcome.COMPLETED

        attempt = self._retry.record_failure()
        self._session.remove_message(placeholder.id)
        max_attempts = self._config.max_quiz_retries
        logger.warning(
            "Invalid quiz reply (%d/%d): %s", attempt, max_attempts, result.violation,
        )

        if attempt >= max_attempts:
            self._retry.reset()
            error_msg = self._session.add_message(Message(
                role=MessageRole.ASSISTANT,
                content=QUIZ_FAILED_MESSAGE,
                mode=Mode.QUIZ,
            ))
            self._session.touch()
            self._save()
            await self._emit("quiz_failed", message_id=error_msg.id, attempts=attempt)
            await self._emit(
                "error",
                kind=ErrorKind.QUIZ_FORMAT.value,
                message=QUIZ_FAILED_MESSAGE,
                retryable=True,
            )
            return SendOutcome.QUIZ_FORMAT_FAILED

        correction = self._session.add_message(Message(
            role=MessageRole.USER,
            content=build_correction_prompt(
                attempt,
                max_attempts,
                quiz.quiz_type,
                result.violation or "the reply was not a valid quiz record",
                reply,
            ),
            mode=Mode.QUIZ,
            is_hidden=True,
        ))
        await self._emit(
            "quiz_retry",
            attempt=attempt,
            max_attempts=max_attempts,
            violation=result.violation or "",
        )
        return await self._run_exchange(correction, paired_hidden=correction)

    async def _apply_quiz_record(self, quiz: QuizSession, record: QuizRecord) -> None:
        if record.type == RecordType.QUESTION:
            quiz.add_question(QuizQuestion.from_record(record, quiz.quiz_type))
        elif record.type == RecordType.FEEDBACK:
            quiz.record_feedback(
                bool(record.is_correct),
                record.explanation or "",
                user_answer=record.user_answer,
            )
            quiz.move_to_next_question()
        elif record.type == RecordType.QUIZ_COMPLETE:
            quiz.complete(record)
            logger.info("Quiz complete: %s (%s%%)", record.score, record.percentage)
            await self._emit(
                "quiz_completed",
                topic=quiz.topic,
                score=record.score or "",
                percentage=record.percentage or 0,
                strengths=list(record.strengths or []),
                weaknesses=list(record.weaknesses or []),
                improvement_plan=record.improvement_plan or "",
            )
            await self._set_mode(Mode.STANDARD)
        else:
            logger.debug("Quiz start record observed for %.60s", record.topic)

    def _exit_quiz(self) -> None:
        if self._session.messages:
            self._session.add_message(Message(
                role=MessageRole.USER,
                content=QUIZ_ENDED_MESSAGE,
                is_hidden=True,
            ))
        self._quiz_session = None
        self._pending_quiz_topic = None
        self._retry.reset()

    # ── Mode & lens ──

    async def _set_mode(self, target: Mode, entity_name: str | None = None) -> None:
        previous = self._mode
        if previous == Mode.QUIZ and target != Mode.QUIZ:
            self._exit_quiz()
        if target == Mode.QUIZ and previous != Mode.QUIZ:
            self._quiz_session = None
            self._pending_quiz_topic = None
            self._retry.reset()
        if target != previous and self._session.messages:
            self._previous_mode = previous
            self._is_mode_switching = True
        self._mode = target
        if target == Mode.MIMIC:
            self._entity_name = (entity_name or "").strip() or None
        else:
            self._entity_name = None
        logger.info("Mode %s -> %s", previous.value, target.value)
        await self._emit(
            "mode_changed",
            mode=target.value,
            previous_mode=previous.value,
            entity_name=self._entity_name,
        )
        if target != Mode.STANDARD and self._lens is not None:
            self._lens = None
            await self._emit("lens_changed", lens=None)

    async def switch_mode(self, mode: Mode, entity_name: str | None = None) -> Mode:
        """Select *mode*; selecting the active mode again returns to standard."""
        target = Mode.STANDARD if mode == self._mode else mode
        await self._set_mode(target, entity_name)
        return target

    async def apply_lens(self, lens: Lens | None) -> Lens | None:
        new = normalize_lens(lens)
        old = self._lens
        if (new.name if new else None) == (old.name if old else None):
            return old
        if new is not None and self._mode != Mode.STANDARD:
            await self._set_mode(Mode.STANDARD)
        self._lens = new
        if self._session.messages:
            self._session.add_message(Message(
                role=MessageRole.USER,
                content=lens_transition_message(old, new),
                lens=new.name if new else None,
                is_hidden=True,
            ))
        logger.info(
            "Lens %s -> %s",
            old.name if old else "none", new.name if new else "none",
        )
        await self._emit("lens_changed", lens=new.name if new else None)
        return new

    # ── Pacing ──

    def start_timer(self, minutes: int) -> None:
        self._timer.start_minutes(minutes)

    def pause_timer(self) -> None:
        self._timer.pause()

    def resume_timer(self) -> None:
        self._timer.resume()

    def stop_timer(self) -> None:
        self._timer.stop()

    def tick_timer(self) -> bool:
        return self._timer.tick()

    # ── Sessions ──

    def list_sessions(self) -> list[Session]:
        return self._store.load_all()

    def new_session(self) -> Session:
        if self._busy:
            raise RequestInFlightError()
        self._reset_conversation_state()
        self._session = Session()
        logger.info("New session %s", self._session.session_id[:8])
        return self._session

    def load_session(self, session_id: str) -> Session:
        if self._busy:
            raise RequestInFlightError()
        session = self._store.get(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        self._reset_conversation_state()
        self._session = session
        logger.info(
            "Loaded session %s (%d messages)", session_id[:8], len(session.messages),
        )
        return session

    def delete_session(self, session_id: str) -> bool:
        if self._busy and session_id == self._session.session_id:
            raise RequestInFlightError()
        deleted = self._store.delete(session_id)
        if session_id == self._session.session_id:
            self.new_session()
        return deleted

    def _reset_conversation_state(self) -> None:
        self._mode = Mode.STANDARD
        self._lens = None
        self._entity_name = None
        self._previous_mode = None
        self._is_mode_switching = False
        self._quiz_session = None
        self._pending_quiz_topic = None
        self._retry.reset()
        self._frustration_activated_at = None
        self._cancel_token = None

    def _save(self) -> None:
        try:
            self._store.save(self._session)
        except OSError:
            logger.exception("Failed to persist session %s", self._session.session_id)

    # ── Titles ──

    def _schedule_title_generation(self, text: str) -> None:
        if not self._config.generate_titles or not self._client.is_available():
            return
        task = asyncio.create_task(self._generate_title(self._session, text))
        self._title_tasks.add(task)
        task.add_done_callback(self._title_tasks.discard)

    async def _generate_title(self, session: Session, text: str) -> None:
        title = await generate_session_title(
            self._client,
            text,
            self._config.model_id,
            max_output_tokens=self._config.title_max_tokens,
        )
        if not title or title == session.title:
            return
        session.title = title
        logger.info("Session %s titled %r", session.session_id[:8], title)
        if session.persisted:
            try:
                self._store.save(session)
            except OSError:
                logger.exception("Failed to persist title for %s", session.session_id)
        if session is self._session:
            await self._emit("title_changed", title=title)

    async def shutdown(self) -> None:
        self.cancel()
        for task in list(self._title_tasks):
            task.cancel()
        if self._title_tasks:
            await asyncio.gather(*self._title_tasks, return_exceptions=True)
        await self._client.shutdown()

    # ── Events ──

    async def _emit(self, event: str, **fields: Any) -> None:
        await fire_event(
            self._config.event_callback,
            {"event": event, "session_id": self._session.session_id, **fields},
        )
