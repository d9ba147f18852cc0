"""Exception hierarchy for the conversation engine.

Specific exceptions for each failure mode. Completion providers raise
``CompletionError`` subclasses; the engine classifies them into an
``ErrorKind`` and a user-facing notice via ``classify_error``.
"""
from __future__ import annotations

from dataclasses import dataclass

from .models import ErrorKind


class TutorError(Exception):
    """Base exception for all engine errors."""


class RequestInFlightError(TutorError):
    """A send was attempted while another request is still streaming."""
    def __init__(self) -> None:
        super().__init__("A response is already in progress")


class QuizTypeNotPendingError(TutorError):
    """A quiz type was selected without a pending quiz topic."""
    def __init__(self) -> None:
        super().__init__("No quiz topic is waiting for a quiz type")


class NoActiveQuizError(TutorError):
    """A quiz-only operation was requested outside an active quiz."""
    def __init__(self) -> None:
        super().__init__("No quiz is in progress")


class FrustrationCooldownError(TutorError):
    """The "I'm stuck" control was pressed while it is disabled."""
    def __init__(self, user_messages: int, available_at: int):
        self.user_messages = user_messages
        self.available_at = available_at
        super().__init__(
            f"Frustration reset unavailable until {available_at} user "
            f"messages have been sent (currently {user_messages})"
        )


class InvalidDurationError(TutorError):
    """Requested pacing duration is outside the allowed range."""
    def __init__(self, minutes: int, minimum: int, maximum: int):
        self.minutes = minutes
        super().__init__(
            f"Session duration must be between {minimum} and {maximum} "
            f"minutes (got {minutes})"
        )


class SessionNotFoundError(TutorError):
    def __init__(self, session_id: str):
        self.session_id = session_id
        super().__init__(f"Session not found: {session_id}")


class CompletionError(TutorError):
    """Base class for completion service failures."""
    def __init__(self, message: str, status: int | None = None):
        self.status = status
        super().__init__(message)


class TransportError(CompletionError):
    """The service could not be reached."""


class AuthenticationError(CompletionError):
    """The API key is missing or was rejected."""


class RateLimitError(CompletionError):
    """The service asked the client to slow down."""
    def __init__(
        self,
        message: str,
        status: int | None = 429,
        retry_after: float | None = None,
    ):
        self.retry_after = retry_after
        super().__init__(message, status)


class ServiceError(CompletionError):
    """Any other failure reported by the completion service."""


@dataclass
class ErrorNotice:
    """User-facing description of a classified failure."""
    kind: ErrorKind
    message: str
    retryable: bool


def classify_error(exc: BaseException) -> ErrorNotice:
    """Map an exception raised during a request to a user notice."""
    if isinstance(exc, TransportError):
        return ErrorNotice(
            ErrorKind.TRANSPORT,
            "Unable to reach the tutor service. Check your internet "
            "connection and try again.",
            retryable=True,
        )
    if isinstance(exc, AuthenticationError):
        return ErrorNotice(
            ErrorKind.AUTHENTICATION,
            "The API key was rejected. Set a valid ANTHROPIC_API_KEY in "
            "your configuration.",
            retryable=False,
        )
    if isinstance(exc, RateLimitError):
        wait = (
            f" Try again in {int(exc.retry_after)} seconds."
            if exc.retry_after else " Please wait a moment and try again."
        )
        return ErrorNotice(
            ErrorKind.RATE_LIMIT,
            "The tutor service is receiving too many requests." + wait,
            retryable=True,
        )
    return ErrorNotice(
        ErrorKind.SERVICE,
        f"The tutor service returned an error: {exc}",
        retryable=True,
    )
