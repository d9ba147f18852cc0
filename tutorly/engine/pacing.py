"""Session pacing timer.

Tracks elapsed and remaining time for an optional session duration and
produces a pacing directive for the system prompt. Elapsed, remaining
and progress are derived from the clock on every read; only the start
time and accumulated pause time are stored.

Expiry is sticky: once ``tick()`` observes the duration has run out,
``has_expired`` stays set and the timer keeps counting overtime.
"""
from __future__ import annotations

import logging
import time
from collections.abc import Callable

from .errors import InvalidDurationError

logger = logging.getLogger(__name__)

MIN_DURATION_MINUTES = 5
MAX_DURATION_MINUTES = 120
PRESET_DURATIONS_MINUTES: tuple[int, ...] = (15, 30, 45, 60, 90, 120)

# Directive switches to "wrap up" when this little time is left...
LOW_TIME_THRESHOLD_MINUTES = 5
# ...but only for sessions longer than this.
LOW_TIME_MIN_DURATION_MINUTES = 10


def format_duration(seconds: float) -> str:
    """Format seconds as "X min", "X hr" or "X hr Y min"."""
    minutes = int(seconds) // 60
    hours, remaining = divmod(minutes, 60)
    if hours > 0:
        if remaining > 0:
            return f"{hours} hr {remaining} min"
        return f"{hours} hr"
    return f"{minutes} min"


class PacingTimer:
    """Running/paused/expired state machine for a timed session."""

    def __init__(self, clock: Callable[[], float] | None = None) -> None:
        self._clock = clock or time.monotonic
        self.duration: float = 0.0
        self.start_time: float | None = None
        self.is_active = False
        self.has_expired = False
        self._paused_at: float | None = None
        self._paused_total = 0.0

    # ── Derived state ──

    @property
    def is_started(self) -> bool:
        return self.start_time is not None

    @property
    def is_paused(self) -> bool:
        return self._paused_at is not None

    @property
    def elapsed(self) -> float:
        if self.start_time is None:
            return 0.0
        now = self._paused_at if self._paused_at is not None else self._clock()
        return max(0.0, now - self.start_time - self._paused_total)

    @property
    def remaining(self) -> float:
        return max(0.0, self.duration - self.elapsed)

    @property
    def progress(self) -> float:
        if self.duration <= 0:
            return 0.0
        return min(1.0, self.elapsed / self.duration)

    @property
    def elapsed_text(self) -> str:
        return format_duration(self.elapsed)

    @property
    def remaining_text(self) -> str:
        return format_duration(self.remaining)

    @property
    def duration_text(self) -> str:
        return format_duration(self.duration)

    # ── Transitions ──

    def start(self, duration_seconds: float) -> None:
        """Start a new run, discarding any previous one."""
        self.stop()
        self.duration = float(duration_seconds)
        self.start_time = self._clock()
        self.is_active = True
        logger.info("Pacing timer started: %s", format_duration(self.duration))

    def start_minutes(self, minutes: int) -> None:
        if not MIN_DURATION_MINUTES <= minutes <= MAX_DURATION_MINUTES:
            raise InvalidDurationError(
                minutes, MIN_DURATION_MINUTES, MAX_DURATION_MINUTES,
            )
        self.start(minutes * 60)

    def pause(self) -> None:
        if not self.is_active:
            return
        self._paused_at = self._clock()
        self.is_active = False
        logger.debug("Pacing timer paused at %.0fs elapsed", self.elapsed)

    def resume(self) -> None:
        if self.start_time is None or self.is_active:
            return
        if self._paused_at is not None:
            self._paused_total += self._clock() - self._paused_at
            self._paused_at = None
        self.is_active = True
        logger.debug("Pacing timer resumed")

    def stop(self) -> None:
        if self.start_time is not None:
            logger.info("Pacing timer stopped after %s", self.elapsed_text)
        self.duration = 0.0
        self.start_time = None
        self.is_active = False
        self.has_expired = False
        self._paused_at = None
        self._paused_total = 0.0

    def tick(self) -> bool:
        """Periodic update. Returns True on the tick that first observes expiry."""
        if not self.is_active or self.has_expired:
            return False
        if self.remaining <= 0:
            self.has_expired = True
            logger.info("Pacing timer expired (%s session)", self.duration_text)
            return True
        return False

    # ── Prompt directive ──

    def pacing_description(self) -> str | None:
        """Directive for the system prompt, or None when the timer is not running."""
        if not self.is_active:
            return None

        duration_minutes = int(self.duration / 60)
        elapsed_minutes = int(self.elapsed / 60)
        remaining_minutes = int(self.remaining / 60)

        if self.has_expired:
            return (
                f"The user requested a {duration_minutes}-minute session which "
                f"has now expired (running {elapsed_minutes - duration_minutes} "
                "minutes over). Please begin wrapping up the session with a "
                "summary of what was covered."
            )
        if (
            remaining_minutes <= LOW_TIME_THRESHOLD_MINUTES
            and duration_minutes > LOW_TIME_MIN_DURATION_MINUTES
        ):
            return (
                f"The user requested a {duration_minutes}-minute session. "
                f"There are {remaining_minutes} minutes remaining. Consider "
                "starting to wrap up key points."
            )
        return (
            f"The user requested a {duration_minutes}-minute session. "
            f"{elapsed_minutes} minutes have elapsed with {remaining_minutes} "
            "minutes remaining. Pace the lesson accordingly."
        )
