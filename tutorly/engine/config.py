"""Configuration loaded from environment variables.

All settings have sensible defaults. Override via TUTORLY_* env vars
(the API key is read from ANTHROPIC_API_KEY).
"""
from __future__ import annotations

import logging
import os
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)


# Optional async callback for real-time event observation.
# Signature: async def callback(event: dict[str, Any]) -> None
EventCallback = Callable[[dict[str, Any]], Awaitable[None]]


async def fire_event(
    callback: EventCallback | None,
    event: dict[str, Any],
) -> None:
    """Fire an event callback if set, logging and swallowing errors."""
    if callback is None:
        return
    try:
        await callback(event)
    except Exception:
        logger.debug("Event callback failed for %s", event.get("event"), exc_info=True)


def _default_data_dir() -> Path:
    return Path.home() / ".tutorly"


@dataclass
class TutorConfig:
    """Conversation engine configuration."""

    # Completion service
    model_id: str = "claude-sonnet-4-5"
    max_output_tokens: int = 8056
    api_base_url: str = "https://api.anthropic.com"
    api_key: str | None = field(default=None, repr=False)
    request_timeout_seconds: float = 120.0

    # Conversation behavior
    subject: str | None = None
    # Extra subject-specific instructions appended after the base identity.
    subject_prompt: str | None = None
    # Number of prior messages sent as context with each request.
    context_window: int = 10
    max_quiz_retries: int = 5
    # User messages required between two frustration resets.
    frustration_cooldown: int = 3
    generate_titles: bool = True
    title_max_tokens: int = 20

    # Storage
    data_dir: Path = field(default_factory=_default_data_dir)

    # Logging
    log_level: str = "INFO"

    # Optional async callback for real-time event observation.
    # Receives dicts like {"event": "stream_chunk", "message_id": "...", ...}
    event_callback: EventCallback | None = field(default=None, repr=False)

    @property
    def sessions_dir(self) -> Path:
        return Path(self.data_dir) / "sessions"

    @property
    def logs_dir(self) -> Path:
        return Path(self.data_dir) / "logs"

    @classmethod
    def from_env(cls) -> TutorConfig:
        """Load configuration from TUTORLY_* environment variables."""
        tutor_vars = sorted(k for k in os.environ if k.startswith("TUTORLY_"))
        if tutor_vars:
            logger.info(
                "TutorConfig.from_env: TUTORLY_* env overrides: %s",
                ", ".join(tutor_vars),
            )
        else:
            logger.debug("TutorConfig.from_env: no TUTORLY_* env vars set, using defaults")

        data_dir = os.getenv("TUTORLY_DATA_DIR")
        config = cls(
            model_id=os.getenv("TUTORLY_MODEL", cls.model_id),
            max_output_tokens=int(os.getenv(
                "TUTORLY_MAX_TOKENS", str(cls.max_output_tokens)
            )),
            api_base_url=os.getenv("TUTORLY_API_BASE_URL", cls.api_base_url),
            api_key=os.getenv("ANTHROPIC_API_KEY") or None,
            request_timeout_seconds=float(os.getenv(
                "TUTORLY_REQUEST_TIMEOUT", str(cls.request_timeout_seconds)
            )),
            subject=os.getenv("TUTORLY_SUBJECT") or None,
            context_window=int(os.getenv(
                "TUTORLY_CONTEXT_WINDOW", str(cls.context_window)
            )),
            max_quiz_retries=int(os.getenv(
                "TUTORLY_MAX_QUIZ_RETRIES", str(cls.max_quiz_retries)
            )),
            frustration_cooldown=int(os.getenv(
                "TUTORLY_FRUSTRATION_COOLDOWN", str(cls.frustration_cooldown)
            )),
            generate_titles=(
                os.getenv("TUTORLY_GENERATE_TITLES", "1").lower()
                in {"1", "true", "yes"}
            ),
            data_dir=Path(data_dir).expanduser() if data_dir else _default_data_dir(),
            log_level=os.getenv("TUTORLY_LOG_LEVEL", cls.log_level),
        )
        logger.info(
            "TutorConfig.from_env: model=%s max_tokens=%d context_window=%d data_dir=%s",
            config.model_id, config.max_output_tokens,
            config.context_window, config.data_dir,
        )
        return config
