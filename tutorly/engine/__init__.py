"""Tutorly conversation engine: modes, lenses, pacing and the quiz protocol."""
from .models import (
    DEFAULT_LENSES,
    ErrorKind,
    Lens,
    Mode,
    QuizType,
    RecordType,
    SendOutcome,
)
from .config import TutorConfig
from .errors import (
    AuthenticationError,
    CompletionError,
    FrustrationCooldownError,
    InvalidDurationError,
    NoActiveQuizError,
    QuizTypeNotPendingError,
    RateLimitError,
    RequestInFlightError,
    ServiceError,
    SessionNotFoundError,
    TransportError,
    TutorError,
)

__all__ = [
    # Core engine (lazy import to avoid circular deps)
    "ConversationEngine",
    # Models
    "DEFAULT_LENSES",
    "ErrorKind",
    "Lens",
    "Mode",
    "QuizType",
    "RecordType",
    "SendOutcome",
    # Config
    "TutorConfig",
    # YAML config (lazy import)
    "TutorlyConfig",
    "load_yaml_config",
    # Collaborators (lazy import)
    "PacingTimer",
    "PromptComposer",
    "CompletionClient",
    "AnthropicProvider",
    # Errors
    "AuthenticationError",
    "CompletionError",
    "FrustrationCooldownError",
    "InvalidDurationError",
    "NoActiveQuizError",
    "QuizTypeNotPendingError",
    "RateLimitError",
    "RequestInFlightError",
    "ServiceError",
    "SessionNotFoundError",
    "TransportError",
    "TutorError",
]


def __getattr__(name: str):
    if name == "ConversationEngine":
        from .engine import ConversationEngine
        return ConversationEngine
    if name == "TutorlyConfig":
        from .yaml_config import TutorlyConfig
        return TutorlyConfig
    if name == "load_yaml_config":
        from .yaml_config import load_yaml_config
        return load_yaml_config
    if name == "PacingTimer":
        from .pacing import PacingTimer
        return PacingTimer
    if name == "PromptComposer":
        from .prompts import PromptComposer
        return PromptComposer
    if name == "CompletionClient":
        from .providers.base import CompletionClient
        return CompletionClient
    if name == "AnthropicProvider":
        from .providers.anthropic_provider import AnthropicProvider
        return AnthropicProvider
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
