from __future__ import annotations

import pytest

from tutorly.engine.errors import (
    AuthenticationError,
    FrustrationCooldownError,
    RateLimitError,
    ServiceError,
    TransportError,
    classify_error,
)
from tutorly.engine.models import ErrorKind


@pytest.mark.parametrize(
    "exc, kind, retryable",
    [
        (TransportError("refused"), ErrorKind.TRANSPORT, True),
        (AuthenticationError("bad key", 401), ErrorKind.AUTHENTICATION, False),
        (RateLimitError("slow"), ErrorKind.RATE_LIMIT, True),
        (ServiceError("overloaded", 529), ErrorKind.SERVICE, True),
        (RuntimeError("surprise"), ErrorKind.SERVICE, True),
    ],
)
def test_classify_error(exc: Exception, kind: ErrorKind, retryable: bool) -> None:
    notice = classify_error(exc)
    assert notice.kind == kind
    assert notice.retryable is retryable
    assert notice.message


def test_rate_limit_notice_mentions_wait() -> None:
    notice = classify_error(RateLimitError("slow", retry_after=30))
    assert "30 seconds" in notice.message


def test_service_notice_includes_detail() -> None:
    assert "overloaded" in classify_error(ServiceError("overloaded")).message


def test_cooldown_error_reports_threshold() -> None:
    exc = FrustrationCooldownError(2, 4)
    assert exc.available_at == 4
    assert "until 4 user messages" in str(exc)
