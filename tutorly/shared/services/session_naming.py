"""Generate short session titles from the first user message.

Uses a lightweight completion call to produce a 2-3 word title.
Falls back to the deterministic first-line title when the call fails
or returns something that does not look like a title.
"""
from __future__ import annotations

import asyncio
import logging
import re

from tutorly.engine.providers.base import ChatTurn, CompletionClient
from tutorly.shared.models.session import TITLE_MAX_LENGTH, generate_title

logger = logging.getLogger(__name__)

NAMING_PROMPT = (
    "Generate a concise 2-3 word title that captures the essence of this "
    "question or message. Only respond with the title itself, nothing else.\n\n"
    "Message: {message}"
)

NAMING_TIMEOUT_SECONDS = 15.0
_MAX_WORDS = 8


async def generate_session_title(
    client: CompletionClient,
    user_message: str,
    model_id: str,
    max_output_tokens: int = 20,
) -> str:
    """Generate a title for a session started with *user_message*.

    Returns the deterministic fallback title if model-based naming fails.
    """
    fallback = generate_title(user_message)
    if not client.is_available():
        return fallback
    prompt = NAMING_PROMPT.format(message=user_message[:500])
    try:
        raw = await asyncio.wait_for(
            client.complete(
                None,
                [ChatTurn("user", prompt)],
                max_output_tokens=max_output_tokens,
                model_id=model_id,
            ),
            timeout=NAMING_TIMEOUT_SECONDS,
        )
    except asyncio.TimeoutError:
        logger.debug("Session naming timed out")
        return fallback
    except Exception as exc:
        logger.warning("Session naming failed: %s", exc)
        return fallback

    title = clean_title(raw)
    return title or fallback


def clean_title(raw_text: str) -> str:
    """Normalize model output into a plain title, or "" if implausible."""
    if not raw_text:
        return ""
    text = _strip_code_fence(raw_text.strip())
    text = text.splitlines()[0] if text else ""
    text = re.sub(r"^(title\s*:\s*)", "", text.strip(), flags=re.IGNORECASE)
    text = text.strip().strip("\"'`*#").strip().rstrip(".")
    if not text or not any(ch.isalpha() for ch in text):
        return ""
    if len(text.split()) > _MAX_WORDS:
        return ""
    if len(text) > TITLE_MAX_LENGTH:
        text = text[:TITLE_MAX_LENGTH - 3].rstrip() + "..."
    return text


def _strip_code_fence(text: str) -> str:
    fence = re.match(r"^```\w*\s*\n(?P<body>[\s\S]*?)\n```$", text)
    if fence:
        return fence.group("body").strip()
    return text
