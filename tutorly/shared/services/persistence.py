"""Session persistence: save and load tutoring sessions on disk.

Storage layout:
    {data_dir}/sessions/{session_id}.json

Each file holds one session with its full ordered message list,
including hidden messages and quiz payloads.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
import uuid

from tutorly.engine.models import Mode, parse_mode
from tutorly.shared.models.message import Message, MessageRole
from tutorly.shared.models.quiz import QuizRecord
from tutorly.shared.models.session import DEFAULT_TITLE, Session
from tutorly.shared.services.durable_write import atomic_write_text, fsync_dir

logger = logging.getLogger(__name__)

FORMAT_VERSION = "1.0"


def default_sessions_dir() -> Path:
    return Path.home() / ".tutorly" / "sessions"


class SessionPersistence:
    """Store sessions as one JSON file per session."""

    def __init__(self, base_dir: Path | None = None) -> None:
        self._dir = Path(base_dir) if base_dir is not None else default_sessions_dir()
        self._dir.mkdir(parents=True, exist_ok=True)

    @property
    def directory(self) -> Path:
        return self._dir

    def _path(self, session_id: str) -> Path:
        return self._dir / f"{session_id}.json"

    def save(self, session: Session) -> Path:
        """Serialize *session* atomically, replacing any previous copy."""
        data = {
            "version": FORMAT_VERSION,
            "session_id": session.session_id,
            "title": session.title,
            "created_at": session.created_at.isoformat(),
            "last_message_at": session.last_message_at.isoformat(),
            "saved_at": datetime.now(timezone.utc).isoformat(),
            # In-flight placeholders are never written.
            "messages": [
                _message_to_dict(m) for m in session.messages if not m.streaming
            ],
        }
        path = self._path(session.session_id)
        atomic_write_text(path, json.dumps(data, indent=2))
        session.persisted = True
        logger.info(
            "Session saved to %s (%d messages)", path, len(session.messages),
        )
        return path

    def get(self, session_id: str) -> Session | None:
        """Load one session, or None if it does not exist or is unreadable."""
        path = self._path(session_id)
        if not path.exists():
            return None
        try:
            return _load_file(path)
        except (OSError, ValueError, KeyError) as exc:
            logger.warning("Failed to load session %s: %s", path, exc)
            return None

    def load_all(self) -> list[Session]:
        """All readable sessions, most recent activity first."""
        sessions: list[Session] = []
        for path in self._dir.glob("*.json"):
            try:
                sessions.append(_load_file(path))
            except (OSError, ValueError, KeyError) as exc:
                logger.warning("Skipping unreadable session file %s: %s", path, exc)
        sessions.sort(key=lambda s: s.last_message_at, reverse=True)
        return sessions

    def delete(self, session_id: str) -> bool:
        path = self._path(session_id)
        if not path.exists():
            return False
        path.unlink()
        fsync_dir(self._dir)
        logger.info("Session deleted: %s", session_id)
        return True


def _load_file(path: Path) -> Session:
    data = json.loads(path.read_text(encoding="utf-8"))
    created_at = _parse_timestamp(data.get("created_at")) or datetime.now(timezone.utc)
    last_message_at = _parse_timestamp(data.get("last_message_at")) or created_at
    return Session(
        session_id=str(data.get("session_id") or path.stem),
        title=data.get("title") or DEFAULT_TITLE,
        created_at=created_at,
        last_message_at=last_message_at,
        messages=[_dict_to_message(m) for m in data.get("messages", [])],
        persisted=True,
    )


def _ensure_aware(dt: datetime) -> datetime:
    """Ensure a datetime is timezone-aware (assume UTC if naive)."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


def _parse_timestamp(value: str | None) -> datetime | None:
    if not value:
        return None
    return _ensure_aware(datetime.fromisoformat(value))


def _message_to_dict(msg: Message) -> dict:
    d = {
        "id": msg.id,
        "role": msg.role.value,
        "content": msg.content,
        "mode": msg.mode.value,
        "lens": msg.lens,
        "is_hidden": msg.is_hidden,
        "timestamp": msg.timestamp.isoformat(),
    }
    if msg.quiz_payload is not None:
        d["quiz_payload"] = msg.quiz_payload.to_wire()
    return d


def _dict_to_message(data: dict) -> Message:
    payload = data.get("quiz_payload")
    try:
        mode = parse_mode(data.get("mode"))
    except ValueError:
        mode = Mode.STANDARD
    return Message(
        role=MessageRole(data["role"]),
        content=data.get("content", ""),
        mode=mode,
        lens=data.get("lens"),
        quiz_payload=QuizRecord.from_wire(payload) if payload else None,
        is_hidden=bool(data.get("is_hidden", False)),
        id=data.get("id") or str(uuid.uuid4()),
        timestamp=_parse_timestamp(data.get("timestamp")) or datetime.now(timezone.utc),
    )
