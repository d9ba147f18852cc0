"""Bridge between the conversation engine and the Tutorly frontends.

Resolves configuration, builds the completion client, session store
and ``ConversationEngine`` with ``event_callback`` wired to an
``EventBus``, and owns their shutdown.
"""
from __future__ import annotations

import logging
from pathlib import Path

from tutorly.adapters.event_bus import EventBus
from tutorly.engine.config import TutorConfig
from tutorly.engine.engine import ConversationEngine
from tutorly.engine.models import DEFAULT_LENSES, Lens
from tutorly.engine.providers.anthropic_provider import AnthropicProvider
from tutorly.engine.yaml_config import TutorlyConfig, load_yaml_config
from tutorly.shared.services.persistence import SessionPersistence

logger = logging.getLogger(__name__)

CONFIG_CANDIDATES = (Path(".tutorly") / "tutorly.yaml", Path("tutorly.yaml"))


def discover_config_path(cwd: Path | None = None) -> Path | None:
    """Return the first config file found under *cwd*, if any."""
    root = cwd or Path.cwd()
    for candidate in CONFIG_CANDIDATES:
        path = root / candidate
        if path.exists():
            logger.info("Auto-discovered config: %s", path)
            return path
    logger.debug(
        "No config file found (tried %s); using defaults",
        ", ".join(str(root / c) for c in CONFIG_CANDIDATES),
    )
    return None


def resolve_config(
    config_path: str | Path | None = None,
    subject: str | None = None,
    cwd: Path | None = None,
) -> TutorlyConfig:
    """Build the effective configuration.

    Environment variables come first, then the YAML file (explicit or
    auto-discovered), then the ``--subject`` override.
    """
    path = Path(config_path) if config_path else discover_config_path(cwd)
    if path is not None:
        resolved = load_yaml_config(path)
    else:
        resolved = TutorlyConfig(engine=TutorConfig.from_env(), lenses=list(DEFAULT_LENSES))
    if subject:
        resolved.engine.subject = subject
    return resolved


class TutorBridge:
    """Connects the conversation engine to a frontend.

    Usage:
        bridge = TutorBridge()
        bridge.configure(config_path="tutorly.yaml")
        # Consume bridge.event_bus in the UI, then:
        await bridge.engine.send_message("Explain photosynthesis")
    """

    def __init__(self, event_bus: EventBus | None = None) -> None:
        self.event_bus = event_bus or EventBus()
        self._engine: ConversationEngine | None = None
        self._config: TutorlyConfig | None = None

    @property
    def configured(self) -> bool:
        return self._engine is not None

    @property
    def engine(self) -> ConversationEngine:
        if self._engine is None:
            raise RuntimeError("TutorBridge.configure() has not been called")
        return self._engine

    @property
    def config(self) -> TutorlyConfig:
        if self._config is None:
            raise RuntimeError("TutorBridge.configure() has not been called")
        return self._config

    @property
    def lenses(self) -> list[Lens]:
        return self.engine.lenses

    def configure(
        self,
        config: TutorlyConfig | None = None,
        config_path: str | Path | None = None,
        subject: str | None = None,
    ) -> ConversationEngine:
        """Build the engine. Safe to call once per bridge."""
        if self._engine is not None:
            return self._engine
        resolved = config or resolve_config(config_path, subject)
        engine_config = resolved.engine
        engine_config.event_callback = self.event_bus.make_callback()

        client = AnthropicProvider(
            api_key=engine_config.api_key,
            base_url=engine_config.api_base_url,
            timeout_seconds=engine_config.request_timeout_seconds,
        )
        if not client.is_available():
            logger.warning("ANTHROPIC_API_KEY is not set; requests will fail until it is")

        store = SessionPersistence(engine_config.sessions_dir)
        self._engine = ConversationEngine(
            client,
            store,
            config=engine_config,
            lenses=resolved.lenses,
        )
        self._config = resolved
        logger.info(
            "Bridge configured: model=%s subject=%s sessions=%s",
            engine_config.model_id, engine_config.subject or "<general>",
            store.directory,
        )
        return self._engine

    async def shutdown(self) -> None:
        if self._engine is not None:
            await self._engine.shutdown()
        self.event_bus.close()
