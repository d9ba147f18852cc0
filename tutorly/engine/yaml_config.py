"""YAML configuration loader.

Loads a single YAML file layered on top of ``TutorConfig.from_env()``.
When no YAML is provided, env vars work exactly as before.

Example YAML:
    engine:
      model_id: claude-sonnet-4-5
      max_output_tokens: 8056
      context_window: 10
      max_quiz_retries: 5
      frustration_cooldown: 3
      generate_titles: true
      data_dir: ~/.tutorly

    subject:
      name: Physics - Mech
      system_prompt: |
        You are a physics tutor specializing in mechanics.

    lenses:
      Star Wars: Learn through Star Wars analogies
      Sports:
        description: Learn through sports metaphors
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from .config import TutorConfig
from .models import DEFAULT_LENSES, NO_LENS, Lens

logger = logging.getLogger(__name__)

_INT_FIELDS = (
    "max_output_tokens",
    "context_window",
    "max_quiz_retries",
    "frustration_cooldown",
    "title_max_tokens",
)
_FLOAT_FIELDS = ("request_timeout_seconds",)
_STR_FIELDS = ("model_id", "api_base_url", "log_level")


@dataclass
class TutorlyConfig:
    """Complete parsed configuration."""
    engine: TutorConfig
    lenses: list[Lens] = field(default_factory=lambda: list(DEFAULT_LENSES))

    def find_lens(self, name: str) -> Lens | None:
        key = name.strip().lower()
        for lens in self.lenses:
            if lens.name.lower() == key:
                return lens
        return None


def _parse_lenses(raw: Any) -> list[Lens]:
    """Parse the ``lenses`` section, always keeping a trailing "None" entry."""
    if not raw:
        return list(DEFAULT_LENSES)
    lenses: list[Lens] = []
    if isinstance(raw, dict):
        for name, value in raw.items():
            if isinstance(value, dict):
                description = str(value.get("description", ""))
            else:
                description = str(value or "")
            lenses.append(Lens(name=str(name), description=description))
    elif isinstance(raw, list):
        for item in raw:
            if isinstance(item, dict) and "name" in item:
                lenses.append(Lens(
                    name=str(item["name"]),
                    description=str(item.get("description", "")),
                ))
            elif isinstance(item, str):
                lenses.append(Lens(name=item))
    else:
        logger.warning("load_yaml_config: ignoring malformed lenses section (%s)", type(raw).__name__)
        return list(DEFAULT_LENSES)
    lenses = [lens for lens in lenses if not lens.is_none]
    lenses.append(NO_LENS)
    return lenses


def load_yaml_config(
    path: str | Path,
    base: TutorConfig | None = None,
) -> TutorlyConfig:
    """Load and parse a YAML config file.

    Values in the file override *base* (defaults to
    ``TutorConfig.from_env()``).
    """
    path = Path(path)
    logger.info(
        "load_yaml_config: attempting to load config from %s (exists=%s)",
        path, path.exists(),
    )
    try:
        with open(path) as f:
            raw = yaml.safe_load(f) or {}
    except FileNotFoundError:
        logger.error("load_yaml_config: config file not found at %s", path.absolute())
        raise
    except yaml.YAMLError as exc:
        logger.error("load_yaml_config: YAML parse error in %s: %s", path, exc)
        raise

    if not isinstance(raw, dict):
        raise ValueError(f"{path}: top level must be a mapping")

    engine = base if base is not None else TutorConfig.from_env()
    engine_raw = raw.get("engine") or {}
    for name in _STR_FIELDS:
        if name in engine_raw:
            setattr(engine, name, str(engine_raw[name]))
    for name in _INT_FIELDS:
        if name in engine_raw:
            setattr(engine, name, int(engine_raw[name]))
    for name in _FLOAT_FIELDS:
        if name in engine_raw:
            setattr(engine, name, float(engine_raw[name]))
    if "generate_titles" in engine_raw:
        engine.generate_titles = bool(engine_raw["generate_titles"])
    if engine_raw.get("data_dir"):
        engine.data_dir = Path(str(engine_raw["data_dir"])).expanduser()

    subject_raw = raw.get("subject")
    if isinstance(subject_raw, str):
        engine.subject = subject_raw
    elif isinstance(subject_raw, dict):
        engine.subject = subject_raw.get("name") or engine.subject
        engine.subject_prompt = subject_raw.get("system_prompt") or engine.subject_prompt

    lenses = _parse_lenses(raw.get("lenses"))
    logger.info(
        "Parsed YAML config %s: model=%s subject=%s lenses=%d",
        path.name, engine.model_id, engine.subject, len(lenses),
    )
    return TutorlyConfig(engine=engine, lenses=lenses)
