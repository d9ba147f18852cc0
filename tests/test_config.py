"""Tests for env/YAML configuration and the bridge's config resolution."""
from __future__ import annotations

from pathlib import Path

import pytest
import yaml

from tutorly.adapters.tutor_bridge import TutorBridge, discover_config_path, resolve_config
from tutorly.engine.config import TutorConfig
from tutorly.engine.models import Mode
from tutorly.engine.yaml_config import load_yaml_config


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch, tmp_path):
    for name in ("ANTHROPIC_API_KEY", "TUTORLY_MODEL", "TUTORLY_SUBJECT",
                 "TUTORLY_CONTEXT_WINDOW", "TUTORLY_GENERATE_TITLES"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("TUTORLY_DATA_DIR", str(tmp_path / "data"))


def test_from_env_reads_overrides(monkeypatch, tmp_path) -> None:
    monkeypatch.setenv("ANTHROPIC_API_KEY", "sk-env")
    monkeypatch.setenv("TUTORLY_MODEL", "claude-haiku")
    monkeypatch.setenv("TUTORLY_CONTEXT_WINDOW", "4")
    monkeypatch.setenv("TUTORLY_GENERATE_TITLES", "no")

    config = TutorConfig.from_env()

    assert config.api_key == "sk-env"
    assert config.model_id == "claude-haiku"
    assert config.context_window == 4
    assert config.generate_titles is False
    assert config.sessions_dir == tmp_path / "data" / "sessions"
    assert "sk-env" not in repr(config)


def test_yaml_overrides_env(tmp_path) -> None:
    path = tmp_path / "tutorly.yaml"
    path.write_text(yaml.safe_dump({
        "engine": {"model_id": "claude-opus", "context_window": 6, "generate_titles": False},
        "subject": {"name": "Biology", "system_prompt": "Focus on cells."},
        "lenses": {"Sports": "Learn through sports", "Cooking": {"description": "Recipes"}},
    }))

    config = load_yaml_config(path)

    assert config.engine.model_id == "claude-opus"
    assert config.engine.context_window == 6
    assert config.engine.generate_titles is False
    assert config.engine.subject == "Biology"
    assert config.engine.subject_prompt == "Focus on cells."
    assert [lens.name for lens in config.lenses] == ["Sports", "Cooking", "None"]
    assert config.find_lens("cooking").description == "Recipes"


def test_yaml_lens_list_and_string_subject(tmp_path) -> None:
    path = tmp_path / "tutorly.yaml"
    path.write_text("subject: Literature\nlenses:\n  - Nature\n  - name: History\n  - None\n")

    config = load_yaml_config(path)

    assert config.engine.subject == "Literature"
    assert [lens.name for lens in config.lenses] == ["Nature", "History", "None"]


def test_yaml_without_lenses_keeps_defaults(tmp_path) -> None:
    path = tmp_path / "tutorly.yaml"
    path.write_text("engine:\n  max_quiz_retries: 3\n")

    config = load_yaml_config(path)

    assert config.engine.max_quiz_retries == 3
    assert config.find_lens("Star Wars") is not None


def test_yaml_must_be_a_mapping(tmp_path) -> None:
    path = tmp_path / "tutorly.yaml"
    path.write_text("- just\n- a list\n")
    with pytest.raises(ValueError):
        load_yaml_config(path)


def test_missing_yaml_raises(tmp_path) -> None:
    with pytest.raises(FileNotFoundError):
        load_yaml_config(tmp_path / "absent.yaml")


def test_discovery_prefers_dot_directory(tmp_path) -> None:
    assert discover_config_path(tmp_path) is None
    (tmp_path / "tutorly.yaml").write_text("{}")
    assert discover_config_path(tmp_path) == tmp_path / "tutorly.yaml"
    (tmp_path / ".tutorly").mkdir()
    (tmp_path / ".tutorly" / "tutorly.yaml").write_text("{}")
    assert discover_config_path(tmp_path) == tmp_path / ".tutorly" / "tutorly.yaml"


def test_subject_flag_overrides_everything(tmp_path) -> None:
    (tmp_path / "tutorly.yaml").write_text("subject: Biology\n")
    config = resolve_config(subject="Chemistry", cwd=tmp_path)
    assert config.engine.subject == "Chemistry"

    config = resolve_config(cwd=tmp_path)
    assert config.engine.subject == "Biology"


@pytest.mark.asyncio
async def test_bridge_wires_engine_to_event_bus(tmp_path) -> None:
    bridge = TutorBridge()
    assert bridge.configured is False
    with pytest.raises(RuntimeError):
        bridge.engine

    config = resolve_config(cwd=tmp_path)
    config.engine.data_dir = Path(tmp_path / "data")
    engine = bridge.configure(config=config)

    assert bridge.configure() is engine
    assert engine.config.event_callback == bridge.event_bus.make_callback()
    assert (tmp_path / "data" / "sessions").is_dir()
    assert [lens.name for lens in bridge.lenses][-1] == "None"

    await engine.switch_mode(Mode.DEBATE)
    events = bridge.event_bus.drain()
    assert events[0].event_type == "mode_changed"

    await bridge.shutdown()
    assert bridge.event_bus.closed
