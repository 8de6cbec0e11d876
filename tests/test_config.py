"""Tests for configuration loading."""

import os

import pytest
import yaml
from pydantic import ValidationError

from pomofocus.core.config import Config, StorageConfig


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for key in list(os.environ):
        if key.startswith("POMOFOCUS_"):
            monkeypatch.delenv(key)


def test_defaults():
    config = Config()
    assert config.storage.backend == "json"
    assert config.timer.auto_start_delay_seconds == 2.0
    assert config.achievements.enabled is False
    assert config.achievements.display_seconds == 5.0
    assert config.achievements.gap_seconds == 0.3
    assert (config.goals.pomodoros, config.goals.focus_minutes, config.goals.tasks) == (8, 200, 5)
    assert config.state_file == config.data_dir / "state.json"
    assert config.db_path == config.data_dir / "pomofocus.db"


def test_load_from_yaml(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(yaml.dump({
        "storage": {"backend": "sqlite"},
        "timer": {"auto_start_delay_seconds": 5},
        "goals": {"pomodoros": 10},
    }))

    config = Config.load(path)

    assert config.storage.backend == "sqlite"
    assert config.timer.auto_start_delay_seconds == 5
    assert config.goals.pomodoros == 10
    assert config.goals.tasks == 5


def test_environment_beats_yaml(tmp_path, monkeypatch):
    path = tmp_path / "config.yaml"
    path.write_text(yaml.dump({"log_level": "WARNING", "storage": {"backend": "sqlite"}}))
    monkeypatch.setenv("POMOFOCUS_LOG_LEVEL", "DEBUG")

    config = Config.load(path)

    assert config.log_level == "DEBUG"
    assert config.storage.backend == "sqlite"


def test_missing_file_uses_defaults(tmp_path):
    assert Config.load(tmp_path / "absent.yaml").storage.backend == "json"


def test_invalid_backend_rejected():
    with pytest.raises(ValidationError):
        StorageConfig(backend="redis")


def test_save_round_trip(tmp_path):
    config = Config(data_dir=tmp_path / "data", storage=StorageConfig(backend="sqlite"))
    path = tmp_path / "saved.yaml"
    config.save(path)

    loaded = Config.load(path)
    assert loaded.data_dir == tmp_path / "data"
    assert loaded.storage.backend == "sqlite"


def test_ensure_directories(tmp_path):
    config = Config(
        data_dir=tmp_path / "data",
        log_dir=tmp_path / "logs",
        config_dir=tmp_path / "config",
    )
    config.ensure_directories()
    assert config.data_dir.is_dir()
    assert config.log_dir.is_dir()
    assert config.config_dir.is_dir()
