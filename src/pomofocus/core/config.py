"""Configuration management with Pydantic and YAML support."""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class StorageConfig(BaseModel):
    """Where settings, tasks and statistics are kept."""

    backend: str = Field(default="json", pattern="^(json|sqlite)$")


class TimerConfig(BaseModel):
    """Timer engine configuration."""

    auto_start_delay_seconds: float = Field(
        default=2.0, ge=0, le=60, description="Pause before an auto-started session begins"
    )


class AchievementsConfig(BaseModel):
    """Achievement evaluation configuration."""

    enabled: bool = False
    api_url: str = Field(default="http://127.0.0.1:3000/api/achievements")
    timeout_seconds: float = Field(default=5.0, gt=0)
    display_seconds: float = Field(default=5.0, gt=0, description="How long an unlock stays visible")
    gap_seconds: float = Field(default=0.3, ge=0, description="Pause between queued unlocks")


class DailyGoalsConfig(BaseModel):
    """Daily targets used for today's progress bars."""

    pomodoros: int = Field(default=8, ge=1)
    focus_minutes: int = Field(default=200, ge=1)
    tasks: int = Field(default=5, ge=1)


class Config(BaseSettings):
    """Main application configuration."""

    model_config = SettingsConfigDict(
        env_prefix="POMOFOCUS_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    # Paths
    data_dir: Path = Field(default_factory=lambda: Path.home() / ".local/share/pomofocus")
    log_dir: Path = Field(default_factory=lambda: Path.home() / ".local/state/pomofocus")
    config_dir: Path = Field(default_factory=lambda: Path.home() / ".config/pomofocus")

    # Log level
    log_level: str = Field(default="INFO", pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$")

    # Sub-configurations
    storage: StorageConfig = Field(default_factory=StorageConfig)
    timer: TimerConfig = Field(default_factory=TimerConfig)
    achievements: AchievementsConfig = Field(default_factory=AchievementsConfig)
    goals: DailyGoalsConfig = Field(default_factory=DailyGoalsConfig)

    @property
    def db_path(self) -> Path:
        """Path to SQLite database."""
        return self.data_dir / "pomofocus.db"

    @property
    def state_file(self) -> Path:
        """Path to the JSON state document."""
        return self.data_dir / "state.json"

    @property
    def config_file(self) -> Path:
        """Path to YAML config file."""
        return self.config_dir / "config.yaml"

    def ensure_directories(self) -> None:
        """Create all required directories."""
        self.data_dir.mkdir(parents=True, exist_ok=True)
        self.log_dir.mkdir(parents=True, exist_ok=True)
        self.config_dir.mkdir(parents=True, exist_ok=True)

        os.chmod(self.data_dir, 0o700)

    @classmethod
    def load(cls, config_path: Path | None = None) -> Config:
        """Load configuration from YAML file, environment variables, and defaults.

        Priority (highest to lowest):
        1. Environment variables
        2. YAML config file
        3. Default values
        """
        config_path = config_path or Path.home() / ".config/pomofocus/config.yaml"

        yaml_config: dict[str, Any] = {}
        if config_path.exists():
            with open(config_path) as f:
                yaml_config = yaml.safe_load(f) or {}

        # pydantic-settings gives init kwargs precedence over env vars, so only
        # pass YAML keys that the environment does not override.
        overridden = {
            key[len("POMOFOCUS_"):].split("__")[0].lower()
            for key in os.environ
            if key.startswith("POMOFOCUS_")
        }
        init_data = {k: v for k, v in yaml_config.items() if k not in overridden}

        return cls(**init_data)

    def save(self, config_path: Path | None = None) -> None:
        """Save current configuration to YAML file."""
        config_path = config_path or self.config_file
        config_path.parent.mkdir(parents=True, exist_ok=True)

        data = self.model_dump(exclude_none=True)

        # Convert Path objects to strings for YAML
        for key in ["data_dir", "log_dir", "config_dir"]:
            if key in data:
                data[key] = str(data[key])

        with open(config_path, "w") as f:
            yaml.dump(data, f, default_flow_style=False, sort_keys=False)


@lru_cache
def get_config() -> Config:
    """Get cached configuration instance."""
    return Config.load()
