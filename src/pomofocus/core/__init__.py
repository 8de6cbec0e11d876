"""Core configuration and user settings."""

from pomofocus.core.config import Config, get_config
from pomofocus.core.settings import Settings, SettingsStore

__all__ = ["Config", "get_config", "Settings", "SettingsStore"]
