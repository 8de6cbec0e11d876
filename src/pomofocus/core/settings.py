"""User preferences: durations, auto-start flags, notification and sound toggles."""

from __future__ import annotations

import logging
from typing import Any, Callable, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from pomofocus.storage.persistence import SETTINGS_KEY, PersistenceAdapter

logger = logging.getLogger(__name__)


class Settings(BaseModel):
    """Immutable snapshot of the user's preferences.

    Durations are in minutes. Out-of-range values are rejected here so the
    timer engine can trust every duration it reads.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    focus_time: int = Field(default=25, ge=1, le=60)
    short_break_time: int = Field(default=5, ge=1, le=30)
    long_break_time: int = Field(default=15, ge=1, le=60)
    long_break_after: int = Field(default=4, ge=1, le=10, description="Focus sessions before a long break")
    auto_start_next_session: bool = False
    auto_start_break: bool = False
    notification_advance_time: Literal[0, 30, 60] = 0
    alarm_sound: str = Field(default="bell", min_length=1)
    sound_enabled: bool = True
    notification_enabled: bool = True
    theme: Literal["light", "dark", "auto"] = "light"


SettingsListener = Callable[[Settings, frozenset[str]], None]


class SettingsStore:
    """Holds the current Settings snapshot and persists every change.

    Listeners receive the new snapshot and the names of the fields that
    changed; the application uses this to refresh an idle timer's duration.
    """

    def __init__(self, persistence: PersistenceAdapter):
        self._persistence = persistence
        self._settings = Settings()
        self._listeners: list[SettingsListener] = []

    @property
    def snapshot(self) -> Settings:
        """The current settings. Safe to hold on to: it never changes."""
        return self._settings

    def add_listener(self, listener: SettingsListener) -> None:
        self._listeners.append(listener)

    def load(self) -> Settings:
        """Load persisted settings, falling back to defaults."""
        data = self._persistence.load(SETTINGS_KEY)
        if data is None:
            self._settings = Settings()
            return self._settings

        try:
            self._settings = Settings.model_validate(data)
        except ValidationError as e:
            logger.error(f"Stored settings are invalid, using defaults: {e}")
            self._settings = Settings()
        return self._settings

    def update(self, **changes: Any) -> Settings:
        """Apply changes atomically.

        Raises:
            pydantic.ValidationError: if any value is out of range or unknown.
                The current snapshot is left untouched.
        """
        updated = Settings.model_validate({**self._settings.model_dump(), **changes})
        changed = frozenset(
            key for key in changes if getattr(updated, key) != getattr(self._settings, key)
        )
        self._settings = updated
        self._persistence.save(SETTINGS_KEY, updated.model_dump())

        if changed:
            logger.info(f"Settings updated: {', '.join(sorted(changed))}")
            self._notify(changed)
        return updated

    def reset_to_defaults(self) -> Settings:
        defaults = Settings()
        changed = frozenset(
            key for key in Settings.model_fields
            if getattr(defaults, key) != getattr(self._settings, key)
        )
        self._settings = defaults
        self._persistence.save(SETTINGS_KEY, defaults.model_dump())
        logger.info("Settings reset to defaults")
        if changed:
            self._notify(changed)
        return defaults

    def _notify(self, changed: frozenset[str]) -> None:
        for listener in self._listeners:
            try:
                listener(self._settings, changed)
            except Exception as e:
                logger.error(f"Error in settings listener: {e}")
