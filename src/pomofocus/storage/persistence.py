"""Best-effort key-value persistence for settings, tasks and statistics.

Every adapter exposes the same synchronous contract:

    load(key, default) -> value   # never raises, falls back to default
    save(key, value) -> None      # never raises, failures are logged

Values are JSON-compatible structures. In-memory state held by the stores is
the source of truth; a failed write only costs durability.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
from pathlib import Path
from typing import Any, Protocol

from pomofocus.storage.database import Database

logger = logging.getLogger(__name__)

# Keys used by the stores
SETTINGS_KEY = "settings"
TASKS_KEY = "tasks"
TODAY_STATS_KEY = "today_stats"
HISTORY_KEY = "history"
TIMER_STATE_KEY = "timer_state"


class PersistenceAdapter(Protocol):
    """Synchronous, failure-tolerant key-value storage."""

    def load(self, key: str, default: Any = None) -> Any: ...

    def save(self, key: str, value: Any) -> None: ...


def _copy(value: Any) -> Any:
    """Detach a value from the cache by round-tripping through JSON."""
    return json.loads(json.dumps(value))


class MemoryPersistence:
    """Process-local storage, used for tests and ephemeral runs."""

    def __init__(self, initial: dict[str, Any] | None = None):
        self._data: dict[str, Any] = _copy(initial or {})

    def load(self, key: str, default: Any = None) -> Any:
        if key not in self._data:
            return default
        return _copy(self._data[key])

    def save(self, key: str, value: Any) -> None:
        try:
            self._data[key] = _copy(value)
        except (TypeError, ValueError) as e:
            logger.error(f"Failed to save {key}: {e}")

    def keys(self) -> list[str]:
        return list(self._data)


class JsonFilePersistence:
    """All keys stored in a single JSON document on disk.

    The document is read once on first access. Each save rewrites it through a
    temporary file so a crash mid-write never leaves a truncated document.
    """

    def __init__(self, path: Path):
        self.path = path
        self._data: dict[str, Any] | None = None

    def _document(self) -> dict[str, Any]:
        if self._data is None:
            self._data = self._read()
        return self._data

    def _read(self) -> dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.error(f"Failed to read {self.path}, starting from defaults: {e}")
            return {}
        if not isinstance(data, dict):
            logger.error(f"Ignoring malformed state document: {self.path}")
            return {}
        return data

    def load(self, key: str, default: Any = None) -> Any:
        document = self._document()
        if key not in document:
            return default
        return _copy(document[key])

    def save(self, key: str, value: Any) -> None:
        document = self._document()
        try:
            document[key] = _copy(value)
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
            tmp_path.write_text(json.dumps(document, indent=2), encoding="utf-8")
            os.replace(tmp_path, self.path)
        except (OSError, TypeError, ValueError) as e:
            logger.error(f"Failed to save {key} to {self.path}: {e}")


class SqlitePersistence:
    """Key-value storage on top of the SQLite database.

    All rows are cached at ``open()`` so reads stay synchronous. Writes update
    the cache immediately and are scheduled on the running event loop without
    being awaited.

    Usage:
        persistence = SqlitePersistence(Database(config.db_path))
        await persistence.open()
        persistence.save("tasks", [...])
        await persistence.close()  # waits for pending writes
    """

    def __init__(self, db: Database):
        self.db = db
        self._cache: dict[str, Any] = {}
        self._pending: set[asyncio.Task] = set()

    async def open(self) -> None:
        """Connect and load every stored key into the cache."""
        try:
            await self.db.connect()
            rows = await self.db.all_values()
        except Exception as e:
            logger.error(f"Failed to open database, starting from defaults: {e}")
            return

        for key, raw in rows.items():
            try:
                self._cache[key] = json.loads(raw)
            except ValueError as e:
                logger.error(f"Discarding unreadable value for {key}: {e}")

    def load(self, key: str, default: Any = None) -> Any:
        if key not in self._cache:
            return default
        return _copy(self._cache[key])

    def save(self, key: str, value: Any) -> None:
        try:
            raw = json.dumps(value)
        except (TypeError, ValueError) as e:
            logger.error(f"Failed to serialize {key}: {e}")
            return

        self._cache[key] = json.loads(raw)

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning(f"No running event loop, {key} kept in memory only")
            return

        task = loop.create_task(self._write(key, raw))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _write(self, key: str, raw: str) -> None:
        try:
            await self.db.set_value(key, raw)
        except Exception as e:
            logger.error(f"Failed to save {key}: {e}")

    async def flush(self) -> None:
        """Wait for all scheduled writes to finish."""
        if self._pending:
            await asyncio.gather(*list(self._pending))

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    async def close(self) -> None:
        """Flush pending writes and close the database."""
        await self.flush()
        await self.db.close()
