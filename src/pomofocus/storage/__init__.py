"""Storage layer for persisted application state."""

from pomofocus.storage.database import Database
from pomofocus.storage.persistence import (
    JsonFilePersistence,
    MemoryPersistence,
    PersistenceAdapter,
    SqlitePersistence,
)

__all__ = [
    "Database",
    "JsonFilePersistence",
    "MemoryPersistence",
    "PersistenceAdapter",
    "SqlitePersistence",
]
