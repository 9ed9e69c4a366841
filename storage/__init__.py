"""Key-value persistence used by memory, notes and custom tools."""

from .kv import KeyValueStore, InMemoryStore, SQLiteStore

__all__ = ["KeyValueStore", "InMemoryStore", "SQLiteStore"]
