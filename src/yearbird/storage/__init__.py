"""Key-value storage for locally persisted preferences."""

from yearbird.storage.kv import KeyValueStore, LocalFileKeyValueStore, MemoryKeyValueStore

__all__ = ["KeyValueStore", "LocalFileKeyValueStore", "MemoryKeyValueStore"]
