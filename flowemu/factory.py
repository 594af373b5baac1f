"""Constructors for the storage backends."""

from __future__ import annotations

from flowemu.redis_store import RedisStore
from flowemu.sqlite_store import IN_MEMORY, SQLiteStore


def create_default_storage() -> SQLiteStore:
    """An in-memory SQLite store."""
    return SQLiteStore(IN_MEMORY)


def new_sqlite_storage(url: str) -> SQLiteStore:
    """An SQLite store at the given file or directory."""
    return SQLiteStore(url)


def new_redis_storage(url: str) -> RedisStore:
    """A Redis store for the given URL."""
    return RedisStore(url)