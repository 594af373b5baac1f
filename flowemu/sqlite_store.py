"""Chain state store kept in an SQLite database."""

from __future__ import annotations

import os
import sqlite3
import threading
import time
from typing import Optional

from flowemu.errors import EmulatorError, EntityNotFoundError
from flowemu.store import (
    BLOCK_INDEX_STORE_NAME,
    BLOCK_STORE_NAME,
    COLLECTION_STORE_NAME,
    EVENT_STORE_NAME,
    GLOBAL_STORE_NAME,
    LEDGER_STORE_NAME,
    TRANSACTION_RESULT_STORE_NAME,
    TRANSACTION_STORE_NAME,
    DefaultKeyGenerator,
    DefaultStore,
)

IN_MEMORY = ":memory:"

_SNAPSHOT_PREFIX = "snapshot_"
_DB_FILE_NAME = "emulator.sqlite"
_NOT_SUPPORTED = "snapshot is not supported with current configuration"

_TABLES = (
    GLOBAL_STORE_NAME,
    BLOCK_INDEX_STORE_NAME,
    BLOCK_STORE_NAME,
    COLLECTION_STORE_NAME,
    TRANSACTION_STORE_NAME,
    TRANSACTION_RESULT_STORE_NAME,
    EVENT_STORE_NAME,
    LEDGER_STORE_NAME,
)

_ROLLBACK_TABLES = (
    LEDGER_STORE_NAME,
    BLOCK_STORE_NAME,
    BLOCK_INDEX_STORE_NAME,
    EVENT_STORE_NAME,
    TRANSACTION_STORE_NAME,
    COLLECTION_STORE_NAME,
    TRANSACTION_RESULT_STORE_NAME,
)


def _connect(target: str) -> sqlite3.Connection:
    return sqlite3.connect(
        target, uri=True, check_same_thread=False, isolation_level=None
    )


def _table(name: str) -> str:
    return '"' + name.replace('"', '""') + '"'


def _init_db(conn: sqlite3.Connection) -> None:
    conn.execute("BEGIN")
    try:
        for name in _TABLES:
            conn.execute(
                f"CREATE TABLE IF NOT EXISTS {_table(name)} ("
                "key TEXT NOT NULL, version INTEGER NOT NULL, value TEXT NOT NULL, "
                "height INTEGER NOT NULL, PRIMARY KEY (key, version, height))"
            )
            conn.execute(
                f"CREATE INDEX IF NOT EXISTS {_table(name + '_height')} "
                f"ON {_table(name)} (height)"
            )
    except BaseException:
        conn.execute("ROLLBACK")
        raise
    conn.execute("COMMIT")


def _table_count(conn: sqlite3.Connection) -> int:
    row = conn.execute(
        "SELECT count(name) FROM sqlite_master WHERE type='table'"
    ).fetchone()
    return int(row[0])


class SQLiteStore(DefaultStore):
    """Chain state in an SQLite database file, directory or in memory."""

    def __init__(self, url: str = IN_MEMORY) -> None:
        super().__init__(DefaultKeyGenerator())
        db_url = url
        if url != IN_MEMORY:
            try:
                os.stat(url)
            except FileNotFoundError as exc:
                raise FileNotFoundError(
                    exc.errno, f"unable to find database file: {exc.strerror}", url
                ) from exc
            if os.path.isdir(url):
                db_url = os.path.join(url, _DB_FILE_NAME)
        self.url = url
        self._id = time.time_ns() // 1_000_000
        self._lock = threading.RLock()
        self._snapshot_names: list[str] = []
        self._memory_holders: list[sqlite3.Connection] = []
        self._db = _connect(db_url)
        try:
            _init_db(self._db)
        except BaseException:
            self._db.close()
            raise

    def __enter__(self) -> "SQLiteStore":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    # --- rollback -----------------------------------------------------------

    def rollback_to_block_height(self, height: int) -> None:
        """Delete everything written above the given height."""
        if self.current_height <= height:
            raise ValueError("rollback height should be less then current height")
        with self._lock:
            self._db.execute("BEGIN")
            try:
                for name in _ROLLBACK_TABLES:
                    self._db.execute(
                        f"DELETE FROM {_table(name)} WHERE height > ?", (height,)
                    )
            except BaseException:
                self._db.execute("ROLLBACK")
                raise
            self._db.execute("COMMIT")
        self.set_block_height(height)

    # --- snapshots ----------------------------------------------------------

    def _memory_uri(self, name: str) -> str:
        return f"file:{name}{self._id}?mode=memory&cache=shared"

    def snapshots(self) -> list[str]:
        """Names of the snapshots that can be loaded."""
        if not self.support_snapshots_with_current_config():
            raise EmulatorError(_NOT_SUPPORTED)
        if self.url == IN_MEMORY:
            return list(self._snapshot_names)
        return [
            entry.name[len(_SNAPSHOT_PREFIX):]
            for entry in sorted(os.scandir(self.url), key=lambda e: e.name)
            if not entry.is_dir() and entry.name.startswith(_SNAPSHOT_PREFIX)
        ]

    def load_snapshot(self, name: str) -> None:
        """Switch the store over to a previously created snapshot."""
        if not self.support_snapshots_with_current_config():
            raise EmulatorError(_NOT_SUPPORTED)
        with self._lock:
            if self.url == IN_MEMORY:
                conn = _connect(self._memory_uri(name))
                try:
                    count = _table_count(conn)
                except BaseException:
                    conn.close()
                    raise
                if count == 0:
                    conn.close()
                    raise EntityNotFoundError(f"snapshot {name} does not exist")
            else:
                path = os.path.join(self.url, _SNAPSHOT_PREFIX + name)
                if not os.path.exists(path):
                    raise EntityNotFoundError(f"snapshot {name} does not exist")
                conn = _connect(path)
            self._db.close()
            self._db = conn

    def create_snapshot(self, name: str) -> None:
        """Copy the current database into a snapshot with the given name."""
        if not self.support_snapshots_with_current_config():
            raise EmulatorError(_NOT_SUPPORTED)
        with self._lock:
            if self.url == IN_MEMORY:
                target = self._memory_uri(name)
                # keeps the shared in-memory database alive
                holder = _connect(target)
                _table_count(holder)
                self._memory_holders.append(holder)
            else:
                target = os.path.join(self.url, _SNAPSHOT_PREFIX + name)
            escaped = target.replace("'", "''")
            self._db.execute(f"VACUUM main INTO '{escaped}'")
            self._snapshot_names.append(name)

    def support_snapshots_with_current_config(self) -> bool:
        """Snapshots work in memory and for directory-based databases."""
        if self.url == IN_MEMORY:
            return True
        return os.path.isdir(self.url)

    # --- byte-level backend -------------------------------------------------

    def get_bytes(self, store: str, key: bytes) -> bytes:
        return self.get_bytes_at_version(store, key, 0)

    def set_bytes(self, store: str, key: bytes, value: bytes) -> None:
        self.set_bytes_with_version(store, key, value, 0)

    def set_bytes_with_version(
        self, store: str, key: bytes, value: bytes, version: int
    ) -> None:
        height = 0 if store == GLOBAL_STORE_NAME else self.current_height
        self.set_bytes_with_version_and_height(store, key, value, version, height)

    def get_bytes_at_version(self, store: str, key: bytes, version: int) -> bytes:
        with self._lock:
            row = self._db.execute(
                f"SELECT value FROM {_table(store)} WHERE key = ? AND version <= ? "
                "ORDER BY version DESC, height DESC LIMIT 1",
                (bytes(key).hex(), version),
            ).fetchone()
        if row is None:
            raise EntityNotFoundError()
        return bytes.fromhex(row[0])

    def set_bytes_with_version_and_height(
        self,
        store: str,
        key: bytes,
        value: Optional[bytes],
        version: int,
        height: int,
    ) -> None:
        """Write a value with an explicit height, as state migrations need."""
        with self._lock:
            self._db.execute(
                f"INSERT INTO {_table(store)} (key, version, value, height) "
                "VALUES (?, ?, ?, ?) ON CONFLICT(key, version, height) "
                "DO UPDATE SET value=excluded.value",
                (bytes(key).hex(), version, bytes(value or b"").hex(), height),
            )

    def close(self) -> None:
        """Close the database and any in-memory snapshots."""
        with self._lock:
            self._db.close()
            for holder in self._memory_holders:
                holder.close()
            self._memory_holders.clear()