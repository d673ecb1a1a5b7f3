"""
deployreg.runtime.storage_api — host hooks for deterministic key/value storage.

This module provides the storage primitives that `deployreg.stdlib.storage`
re-exports to contracts, plus the pluggable backends a host runs on.

Design goals
------------
- Deterministic: pure functions over (key, value) with no wall-clock or I/O
  on the read/write path; persistence happens only in `flush()`.
- Frame-scoped: contract-facing calls resolve the backend of the active call
  frame, so independent hosts never share state.
- Safe: strict byte-length caps taken from the frame's RegistryConfig.

Contract-facing API (re-exported by stdlib.storage)
---------------------------------------------------
- get(key: bytes) -> Optional[bytes]
- set(key: bytes, value: bytes) -> None
- exists(key: bytes) -> bool

There is no delete: registry state only grows.

Backends
--------
- MemoryBackend      in-process dict (default; tests and embedding)
- JsonFileBackend    {"version": 1, "storage": {hexkey: hexval}} written atomically
- SqliteBackend      single `kv` table, WAL, one transaction per flush
- open_backend(path) picks one from a path / URI
"""

from __future__ import annotations

import contextlib
import json
import logging
import os
import sqlite3
import tempfile
import threading
from pathlib import Path
from typing import Dict, Iterator, Optional, Protocol, Tuple, Union, runtime_checkable

from deployreg.errors import StorageError
from deployreg.runtime.context import current_frame

log = logging.getLogger(__name__)

STATE_FILE_VERSION = 1
SQLITE_SUFFIXES = (".db", ".sqlite", ".sqlite3")


# ---------------------------- Backend API ---------------------------- #


@runtime_checkable
class StorageBackend(Protocol):
    """Minimal backend interface for contract storage."""

    def get(self, key: bytes) -> Optional[bytes]: ...
    def set(self, key: bytes, value: bytes) -> None: ...
    def exists(self, key: bytes) -> bool: ...
    def flush(self) -> None: ...
    def close(self) -> None: ...


class MemoryBackend:
    """Thread-safe in-memory backend for local runs and tests."""

    def __init__(self, initial: Optional[Dict[bytes, bytes]] = None) -> None:
        self._store: Dict[bytes, bytes] = dict(initial or {})
        self._lock = threading.RLock()

    def get(self, key: bytes) -> Optional[bytes]:
        with self._lock:
            return self._store.get(key)

    def set(self, key: bytes, value: bytes) -> None:
        with self._lock:
            self._store[key] = value

    def exists(self, key: bytes) -> bool:
        with self._lock:
            return key in self._store

    def flush(self) -> None:
        return None

    def close(self) -> None:
        return None

    def items(self) -> Tuple[Tuple[bytes, bytes], ...]:
        with self._lock:
            return tuple(sorted(self._store.items()))

    def __len__(self) -> int:
        with self._lock:
            return len(self._store)


class JsonFileBackend(MemoryBackend):
    """
    Memory backend persisted to a JSON document.

    The file is read once on open and rewritten atomically (temp file +
    os.replace) on every flush that follows a write.
    """

    def __init__(self, path: Union[str, Path]) -> None:
        self.path = Path(path)
        super().__init__(self._load(self.path))
        self._dirty = False

    @staticmethod
    def _load(path: Path) -> Dict[bytes, bytes]:
        if not path.exists():
            return {}
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as e:
            raise StorageError(f"invalid JSON in state file {path}: {e}") from e
        if not isinstance(data, dict) or not isinstance(data.get("storage"), dict):
            raise StorageError(f"malformed state file at {path}")
        if data.get("version") != STATE_FILE_VERSION:
            raise StorageError(
                f"unsupported state file version {data.get('version')!r}",
                context={"path": str(path)},
            )
        try:
            return {bytes.fromhex(k): bytes.fromhex(v) for k, v in data["storage"].items()}
        except (TypeError, ValueError, AttributeError) as e:
            raise StorageError(f"non-hex entry in state file {path}") from e

    def set(self, key: bytes, value: bytes) -> None:
        super().set(key, value)
        self._dirty = True

    def flush(self) -> None:
        with self._lock:
            if not self._dirty:
                return
            doc = {
                "version": STATE_FILE_VERSION,
                "storage": {k.hex(): v.hex() for k, v in sorted(self._store.items())},
            }
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp = tempfile.mkstemp(prefix=".state-", suffix=".json", dir=self.path.parent)
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as fh:
                    json.dump(doc, fh, indent=2, sort_keys=True)
                os.replace(tmp, self.path)
            except OSError as e:
                with contextlib.suppress(OSError):
                    os.unlink(tmp)
                raise StorageError(f"failed to write state file {self.path}: {e}", deterministic=False) from e
            self._dirty = False
            log.debug("flushed %d keys to %s", len(self._store), self.path)


class SqliteBackend:
    """
    SQLite-backed storage.

    Writes are buffered and committed in a single transaction on `flush()`;
    reads see buffered writes first. Thread-safe via an internal RLock.
    `path` may be a filesystem path or a URI (e.g. "file:reg.db?mode=rwc").
    """

    SCHEMA_VERSION = 1

    def __init__(self, path: Union[str, Path]) -> None:
        p = str(path)
        uri = p.startswith("file:")
        if not uri and p != ":memory:":
            Path(p).parent.mkdir(parents=True, exist_ok=True)
        self._db = sqlite3.connect(
            p,
            uri=uri,
            check_same_thread=False,
            isolation_level=None,  # autocommit; transactions are explicit
        )
        self._lock = threading.RLock()
        self._pending: Dict[bytes, bytes] = {}
        self._apply_pragmas()
        with self._tx():
            self._migrate()

    def _apply_pragmas(self) -> None:
        with self._lock:
            self._db.execute("PRAGMA journal_mode=WAL")
            self._db.execute("PRAGMA synchronous=NORMAL")

    def _migrate(self) -> None:
        self._db.execute(
            "CREATE TABLE IF NOT EXISTS kv (k BLOB PRIMARY KEY, v BLOB NOT NULL)"
        )
        self._db.execute("CREATE TABLE IF NOT EXISTS meta (k TEXT PRIMARY KEY, v TEXT NOT NULL)")
        row = self._db.execute("SELECT v FROM meta WHERE k = 'schema_version'").fetchone()
        if row is None:
            self._db.execute(
                "INSERT INTO meta (k, v) VALUES ('schema_version', ?)", (str(self.SCHEMA_VERSION),)
            )
        elif int(row[0]) != self.SCHEMA_VERSION:
            raise StorageError(f"unsupported sqlite schema version {row[0]}")

    @contextlib.contextmanager
    def _tx(self) -> Iterator[None]:
        with self._lock:
            self._db.execute("BEGIN IMMEDIATE")
            try:
                yield
            except BaseException:
                self._db.execute("ROLLBACK")
                raise
            else:
                self._db.execute("COMMIT")

    def get(self, key: bytes) -> Optional[bytes]:
        with self._lock:
            if key in self._pending:
                return self._pending[key]
            row = self._db.execute("SELECT v FROM kv WHERE k = ?", (key,)).fetchone()
            return bytes(row[0]) if row is not None else None

    def set(self, key: bytes, value: bytes) -> None:
        with self._lock:
            self._pending[key] = value

    def exists(self, key: bytes) -> bool:
        return self.get(key) is not None

    def flush(self) -> None:
        with self._lock:
            if not self._pending:
                return
            try:
                with self._tx():
                    self._db.executemany(
                        "INSERT INTO kv (k, v) VALUES (?, ?) "
                        "ON CONFLICT(k) DO UPDATE SET v = excluded.v",
                        list(self._pending.items()),
                    )
            except sqlite3.Error as e:
                raise StorageError(f"sqlite flush failed: {e}", deterministic=False) from e
            log.debug("committed %d writes to sqlite", len(self._pending))
            self._pending.clear()

    def close(self) -> None:
        with self._lock:
            self.flush()
            self._db.close()


def open_backend(path: Union[str, Path, None]) -> StorageBackend:
    """
    Open a backend from a location:
      None / ":memory:"            -> MemoryBackend
      *.db, *.sqlite, *.sqlite3    -> SqliteBackend
      "file:..." URI               -> SqliteBackend
      anything else                -> JsonFileBackend
    """
    if path is None or str(path) == ":memory:":
        return MemoryBackend()
    s = str(path)
    if s.startswith("file:") or Path(s).suffix.lower() in SQLITE_SUFFIXES:
        return SqliteBackend(s)
    return JsonFileBackend(s)


# --------------------------- Validation helpers --------------------------- #


def _check_key(key: bytes) -> bytes:
    if not isinstance(key, (bytes, bytearray)):
        raise StorageError("storage key must be bytes")
    if len(key) == 0:
        raise StorageError("storage key must be non-empty")
    max_len = current_frame().config.max_storage_key_bytes
    if len(key) > max_len:
        raise StorageError(f"storage key too long (>{max_len} bytes)", context={"len": len(key)})
    return bytes(key)


def _check_value(value: bytes) -> bytes:
    if not isinstance(value, (bytes, bytearray)):
        raise StorageError("storage value must be bytes")
    max_len = current_frame().config.max_storage_value_bytes
    if len(value) > max_len:
        raise StorageError(f"storage value too large (>{max_len} bytes)", context={"len": len(value)})
    return bytes(value)


# --------------------------- Contract-facing API --------------------------- #


def get(key: bytes) -> Optional[bytes]:
    """Return the value for `key`, or None if not set."""
    return current_frame().storage.get(_check_key(key))


def set(key: bytes, value: bytes) -> None:
    """Set `key` to `value` (overwrites existing)."""
    k = _check_key(key)
    current_frame().storage.set(k, _check_value(value))


def exists(key: bytes) -> bool:
    """Return True if `key` is present."""
    return current_frame().storage.exists(_check_key(key))


__all__ = [
    "StorageBackend",
    "MemoryBackend",
    "JsonFileBackend",
    "SqliteBackend",
    "open_backend",
    "STATE_FILE_VERSION",
    "get",
    "set",
    "exists",
]
