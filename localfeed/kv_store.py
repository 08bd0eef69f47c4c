from __future__ import annotations

import json
import logging
import sqlite3
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Protocol

from .errors import StorageError, StorageParseError, StorageWriteError
from .storage_schema import initialize_sqlite

logger = logging.getLogger(__name__)

POSTS_KEY = "localfeed.posts.v1"
PROFILE_KEY = "localfeed.profile"
AVATAR_URL_KEY = "localfeed.avatarUrl"
COMMUNITY_KEY = "localfeed.community.v1"


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _json_dumps(value: Any) -> str:
    return json.dumps(
        value,
        ensure_ascii=False,
        separators=(",", ":"),
        default=str,
    )


def _as_path(value: str | Path) -> str:
    return str(value) if isinstance(value, Path) else (value or "").strip()


@dataclass(frozen=True)
class StorageChange:
    """One write observed in the shared state file."""

    seq: int
    key: str
    context_id: str
    removed: bool
    changed_at: str


class KeyValueStore(Protocol):
    context_id: str

    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...

    def remove(self, key: str) -> None: ...


class SQLiteKeyValueStore:
    """
    Synchronous string-keyed, string-valued persistence backed by one SQLite file.

    Each open store is one context. Several contexts may share a file; every
    write is recorded in a change log so the others can observe it through
    `poll_changes`. There are no multi-key transactions: callers store a whole
    collection under one key and rewrite it on every mutation.
    """

    def __init__(self, conn: sqlite3.Connection, *, context_id: str | None = None) -> None:
        self._conn = conn
        self.context_id = (context_id or "").strip() or uuid.uuid4().hex
        self._last_seq = self._max_seq()

    @classmethod
    def open(cls, path: str | Path, *, context_id: str | None = None) -> "SQLiteKeyValueStore":
        db_path = _as_path(path)
        if db_path != ":memory:":
            p = Path(db_path)
            p.parent.mkdir(parents=True, exist_ok=True)

        try:
            conn = sqlite3.connect(db_path)
        except sqlite3.DatabaseError as e:
            raise StorageError(f"Failed to open state file: {db_path}: {e}") from e

        try:
            initialize_sqlite(conn)
        except Exception as e:
            conn.close()
            raise StorageError(f"Failed to initialize state schema: {e}") from e

        return cls(conn, context_id=context_id)

    def close(self) -> None:
        self._conn.close()

    def __enter__(self) -> "SQLiteKeyValueStore":
        return self

    def __exit__(self, exc_type: object, exc: object, tb: object) -> None:
        self.close()

    def get(self, key: str) -> str | None:
        k = _require_key(key)
        try:
            row = self._conn.execute("SELECT value FROM kv WHERE key = ?", (k,)).fetchone()
        except sqlite3.DatabaseError as e:
            raise StorageError(f"Failed to read {k}: {e}") from e
        if row is None:
            return None
        return str(row[0])

    def set(self, key: str, value: str) -> None:
        k = _require_key(key)
        if not isinstance(value, str):
            raise TypeError("value must be a string")

        ts = _utc_now_iso()
        try:
            with self._conn:
                self._conn.execute(
                    """
                    INSERT INTO kv(key, value, updated_at) VALUES (?, ?, ?)
                    ON CONFLICT(key) DO UPDATE SET
                      value = excluded.value,
                      updated_at = excluded.updated_at
                    """.strip(),
                    (k, value, ts),
                )
                self._record_change(k, removed=False, changed_at=ts)
        except sqlite3.DatabaseError as e:
            raise StorageWriteError(f"Failed to write {k}: {e}") from e

    def remove(self, key: str) -> None:
        k = _require_key(key)
        ts = _utc_now_iso()
        try:
            with self._conn:
                cur = self._conn.execute("DELETE FROM kv WHERE key = ?", (k,))
                if cur.rowcount:
                    self._record_change(k, removed=True, changed_at=ts)
        except sqlite3.DatabaseError as e:
            raise StorageWriteError(f"Failed to remove {k}: {e}") from e

    def keys(self) -> list[str]:
        rows = self._conn.execute("SELECT key FROM kv ORDER BY key").fetchall()
        return [str(r[0]) for r in rows]

    def poll_changes(self) -> list[StorageChange]:
        """
        Return writes made by other contexts since the previous poll.

        A context never observes its own writes here.
        """
        try:
            rows = self._conn.execute(
                """
                SELECT seq, key, context_id, removed, changed_at
                FROM kv_changes
                WHERE seq > ?
                ORDER BY seq
                """.strip(),
                (self._last_seq,),
            ).fetchall()
        except sqlite3.DatabaseError as e:
            raise StorageError(f"Failed to read change log: {e}") from e

        out: list[StorageChange] = []
        for r in rows:
            self._last_seq = max(self._last_seq, int(r[0]))
            if str(r[2]) == self.context_id:
                continue
            out.append(
                StorageChange(
                    seq=int(r[0]),
                    key=str(r[1]),
                    context_id=str(r[2]),
                    removed=bool(r[3]),
                    changed_at=str(r[4]),
                )
            )
        return out

    def _record_change(self, key: str, *, removed: bool, changed_at: str) -> None:
        self._conn.execute(
            "INSERT INTO kv_changes(key, context_id, removed, changed_at) VALUES (?, ?, ?, ?)",
            (key, self.context_id, 1 if removed else 0, changed_at),
        )

    def _max_seq(self) -> int:
        row = self._conn.execute("SELECT MAX(seq) FROM kv_changes").fetchone()
        if row is None or row[0] is None:
            return 0
        return int(row[0])


def _require_key(key: str) -> str:
    k = (key or "").strip()
    if not k:
        raise ValueError("key must be non-empty")
    return k


def read_json(store: KeyValueStore, key: str, fallback: Any, *, expect: type | None = None) -> Any:
    """
    Read and decode a JSON value, falling back instead of raising.

    A missing key, undecodable text, or a top-level value that is not an
    instance of `expect` all yield `fallback`. A corrupted value must never
    take the reader down with it.
    """
    raw = store.get(key)
    if raw is None or not raw.strip():
        return fallback

    try:
        return decode_json(key, raw, expect=expect)
    except StorageParseError as e:
        logger.warning("storage_parse_failed key=%s error=%s", key, e)
        return fallback


def decode_json(key: str, raw: str, *, expect: type | None = None) -> Any:
    try:
        value = json.loads(raw)
    except ValueError as e:
        raise StorageParseError(f"{key} is not valid JSON: {e}") from e

    if expect is not None and not isinstance(value, expect):
        raise StorageParseError(f"{key}: expected {expect.__name__}, got {type(value).__name__}")
    return value


def write_json(store: KeyValueStore, key: str, value: Any) -> None:
    store.set(key, _json_dumps(value))
