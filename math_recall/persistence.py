from __future__ import annotations

import json
import logging
import os
import sqlite3
from collections.abc import Iterable
from pathlib import Path

from .leaderboard import LeaderboardEntry, LeaderboardStore, entries_from_payload, sort_and_trim

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1
LEADERBOARD_KEY = "mathRecall_leaderboard_v1"

LEADERBOARD_BACKEND_ENV = "MATH_RECALL_LEADERBOARD_BACKEND"
LEADERBOARD_PATH_ENV = "MATH_RECALL_LEADERBOARD_PATH"


def open_db(path: Path) -> sqlite3.Connection:
    conn = sqlite3.connect(path)
    conn.execute("PRAGMA journal_mode=WAL;")
    conn.execute("PRAGMA synchronous=NORMAL;")
    _migrate(conn)
    return conn


def _migrate(conn: sqlite3.Connection) -> None:
    row = conn.execute("PRAGMA user_version;").fetchone()
    ver = int(row[0]) if row else 0
    if ver >= SCHEMA_VERSION:
        return

    with conn:
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS kv (
                key TEXT PRIMARY KEY,
                value TEXT NOT NULL
            );
            """
        )
        conn.execute(f"PRAGMA user_version={SCHEMA_VERSION};")


def kv_get(conn: sqlite3.Connection, key: str) -> str | None:
    row = conn.execute("SELECT value FROM kv WHERE key = ?", (key,)).fetchone()
    return None if row is None else str(row[0])


def kv_set(conn: sqlite3.Connection, key: str, value: str) -> None:
    with conn:
        conn.execute(
            "INSERT INTO kv(key, value) VALUES (?, ?) ON CONFLICT(key) DO UPDATE SET value = excluded.value",
            (key, value),
        )


class KeyValueLeaderboardStore:
    """Leaderboard kept as one JSON value in a local SQLite key/value table."""

    def __init__(self, path: Path, *, key: str = LEADERBOARD_KEY) -> None:
        self._path = path
        self._key = key

    @property
    def path(self) -> Path:
        return self._path

    def read_all(self) -> list[LeaderboardEntry]:
        try:
            conn = open_db(self._path)
            try:
                raw = kv_get(conn, self._key)
            finally:
                conn.close()
            payload = [] if raw is None else json.loads(raw)
        except (sqlite3.Error, OSError, ValueError):
            logger.warning("could not read leaderboard from %s", self._path, exc_info=True)
            return []
        return sort_and_trim(entries_from_payload(payload))

    def write_all(self, entries: Iterable[LeaderboardEntry]) -> list[LeaderboardEntry]:
        data = sort_and_trim(entries)
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            conn = open_db(self._path)
            try:
                kv_set(conn, self._key, json.dumps([e.to_dict() for e in data]))
            finally:
                conn.close()
        except (sqlite3.Error, OSError):
            logger.warning("could not write leaderboard to %s", self._path, exc_info=True)
        return data

    def add(self, entry: LeaderboardEntry) -> list[LeaderboardEntry]:
        entries = self.read_all()
        entries.append(entry)
        return self.write_all(entries)


class JsonFileLeaderboardStore:
    """Leaderboard kept as a JSON array in a single file."""

    def __init__(self, path: Path) -> None:
        self._path = path

    @property
    def path(self) -> Path:
        return self._path

    def ensure_exists(self) -> None:
        if not self._path.exists():
            self._save([])

    def read_all(self) -> list[LeaderboardEntry]:
        if not self._path.exists():
            return []
        try:
            payload = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            logger.warning("could not read leaderboard from %s", self._path, exc_info=True)
            return []
        return sort_and_trim(entries_from_payload(payload))

    def write_all(self, entries: Iterable[LeaderboardEntry]) -> list[LeaderboardEntry]:
        data = sort_and_trim(entries)
        self._save(data)
        return data

    def add(self, entry: LeaderboardEntry) -> list[LeaderboardEntry]:
        entries = self.read_all()
        entries.append(entry)
        return self.write_all(entries)

    def _save(self, entries: list[LeaderboardEntry]) -> None:
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path = self._path.with_suffix(f"{self._path.suffix}.tmp")
            tmp_path.write_text(json.dumps([e.to_dict() for e in entries], indent=2), encoding="utf-8")
            tmp_path.replace(self._path)
        except OSError:
            logger.warning("could not write leaderboard to %s", self._path, exc_info=True)


def default_leaderboard_path(backend: str) -> Path:
    explicit = os.environ.get(LEADERBOARD_PATH_ENV)
    if explicit:
        return Path(explicit).expanduser()
    suffix = "json" if backend == "file" else "db"
    return Path.home() / f".math_recall_leaderboard.{suffix}"


def open_leaderboard_store() -> LeaderboardStore:
    """Pick the leaderboard backend named by the environment ("kv" or "file")."""

    backend = os.environ.get(LEADERBOARD_BACKEND_ENV, "kv").strip().lower()
    path = default_leaderboard_path(backend)
    if backend == "file":
        return JsonFileLeaderboardStore(path)
    if backend != "kv":
        logger.warning("unknown leaderboard backend %r, using kv", backend)
    return KeyValueLeaderboardStore(path)
