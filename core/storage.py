"""SQLite storage layer for profile metadata and app state.

Design:
 - SQLite stores metadata only (id, name, content path).
 - Filesystem stores the JSON content under the configured config directory.
 - Each call opens a short-lived connection (thread-safe, WAL mode).
"""
from __future__ import annotations

import contextlib
import os
import sqlite3
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator

from core.paths import data_dir

ACTIVE_CONFIG_KEY = "active_config_id"
CONFIG_DIR_KEY = "config_dir"
ENGINE_PATH_KEY = "engine_path"


def _db_path() -> Path:
    """Resolve SQLite DB path from environment or default."""
    return Path(os.environ.get("APP_DB_PATH", data_dir() / "app.db"))


@dataclass(frozen=True)
class ConfigProfile:
    id: str
    name: str
    path: str


def init_db() -> None:
    """Initialize SQLite schema and enable WAL mode."""
    db_path = _db_path()
    db_path.parent.mkdir(parents=True, exist_ok=True)
    with connect() as conn:
        conn.execute("PRAGMA journal_mode=WAL")
        conn.executescript(
            """
            CREATE TABLE IF NOT EXISTS profiles (
                id TEXT PRIMARY KEY,
                name TEXT NOT NULL,
                path TEXT NOT NULL,
                created_at TEXT NOT NULL
            );
            CREATE TABLE IF NOT EXISTS app_state (
                key TEXT PRIMARY KEY,
                value TEXT
            );
            """
        )


@contextlib.contextmanager
def connect() -> Iterator[sqlite3.Connection]:
    """Yield a short-lived SQLite connection (thread-safe)."""
    conn = sqlite3.connect(_db_path(), timeout=10, check_same_thread=False)
    conn.row_factory = sqlite3.Row
    try:
        yield conn
        conn.commit()
    finally:
        conn.close()


def _now() -> str:
    """Return UTC timestamp string."""
    return datetime.now(timezone.utc).isoformat()


def _to_profile(row: sqlite3.Row) -> ConfigProfile:
    return ConfigProfile(id=row["id"], name=row["name"], path=row["path"])


def list_profiles() -> list[ConfigProfile]:
    """Return profiles in creation order."""
    init_db()
    with connect() as conn:
        rows = conn.execute(
            "SELECT id, name, path FROM profiles ORDER BY created_at, id"
        ).fetchall()
    return [_to_profile(row) for row in rows]


def get_profile(profile_id: str) -> ConfigProfile | None:
    """Return profile record by id."""
    init_db()
    with connect() as conn:
        row = conn.execute(
            "SELECT id, name, path FROM profiles WHERE id = ?",
            (profile_id,),
        ).fetchone()
    if not row:
        return None
    return _to_profile(row)


def insert_profile(profile: ConfigProfile) -> None:
    """Create a profile record; raises sqlite3.IntegrityError on duplicate id."""
    init_db()
    with connect() as conn:
        conn.execute(
            "INSERT INTO profiles (id, name, path, created_at) VALUES (?, ?, ?, ?)",
            (profile.id, profile.name, profile.path, _now()),
        )


def delete_profile(profile_id: str) -> bool:
    """Delete a profile record and clear the active pointer if it named it."""
    init_db()
    with connect() as conn:
        cursor = conn.execute("DELETE FROM profiles WHERE id = ?", (profile_id,))
        conn.execute(
            "DELETE FROM app_state WHERE key = ? AND value = ?",
            (ACTIVE_CONFIG_KEY, profile_id),
        )
    return cursor.rowcount > 0


def set_app_state(key: str, value: str | None) -> None:
    """Persist a single app state value."""
    init_db()
    with connect() as conn:
        if value is None:
            conn.execute("DELETE FROM app_state WHERE key = ?", (key,))
        else:
            conn.execute(
                "INSERT INTO app_state (key, value) VALUES (?, ?)"
                " ON CONFLICT(key) DO UPDATE SET value = excluded.value",
                (key, value),
            )


def get_app_state(key: str) -> str | None:
    """Fetch a stored app state value."""
    init_db()
    with connect() as conn:
        row = conn.execute("SELECT value FROM app_state WHERE key = ?", (key,)).fetchone()
    return row["value"] if row else None


def get_active_profile() -> ConfigProfile | None:
    """Resolve the active pointer; a pointer to a missing row reads as None."""
    active_id = get_app_state(ACTIVE_CONFIG_KEY)
    if not active_id:
        return None
    return get_profile(active_id)
