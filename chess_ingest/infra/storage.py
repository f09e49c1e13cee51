"""SQLite connection management and tournament schema."""

from __future__ import annotations

import sqlite3
from pathlib import Path
from threading import Lock
from typing import Dict

from ..errors import StorageUnavailable

SCHEMA = """
CREATE TABLE IF NOT EXISTS tournaments (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL,
    tournament_type TEXT NOT NULL DEFAULT 'classical'
        CHECK (tournament_type IN ('classical', 'rapid', 'blitz')),
    time_control TEXT NOT NULL DEFAULT '',
    start_date TEXT NOT NULL,
    end_date TEXT NOT NULL,
    country TEXT NOT NULL DEFAULT '',
    city TEXT NOT NULL DEFAULT '',
    venue_name TEXT NOT NULL DEFAULT '',
    latitude REAL,
    longitude REAL,
    max_players INTEGER,
    entry_fee REAL,
    currency TEXT NOT NULL DEFAULT 'EUR',
    website TEXT NOT NULL DEFAULT '',
    source_url TEXT,
    status TEXT NOT NULL DEFAULT 'upcoming',
    page_key TEXT,
    created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
    updated_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
    UNIQUE (name, start_date)
);
CREATE INDEX IF NOT EXISTS idx_tournaments_start_date ON tournaments(start_date);
CREATE INDEX IF NOT EXISTS idx_tournaments_type ON tournaments(tournament_type);
CREATE INDEX IF NOT EXISTS idx_tournaments_country ON tournaments(country);
CREATE INDEX IF NOT EXISTS idx_tournaments_coordinates ON tournaments(latitude, longitude)
    WHERE latitude IS NOT NULL AND longitude IS NOT NULL;
"""


class SQLiteManager:
    """Manage SQLite connections with basic schema guarantees."""

    def __init__(self, timeout: float = 5.0) -> None:
        self.timeout = timeout
        self._connections: Dict[Path, sqlite3.Connection] = {}
        self._lock = Lock()

    def connect(self, path: Path) -> sqlite3.Connection:
        with self._lock:
            if path not in self._connections:
                try:
                    path.parent.mkdir(parents=True, exist_ok=True)
                    conn = sqlite3.connect(path, timeout=self.timeout, check_same_thread=False)
                    conn.row_factory = sqlite3.Row
                    self._ensure_schema(conn)
                except (OSError, sqlite3.Error) as exc:
                    raise StorageUnavailable(f"Cannot open storage at {path}: {exc}") from exc
                self._connections[path] = conn
            return self._connections[path]

    def _ensure_schema(self, conn: sqlite3.Connection) -> None:
        conn.executescript(SCHEMA)
        conn.commit()

    def reset(self, path: Path) -> None:
        with self._lock:
            if path in self._connections:
                self._connections[path].close()
                del self._connections[path]
        if path.exists():
            path.unlink()

    def close(self, path: Path) -> None:
        with self._lock:
            conn = self._connections.pop(path, None)
        if conn is not None:
            conn.close()

    def close_all(self) -> None:
        with self._lock:
            for conn in self._connections.values():
                conn.close()
            self._connections.clear()


__all__ = ["SCHEMA", "SQLiteManager"]
