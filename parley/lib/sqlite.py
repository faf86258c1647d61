"""SQLite connections and named, run-once migrations."""

import logging
import sqlite3
from collections.abc import Callable
from pathlib import Path

logger = logging.getLogger(__name__)

Migration = tuple[str, str | Callable[[sqlite3.Connection], None]]


def connect(db_path: Path) -> sqlite3.Connection:
    """Open connection to SQLite database in autocommit mode with dict-like rows."""
    conn = sqlite3.connect(db_path, check_same_thread=False)
    conn.row_factory = sqlite3.Row
    conn.isolation_level = None
    return conn


def _table_counts(conn: sqlite3.Connection) -> dict[str, int]:
    rows = conn.execute(
        "SELECT name FROM sqlite_master WHERE type='table' "
        "AND name NOT IN ('_migrations', 'sqlite_sequence')"
    ).fetchall()
    return {
        row[0]: conn.execute(f"SELECT COUNT(*) FROM {row[0]}").fetchone()[0] for row in rows
    }


def migrate(conn: sqlite3.Connection, migs: list[Migration]) -> list[str]:
    """Apply pending migrations in order. Returns names of the ones applied.

    Raises ValueError if a migration drops rows from an existing table.
    """
    conn.execute("CREATE TABLE IF NOT EXISTS _migrations (name TEXT PRIMARY KEY)")

    applied = []
    for name, migration in migs:
        if conn.execute("SELECT 1 FROM _migrations WHERE name = ?", (name,)).fetchone():
            continue

        before = _table_counts(conn)
        try:
            if callable(migration):
                migration(conn)
            elif ";" in migration:
                conn.executescript(migration)
            else:
                conn.execute(migration)
        except sqlite3.Error as e:
            logger.error(f"Migration '{name}' failed: {e}")
            raise

        after = _table_counts(conn)
        for table, count in before.items():
            if after.get(table, 0) < count:
                msg = f"Migration '{name}': {table} lost {count - after.get(table, 0)} rows"
                logger.error(msg)
                raise ValueError(msg)

        conn.execute("INSERT INTO _migrations (name) VALUES (?)", (name,))
        logger.debug(f"Applied migration '{name}'")
        applied.append(name)
    return applied


class Database:
    """One SQLite file with its migrations, opened lazily on first use."""

    def __init__(self, path: Path, migrations: list[Migration] | None = None):
        self.path = path
        self.migrations = migrations or []
        self._conn: sqlite3.Connection | None = None

    def ensure(self) -> sqlite3.Connection:
        if self._conn is None:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            conn = connect(self.path)
            conn.execute("PRAGMA journal_mode=WAL")
            migrate(conn, self.migrations)
            self._conn = conn
        return self._conn

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None
