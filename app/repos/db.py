"""Database initialization and connection management.

Applies the numbered SQL migrations on boot and provides the connection
factory used by the repositories.
"""

import logging
import pathlib
import sqlite3

logger = logging.getLogger("tradecoach")

_MIGRATION_DIR = pathlib.Path(__file__).resolve().parent / "migrations"


def _migrations() -> list[tuple[int, pathlib.Path]]:
    """``(version, path)`` for every ``NNN_name.sql`` file, in order."""
    found = []
    for path in _MIGRATION_DIR.glob("*.sql"):
        prefix = path.name.split("_", 1)[0]
        if prefix.isdigit():
            found.append((int(prefix), path))
    return sorted(found)


def init_db(db_path: str) -> None:
    """Bring the database schema up to date.

    The schema version lives in ``PRAGMA user_version``; only migrations
    numbered above it are run.  The parent directory of a file database
    is created when missing.

    Args:
        db_path: Path to the SQLite database file.
    """
    if db_path != ":memory:":
        pathlib.Path(db_path).parent.mkdir(parents=True, exist_ok=True)

    conn = sqlite3.connect(db_path)
    try:
        current = conn.execute("PRAGMA user_version").fetchone()[0]
        for version, path in _migrations():
            if version <= current:
                continue
            conn.executescript(path.read_text(encoding="utf-8"))
            conn.execute(f"PRAGMA user_version = {version:d}")
            conn.commit()
            logger.info("Applied migration %s", path.name)
    finally:
        conn.close()


def get_connection(db_path: str) -> sqlite3.Connection:
    """Return a new SQLite connection with row-factory enabled.

    Callers are responsible for closing the connection.
    """
    conn = sqlite3.connect(db_path)
    conn.row_factory = sqlite3.Row
    return conn
