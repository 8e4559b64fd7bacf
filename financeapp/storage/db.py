"""
Database connection management.

Provides the SQLite connection backing the snapshot store.
"""

import sqlite3
from pathlib import Path

DEFAULT_DB_PATH = "financeapp.db"


def get_connection(db_path: str = DEFAULT_DB_PATH) -> sqlite3.Connection:
    """Create and return a SQLite connection, creating parent directories.

    Args:
        db_path: Path to SQLite database file

    Returns:
        SQLite connection
    """
    path = Path(db_path)
    if path.parent and not path.parent.exists():
        path.parent.mkdir(parents=True, exist_ok=True)
    return sqlite3.connect(str(path))
