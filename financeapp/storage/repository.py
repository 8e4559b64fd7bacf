"""
Repository pattern for the snapshot store.

A single key-value table holds the serialized calculator inputs. Loading
never fails visibly: a missing, unreadable or malformed snapshot is reported
as absent so the caller can fall back to defaults.
"""

import logging
import sqlite3
from datetime import datetime
from typing import Optional

from financeapp.core.model import AllocationTargets, FinancialInputs

from .db import DEFAULT_DB_PATH, get_connection
from .models import SnapshotDecodeError, decode_inputs, encode_inputs

logger = logging.getLogger(__name__)

DEFAULT_SNAPSHOT_KEY = "financeapp_pro_state"


class SnapshotRepository:
    """Repository for reading and writing input snapshots.

    Each key maps to one JSON blob holding the entire input record. Writes
    replace the previous blob for the key.
    """

    def __init__(self, db_path: str = DEFAULT_DB_PATH):
        """Initialize the repository with a database path.

        Args:
            db_path: Path to SQLite database file
        """
        self.db_path = db_path
        self._schema_ready = False

    def _ensure_schema(self) -> None:
        if not self._schema_ready:
            initialize_schema(self.db_path)
            self._schema_ready = True

    def load(
        self,
        key: str = DEFAULT_SNAPSHOT_KEY,
        default_allocation: Optional[AllocationTargets] = None
    ) -> Optional[FinancialInputs]:
        """Load the snapshot stored under key.

        Args:
            key: Snapshot key
            default_allocation: Allocation used when the snapshot has none

        Returns:
            The stored inputs, or None when absent, unreadable or malformed
        """
        try:
            payload = self.load_payload(key)
        except sqlite3.Error as e:
            logger.warning("Could not read snapshot %r from %s: %s", key, self.db_path, e)
            return None

        if payload is None:
            logger.debug("No snapshot stored under %r", key)
            return None

        try:
            return decode_inputs(payload, default_allocation)
        except SnapshotDecodeError as e:
            logger.warning("Ignoring malformed snapshot %r: %s", key, e)
            return None

    def load_payload(self, key: str = DEFAULT_SNAPSHOT_KEY) -> Optional[str]:
        """Return the raw payload stored under key, or None."""
        self._ensure_schema()
        conn = get_connection(self.db_path)
        try:
            cursor = conn.execute("SELECT payload FROM snapshot WHERE key = ?", (key,))
            row = cursor.fetchone()
            return row[0] if row else None
        finally:
            conn.close()

    def save(self, inputs: FinancialInputs, key: str = DEFAULT_SNAPSHOT_KEY) -> None:
        """Store inputs under key, replacing any previous snapshot.

        Args:
            inputs: Inputs to persist
            key: Snapshot key

        Raises:
            sqlite3.Error: If the write fails
        """
        self.save_payload(encode_inputs(inputs), key)

    def save_payload(self, payload: str, key: str = DEFAULT_SNAPSHOT_KEY) -> None:
        """Store a raw payload under key."""
        self._ensure_schema()
        conn = get_connection(self.db_path)
        try:
            conn.execute("""
                INSERT INTO snapshot (key, payload, updated_at)
                VALUES (?, ?, ?)
                ON CONFLICT(key) DO UPDATE SET
                    payload = excluded.payload,
                    updated_at = excluded.updated_at
            """, (key, payload, datetime.now().isoformat()))
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def delete(self, key: str = DEFAULT_SNAPSHOT_KEY) -> bool:
        """Remove the snapshot stored under key.

        Returns:
            True if a snapshot was removed
        """
        self._ensure_schema()
        conn = get_connection(self.db_path)
        try:
            cursor = conn.execute("DELETE FROM snapshot WHERE key = ?", (key,))
            conn.commit()
            return cursor.rowcount > 0
        finally:
            conn.close()


def get_repository(db_path: str = DEFAULT_DB_PATH) -> SnapshotRepository:
    """Get a repository for the given database file."""
    return SnapshotRepository(db_path)


def initialize_schema(db_path: str = DEFAULT_DB_PATH) -> None:
    """Create the snapshot table if it doesn't exist.

    Args:
        db_path: Path to SQLite database file
    """
    conn = get_connection(db_path)
    try:
        conn.execute("""
            CREATE TABLE IF NOT EXISTS snapshot (
                key TEXT PRIMARY KEY,
                payload TEXT NOT NULL,
                updated_at TEXT NOT NULL
            )
        """)
        conn.commit()
    finally:
        conn.close()
