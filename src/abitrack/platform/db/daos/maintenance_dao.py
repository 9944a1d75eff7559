"""Maintenance DAO for whole-store cleanup operations.

Destructive actions live here so that services never issue raw SQL.
"""

from __future__ import annotations

import sqlite3
from typing import final

from abitrack.platform.logging import logger


@final
class MaintenanceDAO:
    """Provide store-wide maintenance operations."""

    conn: sqlite3.Connection

    def __init__(self, conn: sqlite3.Connection) -> None:
        self.conn = conn

    def clear_all(self) -> bool:
        """Delete every artifact record and run marker, keeping the schema version.

        Returns True on success, False on failure. Errors are logged and the
        transaction is rolled back on failure.
        """
        try:
            cur = self.conn.cursor()
            _ = cur.execute("DELETE FROM artifacts")
            _ = cur.execute("DELETE FROM store_meta WHERE key != 'schema_version'")
            self.conn.commit()
            return True
        except sqlite3.Error as e:
            logger.error("Failed to clear artifact store: %s", e)
            try:
                self.conn.rollback()
            except sqlite3.Error:
                pass
            return False

    def count_by_stage(self) -> dict[str, int]:
        """Return the number of stored artifacts per stage."""

        try:
            cur = self.conn.cursor()
            _ = cur.execute("SELECT stage, COUNT(*) FROM artifacts GROUP BY stage ORDER BY stage")
            return {stage: count for stage, count in cur.fetchall()}
        except sqlite3.Error as e:  # pragma: no cover
            logger.error("Failed to count artifacts: %s", e)
            return {}
