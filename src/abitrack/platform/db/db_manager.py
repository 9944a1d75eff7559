"""Database manager for per-library artifact stores."""

from __future__ import annotations

import sqlite3
from pathlib import Path
from typing import Any, Final, final

from abitrack.platform.filesystem import ensure_parent_directory
from abitrack.platform.logging import logger


SCHEMA_VERSION: Final[int] = 2


@final
class DatabaseManager:
    """Own the SQLite connection backing one library's artifact store."""

    db_path: str | Path
    conn: sqlite3.Connection | None

    def __init__(self, db_path: Path | str) -> None:
        """Initialize database manager.

        Args:
            db_path: Path to the store file, or ":memory:" for an in-memory store.
        """
        if db_path == ":memory:":
            self.db_path = ":memory:"
        else:
            self.db_path = Path(db_path) if isinstance(db_path, str) else db_path
        self.conn = None

    def connect(self) -> None:
        """Connect to database and initialize schema."""
        try:
            if isinstance(self.db_path, Path):
                _ = ensure_parent_directory(self.db_path)

            try:
                self.conn = sqlite3.connect(
                    self.db_path,
                    timeout=30.0,
                    isolation_level="IMMEDIATE",
                    check_same_thread=False,  # store writes are serialized by the caller's lock
                )
            except sqlite3.OperationalError as e:
                if "unable to open database file" in str(e):
                    raise PermissionError(f"Unable to open database at {self.db_path}") from e
                raise

            _ = self.conn.execute("PRAGMA foreign_keys = ON")
            _ = self.conn.execute("PRAGMA synchronous = NORMAL")
            _ = self.conn.execute("PRAGMA journal_mode = WAL")
            _ = self.conn.execute("PRAGMA busy_timeout = 30000")

            self._init_schema()

        except sqlite3.Error as e:
            logger.error("Failed to connect to database: %s", e)
            raise

    def _init_schema(self) -> None:
        """Initialize database schema."""
        if self.conn is None:
            return

        try:
            cursor = self.conn.cursor()

            _ = cursor.execute(
                """
                SELECT name FROM sqlite_master
                WHERE type='table' AND name IN ('store_meta', 'artifacts')
                """
            )
            existing_tables = {row[0] for row in cursor.fetchall()}

            if existing_tables.issuperset({"store_meta", "artifacts"}):
                self._ensure_artifact_columns(cursor)
                self._write_schema_version(cursor)
                self.conn.commit()
                logger.debug("Tables already exist, skipping schema initialization")
                return

            _ = cursor.execute(
                """
                CREATE TABLE IF NOT EXISTS store_meta (
                    key TEXT PRIMARY KEY,
                    value TEXT,
                    updated_at DATETIME DEFAULT CURRENT_TIMESTAMP
                )
                """
            )

            # scope is a version number or "older/newer"; item is "" or an object hash
            _ = cursor.execute(
                """
                CREATE TABLE IF NOT EXISTS artifacts (
                    stage TEXT NOT NULL,
                    scope TEXT NOT NULL,
                    item TEXT NOT NULL DEFAULT '',
                    record_type TEXT NOT NULL,
                    payload_json TEXT NOT NULL,
                    created_at DATETIME DEFAULT CURRENT_TIMESTAMP,
                    updated_at DATETIME DEFAULT CURRENT_TIMESTAMP,
                    PRIMARY KEY (stage, scope, item)
                )
                """
            )

            _ = cursor.execute(
                "CREATE INDEX IF NOT EXISTS idx_artifacts_stage_scope ON artifacts(stage, scope)"
            )

            self._ensure_artifact_columns(cursor)
            self._write_schema_version(cursor)
            self.conn.commit()
            logger.debug("Initialized artifact store schema at %s", self.db_path)

        except sqlite3.Error as e:
            logger.error("Failed to initialize schema: %s", e)
            if self.conn:
                self.conn.rollback()
            raise

    def _ensure_artifact_columns(self, cursor: sqlite3.Cursor) -> None:
        """Upgrade stores created before per-row tool versions were tracked."""

        _ = cursor.execute("PRAGMA table_info(artifacts)")
        columns = {row[1] for row in cursor.fetchall()}

        if "tool_version" not in columns:
            _ = cursor.execute("ALTER TABLE artifacts ADD COLUMN tool_version TEXT")

    @staticmethod
    def _write_schema_version(cursor: sqlite3.Cursor) -> None:
        _ = cursor.execute(
            """
            INSERT INTO store_meta (key, value) VALUES ('schema_version', ?)
            ON CONFLICT(key) DO UPDATE SET
                value = excluded.value,
                updated_at = CURRENT_TIMESTAMP
            """,
            (str(SCHEMA_VERSION),),
        )

    def close(self) -> None:
        """Close database connection."""
        if self.conn:
            try:
                self.conn.close()
                self.conn = None
            except sqlite3.Error as e:
                logger.error("Failed to close database connection: %s", e)

    def __enter__(self) -> "DatabaseManager":
        self.connect()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: Any | None,
    ) -> None:
        self.close()

    def begin_transaction(self) -> None:
        """Begin a transaction."""
        if self.conn:
            _ = self.conn.execute("BEGIN TRANSACTION")

    def commit_transaction(self) -> None:
        """Commit the current transaction."""
        if self.conn:
            self.conn.commit()

    def rollback_transaction(self) -> None:
        """Rollback the current transaction."""
        if self.conn:
            self.conn.rollback()


__all__ = ["DatabaseManager", "SCHEMA_VERSION"]
