"""src/abitrack/platform/db/daos/artifact_dao.py
What: Read and write artifact records and store metadata.
Why: Keep SQL out of the store use case so checkpoints stay a single call.
"""

from __future__ import annotations

import json
import sqlite3
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Final, cast

from abitrack.platform.logging import logger


@dataclass(frozen=True, slots=True)
class ArtifactRow:
    """One persisted artifact record."""

    stage: str
    scope: str
    item: str
    record_type: str
    payload: dict[str, object]
    tool_version: str | None = None


class ArtifactDAO:
    """Data access object for the ``artifacts`` and ``store_meta`` tables."""

    _UPSERT_SQL: Final[str] = (
        """
        INSERT INTO artifacts (
            stage,
            scope,
            item,
            record_type,
            payload_json,
            tool_version
        ) VALUES (?, ?, ?, ?, ?, ?)
        ON CONFLICT(stage, scope, item) DO UPDATE SET
            record_type = excluded.record_type,
            payload_json = excluded.payload_json,
            tool_version = excluded.tool_version,
            updated_at = CURRENT_TIMESTAMP
        """
    )
    _META_UPSERT_SQL: Final[str] = (
        """
        INSERT INTO store_meta (key, value) VALUES (?, ?)
        ON CONFLICT(key) DO UPDATE SET
            value = excluded.value,
            updated_at = CURRENT_TIMESTAMP
        """
    )

    def __init__(self, conn: sqlite3.Connection) -> None:
        self.conn: sqlite3.Connection = conn

    def write_batch(
        self,
        upserts: Iterable[ArtifactRow],
        deletes: Iterable[tuple[str, str, str]] = (),
        meta: dict[str, str | None] | None = None,
    ) -> bool:
        """Apply upserts, deletions and metadata changes in one transaction."""

        try:
            cursor = self.conn.cursor()
            for stage, scope, item in deletes:
                _ = cursor.execute(
                    "DELETE FROM artifacts WHERE stage = ? AND scope = ? AND item = ?",
                    (stage, scope, item),
                )
            for row in upserts:
                _ = cursor.execute(
                    self._UPSERT_SQL,
                    (
                        row.stage,
                        row.scope,
                        row.item,
                        row.record_type,
                        json.dumps(row.payload, ensure_ascii=False, separators=(",", ":"), sort_keys=True),
                        row.tool_version,
                    ),
                )
            for key, value in (meta or {}).items():
                if value is None:
                    _ = cursor.execute("DELETE FROM store_meta WHERE key = ?", (key,))
                else:
                    _ = cursor.execute(self._META_UPSERT_SQL, (key, value))
            self.conn.commit()
            return True
        except sqlite3.Error as exc:
            logger.error("Failed to write artifact batch: %s", exc)
            try:
                self.conn.rollback()
            except sqlite3.Error:
                pass
            return False

    def fetch_all(self) -> list[ArtifactRow]:
        """Return every stored artifact ordered by key."""

        rows: list[ArtifactRow] = []
        try:
            cursor = self.conn.cursor()
            _ = cursor.execute(
                """
                SELECT stage, scope, item, record_type, payload_json, tool_version
                FROM artifacts
                ORDER BY stage, scope, item
                """
            )
            for stage, scope, item, record_type, payload_raw, tool_version in cursor.fetchall():
                try:
                    payload = cast(dict[str, object], json.loads(payload_raw)) if payload_raw else {}
                except json.JSONDecodeError as exc:
                    logger.warning(
                        "Dropping unreadable artifact %s/%s/%s: %s", stage, scope, item, exc
                    )
                    continue
                rows.append(
                    ArtifactRow(
                        stage=stage,
                        scope=scope,
                        item=item,
                        record_type=record_type,
                        payload=payload,
                        tool_version=tool_version,
                    )
                )
        except sqlite3.Error as exc:  # pragma: no cover
            logger.error("Failed to read artifacts: %s", exc)
            return []
        return rows

    def get_meta(self, key: str) -> str | None:
        """Fetch a store metadata value."""

        try:
            cursor = self.conn.cursor()
            _ = cursor.execute("SELECT value FROM store_meta WHERE key = ?", (key,))
            row = cursor.fetchone()
            return None if row is None else cast(str | None, row[0])
        except sqlite3.Error as exc:  # pragma: no cover
            logger.error("Failed to read store metadata %s: %s", key, exc)
            return None


__all__ = ["ArtifactDAO", "ArtifactRow"]
