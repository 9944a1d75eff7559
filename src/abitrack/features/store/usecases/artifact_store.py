"""src/abitrack/features/store/usecases/artifact_store.py
Where: Store feature usecases layer.
What: In-memory artifact cache with checkpointed persistence and a repair pass.
Why: The store is the single source of truth for "already built"; the
pipeline mutates it incrementally and flushes after every completed item so an
interrupted run keeps its work.
"""

from __future__ import annotations

import threading
from collections.abc import Callable, Iterator
from pathlib import Path
from typing import TypeVar, final

from abitrack.config.profile import LIVE_VERSION
from abitrack.features.store.domain.keys import ArtifactKey, Stage
from abitrack.features.store.domain.records import (
    ArtifactRecord,
    SonameRecord,
    decode_record,
)
from abitrack.platform.db.daos import ArtifactDAO, ArtifactRow, MaintenanceDAO
from abitrack.platform.logging import logger

from .ports import DatabaseManagerPort

RecordT = TypeVar("RecordT", bound=ArtifactRecord)

UPSTREAM_MARKER_KEY = "scm_update_time"


@final
class ArtifactStore:
    """Persistent key/value cache of pipeline artifacts for one library.

    All public methods are serialized by a re-entrant lock so worker threads
    may build items concurrently while the store remains single-writer.
    """

    def __init__(
        self,
        db_manager: DatabaseManagerPort,
        *,
        dao_factory: Callable[..., ArtifactDAO] | None = None,
        maintenance_factory: Callable[..., MaintenanceDAO] | None = None,
    ) -> None:
        self._db_manager: DatabaseManagerPort = db_manager
        self._dao_factory: Callable[..., ArtifactDAO] = dao_factory or ArtifactDAO
        self._maintenance_factory: Callable[..., MaintenanceDAO] = (
            maintenance_factory or MaintenanceDAO
        )
        self._lock = threading.RLock()
        self._records: dict[ArtifactKey, ArtifactRecord] = {}
        self._dirty: set[ArtifactKey] = set()
        self._deleted: set[ArtifactKey] = set()
        self._meta: dict[str, str | None] = {}
        self._dirty_meta: set[str] = set()
        self._dao: ArtifactDAO | None = None

    def _connection_dao(self) -> ArtifactDAO:
        if self._dao is None:
            if self._db_manager.conn is None:
                self._db_manager.connect()
            conn = self._db_manager.conn
            if conn is None:
                raise RuntimeError("Database connection could not be established")
            self._dao = self._dao_factory(conn)
        return self._dao

    def load(self) -> int:
        """Replace the in-memory state with the persisted one.

        Rows of unknown type or with missing required fields are skipped with
        a warning. Returns the number of records loaded.
        """

        with self._lock:
            dao = self._connection_dao()
            self._records.clear()
            self._dirty.clear()
            self._deleted.clear()
            self._dirty_meta.clear()

            for row in dao.fetch_all():
                try:
                    key = ArtifactKey(Stage(row.stage), row.scope, row.item)
                    record = decode_record(row.record_type, row.payload)
                except (KeyError, TypeError, ValueError) as exc:
                    logger.warning(
                        "Skipping undecodable artifact %s/%s/%s: %s",
                        row.stage,
                        row.scope,
                        row.item,
                        exc,
                    )
                    continue
                self._records[key] = record

            self._meta = {UPSTREAM_MARKER_KEY: dao.get_meta(UPSTREAM_MARKER_KEY)}
            logger.debug("Loaded %d artifact records", len(self._records))
            return len(self._records)

    def get(self, key: ArtifactKey) -> ArtifactRecord | None:
        with self._lock:
            return self._records.get(key)

    def get_typed(self, key: ArtifactKey, record_type: type[RecordT]) -> RecordT | None:
        """Fetch a record, returning None if absent or of another type."""

        record = self.get(key)
        return record if isinstance(record, record_type) else None

    def put(self, key: ArtifactKey, record: ArtifactRecord) -> None:
        with self._lock:
            self._records[key] = record
            self._dirty.add(key)
            self._deleted.discard(key)

    def invalidate(self, key: ArtifactKey) -> bool:
        """Drop one key. Returns True if it was present."""

        with self._lock:
            if key not in self._records:
                return False
            del self._records[key]
            self._dirty.discard(key)
            self._deleted.add(key)
            return True

    def invalidate_scope(self, stage: Stage, scope: str) -> int:
        """Drop every item of ``stage`` under ``scope``."""

        with self._lock:
            doomed = [key for key in self._records if key.stage == stage and key.scope == scope]
            for key in doomed:
                _ = self.invalidate(key)
            return len(doomed)

    def keys(self, stage: Stage | None = None) -> list[ArtifactKey]:
        """All keys, optionally restricted to one stage, in sorted order."""

        with self._lock:
            return sorted(key for key in self._records if stage is None or key.stage == stage)

    def items(self, stage: Stage, scope: str) -> list[tuple[ArtifactKey, ArtifactRecord]]:
        """Records of one stage and scope, sorted by item."""

        with self._lock:
            return sorted(
                (
                    (key, record)
                    for key, record in self._records.items()
                    if key.stage == stage and key.scope == scope
                ),
                key=lambda entry: entry[0],
            )

    def scopes(self, stage: Stage) -> list[str]:
        with self._lock:
            return sorted({key.scope for key in self._records if key.stage == stage})

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def __iter__(self) -> Iterator[ArtifactKey]:
        return iter(self.keys())

    def get_meta(self, name: str) -> str | None:
        with self._lock:
            return self._meta.get(name)

    def set_meta(self, name: str, value: str | None) -> None:
        with self._lock:
            self._meta[name] = value
            self._dirty_meta.add(name)

    @property
    def has_pending_changes(self) -> bool:
        with self._lock:
            return bool(self._dirty or self._deleted or self._dirty_meta)

    def persist(self) -> bool:
        """Flush pending changes in one transaction (a checkpoint).

        Pending changes are kept when the write fails, so the next checkpoint
        retries them.
        """

        with self._lock:
            if not self.has_pending_changes:
                return True

            upserts = [
                ArtifactRow(
                    stage=str(key.stage),
                    scope=key.scope,
                    item=key.item,
                    record_type=self._records[key].record_type,
                    payload=self._records[key].to_payload(),
                    tool_version=getattr(self._records[key], "tool_version", None),
                )
                for key in sorted(self._dirty)
            ]
            deletes = [(str(key.stage), key.scope, key.item) for key in sorted(self._deleted)]
            meta = {name: self._meta.get(name) for name in sorted(self._dirty_meta)}

            if not self._connection_dao().write_batch(upserts, deletes, meta):
                return False

            self._dirty.clear()
            self._deleted.clear()
            self._dirty_meta.clear()
            return True

    def repair(self) -> list[ArtifactKey]:
        """Drop records whose artifacts vanished from disk.

        Runs once at the start of an invocation. For the live version, soname
        records are also dropped when one of their objects disappeared from
        the installed tree. Returns the dropped keys.
        """

        with self._lock:
            dropped: list[ArtifactKey] = []
            for key in sorted(self._records):
                record = self._records[key]
                missing = [path for path in record.artifact_paths() if not path.exists()]
                if not missing and isinstance(record, SonameRecord) and key.scope == LIVE_VERSION:
                    missing = self._missing_objects(record)
                if missing:
                    logger.debug("Dropping %s: missing %s", key, missing[0])
                    _ = self.invalidate(key)
                    dropped.append(key)

            if dropped:
                logger.info("Repair pass dropped %d stale artifact record(s)", len(dropped))
                _ = self.persist()
            return dropped

    @staticmethod
    def _missing_objects(record: SonameRecord) -> list[Path]:
        if record.installed_root is None:
            return []
        root = Path(record.installed_root)
        return [root / rel for rel in sorted(record.sonames) if not (root / rel).exists()]

    def clear(self) -> bool:
        """Delete every record from memory and disk."""

        with self._lock:
            if self._db_manager.conn is None:
                self._db_manager.connect()
            conn = self._db_manager.conn
            if conn is None:
                raise RuntimeError("Database connection could not be established")
            if not self._maintenance_factory(conn).clear_all():
                return False
            self._records.clear()
            self._dirty.clear()
            self._deleted.clear()
            self._meta.clear()
            self._dirty_meta.clear()
            return True

    def close(self) -> None:
        with self._lock:
            self._dao = None
            self._db_manager.close()


__all__ = ["ArtifactStore", "UPSTREAM_MARKER_KEY"]
