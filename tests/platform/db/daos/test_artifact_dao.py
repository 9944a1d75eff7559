"""Tests for the artifact and maintenance DAOs."""

from collections.abc import Generator

import pytest

from abitrack.platform.db.daos import ArtifactDAO, ArtifactRow, MaintenanceDAO
from abitrack.platform.db.db_manager import DatabaseManager


@pytest.fixture
def db_manager() -> Generator[DatabaseManager, None, None]:
    """In-memory store with the schema initialised."""
    manager = DatabaseManager(":memory:")
    manager.connect()
    yield manager
    manager.close()


def _row(stage: str, scope: str, item: str = "", **payload: object) -> ArtifactRow:
    return ArtifactRow(
        stage=stage,
        scope=scope,
        item=item,
        record_type="DateRecord",
        payload=dict(payload),
        tool_version="1.2",
    )


def test_write_batch_upserts_and_deletes(db_manager: DatabaseManager) -> None:
    """A batch applies deletions, then upserts, then metadata in one commit."""
    assert db_manager.conn is not None
    dao = ArtifactDAO(db_manager.conn)

    assert dao.write_batch([_row("date", "1.0", date="2020-01-01"), _row("date", "1.1")])
    assert dao.write_batch(
        [_row("date", "1.0", date="2021-05-05")],
        deletes=[("date", "1.1", "")],
        meta={"scm_update_time": "123"},
    )

    rows = dao.fetch_all()
    assert [(row.stage, row.scope) for row in rows] == [("date", "1.0")]
    assert rows[0].payload == {"date": "2021-05-05"}
    assert rows[0].tool_version == "1.2"
    assert dao.get_meta("scm_update_time") == "123"


def test_meta_none_deletes_key(db_manager: DatabaseManager) -> None:
    """Setting a metadata value to None removes it."""
    assert db_manager.conn is not None
    dao = ArtifactDAO(db_manager.conn)

    assert dao.write_batch([], meta={"marker": "x"})
    assert dao.write_batch([], meta={"marker": None})

    assert dao.get_meta("marker") is None


def test_unreadable_payload_is_dropped(db_manager: DatabaseManager) -> None:
    """Rows whose JSON cannot be decoded are skipped with a warning."""
    conn = db_manager.conn
    assert conn is not None
    _ = conn.execute(
        """
        INSERT INTO artifacts (stage, scope, item, record_type, payload_json)
        VALUES ('date', '1.0', '', 'DateRecord', '{broken')
        """
    )
    conn.commit()

    assert ArtifactDAO(conn).fetch_all() == []


def test_maintenance_counts_and_clears(db_manager: DatabaseManager) -> None:
    """Counts are grouped by stage; clearing keeps the schema version."""
    conn = db_manager.conn
    assert conn is not None
    dao = ArtifactDAO(conn)
    _ = dao.write_batch(
        [_row("date", "1.0"), _row("date", "1.1"), _row("abidump", "1.0", "abc")],
        meta={"scm_update_time": "1"},
    )
    maintenance = MaintenanceDAO(conn)

    assert maintenance.count_by_stage() == {"abidump": 1, "date": 2}
    assert maintenance.clear_all()
    assert maintenance.count_by_stage() == {}
    assert dao.get_meta("scm_update_time") is None
    assert dao.get_meta("schema_version") is not None
