"""Tests for the PostgreSQL storage backend with a fake psycopg2 connection.

This module tests aisc_shapes.db.database.PostgresShapeStorage without a
running database, covering:
    - Row mapping in both directions, including non-finite magnitudes,
    - Insert/update/delete statements and their conflict handling,
    - Transactions committed on success and rolled back on error,
    - Streaming queries through a named cursor that is always closed,
    - Driver errors surfacing as StorageFailure.

See Also:
    - backend/aisc_shapes/db/database.py for implementation.
"""

from __future__ import annotations

import math
from typing import Any

import psycopg2
import pytest
import shape_factories

from aisc_shapes.core import config, errors
from aisc_shapes.db import database
from aisc_shapes.domain.families import ShapeFamily
from aisc_shapes.domain.query import QueryBuilder


class FakeCursor:
    """Cursor double recording statements and replaying scripted results."""

    def __init__(self, conn: FakeConn, name: str | None) -> None:
        self.conn = conn
        self.name = name
        self.itersize = 2000
        self.rowcount = conn.rowcount

    def __enter__(self) -> FakeCursor:
        return self

    def __exit__(self, *args: Any) -> None:
        self.conn.cursors_closed += 1

    def execute(self, sql: str, params: Any = None) -> None:
        if self.conn.error is not None:
            raise self.conn.error
        self.conn.executed.append((sql, params))

    def fetchone(self) -> Any:
        if self.conn.fetchone_results:
            return self.conn.fetchone_results.pop(0)
        return None

    def __iter__(self) -> Any:
        return iter(self.conn.rows)


class FakeConn:
    """Connection double tracking transaction outcome and closing."""

    def __init__(
        self,
        *,
        fetchone: list[Any] | None = None,
        rows: list[dict[str, Any]] | None = None,
        rowcount: int = 1,
        error: Exception | None = None,
    ) -> None:
        self.fetchone_results = list(fetchone or [])
        self.rows = rows or []
        self.rowcount = rowcount
        self.error = error
        self.executed: list[tuple[str, Any]] = []
        self.cursors: list[FakeCursor] = []
        self.cursors_closed = 0
        self.committed = False
        self.rolled_back = False
        self.closed = False

    def __enter__(self) -> FakeConn:
        return self

    def __exit__(self, exc_type: Any, *args: Any) -> None:
        if exc_type is None:
            self.committed = True
        else:
            self.rolled_back = True

    def cursor(self, name: str | None = None, cursor_factory: Any = None) -> FakeCursor:
        cursor = FakeCursor(self, name)
        self.cursors.append(cursor)
        return cursor

    def close(self) -> None:
        self.closed = True


def _storage(
    monkeypatch: pytest.MonkeyPatch, conn: FakeConn
) -> database.PostgresShapeStorage:
    settings = config.Settings(query_batch_size=7)
    monkeypatch.setattr(
        database.PostgresShapeStorage,
        "_initialized_urls",
        {settings.database_url},
    )
    monkeypatch.setattr(database.psycopg2, "connect", lambda url: conn)
    return database.PostgresShapeStorage(settings)


def _row(record: Any) -> dict[str, Any]:
    row = database.PostgresShapeStorage._to_row(record)
    return {
        "designation": row["designation"],
        "family": row["family"],
        "edi_nomenclature": row["edi_nomenclature"],
        "t_f": row["t_f"],
        "properties": row["properties"],
    }


def test_to_row_materializes_dimensions_and_encodes_infinity() -> None:
    """Test row mapping of nominal dimensions and non-finite values."""
    record = shape_factories.make_record(
        ShapeFamily.TUBE, "HSS8X4X1/2", Ht=8.0, B=4.0, J=math.inf
    )
    row = database.PostgresShapeStorage._to_row(record)
    assert row["family"] == "HSS"
    assert row["nominal_depth"] == 8.0
    assert row["nominal_width"] == 4.0
    assert row["properties"]["J"] == "Infinity"
    assert row["properties"]["Ix"] == 1.0


def test_from_row_restores_units_and_infinity() -> None:
    """Test that a stored row becomes an equal record."""
    record = shape_factories.make_record(
        ShapeFamily.CHANNEL, "C12X20.7", x=-math.inf, d=12.0
    )
    restored = database.PostgresShapeStorage._from_row(_row(record))
    assert restored == record
    assert restored.properties["x"].value == -math.inf


def test_row_mapping_keeps_edi_name_and_flag() -> None:
    """Test that the EDI name and T_F flag survive a row round trip."""
    record = shape_factories.make_record(
        ShapeFamily.TUBE,
        "HSS8X4X1/2",
        edi_nomenclature="HSS8X4X.500",
        t_f=False,
    )
    row = database.PostgresShapeStorage._to_row(record)
    assert row["edi_nomenclature"] == "HSS8X4X.500"
    assert row["t_f"] is False
    restored = database.PostgresShapeStorage._from_row(_row(record))
    assert restored.edi_nomenclature == "HSS8X4X.500"
    assert restored.t_f is False


def test_from_row_without_edi_columns() -> None:
    """Test that rows written before the EDI columns existed still load."""
    row = _row(shape_factories.make_record(ShapeFamily.PLATE, "PL1X6"))
    del row["edi_nomenclature"], row["t_f"]
    restored = database.PostgresShapeStorage._from_row(row)
    assert restored.edi_nomenclature is None
    assert restored.t_f is None


def test_from_row_rejects_undeclared_keys() -> None:
    """Test that a stored document with unknown keys is a SchemaViolation."""
    row = _row(shape_factories.make_record(ShapeFamily.PLATE, "PL1X6"))
    row["properties"]["Cw"] = 1.0
    with pytest.raises(errors.SchemaViolation) as exc_info:
        database.PostgresShapeStorage._from_row(row)
    assert exc_info.value.extra == ("Cw",)


def test_ensure_schema_runs_once_per_url(monkeypatch: pytest.MonkeyPatch) -> None:
    """Test that the DDL is executed on first construction only."""
    conn = FakeConn()
    monkeypatch.setattr(database.PostgresShapeStorage, "_initialized_urls", set())
    monkeypatch.setattr(database.psycopg2, "connect", lambda url: conn)
    settings = config.Settings()
    database.PostgresShapeStorage(settings)
    database.PostgresShapeStorage(settings)
    assert len(conn.executed) == 1
    assert "CREATE TABLE IF NOT EXISTS shapes" in conn.executed[0][0]
    assert "ADD COLUMN IF NOT EXISTS edi_nomenclature" in conn.executed[0][0]
    assert conn.committed
    assert conn.closed


def test_insert_commits(monkeypatch: pytest.MonkeyPatch) -> None:
    """Test a successful insert."""
    conn = FakeConn(fetchone=[("PL1X6",)])
    storage = _storage(monkeypatch, conn)
    storage.insert(shape_factories.make_record(ShapeFamily.PLATE, "PL1X6"))
    sql, params = conn.executed[0]
    assert "ON CONFLICT (designation) DO NOTHING" in sql
    assert params["designation"] == "PL1X6"
    assert params["edi_nomenclature"] is None
    assert params["properties"].adapted["t"] == 1.0
    assert conn.committed
    assert conn.closed


def test_insert_conflict_raises_duplicate(monkeypatch: pytest.MonkeyPatch) -> None:
    """Test that an insert returning no row is a duplicate."""
    conn = FakeConn(fetchone=[None])
    storage = _storage(monkeypatch, conn)
    with pytest.raises(errors.DuplicateDesignation):
        storage.insert(shape_factories.make_record(ShapeFamily.PLATE, "PL1X6"))
    assert conn.rolled_back
    assert conn.closed


def test_get_by_designation(monkeypatch: pytest.MonkeyPatch) -> None:
    """Test fetching and mapping a single row."""
    record = shape_factories.make_record(ShapeFamily.PIPE, "Pipe10STD", OD=10.8)
    conn = FakeConn(fetchone=[_row(record)])
    storage = _storage(monkeypatch, conn)
    assert storage.get_by_designation("Pipe10STD") == record
    assert conn.executed[0][1] == ("Pipe10STD",)


def test_get_by_edi_nomenclature(monkeypatch: pytest.MonkeyPatch) -> None:
    """Test the EDI lookup statement and row mapping."""
    record = shape_factories.make_record(
        ShapeFamily.TUBE, "HSS8X4X1/2", edi_nomenclature="HSS8X4X.500"
    )
    conn = FakeConn(fetchone=[_row(record)])
    storage = _storage(monkeypatch, conn)
    assert storage.get_by_edi_nomenclature("HSS8X4X.500") == record
    sql, params = conn.executed[0]
    assert "WHERE edi_nomenclature = %s" in sql
    assert "LIMIT 1" in sql
    assert params == ("HSS8X4X.500",)


def test_get_by_edi_nomenclature_missing(monkeypatch: pytest.MonkeyPatch) -> None:
    """Test NotFound naming the EDI lookup when no row matches."""
    storage = _storage(monkeypatch, FakeConn())
    with pytest.raises(errors.NotFound) as exc_info:
        storage.get_by_edi_nomenclature("HSS8X4X.500")
    assert exc_info.value.lookup == "EDI name"


def test_get_missing_raises_not_found(monkeypatch: pytest.MonkeyPatch) -> None:
    """Test NotFound when no row is returned."""
    storage = _storage(monkeypatch, FakeConn())
    with pytest.raises(errors.NotFound):
        storage.get_by_designation("W99X999")


def test_update_locks_row_then_updates(monkeypatch: pytest.MonkeyPatch) -> None:
    """Test the lock-then-update sequence in one transaction."""
    conn = FakeConn(fetchone=[("PL",)])
    storage = _storage(monkeypatch, conn)
    storage.update_by_designation(
        "PL1X6", shape_factories.make_record(ShapeFamily.PLATE, "PL1X6", t=2.0)
    )
    assert "FOR UPDATE" in conn.executed[0][0]
    assert conn.executed[1][0].strip().startswith("UPDATE shapes SET")
    assert conn.executed[1][1]["nominal_depth"] == 2.0
    assert conn.committed


def test_update_family_conflict(monkeypatch: pytest.MonkeyPatch) -> None:
    """Test that a stored family different from the record's is rejected."""
    conn = FakeConn(fetchone=[("PIPE",)])
    storage = _storage(monkeypatch, conn)
    with pytest.raises(errors.SchemaViolation):
        storage.update_by_designation(
            "X1", shape_factories.make_record(ShapeFamily.PLATE, "X1")
        )
    assert len(conn.executed) == 1
    assert conn.rolled_back


def test_update_missing_raises_not_found(monkeypatch: pytest.MonkeyPatch) -> None:
    """Test NotFound when the row lock finds nothing."""
    storage = _storage(monkeypatch, FakeConn(fetchone=[None]))
    with pytest.raises(errors.NotFound):
        storage.update_by_designation(
            "X1", shape_factories.make_record(ShapeFamily.PLATE, "X1")
        )


def test_delete_missing_raises_not_found(monkeypatch: pytest.MonkeyPatch) -> None:
    """Test that deleting zero rows is NotFound."""
    storage = _storage(monkeypatch, FakeConn(rowcount=0))
    with pytest.raises(errors.NotFound):
        storage.delete_by_designation("X1")


def test_query_streams_through_named_cursor(monkeypatch: pytest.MonkeyPatch) -> None:
    """Test a full streamed query and the resources it releases."""
    records = [
        shape_factories.make_record(ShapeFamily.PLATE, name)
        for name in ("PL1X6", "PL1X8")
    ]
    conn = FakeConn(rows=[_row(r) for r in records])
    storage = _storage(monkeypatch, conn)
    query = QueryBuilder().families(ShapeFamily.PLATE).order_by("W").build()
    assert list(storage.query_all(query)) == records
    cursor = conn.cursors[0]
    assert cursor.name is not None
    assert cursor.name.startswith("shapes_")
    assert cursor.itersize == 7
    assert conn.executed[0][1][0] == ["PL"]
    assert conn.cursors_closed == 1
    assert conn.closed


def test_abandoned_query_releases_cursor(monkeypatch: pytest.MonkeyPatch) -> None:
    """Test that closing a partially consumed stream closes the cursor."""
    records = [
        shape_factories.make_record(ShapeFamily.PLATE, name)
        for name in ("PL1X6", "PL1X8", "PL1X10")
    ]
    conn = FakeConn(rows=[_row(r) for r in records])
    repo = database.ShapeRepository(_storage(monkeypatch, conn))
    with repo.all() as results:
        iterator = iter(results)
        assert next(iterator) == records[0]
        assert not conn.closed
    assert conn.cursors_closed == 1
    assert conn.rolled_back
    assert conn.closed


def test_connect_failure_is_storage_failure(monkeypatch: pytest.MonkeyPatch) -> None:
    """Test that a connection error surfaces as StorageFailure."""
    storage = _storage(monkeypatch, FakeConn())
    failure = psycopg2.OperationalError("could not connect to server")

    def refuse(url: str) -> Any:
        raise failure

    monkeypatch.setattr(database.psycopg2, "connect", refuse)
    with pytest.raises(errors.StorageFailure) as exc_info:
        storage.get_by_designation("W12X26")
    assert exc_info.value.operation == "get"
    assert exc_info.value.__cause__ is failure


def test_driver_error_is_storage_failure(monkeypatch: pytest.MonkeyPatch) -> None:
    """Test that a statement error rolls back and surfaces as StorageFailure."""
    conn = FakeConn(error=psycopg2.DatabaseError("server closed the connection"))
    storage = _storage(monkeypatch, conn)
    with pytest.raises(errors.StorageFailure, match="server closed"):
        storage.delete_by_designation("W12X26")
    assert conn.rolled_back
    assert conn.closed
