"""Storage backends and the repository for shape records.

This module provides the storage capability (``ShapeStorageProtocol``),
its in-memory and PostgreSQL implementations, and ``ShapeRepository``,
the backend-agnostic CRUD and query surface used by the HTTP API, the CLI
and the CSV importer.

Backends own serialization of their own mutations: the in-memory store
holds a lock across each check-and-write, and the PostgreSQL store runs
every mutating call in a single transaction (``ON CONFLICT`` for inserts,
``SELECT ... FOR UPDATE`` for updates). Writes are visible to any get or
query issued after the call returns.

Query results are produced lazily. The PostgreSQL backend streams rows
through a server-side cursor; the cursor and its connection are released
when iteration completes, fails, or is abandoned (``close()`` or garbage
collection of the iterator).

Example:
    Use the in-memory backend in tests:
        >>> from aisc_shapes.db import database
        >>> repo = database.ShapeRepository(database.InMemoryShapeStorage())
        >>> repo.create(record)
        'W12X26'
        >>> repo.get("W12X26") == record
        True

    Resolve the configured backend:
        >>> repo = database.get_shape_repository(settings)
"""

from __future__ import annotations

import contextlib
import functools
import logging
import math
import threading
import uuid
from typing import TYPE_CHECKING, ClassVar, Protocol, cast

import psycopg2
import psycopg2.extensions
import psycopg2.extras

from aisc_shapes.core import errors
from aisc_shapes.db import sql
from aisc_shapes.domain import schema
from aisc_shapes.domain.families import ShapeFamily
from aisc_shapes.domain.query import Query
from aisc_shapes.domain.shapes import ShapeRecord
from aisc_shapes.domain.units import Measurement

if TYPE_CHECKING:
    from collections.abc import Iterator

    from aisc_shapes.core import config

logger = logging.getLogger(__name__)


class ShapeStorageProtocol(Protocol):
    """Protocol interface for persisting shape records.

    Implementations provide persistence for ShapeRecord values, supporting
    both in-memory (testing) and PostgreSQL (production) backends. Each
    mutating method must be atomic with respect to concurrent calls on the
    same designation.
    """

    def insert(self, record: ShapeRecord) -> None: ...

    def get_by_designation(self, designation: str) -> ShapeRecord: ...

    def get_by_edi_nomenclature(self, edi_nomenclature: str) -> ShapeRecord: ...

    def update_by_designation(
        self, designation: str, record: ShapeRecord
    ) -> None: ...

    def delete_by_designation(self, designation: str) -> None: ...

    def query_all(self, query: Query) -> Iterator[ShapeRecord]: ...


def _family_conflict(
    designation: str,
    stored: ShapeFamily,
    replacement: ShapeFamily,
) -> errors.SchemaViolation:
    return errors.SchemaViolation(
        str(replacement),
        designation,
        conflicts=[
            f"stored shape is {stored}, replacement is {replacement}; "
            "a shape cannot change family"
        ],
    )


class InMemoryShapeStorage(ShapeStorageProtocol):
    """Simple in-memory store for tests and local development.

    Stores shape records in a dictionary guarded by a re-entrant lock.
    Records are immutable, so they are shared with callers without
    copying. Queries filter a snapshot taken under the lock, so a
    concurrent write never shows up half-applied. Data is lost when the
    process exits.
    """

    def __init__(self) -> None:
        """Initialize an empty in-memory store."""
        self._store: dict[str, ShapeRecord] = {}
        self._lock = threading.RLock()

    def insert(self, record: ShapeRecord) -> None:
        with self._lock:
            if record.designation in self._store:
                raise errors.DuplicateDesignation(record.designation)
            self._store[record.designation] = record

    def get_by_designation(self, designation: str) -> ShapeRecord:
        with self._lock:
            try:
                return self._store[designation]
            except KeyError:
                raise errors.NotFound(designation) from None

    def get_by_edi_nomenclature(self, edi_nomenclature: str) -> ShapeRecord:
        with self._lock:
            matches = [
                record
                for record in self._store.values()
                if record.edi_nomenclature == edi_nomenclature
            ]
        if not matches:
            raise errors.NotFound(edi_nomenclature, lookup="EDI name")
        return min(matches, key=lambda record: record.designation)

    def update_by_designation(
        self, designation: str, record: ShapeRecord
    ) -> None:
        with self._lock:
            stored = self._store.get(designation)
            if stored is None:
                raise errors.NotFound(designation)
            if stored.family is not record.family:
                raise _family_conflict(designation, stored.family, record.family)
            self._store[designation] = record

    def delete_by_designation(self, designation: str) -> None:
        with self._lock:
            try:
                del self._store[designation]
            except KeyError:
                raise errors.NotFound(designation) from None

    def query_all(self, query: Query) -> Iterator[ShapeRecord]:
        with self._lock:
            snapshot = list(self._store.values())
        matched = [record for record in snapshot if query.matches(record)]
        yield from query.paginate(query.order(matched))

    def __len__(self) -> int:
        with self._lock:
            return len(self._store)


def _encode_value(value: float) -> float | str:
    # JSONB has no representation for non-finite numbers.
    if math.isinf(value):
        return "Infinity" if value > 0 else "-Infinity"
    return value


def _decode_value(value: object) -> float:
    if isinstance(value, str):
        return float(value)
    return float(cast(float, value))


class PostgresShapeStorage(ShapeStorageProtocol):
    """PostgreSQL-backed storage for shape records.

    Persists each record as one row of the ``shapes`` table: the
    designation as primary key, the family tag, the nominal depth and
    width as numeric columns, and every property magnitude in a JSONB
    document keyed by AISC property name. Units are not stored; they are
    restored from the property schema registry when rows are read.

    A connection is opened per call and closed when the call (or the
    iteration of a query result) ends. Driver errors are raised as
    ``StorageFailure`` with the psycopg2 exception as cause.
    """

    CREATE_TABLE_SQL = """
    CREATE TABLE IF NOT EXISTS shapes (
      designation TEXT PRIMARY KEY,
      family TEXT NOT NULL,
      edi_nomenclature TEXT,
      t_f BOOLEAN,
      nominal_depth DOUBLE PRECISION NOT NULL,
      nominal_width DOUBLE PRECISION NOT NULL,
      properties JSONB NOT NULL,
      created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
      updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
    );
    ALTER TABLE shapes ADD COLUMN IF NOT EXISTS edi_nomenclature TEXT;
    ALTER TABLE shapes ADD COLUMN IF NOT EXISTS t_f BOOLEAN;
    CREATE INDEX IF NOT EXISTS shapes_family_idx ON shapes (family);
    CREATE INDEX IF NOT EXISTS shapes_edi_nomenclature_idx
      ON shapes (edi_nomenclature);
    """

    _initialized_urls: ClassVar[set[str]] = set()
    _init_lock: ClassVar[threading.Lock] = threading.Lock()

    def __init__(self, settings: config.Settings) -> None:
        """Initialize storage with database settings.

        Args:
            settings: Application settings containing the database URL and
                the streaming batch size.
        """
        self.settings = settings
        self._ensure_schema()

    def _connection(self) -> psycopg2.extensions.connection:
        """Create a new database connection.

        Returns:
            psycopg2 connection object.
        """
        return psycopg2.connect(self.settings.database_url)

    @contextlib.contextmanager
    def _transaction(
        self, operation: str
    ) -> Iterator[psycopg2.extensions.connection]:
        """Run the body in one transaction on a fresh connection.

        Commits on success, rolls back on any exception, always closes the
        connection, and translates driver errors into StorageFailure.
        """
        try:
            conn = self._connection()
        except psycopg2.Error as exc:
            raise errors.StorageFailure(operation, str(exc).strip()) from exc
        try:
            with conn:
                yield conn
        except psycopg2.Error as exc:
            raise errors.StorageFailure(operation, str(exc).strip()) from exc
        finally:
            conn.close()

    def _ensure_schema(self) -> None:
        """Create the shapes table and family index if they don't exist.

        Runs once per database URL per process.
        """
        url = self.settings.database_url
        with self._init_lock:
            if url in self._initialized_urls:
                return
            with self._transaction("ensure_schema") as conn, conn.cursor() as cur:
                cur.execute(self.CREATE_TABLE_SQL)
            self._initialized_urls.add(url)
        logger.info("Ensured shapes table exists")

    def insert(self, record: ShapeRecord) -> None:
        row = self._to_row(record)
        row["properties"] = psycopg2.extras.Json(row["properties"])
        with self._transaction("insert") as conn, conn.cursor() as cur:
            cur.execute(
                """
                INSERT INTO shapes (
                    designation, family, edi_nomenclature, t_f,
                    nominal_depth, nominal_width, properties
                ) VALUES (%(designation)s, %(family)s, %(edi_nomenclature)s,
                    %(t_f)s, %(nominal_depth)s, %(nominal_width)s,
                    %(properties)s)
                ON CONFLICT (designation) DO NOTHING
                RETURNING designation;
                """,
                row,
            )
            if cur.fetchone() is None:
                raise errors.DuplicateDesignation(record.designation)

    def get_by_designation(self, designation: str) -> ShapeRecord:
        with self._transaction("get") as conn, conn.cursor(
            cursor_factory=psycopg2.extras.RealDictCursor
        ) as cur:
            cur.execute(
                f"SELECT {sql.SELECT_COLUMNS} FROM shapes "
                "WHERE designation = %s",
                (designation,),
            )
            row = cur.fetchone()
        if row is None:
            raise errors.NotFound(designation)
        return self._from_row(cast(dict[str, object], row))

    def get_by_edi_nomenclature(self, edi_nomenclature: str) -> ShapeRecord:
        with self._transaction("get") as conn, conn.cursor(
            cursor_factory=psycopg2.extras.RealDictCursor
        ) as cur:
            cur.execute(
                f"SELECT {sql.SELECT_COLUMNS} FROM shapes "
                "WHERE edi_nomenclature = %s "
                'ORDER BY designation COLLATE "C" LIMIT 1',
                (edi_nomenclature,),
            )
            row = cur.fetchone()
        if row is None:
            raise errors.NotFound(edi_nomenclature, lookup="EDI name")
        return self._from_row(cast(dict[str, object], row))

    def update_by_designation(
        self, designation: str, record: ShapeRecord
    ) -> None:
        row = self._to_row(record)
        row["properties"] = psycopg2.extras.Json(row["properties"])
        row["designation"] = designation
        with self._transaction("update") as conn, conn.cursor() as cur:
            cur.execute(
                "SELECT family FROM shapes WHERE designation = %s FOR UPDATE",
                (designation,),
            )
            found = cur.fetchone()
            if found is None:
                raise errors.NotFound(designation)
            stored_family = ShapeFamily(found[0])
            if stored_family is not record.family:
                raise _family_conflict(designation, stored_family, record.family)
            cur.execute(
                """
                UPDATE shapes SET
                    edi_nomenclature = %(edi_nomenclature)s,
                    t_f = %(t_f)s,
                    nominal_depth = %(nominal_depth)s,
                    nominal_width = %(nominal_width)s,
                    properties = %(properties)s,
                    updated_at = now()
                WHERE designation = %(designation)s;
                """,
                row,
            )

    def delete_by_designation(self, designation: str) -> None:
        with self._transaction("delete") as conn, conn.cursor() as cur:
            cur.execute(
                "DELETE FROM shapes WHERE designation = %s", (designation,)
            )
            if cur.rowcount == 0:
                raise errors.NotFound(designation)

    def query_all(self, query: Query) -> Iterator[ShapeRecord]:
        statement, params = sql.build_select_sql(query)
        cursor_name = f"shapes_{uuid.uuid4().hex}"
        with self._transaction("query") as conn, conn.cursor(
            name=cursor_name,
            cursor_factory=psycopg2.extras.RealDictCursor,
        ) as cur:
            cur.itersize = self.settings.query_batch_size
            cur.execute(statement, params)
            for row in cur:
                yield self._from_row(cast(dict[str, object], row))

    @staticmethod
    def _to_row(record: ShapeRecord) -> dict[str, object]:
        """Convert a ShapeRecord to a database row dictionary.

        Args:
            record: Shape record to convert.

        Returns:
            Dictionary suitable for parameterized SQL; ``properties`` maps
            property names to magnitudes (non-finite values as strings).
        """
        return {
            "designation": record.designation,
            "family": str(record.family),
            "edi_nomenclature": record.edi_nomenclature,
            "t_f": record.t_f,
            "nominal_depth": record.depth.value,
            "nominal_width": record.width.value,
            "properties": {
                name: _encode_value(measurement.value)
                for name, measurement in record.properties.items()
            },
        }

    @staticmethod
    def _from_row(row: dict[str, object]) -> ShapeRecord:
        """Convert a database row dictionary to a ShapeRecord.

        Args:
            row: Dictionary from a database query result.

        Returns:
            Validated ShapeRecord with units restored from the schema.

        Raises:
            SchemaViolation: If the stored document does not match the
                family's current schema.
        """
        family = ShapeFamily(str(row["family"]))
        designation = str(row["designation"])
        stored = cast(dict[str, object], row["properties"])
        declared = schema.get_registry().schema_for(family).by_name
        extra = [name for name in stored if name not in declared]
        if extra:
            raise errors.SchemaViolation(str(family), designation, extra=extra)
        properties = {
            name: Measurement(_decode_value(value), declared[name].unit)
            for name, value in stored.items()
        }
        return ShapeRecord(
            designation,
            family,
            properties,
            edi_nomenclature=cast("str | None", row.get("edi_nomenclature")),
            t_f=cast("bool | None", row.get("t_f")),
        )


def _close_stream(stream: Iterator[ShapeRecord]) -> None:
    close = getattr(stream, "close", None)
    if close is not None:
        close()


class ShapeResults:
    """Lazy, finite, re-iterable sequence of query results.

    Each iteration re-issues the query against the backend, so results
    can be restarted. Backend resources are held only while an iteration
    is in progress and are released when it finishes, raises, or when
    ``close()`` is called (also on leaving a ``with`` block).

    Example:
        >>> with repo.query(query) as results:
        ...     first = next(iter(results))
        >>> # the backend cursor is released here
    """

    def __init__(self, storage: ShapeStorageProtocol, query: Query) -> None:
        self._storage = storage
        self.query = query
        self._streams: list[Iterator[ShapeRecord]] = []

    def __iter__(self) -> Iterator[ShapeRecord]:
        stream = self._storage.query_all(self.query)
        self._streams.append(stream)
        try:
            yield from stream
        finally:
            _close_stream(stream)
            with contextlib.suppress(ValueError):
                self._streams.remove(stream)

    def close(self) -> None:
        """Release every backend stream still open for this sequence."""
        while self._streams:
            _close_stream(self._streams.pop())

    def __enter__(self) -> ShapeResults:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


class ShapeRepository:
    """Backend-agnostic CRUD and query surface over shape records.

    All operations are safe to call concurrently against one storage
    instance; serialization of writes is the backend's responsibility.
    Errors from the core taxonomy propagate unchanged to the caller.
    """

    def __init__(
        self,
        storage: ShapeStorageProtocol,
        registry: schema.PropertySchemaRegistry | None = None,
    ) -> None:
        self.storage = storage
        self.registry = registry or schema.get_registry()

    def create(self, record: ShapeRecord) -> str:
        """Persist a new record.

        Returns:
            The record's designation.

        Raises:
            DuplicateDesignation: If the designation is already stored.
        """
        _require_record(record)
        self.storage.insert(record)
        logger.debug("Created shape %s (%s)", record.designation, record.family)
        return record.designation

    def get(self, designation: str) -> ShapeRecord:
        """Fetch a record by designation.

        Raises:
            NotFound: If no record has this designation.
        """
        return self.storage.get_by_designation(designation.strip())

    def get_by_edi_nomenclature(self, edi_nomenclature: str) -> ShapeRecord:
        """Fetch a record by its EDI standard nomenclature.

        When several records share the name, the one with the smallest
        designation is returned.

        Raises:
            NotFound: If no record carries this EDI name.
        """
        return self.storage.get_by_edi_nomenclature(edi_nomenclature.strip())

    def update(self, designation: str, record: ShapeRecord) -> None:
        """Atomically replace the stored record for ``designation``.

        The replacement must carry the same designation and family as the
        stored record; no field-level merge is performed.

        Raises:
            NotFound: If no record has this designation.
            SchemaViolation: If the replacement changes designation or
                family.
        """
        _require_record(record)
        designation = designation.strip()
        if record.designation != designation:
            raise errors.SchemaViolation(
                str(record.family),
                designation,
                conflicts=[
                    f"replacement designation {record.designation!r} does "
                    f"not match {designation!r}"
                ],
            )
        self.storage.update_by_designation(designation, record)
        logger.debug("Replaced shape %s", designation)

    def delete(self, designation: str) -> None:
        """Remove a record.

        Raises:
            NotFound: If no record has this designation.
        """
        designation = designation.strip()
        self.storage.delete_by_designation(designation)
        logger.debug("Deleted shape %s", designation)

    def query(self, query: Query) -> ShapeResults:
        """Validate ``query`` and return its lazy result sequence.

        Raises:
            InvalidQuery: Before touching storage, if the query does not
                validate against the property schema.
        """
        query.validate(self.registry)
        return ShapeResults(self.storage, query)

    def all(self) -> ShapeResults:
        """Every stored record, ordered by designation."""
        return self.query(Query())

    def count(self, query: Query) -> int:
        """Number of records matching ``query``, ignoring its window."""
        with self.query(query.without_window()) as results:
            return sum(1 for _ in results)

    def first(self, query: Query) -> ShapeRecord | None:
        """First record of ``query`` in its order, or None."""
        with self.query(query) as results:
            return next(iter(results), None)


def _require_record(record: object) -> None:
    if not isinstance(record, ShapeRecord):
        raise TypeError(
            f"Expected a ShapeRecord, got {type(record).__name__}"
        )


@functools.lru_cache
def _shared_memory_storage() -> InMemoryShapeStorage:
    return InMemoryShapeStorage()


def get_shape_storage(settings: config.Settings) -> ShapeStorageProtocol:
    """Factory function selecting the configured storage backend.

    Args:
        settings: Application settings; ``storage_backend`` picks the
            backend.

    Returns:
        PostgresShapeStorage for "postgres", or the process-wide
        InMemoryShapeStorage for "memory".
    """
    if settings.storage_backend == "memory":
        return _shared_memory_storage()
    return PostgresShapeStorage(settings)


def get_shape_repository(settings: config.Settings) -> ShapeRepository:
    """Factory function to create a shape repository.

    Args:
        settings: Application settings for backend selection and
            database connection.

    Returns:
        ShapeRepository over the configured storage backend.
    """
    return ShapeRepository(get_shape_storage(settings))
