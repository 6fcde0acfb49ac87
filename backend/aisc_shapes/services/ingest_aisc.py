"""AISC Shapes Database CSV import service.

This module reads the AISC Shapes Database (v16.0) exported as CSV and
stores each row as a validated ShapeRecord through a ShapeRepository.
The CSV has one row per shape: ``Type`` (the family code),
``EDI_Std_Nomenclature``, ``AISC_Manual_Label`` (used as designation),
the ``T_F`` flag and one column per property, named as in the property
schema registry.

Cells hold decimals, fractions (``5/8``) or mixed numbers (``1 3/8``,
``1-3/8``); an en dash, a hyphen or an empty cell means the property does
not apply to that shape. Only the properties the family declares are
read. Rows that cannot be turned into a record are reported in the
summary with their line number and reason, never silently dropped.

Example:
    Import the database into the configured backend:
        >>> from aisc_shapes.core.config import get_settings
        >>> from aisc_shapes.db import get_shape_repository
        >>> from aisc_shapes.services.ingest_aisc import import_csv

        >>> repo = get_shape_repository(get_settings())
        >>> summary = import_csv("aisc-shapes-database-v16.0.csv", repo)
        >>> summary.created, len(summary.failures)
        (2091, 0)
"""

from __future__ import annotations

import csv
import dataclasses
import fractions
import logging
import pathlib
import re
from typing import TYPE_CHECKING, Final

from aisc_shapes.core import errors
from aisc_shapes.domain import schema
from aisc_shapes.domain.families import ShapeFamily
from aisc_shapes.domain.shapes import ShapeRecord
from aisc_shapes.domain.units import Measurement

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator, Mapping

    from aisc_shapes.db.database import ShapeRepository

logger = logging.getLogger(__name__)

TYPE_COLUMN: Final[str] = "Type"
EDI_COLUMN: Final[str] = "EDI_Std_Nomenclature"
LABEL_COLUMN: Final[str] = "AISC_Manual_Label"
T_F_COLUMN: Final[str] = "T_F"
REQUIRED_COLUMNS: Final[frozenset[str]] = frozenset({TYPE_COLUMN, LABEL_COLUMN})

NOT_APPLICABLE: Final[frozenset[str]] = frozenset({"", "–", "—", "-"})

_MIXED_NUMBER = re.compile(
    r"(?:(?P<whole>\d+)[\s-]+)?(?P<numerator>\d+)/(?P<denominator>\d+)"
)


@dataclasses.dataclass(frozen=True)
class ImportFailure:
    """One CSV row that could not be stored."""

    line: int
    designation: str | None
    reason: str


@dataclasses.dataclass
class ImportSummary:
    """Outcome of an import run.

    Attributes:
        created: Rows stored as new records.
        updated: Rows that replaced an existing record (``replace=True``).
        skipped: Rows whose designation already existed (``replace=False``).
        failures: Rows rejected, with line number and reason.
    """

    created: int = 0
    updated: int = 0
    skipped: int = 0
    failures: list[ImportFailure] = dataclasses.field(default_factory=list)

    @property
    def total(self) -> int:
        return self.created + self.updated + self.skipped + len(self.failures)


def parse_value(text: str) -> float | None:
    """Parse one CSV cell.

    Args:
        text: Raw cell text.

    Returns:
        The magnitude as a float, or None for a not-applicable cell.

    Raises:
        ValueError: If the cell is neither a number nor a fraction.

    Example:
        >>> parse_value("1 3/8")
        1.375
        >>> parse_value("–") is None
        True
    """
    cleaned = text.strip()
    if cleaned in NOT_APPLICABLE:
        return None
    try:
        return float(cleaned)
    except ValueError:
        pass
    match = _MIXED_NUMBER.fullmatch(cleaned)
    if match is None:
        raise ValueError(f"Unparsable value {text!r}")
    denominator = int(match["denominator"])
    if denominator == 0:
        raise ValueError(f"Unparsable value {text!r}")
    whole = int(match["whole"] or 0)
    return float(whole + fractions.Fraction(int(match["numerator"]), denominator))


def parse_flag(text: str | None) -> bool | None:
    """Parse the ``T_F`` cell: ``T`` is True, ``F`` is False, blank is None.

    Raises:
        ValueError: For any other text.
    """
    cleaned = (text or "").strip().upper()
    if cleaned in NOT_APPLICABLE:
        return None
    if cleaned in ("T", "F"):
        return cleaned == "T"
    raise ValueError(f"Unparsable T_F flag {text!r}")


def family_for_row(type_code: str, nomenclature: str) -> ShapeFamily:
    """Map the CSV ``Type`` to a family, splitting HSS by its nomenclature.

    Rectangular HSS names carry two dimensions and a thickness
    (``HSS20X12X5/8``); round HSS names carry a diameter and a thickness
    (``HSS20.000X0.500``).

    Raises:
        ValueError: If the type or HSS nomenclature is not recognized.
    """
    code = type_code.strip().upper()
    if code == "HSS":
        separators = nomenclature.upper().count("X")
        if separators == 2:
            return ShapeFamily.TUBE
        if separators == 1:
            return ShapeFamily.ROUND_TUBE
        raise ValueError(f"Cannot classify HSS shape {nomenclature!r}")
    return ShapeFamily.parse(code)


def record_from_row(
    row: Mapping[str, str | None],
    registry: schema.PropertySchemaRegistry | None = None,
) -> ShapeRecord:
    """Build a validated record from one CSV row.

    Raises:
        ValueError: For an unknown type or an unparsable cell.
        SchemaViolation: When required properties are not applicable or
            values fall outside their declared ranges.
    """
    registry = registry or schema.get_registry()
    designation = (row.get(LABEL_COLUMN) or "").strip()
    edi_nomenclature = (row.get(EDI_COLUMN) or "").strip() or None
    family = family_for_row(
        row.get(TYPE_COLUMN) or "", edi_nomenclature or designation
    )
    t_f = parse_flag(row.get(T_F_COLUMN))

    properties: dict[str, Measurement] = {}
    for definition in registry.definitions_for(family):
        raw = row.get(definition.name)
        if raw is None:
            continue
        try:
            value = parse_value(raw)
        except ValueError as exc:
            raise ValueError(f"{definition.name}: {exc}") from None
        if value is not None:
            properties[definition.name] = Measurement(value, definition.unit)
    return ShapeRecord(
        designation,
        family,
        properties,
        edi_nomenclature=edi_nomenclature,
        t_f=t_f,
    )


def parse_catalog(
    lines: Iterable[str],
    source: str = "<csv>",
    registry: schema.PropertySchemaRegistry | None = None,
) -> Iterator[tuple[int, ShapeRecord | ImportFailure]]:
    """Yield ``(line, record or failure)`` for every data row of the CSV.

    Raises:
        InvalidCatalog: If the header lacks the type or label column.
    """
    reader = csv.DictReader(lines)
    missing = sorted(REQUIRED_COLUMNS - set(reader.fieldnames or ()))
    if missing:
        raise errors.InvalidCatalog(
            source, f"missing column(s) {', '.join(missing)}"
        )
    for row in reader:
        line = reader.line_num
        designation = (row.get(LABEL_COLUMN) or "").strip() or None
        try:
            yield line, record_from_row(row, registry)
        except (ValueError, errors.ShapesError) as exc:
            yield line, ImportFailure(line, designation, str(exc))


def import_rows(
    items: Iterable[tuple[int, ShapeRecord | ImportFailure]],
    repository: ShapeRepository,
    *,
    replace: bool = False,
) -> ImportSummary:
    """Store parsed rows, skipping or replacing existing designations.

    StorageFailure is not caught; a backend fault aborts the import.
    """
    summary = ImportSummary()
    for line, item in items:
        if isinstance(item, ImportFailure):
            logger.warning(
                "Skipping line %d (%s): %s",
                item.line,
                item.designation or "no designation",
                item.reason,
            )
            summary.failures.append(item)
            continue
        try:
            repository.create(item)
            summary.created += 1
            continue
        except errors.DuplicateDesignation:
            if not replace:
                summary.skipped += 1
                continue
        try:
            repository.update(item.designation, item)
            summary.updated += 1
        except (errors.NotFound, errors.SchemaViolation) as exc:
            logger.warning("Cannot replace %s: %s", item.designation, exc)
            summary.failures.append(
                ImportFailure(line, item.designation, str(exc))
            )
    return summary


def import_csv(
    path: str | pathlib.Path,
    repository: ShapeRepository,
    replace: bool = False,
) -> ImportSummary:
    """Import an AISC shapes CSV file into ``repository``.

    Args:
        path: CSV file, UTF-8 with or without byte order mark.
        repository: Destination repository.
        replace: Replace records whose designation already exists instead
            of skipping them.

    Returns:
        Counts of created, updated and skipped rows plus the failures.

    Raises:
        InvalidCatalog: If the file is not an AISC shapes CSV.
        StorageFailure: If the backend fails mid-import; rows stored
            before the fault remain stored.
    """
    path = pathlib.Path(path)
    logger.info("Importing AISC shapes from %s", path)
    try:
        with path.open(encoding="utf-8-sig", newline="") as handle:
            summary = import_rows(
                parse_catalog(handle, str(path), repository.registry),
                repository,
                replace=replace,
            )
    except (UnicodeDecodeError, csv.Error) as exc:
        raise errors.InvalidCatalog(str(path), str(exc)) from exc
    logger.info(
        "Imported %s: %d created, %d updated, %d skipped, %d failed",
        path.name,
        summary.created,
        summary.updated,
        summary.skipped,
        len(summary.failures),
    )
    return summary
