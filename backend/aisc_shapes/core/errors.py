"""Error taxonomy for the shape catalog core.

Every failure the core can report is a subclass of ``ShapesError`` and
carries enough structured detail (designation, family, property name,
units) for a consuming layer to build a precise message without querying
the repository again. The core never retries and never swallows these
errors; HTTP and CLI adapters translate them into their own signals.

Example:
    Map core errors onto HTTP status codes:
        >>> from aisc_shapes.core import errors
        >>> try:
        ...     repo.get("W12X26")
        ... except errors.NotFound as exc:
        ...     print(exc.designation)
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable

    from aisc_shapes.domain import units


class ShapesError(Exception):
    """Base class for all recoverable conditions raised by the core."""


class InvalidMeasurement(ShapesError, ValueError):
    """Raised when a Measurement is built from NaN or a non-numeric value."""

    def __init__(self, value: object, unit: units.Unit | None = None) -> None:
        self.value = value
        self.unit = unit
        super().__init__(f"Invalid measurement value {value!r}")


class UnitMismatch(ShapesError, TypeError):
    """Raised when arithmetic or comparison mixes incompatible units.

    Attributes:
        left: Unit of the left-hand operand.
        right: Unit of the right-hand operand.
        operation: Name of the attempted operation ("add", "compare", ...).
    """

    def __init__(
        self,
        left: units.Unit,
        right: units.Unit,
        operation: str,
    ) -> None:
        self.left = left
        self.right = right
        self.operation = operation
        super().__init__(
            f"Cannot {operation} {left.value} and {right.value} measurements"
        )


class SchemaViolation(ShapesError, ValueError):
    """Raised when a record does not match its family's property schema.

    All problems found are reported together so a caller can fix a record
    in one pass.

    Attributes:
        family: Family tag of the offending record.
        designation: Designation of the offending record, if known.
        missing: Declared property names that were not supplied.
        extra: Supplied property names the family does not declare.
        mismatched_units: ``(name, expected, actual)`` triples.
        out_of_range: ``(name, value)`` pairs outside the declared range.
        conflicts: Free-form conflicts detected against stored state
            (family change on update, designation mismatch).
    """

    def __init__(
        self,
        family: str,
        designation: str | None = None,
        *,
        missing: Iterable[str] = (),
        extra: Iterable[str] = (),
        mismatched_units: Iterable[tuple[str, units.Unit, units.Unit]] = (),
        out_of_range: Iterable[tuple[str, float]] = (),
        conflicts: Iterable[str] = (),
    ) -> None:
        self.family = family
        self.designation = designation
        self.missing = tuple(missing)
        self.extra = tuple(extra)
        self.mismatched_units = tuple(mismatched_units)
        self.out_of_range = tuple(out_of_range)
        self.conflicts = tuple(conflicts)
        super().__init__(self._describe())

    def _describe(self) -> str:
        parts: list[str] = []
        if self.missing:
            parts.append(f"missing {', '.join(self.missing)}")
        if self.extra:
            parts.append(f"unexpected {', '.join(self.extra)}")
        for name, expected, actual in self.mismatched_units:
            parts.append(
                f"{name} expects {expected.value} but got {actual.value}"
            )
        for name, value in self.out_of_range:
            parts.append(f"{name}={value} is outside its valid range")
        parts.extend(self.conflicts)
        subject = self.designation or "record"
        return f"{subject} ({self.family}): " + "; ".join(parts)


class UnknownProperty(ShapesError, KeyError):
    """Raised when a family does not declare the requested property."""

    def __init__(
        self,
        family: str,
        name: str,
        designation: str | None = None,
    ) -> None:
        self.family = family
        self.name = name
        self.designation = designation
        super().__init__(f"Family {family} does not declare property {name!r}")

    def __str__(self) -> str:
        # KeyError would otherwise repr() the message.
        return str(self.args[0])


class NotApplicable(ShapesError, LookupError):
    """Raised when an optional property is absent from a record.

    The family declares the property, but the AISC database leaves it blank
    for this shape.
    """

    def __init__(self, family: str, name: str, designation: str) -> None:
        self.family = family
        self.name = name
        self.designation = designation
        super().__init__(
            f"Property {name!r} does not apply to {designation} ({family})"
        )


class DuplicateDesignation(ShapesError):
    """Raised by create when the designation is already stored."""

    def __init__(self, designation: str) -> None:
        self.designation = designation
        super().__init__(f"Shape {designation} already exists")


class NotFound(ShapesError, LookupError):
    """Raised by get/update/delete when the designation is not stored.

    Lookups by another key (``lookup="EDI name"``) report that key instead.
    """

    def __init__(self, designation: str, lookup: str = "designation") -> None:
        self.designation = designation
        self.lookup = lookup
        if lookup == "designation":
            message = f"Shape {designation} not found"
        else:
            message = f"No shape with {lookup} {designation}"
        super().__init__(message)


class InvalidQuery(ShapesError, ValueError):
    """Raised when a query fails validation against the property schema.

    Attributes:
        problems: One human readable line per problem found.
        properties: Property names involved in the problems, in order.
    """

    def __init__(
        self,
        problems: Iterable[str],
        properties: Iterable[str] = (),
    ) -> None:
        self.problems = tuple(problems)
        self.properties = tuple(properties)
        super().__init__("Invalid query: " + "; ".join(self.problems))


class StorageFailure(ShapesError, RuntimeError):
    """Opaque backend fault (connection drop, driver error).

    The original driver exception is kept as ``__cause__``.
    """

    def __init__(self, operation: str, detail: str) -> None:
        self.operation = operation
        self.detail = detail
        super().__init__(f"Storage failure during {operation}: {detail}")


class InvalidCatalog(ShapesError, ValueError):
    """Raised when an AISC shapes CSV cannot be read as a catalog at all.

    Problems with individual rows are reported in the import summary
    instead.
    """

    def __init__(self, source: str, reason: str) -> None:
        self.source = source
        self.reason = reason
        super().__init__(f"Cannot import {source}: {reason}")
