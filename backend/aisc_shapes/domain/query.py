"""Immutable filter, sort and pagination specifications over shape records.

A ``Query`` is a conjunction of predicates (property, operator, unit-tagged
value), an optional family restriction, an optional sort key and an
optional pagination window. Queries are built with ``QueryBuilder`` and
validated against the property schema registry before any backend sees
them, so a malformed query fails fast with ``InvalidQuery`` listing every
problem.

Ordering is total and deterministic: results are sorted by the sort key
and then by designation (always ascending), so repeated paginated calls
never skip or repeat a record even when the sort key has duplicates.
Without a sort key, records are ordered by designation.

Example:
    Wide flanges at least 12 in. deep, lightest first, second page of ten:
        >>> from aisc_shapes.domain.families import ShapeFamily
        >>> from aisc_shapes.domain.query import Operator, QueryBuilder
        >>> from aisc_shapes.domain.units import Measurement, Unit
        >>> query = (
        ...     QueryBuilder()
        ...     .families(ShapeFamily.WIDE_FLANGE)
        ...     .where("depth", Operator.GE, Measurement(12.0, Unit.LENGTH))
        ...     .order_by("W")
        ...     .page(offset=10, limit=10)
        ...     .build()
        ... )
        >>> query.validate() is query
        True
"""

from __future__ import annotations

import dataclasses
import enum
import operator
from typing import TYPE_CHECKING, Final

from aisc_shapes.core import errors
from aisc_shapes.domain import schema, shapes, units
from aisc_shapes.domain.families import ShapeFamily

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable

    from aisc_shapes.domain.units import Measurement

DESIGNATION: Final[str] = "designation"


class Operator(enum.StrEnum):
    """Comparison operators available to predicates."""

    EQ = "eq"
    NE = "ne"
    LT = "lt"
    LE = "le"
    GT = "gt"
    GE = "ge"

    @property
    def symbol(self) -> str:
        return _SYMBOLS[self]

    @classmethod
    def parse(cls, text: str) -> Operator:
        """Parse a short code (``ge``) or a symbol (``>=``).

        Raises:
            ValueError: If ``text`` names no operator.
        """
        cleaned = text.strip().lower()
        for member in cls:
            if cleaned in (member.value, member.symbol):
                return member
        if cleaned == "==":
            return cls.EQ
        raise ValueError(f"Unknown comparison operator {text!r}")

    def apply(self, ordering: int) -> bool:
        """Evaluate the operator against a three-way comparison result."""
        return _EVALUATORS[self](ordering, 0)


_SYMBOLS: Final[dict[Operator, str]] = {
    Operator.EQ: "=",
    Operator.NE: "!=",
    Operator.LT: "<",
    Operator.LE: "<=",
    Operator.GT: ">",
    Operator.GE: ">=",
}

_EVALUATORS: Final[dict[Operator, Callable[[int, int], bool]]] = {
    Operator.EQ: operator.eq,
    Operator.NE: operator.ne,
    Operator.LT: operator.lt,
    Operator.LE: operator.le,
    Operator.GT: operator.gt,
    Operator.GE: operator.ge,
}


@dataclasses.dataclass(frozen=True)
class Predicate:
    """``property <operator> value``; the value carries its unit."""

    name: str
    operator: Operator
    value: Measurement

    def matches(self, record: shapes.ShapeRecord) -> bool:
        actual = shapes.find_value(record, self.name)
        if actual is None:
            return False
        return self.operator.apply(units.compare(actual, self.value))

    def __str__(self) -> str:
        return f"{self.name} {self.operator.symbol} {self.value}"


@dataclasses.dataclass(frozen=True)
class SortKey:
    """Sort by ``designation``, ``depth``, ``width`` or a property name."""

    name: str
    descending: bool = False


@dataclasses.dataclass(frozen=True)
class Page:
    """Pagination window applied after filtering and sorting."""

    offset: int = 0
    limit: int | None = None

    def __post_init__(self) -> None:
        if self.offset < 0:
            raise errors.InvalidQuery([f"offset must be >= 0, got {self.offset}"])
        if self.limit is not None and self.limit < 0:
            raise errors.InvalidQuery([f"limit must be >= 0, got {self.limit}"])


@dataclasses.dataclass(frozen=True)
class Query:
    """Immutable conjunctive query over shape records.

    Attributes:
        predicates: Conditions that must all hold.
        families: Families the query ranges over, or None for all.
        sort: Optional sort key; designation is always the tie-break.
        window: Optional pagination window.
    """

    predicates: tuple[Predicate, ...] = ()
    families: frozenset[ShapeFamily] | None = None
    sort: SortKey | None = None
    window: Page | None = None

    def target_families(
        self, registry: schema.PropertySchemaRegistry | None = None
    ) -> frozenset[ShapeFamily]:
        """Families this query ranges over, expanded when unrestricted."""
        if self.families is not None:
            return self.families
        return (registry or schema.get_registry()).all_families()

    def validate(
        self, registry: schema.PropertySchemaRegistry | None = None
    ) -> Query:
        """Check every predicate and the sort key against the schema.

        Returns:
            This query, so calls can be chained.

        Raises:
            InvalidQuery: Listing every problem found.
        """
        registry = registry or schema.get_registry()
        problems: list[str] = []
        names: list[str] = []
        families = sorted(self.target_families(registry))
        if not families:
            problems.append("family restriction is empty")

        for predicate in self.predicates:
            for family in families:
                problem = _check_reference(
                    registry, family, predicate.name, predicate.value
                )
                if problem:
                    problems.append(problem)
                    names.append(predicate.name)

        if self.sort is not None and self.sort.name != DESIGNATION:
            for family in families:
                if not registry.declares(family, self.sort.name):
                    problems.append(
                        f"sort key {self.sort.name!r} is not declared "
                        f"for family {family}"
                    )
                    names.append(self.sort.name)

        if problems:
            raise errors.InvalidQuery(problems, dict.fromkeys(names))
        return self

    def matches(self, record: shapes.ShapeRecord) -> bool:
        """True when ``record`` is in range and satisfies every predicate."""
        if self.families is not None and record.family not in self.families:
            return False
        return all(predicate.matches(record) for predicate in self.predicates)

    def order(
        self, records: Iterable[shapes.ShapeRecord]
    ) -> list[shapes.ShapeRecord]:
        """Sort records by (sort key, designation ascending).

        Records without a value for an optional sort key come last in
        either direction, ordered by designation.
        """
        ordered = sorted(records, key=lambda r: r.designation)
        if self.sort is None or self.sort.name == DESIGNATION:
            if self.sort is not None and self.sort.descending:
                ordered.reverse()
            return ordered
        name = self.sort.name
        present = [r for r in ordered if shapes.find_value(r, name) is not None]
        absent = [r for r in ordered if shapes.find_value(r, name) is None]
        # Stable sort keeps the designation tie-break ascending either way.
        present.sort(
            key=lambda r: shapes.property_value(r, name).value,
            reverse=self.sort.descending,
        )
        return present + absent

    def paginate(
        self, records: Iterable[shapes.ShapeRecord]
    ) -> Iterable[shapes.ShapeRecord]:
        """Apply the pagination window to already ordered records."""
        if self.window is None:
            yield from records
            return
        skipped = 0
        returned = 0
        for record in records:
            if skipped < self.window.offset:
                skipped += 1
                continue
            if self.window.limit is not None and returned >= self.window.limit:
                return
            returned += 1
            yield record

    def without_window(self) -> Query:
        return dataclasses.replace(self, window=None)


def _check_reference(
    registry: schema.PropertySchemaRegistry,
    family: ShapeFamily,
    name: str,
    value: Measurement,
) -> str | None:
    if not registry.declares(family, name):
        return f"property {name!r} is not declared for family {family}"
    definition = registry.resolve(family, name)
    if value.unit is not definition.unit:
        return (
            f"property {name!r} of family {family} is measured in "
            f"{definition.unit.value}, not {value.unit.value}"
        )
    valid_range = definition.valid_range
    if valid_range is not None and not valid_range.contains(value.value):
        return (
            f"value {value.value:g} for {name!r} is outside the valid range "
            f"of family {family}"
        )
    return None


class QueryBuilder:
    """Fluent builder producing immutable ``Query`` values.

    Each call returns the builder; ``build()`` can be called repeatedly and
    later builder calls never affect queries already built.
    """

    def __init__(self) -> None:
        self._predicates: list[Predicate] = []
        self._families: set[ShapeFamily] | None = None
        self._sort: SortKey | None = None
        self._window: Page | None = None

    def families(self, *families: ShapeFamily) -> QueryBuilder:
        """Restrict the query to ``families`` (adds to earlier calls)."""
        if self._families is None:
            self._families = set()
        self._families.update(ShapeFamily(f) for f in families)
        return self

    def where(
        self,
        name: str,
        op: Operator | str,
        value: Measurement,
    ) -> QueryBuilder:
        op = op if isinstance(op, Operator) else Operator.parse(op)
        self._predicates.append(Predicate(name, op, value))
        return self

    def between(
        self,
        name: str,
        low: Measurement,
        high: Measurement,
    ) -> QueryBuilder:
        """Inclusive range filter, expressed as two predicates."""
        self.where(name, Operator.GE, low)
        return self.where(name, Operator.LE, high)

    def order_by(self, name: str, *, descending: bool = False) -> QueryBuilder:
        self._sort = SortKey(name, descending)
        return self

    def page(self, offset: int = 0, limit: int | None = None) -> QueryBuilder:
        self._window = Page(offset, limit)
        return self

    def build(self) -> Query:
        families = (
            frozenset(self._families) if self._families is not None else None
        )
        return Query(
            predicates=tuple(self._predicates),
            families=families,
            sort=self._sort,
            window=self._window,
        )


def parse_condition(
    text: str,
    families: Iterable[ShapeFamily] | None = None,
    registry: schema.PropertySchemaRegistry | None = None,
) -> Predicate:
    """Parse a ``name:op:value`` condition into a predicate.

    The value is a bare number; it takes the unit the schema declares for
    ``name`` in the first family (of ``families``, or of all families)
    that declares it. Undeclared names fall back to a dimensionless value
    so that ``Query.validate`` reports them with the other problems.

    Raises:
        InvalidQuery: If ``text`` is malformed.

    Example:
        >>> parse_condition("Ix:ge:200", [ShapeFamily.WIDE_FLANGE])
        Predicate(name='Ix', operator=<Operator.GE: 'ge'>, ...)
    """
    registry = registry or schema.get_registry()
    parts = text.rsplit(":", 2)
    if len(parts) != 3 or not parts[0].strip():
        raise errors.InvalidQuery(
            [f"condition {text!r} is not of the form name:op:value"]
        )
    name, op_text, value_text = (part.strip() for part in parts)
    try:
        op = Operator.parse(op_text)
    except ValueError as exc:
        raise errors.InvalidQuery([str(exc)], [name]) from None
    try:
        magnitude = float(value_text)
    except ValueError:
        raise errors.InvalidQuery(
            [f"value {value_text!r} for {name!r} is not a number"], [name]
        ) from None

    candidates = (
        sorted(families) if families is not None
        else sorted(registry.all_families())
    )
    unit = units.Unit.DIMENSIONLESS
    for family in candidates:
        if registry.declares(family, name):
            unit = registry.resolve(family, name).unit
            break
    return Predicate(name, op, units.Measurement(magnitude, unit))
