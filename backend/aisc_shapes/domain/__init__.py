"""Domain model for structural steel shapes.

This package holds the storage-agnostic core: unit-tagged measurements,
the closed set of shape families, the property schema registry that
declares each family's properties, the ShapeRecord value type and the
query model used to filter, sort and paginate records.

Example:
    Build a query and validate it against the schema:
        >>> from aisc_shapes.domain import Measurement, QueryBuilder, Unit
        >>> query = QueryBuilder().where(
        ...     "Ix", ">=", Measurement(200.0, Unit.MOMENT_OF_INERTIA)
        ... ).build().validate()
"""

from aisc_shapes.domain.families import ShapeFamily
from aisc_shapes.domain.query import (
    Operator,
    Page,
    Predicate,
    Query,
    QueryBuilder,
    SortKey,
    parse_condition,
)
from aisc_shapes.domain.schema import (
    PropertyDefinition,
    PropertySchemaRegistry,
    ValidRange,
    get_registry,
)
from aisc_shapes.domain.shapes import (
    ShapeRecord,
    find_value,
    make_shape,
    property_value,
    replace_properties,
)
from aisc_shapes.domain.units import Measurement, Unit, compare

__all__ = [
    "Measurement",
    "Operator",
    "Page",
    "Predicate",
    "PropertyDefinition",
    "PropertySchemaRegistry",
    "Query",
    "QueryBuilder",
    "ShapeFamily",
    "ShapeRecord",
    "SortKey",
    "Unit",
    "ValidRange",
    "compare",
    "find_value",
    "get_registry",
    "make_shape",
    "parse_condition",
    "property_value",
    "replace_properties",
]
