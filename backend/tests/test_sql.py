"""Unit tests for the PostgreSQL query builder.

This module tests aisc_shapes.db.sql.build_select_sql, validating:
    - Family restriction and predicates as parameterized WHERE clauses,
    - Virtual depth/width names mapped onto materialized columns,
    - Property names bound as parameters, never spliced into SQL,
    - ORDER BY with the designation tie-break and LIMIT/OFFSET.

See Also:
    - backend/aisc_shapes/db/sql.py for implementation.
"""

from __future__ import annotations

from aisc_shapes.db import sql
from aisc_shapes.domain.families import ShapeFamily
from aisc_shapes.domain.query import Query, QueryBuilder
from aisc_shapes.domain.units import Measurement, Unit


def test_empty_query_orders_by_designation() -> None:
    """Test the SQL for a query with no conditions."""
    statement, params = sql.build_select_sql(Query())
    assert statement == (
        'SELECT designation, family, edi_nomenclature, t_f, properties '
        'FROM shapes '
        'ORDER BY designation COLLATE "C" ASC'
    )
    assert params == []


def test_families_and_predicates_are_parameterized() -> None:
    """Test WHERE clauses and their parameter order."""
    query = (
        QueryBuilder()
        .families(ShapeFamily.WIDE_FLANGE, ShapeFamily.CHANNEL)
        .where("bf/2tf", "lt", Measurement(8.0, Unit.DIMENSIONLESS))
        .where("Ix", "ne", Measurement(100.0, Unit.MOMENT_OF_INERTIA))
        .build()
    )
    statement, params = sql.build_select_sql(query)
    assert "WHERE family = ANY(%s)" in statement
    assert "AND (properties ->> %s)::double precision < %s" in statement
    assert "AND (properties ->> %s)::double precision <> %s" in statement
    assert "bf/2tf" not in statement
    assert params == [["C", "W"], "bf/2tf", 8.0, "Ix", 100.0]


def test_virtual_names_use_columns() -> None:
    """Test depth and width map onto the nominal dimension columns."""
    query = (
        QueryBuilder()
        .where("depth", "ge", Measurement(12.0, Unit.LENGTH))
        .order_by("width", descending=True)
        .build()
    )
    statement, params = sql.build_select_sql(query)
    assert "WHERE nominal_depth >= %s" in statement
    assert statement.endswith(
        'ORDER BY nominal_width DESC NULLS LAST, '
        'designation COLLATE "C" ASC'
    )
    assert params == [12.0]


def test_property_sort_and_window() -> None:
    """Test property sort key, LIMIT and OFFSET parameters."""
    query = QueryBuilder().order_by("W").page(20, 10).build()
    statement, params = sql.build_select_sql(query)
    assert statement.endswith(
        'ORDER BY (properties ->> %s)::double precision ASC NULLS LAST, '
        'designation COLLATE "C" ASC LIMIT %s OFFSET %s'
    )
    assert params == ["W", 10, 20]


def test_designation_sort_descending_and_offset_only() -> None:
    """Test designation sort and an offset without a limit."""
    query = QueryBuilder().order_by("designation", descending=True).page(5).build()
    statement, params = sql.build_select_sql(query)
    assert statement.endswith('ORDER BY designation COLLATE "C" DESC OFFSET %s')
    assert params == [5]
