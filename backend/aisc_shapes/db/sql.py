"""PostgreSQL query builder for shape record queries.

Translates a validated ``Query`` into a parameterized ``SELECT`` over the
``shapes`` table. Properties live in a JSONB column keyed by their AISC
name; nominal depth and width are materialized into their own columns so
the virtual ``depth``/``width`` names map onto a single expression for
every family.

Only enum-controlled fragments (operators, sort direction, column names)
are spliced into the SQL text. Property names and values are always bound
as parameters, so names like ``bf/2tf`` or ``tan(α)`` need no quoting.

Example:
    Build the SQL for a query and run it on a psycopg2 cursor:
        >>> from aisc_shapes.db.sql import build_select_sql
        >>> sql, params = build_select_sql(query.validate())
        >>> cursor.execute(sql, params)
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Final

from aisc_shapes.domain import query as shape_query
from aisc_shapes.domain import schema

if TYPE_CHECKING:
    from aisc_shapes.domain.query import Query

TABLE_NAME: Final[str] = "shapes"

SELECT_COLUMNS: Final[str] = (
    "designation, family, edi_nomenclature, t_f, properties"
)

_COLUMN_FOR_NAME: Final[dict[str, str]] = {
    schema.DEPTH: "nominal_depth",
    schema.WIDTH: "nominal_width",
}

_SQL_OPERATORS: Final[dict[shape_query.Operator, str]] = {
    shape_query.Operator.EQ: "=",
    shape_query.Operator.NE: "<>",
    shape_query.Operator.LT: "<",
    shape_query.Operator.LE: "<=",
    shape_query.Operator.GT: ">",
    shape_query.Operator.GE: ">=",
}

# Designations sort bytewise so results match the in-memory backend.
DESIGNATION_ORDER: Final[str] = 'designation COLLATE "C"'


def property_expression(name: str, params: list[object]) -> str:
    """Return a numeric SQL expression for ``name``, binding it if needed."""
    column = _COLUMN_FOR_NAME.get(name)
    if column is not None:
        return column
    params.append(name)
    return "(properties ->> %s)::double precision"


def build_select_sql(query: Query) -> tuple[str, list[object]]:
    """Build a ``SELECT`` statement and its parameters for ``query``.

    The query must already be validated; this function trusts that every
    referenced property exists for the families in range.

    Args:
        query: Validated query specification.

    Returns:
        Tuple of (SQL text with ``%s`` placeholders, parameter list).
    """
    params: list[object] = []
    clauses: list[str] = []

    if query.families is not None:
        clauses.append("family = ANY(%s)")
        params.append(sorted(str(f) for f in query.families))

    for predicate in query.predicates:
        expression = property_expression(predicate.name, params)
        clauses.append(f"{expression} {_SQL_OPERATORS[predicate.operator]} %s")
        params.append(predicate.value.value)

    sql = f"SELECT {SELECT_COLUMNS} FROM {TABLE_NAME}"
    if clauses:
        sql += " WHERE " + " AND ".join(clauses)

    sort = query.sort
    if sort is None or sort.name == shape_query.DESIGNATION:
        direction = "DESC" if sort is not None and sort.descending else "ASC"
        sql += f" ORDER BY {DESIGNATION_ORDER} {direction}"
    else:
        direction = "DESC" if sort.descending else "ASC"
        expression = property_expression(sort.name, params)
        # Optional properties absent from a row sort last in either direction.
        sql += (
            f" ORDER BY {expression} {direction} NULLS LAST, "
            f"{DESIGNATION_ORDER} ASC"
        )

    window = query.window
    if window is not None:
        if window.limit is not None:
            sql += " LIMIT %s"
            params.append(window.limit)
        if window.offset:
            sql += " OFFSET %s"
            params.append(window.offset)
    return sql, params
