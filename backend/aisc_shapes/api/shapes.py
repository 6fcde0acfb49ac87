"""Shape record CRUD and query API endpoints.

This module provides REST API endpoints to create, fetch, replace and
delete shape records and to run validated queries over them. Property
values are exchanged as bare numbers in the unit the property schema
declares (inches, in.², in.⁴, lb/ft, ...); responses carry the unit and
its symbol next to every value.

Designations may contain slashes (``L4X4X1/2``, ``PL1/2X12``), so the
designation path parameter captures the rest of the path. Shapes can also
be fetched by their EDI standard nomenclature under ``/api/shapes/edi/``.

Example:
    Wide flanges at least 12 in. deep, lightest first:
        >>> response = client.get(
        ...     "/api/shapes",
        ...     params={"family": "W", "where": "depth:ge:12", "sort": "W"},
        ... )
        >>> response.json()["items"][0]["designation"]
        'W12X14'

    Fetch a single shape:
        >>> client.get("/api/shapes/W12X26").json()["properties"]["Ix"]
        {'value': 204.0, 'unit': 'moment_of_inertia', 'symbol': 'in.4'}
"""

from __future__ import annotations

import math
from typing import Any

import fastapi
import pydantic

from aisc_shapes.core import config, errors
from aisc_shapes.db import database
from aisc_shapes.domain import query as shape_query
from aisc_shapes.domain import schema
from aisc_shapes.domain.families import ShapeFamily
from aisc_shapes.domain.shapes import ShapeRecord
from aisc_shapes.domain.units import Measurement

router = fastapi.APIRouter(prefix="/api/shapes", tags=["shapes"])

_STATUS_FOR_ERROR: dict[type[errors.ShapesError], int] = {
    errors.NotFound: 404,
    errors.DuplicateDesignation: 409,
    errors.StorageFailure: 503,
}


class ShapeBody(pydantic.BaseModel):
    """Request body for creating or replacing a shape.

    ``properties`` maps AISC property names to magnitudes in the unit the
    family's schema declares.
    """

    family: str
    designation: str | None = None
    edi_nomenclature: str | None = None
    t_f: bool | None = None
    properties: dict[str, float]


def _get_repo(
    settings: config.Settings = fastapi.Depends(config.get_settings),  # noqa: B008
) -> database.ShapeRepository:
    """Resolve the shape repository dependency.

    Args:
        settings: Application settings (injected via FastAPI Depends).

    Returns:
        ShapeRepository over the configured backend
            (PostgresShapeStorage in production).
    """
    return database.get_shape_repository(settings)


def to_http_error(exc: errors.ShapesError) -> fastapi.HTTPException:
    """Translate a core error into an HTTPException.

    NotFound maps to 404, DuplicateDesignation to 409, StorageFailure to
    503; every other core error is a client mistake and maps to 422.
    """
    status_code = next(
        (
            code
            for error_type, code in _STATUS_FOR_ERROR.items()
            if isinstance(exc, error_type)
        ),
        422,
    )
    detail: dict[str, Any] = {"error": type(exc).__name__, "message": str(exc)}
    if isinstance(exc, errors.InvalidQuery):
        detail["problems"] = list(exc.problems)
    elif isinstance(exc, errors.SchemaViolation):
        detail["missing"] = list(exc.missing)
        detail["extra"] = list(exc.extra)
    return fastapi.HTTPException(status_code=status_code, detail=detail)


def _magnitude(value: float) -> float | str:
    # Starlette refuses non-finite floats in JSON.
    if math.isinf(value):
        return "Infinity" if value > 0 else "-Infinity"
    return value


def record_to_dict(record: ShapeRecord) -> dict[str, Any]:
    """Serialize a record with unit-tagged property values."""
    return {
        "designation": record.designation,
        "family": str(record.family),
        "edi_nomenclature": record.edi_nomenclature,
        "t_f": record.t_f,
        "properties": {
            name: {
                "value": _magnitude(measurement.value),
                "unit": measurement.unit.value,
                "symbol": measurement.unit.symbol,
            }
            for name, measurement in record.properties.items()
        },
    }


def _parse_family(text: str) -> ShapeFamily:
    try:
        return ShapeFamily.parse(text)
    except ValueError as exc:
        raise fastapi.HTTPException(status_code=422, detail=str(exc)) from None


def _record_from_body(
    body: ShapeBody, designation: str | None = None
) -> ShapeRecord:
    """Build a validated record, taking units from the family's schema."""
    family = _parse_family(body.family)
    registry = schema.get_registry()
    declared = registry.schema_for(family).by_name
    extra = [name for name in body.properties if name not in declared]
    label = body.designation or designation or ""
    if extra:
        raise errors.SchemaViolation(str(family), label or None, extra=extra)
    properties = {
        name: Measurement(value, declared[name].unit)
        for name, value in body.properties.items()
    }
    return ShapeRecord(
        label,
        family,
        properties,
        edi_nomenclature=body.edi_nomenclature,
        t_f=body.t_f,
    )


def build_query(
    families: list[str] | None,
    conditions: list[str],
    sort: str | None,
    descending: bool,
    offset: int,
    limit: int | None,
) -> shape_query.Query:
    """Build an unvalidated query from request parameters.

    Raises:
        InvalidQuery: If a family or a condition is malformed.
    """
    builder = shape_query.QueryBuilder()
    parsed_families = None
    if families:
        try:
            parsed_families = [ShapeFamily.parse(family) for family in families]
        except ValueError as exc:
            raise errors.InvalidQuery([str(exc)]) from None
        builder.families(*parsed_families)
    for condition in conditions:
        predicate = shape_query.parse_condition(condition, parsed_families)
        builder.where(predicate.name, predicate.operator, predicate.value)
    if sort:
        builder.order_by(sort, descending=descending)
    builder.page(offset, limit)
    return builder.build()


@router.get("")
async def list_shapes(
    family: list[str] | None = fastapi.Query(None),  # noqa: B008
    where: list[str] = fastapi.Query([]),  # noqa: B008
    sort: str | None = None,
    descending: bool = False,
    offset: int = fastapi.Query(0, ge=0),  # noqa: B008
    limit: int | None = fastapi.Query(None, ge=0),  # noqa: B008
    settings: config.Settings = fastapi.Depends(config.get_settings),  # noqa: B008
    repo: database.ShapeRepository = fastapi.Depends(_get_repo),  # noqa: B008
) -> dict[str, Any]:
    """Query shape records.

    Conditions are ``name:op:value`` strings combined with AND; ``name``
    is a property of every family in range (or ``depth``/``width``),
    ``op`` one of ``eq ne lt le gt ge`` (or their symbols) and ``value`` a
    number in the property's declared unit. Results are ordered by the
    sort key, then by designation.

    Args:
        family: Family codes to restrict to (repeatable), e.g. ``W``.
        where: Conditions (repeatable).
        sort: ``designation``, ``depth``, ``width`` or a property name.
        descending: Sort descending (the designation tie-break stays
            ascending).
        offset: Number of matching records to skip.
        limit: Page size, capped at ``max_page_size``.
        settings: Application settings (injected via FastAPI Depends).
        repo: Shape repository (injected via FastAPI Depends).

    Returns:
        Dictionary with the total match count, the window applied and the
        serialized records of the page.

    Raises:
        HTTPException: 422 for an invalid query, 503 on storage failure.

    Example:
        >>> client.get("/api/shapes", params={
        ...     "family": ["C", "MC"],
        ...     "where": ["Ix:ge:100", "d:le:15"],
        ...     "sort": "Ix",
        ...     "descending": True,
        ... }).json()
        {'total': 9, 'offset': 0, 'limit': 50, 'items': [...]}
    """
    page_size = min(
        limit if limit is not None else settings.default_page_size,
        settings.max_page_size,
    )
    try:
        query = build_query(family, where, sort, descending, offset, page_size)
        total = repo.count(query)
        with repo.query(query) as results:
            items = [record_to_dict(record) for record in results]
    except errors.ShapesError as exc:
        raise to_http_error(exc) from exc
    return {"total": total, "offset": offset, "limit": page_size, "items": items}


@router.post("", status_code=201)
async def create_shape(
    body: ShapeBody,
    repo: database.ShapeRepository = fastapi.Depends(_get_repo),  # noqa: B008
) -> dict[str, Any]:
    """Create a shape record.

    Raises:
        HTTPException: 409 if the designation exists, 422 if the body does
            not match the family's schema.
    """
    try:
        record = _record_from_body(body)
        repo.create(record)
    except errors.ShapesError as exc:
        raise to_http_error(exc) from exc
    return record_to_dict(record)


@router.get("/edi/{edi_nomenclature:path}")
async def get_shape_by_edi_nomenclature(
    edi_nomenclature: str,
    repo: database.ShapeRepository = fastapi.Depends(_get_repo),  # noqa: B008
) -> dict[str, Any]:
    """Fetch a shape record by its EDI standard nomenclature.

    Raises:
        HTTPException: 404 if no shape carries this EDI name.
    """
    try:
        return record_to_dict(repo.get_by_edi_nomenclature(edi_nomenclature))
    except errors.ShapesError as exc:
        raise to_http_error(exc) from exc


@router.get("/{designation:path}")
async def get_shape(
    designation: str,
    repo: database.ShapeRepository = fastapi.Depends(_get_repo),  # noqa: B008
) -> dict[str, Any]:
    """Fetch a shape record by designation.

    Raises:
        HTTPException: 404 if no shape has this designation.
    """
    try:
        return record_to_dict(repo.get(designation))
    except errors.ShapesError as exc:
        raise to_http_error(exc) from exc


@router.put("/{designation:path}")
async def replace_shape(
    designation: str,
    body: ShapeBody,
    repo: database.ShapeRepository = fastapi.Depends(_get_repo),  # noqa: B008
) -> dict[str, Any]:
    """Replace the stored record for ``designation``.

    The body's family must match the stored family; a body designation,
    if given, must match the path.

    Raises:
        HTTPException: 404 if absent, 422 on schema or family conflict.
    """
    try:
        record = _record_from_body(body, designation)
        repo.update(designation, record)
    except errors.ShapesError as exc:
        raise to_http_error(exc) from exc
    return record_to_dict(record)


@router.delete("/{designation:path}", status_code=204)
async def delete_shape(
    designation: str,
    repo: database.ShapeRepository = fastapi.Depends(_get_repo),  # noqa: B008
) -> None:
    """Delete a shape record.

    Raises:
        HTTPException: 404 if no shape has this designation.
    """
    try:
        repo.delete(designation)
    except errors.ShapesError as exc:
        raise to_http_error(exc) from exc
