"""Property schema discovery endpoints.

Clients use these endpoints to learn which properties each shape family
carries, in which unit, and within which range, before building queries
or request bodies.

Example:
    >>> client.get("/api/schema/HSS").json()["depth_property"]
    'Ht'
"""

from typing import Any

import fastapi

from aisc_shapes.api import shapes as api_shapes
from aisc_shapes.domain import schema
from aisc_shapes.domain.families import ShapeFamily

router = fastapi.APIRouter(prefix="/api/schema", tags=["schema"])


def _definition_to_dict(definition: schema.PropertyDefinition) -> dict[str, Any]:
    valid_range = definition.valid_range or schema.ValidRange()
    return {
        "name": definition.name,
        "unit": definition.unit.value,
        "symbol": definition.unit.symbol,
        "minimum": valid_range.minimum,
        "maximum": valid_range.maximum,
        "description": definition.description,
        "required": definition.required,
    }


def _family_to_dict(family_schema: schema.FamilySchema) -> dict[str, Any]:
    return {
        "family": str(family_schema.family),
        "name": family_schema.family.name.lower(),
        "depth_property": family_schema.depth_property,
        "width_property": family_schema.width_property,
        "properties": [
            _definition_to_dict(definition)
            for definition in family_schema.definitions
        ],
    }


@router.get("")
async def list_families() -> list[dict[str, Any]]:
    """List every family with its declared property definitions."""
    registry = schema.get_registry()
    return [
        _family_to_dict(registry.schema_for(family))
        for family in ShapeFamily
        if family in registry.all_families()
    ]


@router.get("/{family}")
async def get_family(family: str) -> dict[str, Any]:
    """Describe one family's properties.

    Args:
        family: Family code (``W``, ``HSS_ROUND``) or name (``channel``).

    Raises:
        HTTPException: 422 if the family is unknown.
    """
    return _family_to_dict(
        schema.get_registry().schema_for(api_shapes._parse_family(family))
    )
