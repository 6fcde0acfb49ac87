"""Tests for the property schema registry.

This module tests aisc_shapes.domain.schema, covering:
    - Coverage of every shape family with its nominal depth and width,
    - Property resolution including the virtual depth/width names,
    - Unit and range validation of single property references,
    - Idempotent, cached registry initialization.

See Also:
    - backend/aisc_shapes/domain/schema.py for implementation.
"""

from __future__ import annotations

import pytest

from aisc_shapes.core import errors
from aisc_shapes.domain import schema
from aisc_shapes.domain.families import ShapeFamily
from aisc_shapes.domain.units import Measurement, Unit


def test_registry_covers_every_family() -> None:
    """Test that every ShapeFamily member has a schema."""
    registry = schema.get_registry()
    assert registry.all_families() == frozenset(ShapeFamily)
    for family in ShapeFamily:
        assert registry.definitions_for(family)


def test_get_registry_is_cached() -> None:
    """Test that repeated initialization returns the same registry."""
    assert schema.get_registry() is schema.get_registry()
    assert schema.initialize() is schema.get_registry()


@pytest.mark.parametrize(
    ("family", "depth", "width"),
    [
        (ShapeFamily.WIDE_FLANGE, "d", "bf"),
        (ShapeFamily.CHANNEL, "d", "bf"),
        (ShapeFamily.ANGLE, "d", "b"),
        (ShapeFamily.TUBE, "Ht", "B"),
        (ShapeFamily.ROUND_TUBE, "OD", "OD"),
        (ShapeFamily.PIPE, "OD", "OD"),
        (ShapeFamily.PLATE, "t", "b"),
    ],
)
def test_nominal_dimensions(family: ShapeFamily, depth: str, width: str) -> None:
    """Test the declared depth and width properties per family."""
    registry = schema.get_registry()
    assert registry.depth_property(family) == depth
    assert registry.width_property(family) == width
    assert registry.resolve(family, "depth").name == depth
    assert registry.resolve(family, "width").name == width


def test_resolve_returns_unit_and_range() -> None:
    """Test that a resolved definition carries unit and valid range."""
    definition = schema.get_registry().resolve(ShapeFamily.WIDE_FLANGE, "Ix")
    assert definition.unit is Unit.MOMENT_OF_INERTIA
    assert definition.valid_range == schema.NON_NEGATIVE
    assert definition.description


def test_resolve_unknown_property_raises() -> None:
    """Test that an undeclared property raises UnknownProperty."""
    with pytest.raises(errors.UnknownProperty) as exc_info:
        schema.get_registry().resolve(ShapeFamily.PLATE, "Cw")
    assert exc_info.value.family == "PL"
    assert exc_info.value.name == "Cw"
    assert "Cw" in str(exc_info.value)


def test_declares_virtual_and_family_specific_names() -> None:
    """Test declares() for aliases and family-specific properties."""
    registry = schema.get_registry()
    assert registry.declares(ShapeFamily.PIPE, "depth")
    assert registry.declares(ShapeFamily.ANGLE, "tan(α)")
    assert not registry.declares(ShapeFamily.WIDE_FLANGE, "tan(α)")
    assert registry.declares(ShapeFamily.WIDE_FLANGE, "k1")
    assert not registry.declares(ShapeFamily.STANDARD_BEAM, "k1")


def test_validate_unit_mismatch_raises() -> None:
    """Test validate() reports a unit mismatch as SchemaViolation."""
    registry = schema.get_registry()
    registry.validate(ShapeFamily.WIDE_FLANGE, "Sx", Unit.SECTION_MODULUS)
    with pytest.raises(errors.SchemaViolation) as exc_info:
        registry.validate(ShapeFamily.WIDE_FLANGE, "Sx", Unit.LENGTH)
    assert exc_info.value.mismatched_units == (
        ("Sx", Unit.SECTION_MODULUS, Unit.LENGTH),
    )


def test_validate_value_range() -> None:
    """Test range checks for bounded and unbounded properties."""
    registry = schema.get_registry()
    registry.validate_value(
        ShapeFamily.CHANNEL, "x", Measurement(-0.5, Unit.LENGTH)
    )
    registry.validate_value(
        ShapeFamily.CHANNEL, "H", Measurement(1.0, Unit.DIMENSIONLESS)
    )
    with pytest.raises(errors.SchemaViolation) as exc_info:
        registry.validate_value(
            ShapeFamily.CHANNEL, "H", Measurement(1.5, Unit.DIMENSIONLESS)
        )
    assert exc_info.value.out_of_range == (("H", 1.5),)
    with pytest.raises(errors.SchemaViolation):
        registry.validate_value(
            ShapeFamily.CHANNEL, "tw", Measurement(-0.1, Unit.LENGTH)
        )


def test_valid_range_bounds_are_inclusive() -> None:
    """Test ValidRange with open and closed sides."""
    bounded = schema.ValidRange(0.0, 1.0)
    assert bounded.contains(0.0)
    assert bounded.contains(1.0)
    assert not bounded.contains(1.0001)
    assert schema.ValidRange().contains(-1e9)
    assert schema.NON_NEGATIVE.contains(float("inf"))


def test_schema_for_unknown_family_raises() -> None:
    """Test that an unknown family value is rejected."""
    with pytest.raises(ValueError, match="Unknown shape family"):
        schema.get_registry().schema_for("ZZ")  # type: ignore[arg-type]


def test_registry_rejects_undeclared_nominal_dimension() -> None:
    """Test that a table whose depth property is undeclared is refused."""
    table = {ShapeFamily.PLATE: (("t", "b", "W"), "d", "b")}
    with pytest.raises(ValueError, match="depth property"):
        schema.PropertySchemaRegistry(table)


def test_angle_h_and_swb_are_optional() -> None:
    """Test the required flag on the single angle's optional properties."""
    registry = schema.get_registry()
    angle = registry.schema_for(ShapeFamily.ANGLE)
    assert not angle.by_name["H"].required
    assert not angle.by_name["SwB"].required
    assert angle.by_name["SwA"].required
    assert "H" not in angle.required_names
    assert registry.resolve(ShapeFamily.DOUBLE_ANGLE, "H").required


def test_registry_rejects_optional_nominal_dimension() -> None:
    """Test that a nominal dimension property cannot be optional."""
    table = {ShapeFamily.PLATE: (("t", "b", "W"), "t", "b")}
    with pytest.raises(ValueError, match="cannot be optional"):
        schema.PropertySchemaRegistry(
            table, {ShapeFamily.PLATE: frozenset({"t"})}
        )


def test_family_parse_accepts_codes_and_names() -> None:
    """Test ShapeFamily.parse for type codes and member names."""
    assert ShapeFamily.parse("w") is ShapeFamily.WIDE_FLANGE
    assert ShapeFamily.parse("2L") is ShapeFamily.DOUBLE_ANGLE
    assert ShapeFamily.parse("round_tube") is ShapeFamily.ROUND_TUBE
    assert ShapeFamily.parse(" hss ") is ShapeFamily.TUBE
    with pytest.raises(ValueError):
        ShapeFamily.parse("XYZ")
