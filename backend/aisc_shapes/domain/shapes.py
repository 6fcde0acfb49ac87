"""Shape records: one tagged value type for every steel shape family.

A ``ShapeRecord`` is a designation, a ``ShapeFamily`` tag and a read-only
mapping from property name to ``Measurement``. There is no class per
family; the family's behaviour lives entirely in the property schema
registry, so adding a family means adding a tag and a schema entry without
touching existing code. Construction validates the mapping against the
registry: every required property must be present and no undeclared one,
every unit must match, and bounded properties must lie within their declared
range. All problems are reported together in one ``SchemaViolation``.

Records are immutable. Storage backends hand them out by value and callers
derive modified copies with ``replace_properties``; updates go back
through the repository.

Example:
    Build a plate and read its properties generically:
        >>> from aisc_shapes.domain import shapes
        >>> from aisc_shapes.domain.units import Measurement, Unit
        >>> plate = shapes.plate("PL1/2X12", {
        ...     "t": Measurement(0.5, Unit.LENGTH),
        ...     "b": Measurement(12.0, Unit.LENGTH),
        ...     ...
        ... })
        >>> shapes.property_value(plate, "width")
        Measurement(value=12.0, unit=<Unit.LENGTH: 'length'>)
"""

from __future__ import annotations

import dataclasses
import types
from typing import TYPE_CHECKING

from aisc_shapes.core import errors
from aisc_shapes.domain import schema
from aisc_shapes.domain.families import ShapeFamily
from aisc_shapes.domain.units import Measurement

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping


@dataclasses.dataclass(frozen=True)
class ShapeRecord:
    """An immutable shape of one family with its full property set.

    Attributes:
        designation: AISC Manual label, the natural key (e.g. ``"W12X26"``).
        family: Family tag selecting the property schema.
        properties: Read-only mapping of property name to Measurement:
            every required property of the family plus the optional ones
            that apply to this shape.
        edi_nomenclature: EDI standard nomenclature (``"W12X26"``,
            ``"HSS20X12X5/8"``, ``"Pipe26STD"``), or None when unknown.
        t_f: The database's ``T_F`` flag for the shape, or None when the
            source does not provide it.
    """

    designation: str
    family: ShapeFamily
    properties: Mapping[str, Measurement]
    edi_nomenclature: str | None = None
    t_f: bool | None = None

    def __post_init__(self) -> None:
        designation = self.designation.strip() if isinstance(
            self.designation, str
        ) else ""
        if not designation:
            raise errors.SchemaViolation(
                str(self.family),
                conflicts=["designation must be a non-empty string"],
            )
        family = ShapeFamily(self.family)
        properties = dict(self.properties)
        _check_against_schema(family, designation, properties)
        object.__setattr__(self, "designation", designation)
        object.__setattr__(self, "family", family)
        object.__setattr__(
            self, "properties", types.MappingProxyType(properties)
        )
        object.__setattr__(
            self,
            "edi_nomenclature",
            (self.edi_nomenclature or "").strip() or None,
        )

    def __hash__(self) -> int:
        return hash((self.designation, self.family))

    @property
    def depth(self) -> Measurement:
        """Nominal depth, through the family's declared depth property."""
        return property_value(self, schema.DEPTH)

    @property
    def width(self) -> Measurement:
        """Nominal width, through the family's declared width property."""
        return property_value(self, schema.WIDTH)


def _check_against_schema(
    family: ShapeFamily,
    designation: str,
    properties: dict[str, Measurement],
) -> None:
    family_schema = schema.get_registry().schema_for(family)
    declared = family_schema.by_name
    missing = [
        name for name in family_schema.required_names if name not in properties
    ]
    extra = [name for name in properties if name not in declared]
    mismatched = []
    out_of_range = []
    for name, measurement in properties.items():
        definition = declared.get(name)
        if definition is None:
            continue
        if not isinstance(measurement, Measurement):
            raise errors.InvalidMeasurement(measurement, definition.unit)
        if measurement.unit is not definition.unit:
            mismatched.append((name, definition.unit, measurement.unit))
            continue
        valid_range = definition.valid_range
        if valid_range is not None and not valid_range.contains(
            measurement.value
        ):
            out_of_range.append((name, measurement.value))
    if missing or extra or mismatched or out_of_range:
        raise errors.SchemaViolation(
            str(family),
            designation,
            missing=missing,
            extra=extra,
            mismatched_units=mismatched,
            out_of_range=out_of_range,
        )


def make_shape(
    family: ShapeFamily,
    designation: str,
    properties: Mapping[str, Measurement],
    *,
    edi_nomenclature: str | None = None,
    t_f: bool | None = None,
) -> ShapeRecord:
    """Build and validate a record of any family."""
    return ShapeRecord(designation, family, properties, edi_nomenclature, t_f)


def _resolve(record: ShapeRecord, name: str) -> schema.PropertyDefinition:
    try:
        return schema.get_registry().resolve(record.family, name)
    except errors.UnknownProperty:
        raise errors.UnknownProperty(
            str(record.family), name, record.designation
        ) from None


def find_value(record: ShapeRecord, name: str) -> Measurement | None:
    """Like ``property_value``, but None for an absent optional property.

    Raises:
        UnknownProperty: If the record's family does not declare ``name``.
    """
    return record.properties.get(_resolve(record, name).name)


def property_value(record: ShapeRecord, name: str) -> Measurement:
    """Read one property from a record of any family.

    ``depth`` and ``width`` resolve through the family's nominal dimension
    declarations.

    Raises:
        UnknownProperty: If the record's family does not declare ``name``.
        NotApplicable: If ``name`` is optional and absent for this shape.
    """
    value = find_value(record, name)
    if value is None:
        raise errors.NotApplicable(str(record.family), name, record.designation)
    return value


def replace_properties(record: ShapeRecord, **changes: Measurement) -> ShapeRecord:
    """Return a new validated record with some properties replaced.

    Names resolve like ``property_value``, so ``depth=...`` sets the
    family's nominal depth property. An optional property absent from
    ``record`` can be set this way. Property names that are not valid
    identifiers (``bf/2tf``) can be passed with ``**{"bf/2tf": value}``.
    """
    resolved = {
        _resolve(record, name).name: value for name, value in changes.items()
    }
    return dataclasses.replace(
        record, properties={**record.properties, **resolved}
    )


def _constructor(
    family: ShapeFamily,
) -> Callable[[str, Mapping[str, Measurement]], ShapeRecord]:
    def build(
        designation: str, properties: Mapping[str, Measurement]
    ) -> ShapeRecord:
        return ShapeRecord(designation, family, properties)

    build.__name__ = family.name.lower()
    build.__doc__ = f"Build a validated {family.name.replace('_', ' ').lower()} record."
    return build


wide_flange = _constructor(ShapeFamily.WIDE_FLANGE)
misc_beam = _constructor(ShapeFamily.MISC_BEAM)
standard_beam = _constructor(ShapeFamily.STANDARD_BEAM)
h_pile = _constructor(ShapeFamily.H_PILE)
channel = _constructor(ShapeFamily.CHANNEL)
misc_channel = _constructor(ShapeFamily.MISC_CHANNEL)
angle = _constructor(ShapeFamily.ANGLE)
wide_flange_tee = _constructor(ShapeFamily.WIDE_FLANGE_TEE)
misc_tee = _constructor(ShapeFamily.MISC_TEE)
standard_tee = _constructor(ShapeFamily.STANDARD_TEE)
double_angle = _constructor(ShapeFamily.DOUBLE_ANGLE)
tube = _constructor(ShapeFamily.TUBE)
round_tube = _constructor(ShapeFamily.ROUND_TUBE)
pipe = _constructor(ShapeFamily.PIPE)
plate = _constructor(ShapeFamily.PLATE)
