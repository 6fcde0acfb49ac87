"""Property schema registry for AISC shape families.

The registry is the single source of truth for which named properties a
shape family carries, the unit of each property and, where the quantity is
physically bounded, the valid numeric range. Record construction, query
validation, the CSV importer and the HTTP schema endpoints all read from
it, so nothing downstream needs per-family branching.

Property names are the column headers of the AISC Shapes Database v16.0
(``d``, ``bf``, ``Ix``, ``bf/2tf``, ``tan(α)``, ...), which keeps CSV
import a direct mapping. Each family also declares which of its properties
is the nominal depth and nominal width; the virtual names ``depth`` and
``width`` resolve through that declaration for every family.
A few properties (``H`` and ``SwB`` of single angles) are blank for some
shapes in the database and are declared optional; every other declared
property is required.

The table is built once at import time and exposed read-only. The
registry itself is obtained through the cached ``get_registry()``, which
is safe to call any number of times from any thread.

Example:
    Inspect a family and validate a property reference:
        >>> from aisc_shapes.domain import schema
        >>> from aisc_shapes.domain.families import ShapeFamily
        >>> from aisc_shapes.domain.units import Unit
        >>> registry = schema.get_registry()
        >>> [d.name for d in registry.definitions_for(ShapeFamily.PLATE)][:3]
        ['t', 'b', 'W']
        >>> registry.validate(ShapeFamily.WIDE_FLANGE, "Ix",
        ...                   Unit.MOMENT_OF_INERTIA)
        >>> registry.resolve(ShapeFamily.TUBE, "depth").name
        'Ht'
"""

from __future__ import annotations

import dataclasses
import functools
import logging
import types
from typing import TYPE_CHECKING, Final

from aisc_shapes.core import errors
from aisc_shapes.domain.families import ShapeFamily
from aisc_shapes.domain.units import Unit

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

    from aisc_shapes.domain.units import Measurement

logger = logging.getLogger(__name__)

DEPTH: Final[str] = "depth"
WIDTH: Final[str] = "width"
VIRTUAL_NAMES: Final[frozenset[str]] = frozenset({DEPTH, WIDTH})


@dataclasses.dataclass(frozen=True)
class ValidRange:
    """Inclusive numeric bounds; either side may be open."""

    minimum: float | None = None
    maximum: float | None = None

    def contains(self, value: float) -> bool:
        if self.minimum is not None and value < self.minimum:
            return False
        if self.maximum is not None and value > self.maximum:
            return False
        return True


NON_NEGATIVE: Final[ValidRange] = ValidRange(minimum=0.0)
UNIT_INTERVAL: Final[ValidRange] = ValidRange(minimum=0.0, maximum=1.0)


@dataclasses.dataclass(frozen=True)
class PropertyDefinition:
    """One declared property of a shape family.

    Attributes:
        name: AISC column header, e.g. ``"Ix"``.
        unit: Physical quantity the property expresses.
        valid_range: Inclusive bounds, or None when unbounded.
        description: Short human readable description.
        required: False for properties the AISC database leaves blank for
            some shapes of the family; records may omit them.
    """

    name: str
    unit: Unit
    valid_range: ValidRange | None
    description: str
    required: bool = True


@dataclasses.dataclass(frozen=True)
class FamilySchema:
    """Ordered property definitions plus the family's nominal dimensions."""

    family: ShapeFamily
    definitions: tuple[PropertyDefinition, ...]
    depth_property: str
    width_property: str
    by_name: Mapping[str, PropertyDefinition] = dataclasses.field(
        init=False, repr=False, compare=False
    )

    def __post_init__(self) -> None:
        object.__setattr__(
            self,
            "by_name",
            types.MappingProxyType({d.name: d for d in self.definitions}),
        )

    @property
    def names(self) -> tuple[str, ...]:
        return tuple(d.name for d in self.definitions)

    @property
    def required_names(self) -> tuple[str, ...]:
        return tuple(d.name for d in self.definitions if d.required)


# -- Static definition table -------------------------------------------------

# name -> (unit, valid range, description). Only the quantities that can be
# negative in the published tables (centroid and shear-center offsets, the
# single-angle principal axis distances) are unbounded.
_CATALOG: Final[dict[str, tuple[Unit, ValidRange | None, str]]] = {
    "W": (Unit.MASS_PER_LENGTH, NON_NEGATIVE, "Nominal weight"),
    "A": (Unit.AREA, NON_NEGATIVE, "Cross-sectional area"),
    "d": (Unit.LENGTH, NON_NEGATIVE, "Overall depth"),
    "ddet": (Unit.LENGTH, NON_NEGATIVE, "Depth for detailing"),
    "Ht": (Unit.LENGTH, NON_NEGATIVE, "Overall depth of HSS"),
    "h": (Unit.LENGTH, NON_NEGATIVE, "Depth of flat wall of HSS"),
    "OD": (Unit.LENGTH, NON_NEGATIVE, "Outside diameter"),
    "bf": (Unit.LENGTH, NON_NEGATIVE, "Flange width"),
    "bfdet": (Unit.LENGTH, NON_NEGATIVE, "Flange width for detailing"),
    "B": (Unit.LENGTH, NON_NEGATIVE, "Overall width of HSS"),
    "b": (Unit.LENGTH, NON_NEGATIVE, "Leg or flat wall width"),
    "ID": (Unit.LENGTH, NON_NEGATIVE, "Inside diameter"),
    "tw": (Unit.LENGTH, NON_NEGATIVE, "Web thickness"),
    "twdet": (Unit.LENGTH, NON_NEGATIVE, "Web thickness for detailing"),
    "twdet/2": (Unit.LENGTH, NON_NEGATIVE, "Half web thickness for detailing"),
    "tf": (Unit.LENGTH, NON_NEGATIVE, "Flange thickness"),
    "tfdet": (Unit.LENGTH, NON_NEGATIVE, "Flange thickness for detailing"),
    "t": (Unit.LENGTH, NON_NEGATIVE, "Leg or plate thickness"),
    "tnom": (Unit.LENGTH, NON_NEGATIVE, "Nominal wall thickness"),
    "tdes": (Unit.LENGTH, NON_NEGATIVE, "Design wall thickness"),
    "kdes": (Unit.LENGTH, NON_NEGATIVE, "Distance to web toe of fillet, design"),
    "kdet": (Unit.LENGTH, NON_NEGATIVE, "Distance to web toe of fillet, detailing"),
    "k1": (Unit.LENGTH, NON_NEGATIVE, "Distance from web center to flange toe of fillet"),
    "x": (Unit.LENGTH, None, "Horizontal distance to center of gravity"),
    "y": (Unit.LENGTH, None, "Vertical distance to center of gravity"),
    "eo": (Unit.LENGTH, None, "Horizontal distance to shear center"),
    "xp": (Unit.LENGTH, None, "Horizontal distance to plastic neutral axis"),
    "yp": (Unit.LENGTH, None, "Vertical distance to plastic neutral axis"),
    "bf/2tf": (Unit.DIMENSIONLESS, NON_NEGATIVE, "Flange slenderness ratio"),
    "b/t": (Unit.DIMENSIONLESS, NON_NEGATIVE, "Leg or flange slenderness ratio"),
    "b/tdes": (Unit.DIMENSIONLESS, NON_NEGATIVE, "HSS wall slenderness, width"),
    "h/tw": (Unit.DIMENSIONLESS, NON_NEGATIVE, "Web slenderness ratio"),
    "h/tdes": (Unit.DIMENSIONLESS, NON_NEGATIVE, "HSS wall slenderness, depth"),
    "D/t": (Unit.DIMENSIONLESS, NON_NEGATIVE, "Diameter or stem slenderness ratio"),
    "Ix": (Unit.MOMENT_OF_INERTIA, NON_NEGATIVE, "Moment of inertia about x-axis"),
    "Zx": (Unit.SECTION_MODULUS, NON_NEGATIVE, "Plastic section modulus about x-axis"),
    "Sx": (Unit.SECTION_MODULUS, NON_NEGATIVE, "Elastic section modulus about x-axis"),
    "rx": (Unit.LENGTH, NON_NEGATIVE, "Radius of gyration about x-axis"),
    "Iy": (Unit.MOMENT_OF_INERTIA, NON_NEGATIVE, "Moment of inertia about y-axis"),
    "Zy": (Unit.SECTION_MODULUS, NON_NEGATIVE, "Plastic section modulus about y-axis"),
    "Sy": (Unit.SECTION_MODULUS, NON_NEGATIVE, "Elastic section modulus about y-axis"),
    "ry": (Unit.LENGTH, NON_NEGATIVE, "Radius of gyration about y-axis"),
    "Iz": (Unit.MOMENT_OF_INERTIA, NON_NEGATIVE, "Moment of inertia about z-axis"),
    "rz": (Unit.LENGTH, NON_NEGATIVE, "Radius of gyration about z-axis"),
    "Sz": (Unit.SECTION_MODULUS, NON_NEGATIVE, "Elastic section modulus about z-axis"),
    "J": (Unit.MOMENT_OF_INERTIA, NON_NEGATIVE, "Torsional constant"),
    "Cw": (Unit.WARPING_CONSTANT, NON_NEGATIVE, "Warping constant"),
    "C": (Unit.SECTION_MODULUS, NON_NEGATIVE, "HSS torsional constant"),
    "Wno": (Unit.AREA, NON_NEGATIVE, "Normalized warping function"),
    "Sw1": (Unit.MOMENT_OF_INERTIA, NON_NEGATIVE, "Warping statical moment at point 1"),
    "Sw2": (Unit.MOMENT_OF_INERTIA, NON_NEGATIVE, "Warping statical moment at point 2"),
    "Sw3": (Unit.MOMENT_OF_INERTIA, NON_NEGATIVE, "Warping statical moment at point 3"),
    "Qf": (Unit.SECTION_MODULUS, NON_NEGATIVE, "Statical moment at flange-web junction"),
    "Qw": (Unit.SECTION_MODULUS, NON_NEGATIVE, "Statical moment at mid-depth"),
    "ro": (Unit.LENGTH, NON_NEGATIVE, "Polar radius of gyration about shear center"),
    "H": (Unit.DIMENSIONLESS, UNIT_INTERVAL, "Flexural constant"),
    "tan(α)": (Unit.DIMENSIONLESS, NON_NEGATIVE, "Tangent of principal axis angle"),
    "Iw": (Unit.MOMENT_OF_INERTIA, NON_NEGATIVE, "Moment of inertia about w-axis"),
    "zA": (Unit.LENGTH, None, "Distance from point A to center of gravity along z"),
    "zB": (Unit.LENGTH, None, "Distance from point B to center of gravity along z"),
    "zC": (Unit.LENGTH, None, "Distance from point C to center of gravity along z"),
    "wA": (Unit.LENGTH, None, "Distance from point A to center of gravity along w"),
    "wB": (Unit.LENGTH, None, "Distance from point B to center of gravity along w"),
    "wC": (Unit.LENGTH, None, "Distance from point C to center of gravity along w"),
    "SwA": (Unit.SECTION_MODULUS, None, "Elastic section modulus about w at A"),
    "SwB": (Unit.SECTION_MODULUS, None, "Elastic section modulus about w at B"),
    "SwC": (Unit.SECTION_MODULUS, None, "Elastic section modulus about w at C"),
    "SzA": (Unit.SECTION_MODULUS, None, "Elastic section modulus about z at A"),
    "SzB": (Unit.SECTION_MODULUS, None, "Elastic section modulus about z at B"),
    "SzC": (Unit.SECTION_MODULUS, None, "Elastic section modulus about z at C"),
    "rts": (Unit.LENGTH, NON_NEGATIVE, "Effective radius of gyration"),
    "ho": (Unit.LENGTH, NON_NEGATIVE, "Distance between flange centroids"),
    "PA": (Unit.LENGTH, NON_NEGATIVE, "Perimeter minus one flange surface"),
    "PA2": (Unit.LENGTH, NON_NEGATIVE, "Single angle perimeter minus long leg"),
    "PB": (Unit.LENGTH, NON_NEGATIVE, "Shape perimeter"),
    "PC": (Unit.LENGTH, NON_NEGATIVE, "Box perimeter minus one flange surface"),
    "PD": (Unit.LENGTH, NON_NEGATIVE, "Box perimeter"),
    "T": (Unit.LENGTH, NON_NEGATIVE, "Distance between web toes of fillets"),
    "WGi": (Unit.LENGTH, NON_NEGATIVE, "Workable gage, inner fastener holes"),
}

_BEAM: Final = (
    "W", "A", "d", "ddet", "bf", "bfdet", "tw", "twdet", "twdet/2", "tf",
    "tfdet", "kdes", "kdet", "k1", "bf/2tf", "h/tw", "Ix", "Zx", "Sx", "rx",
    "Iy", "Zy", "Sy", "ry", "J", "Cw", "Wno", "Sw1", "Qf", "Qw", "rts", "ho",
    "PA", "PB", "PC", "PD", "T", "WGi",
)
_CHANNEL: Final = (
    "W", "A", "d", "ddet", "bf", "bfdet", "tw", "twdet", "twdet/2", "tf",
    "tfdet", "kdes", "kdet", "x", "eo", "xp", "b/t", "h/tw", "Ix", "Zx", "Sx",
    "rx", "Iy", "Zy", "Sy", "ry", "J", "Cw", "Wno", "Sw1", "Sw2", "Sw3", "Qf",
    "Qw", "ro", "H", "rts", "ho", "PA", "PB", "PC", "PD", "T",
)
_ANGLE: Final = (
    "W", "A", "d", "b", "t", "kdes", "kdet", "x", "y", "xp", "yp", "b/t",
    "Ix", "Zx", "Sx", "rx", "Iy", "Zy", "Sy", "ry", "Iz", "rz", "Sz", "J",
    "Cw", "ro", "H", "tan(α)", "Iw", "zA", "zB", "zC", "wA", "wB", "wC",
    "SwA", "SwB", "SwC", "SzA", "SzB", "SzC", "PA", "PA2", "PB",
)
_TEE: Final = (
    "W", "A", "d", "ddet", "bf", "bfdet", "tw", "twdet", "twdet/2", "tf",
    "tfdet", "kdes", "kdet", "y", "yp", "bf/2tf", "D/t", "Ix", "Zx", "Sx",
    "rx", "Iy", "Zy", "Sy", "ry", "J", "Cw", "ro", "H",
)
_DOUBLE_ANGLE: Final = (
    "W", "A", "d", "b", "t", "y", "yp", "b/t", "Ix", "Zx", "Sx", "rx", "Iy",
    "Zy", "Sy", "ry", "ro", "H",
)
_TUBE: Final = (
    "W", "A", "Ht", "h", "B", "b", "tnom", "tdes", "b/tdes", "h/tdes", "Ix",
    "Zx", "Sx", "rx", "Iy", "Zy", "Sy", "ry", "J", "C",
)
_ROUND_TUBE: Final = (
    "W", "A", "OD", "tnom", "tdes", "D/t", "Ix", "Zx", "Sx", "rx", "Iy", "Zy",
    "Sy", "ry", "J", "C",
)
_PIPE: Final = (
    "W", "A", "OD", "ID", "tnom", "tdes", "D/t", "Ix", "Zx", "Sx", "rx", "Iy",
    "Zy", "Sy", "ry", "J",
)
_PLATE: Final = (
    "t", "b", "W", "A", "Ix", "Zx", "Sx", "rx", "Iy", "Zy", "Sy", "ry",
)

# family -> (property names, depth property, width property)
DEFINITION_TABLE: Final[dict[ShapeFamily, tuple[tuple[str, ...], str, str]]] = {
    ShapeFamily.WIDE_FLANGE: (_BEAM, "d", "bf"),
    ShapeFamily.MISC_BEAM: (_BEAM, "d", "bf"),
    ShapeFamily.STANDARD_BEAM: (tuple(n for n in _BEAM if n != "k1"), "d", "bf"),
    ShapeFamily.H_PILE: (_BEAM, "d", "bf"),
    ShapeFamily.CHANNEL: (_CHANNEL, "d", "bf"),
    ShapeFamily.MISC_CHANNEL: (_CHANNEL, "d", "bf"),
    ShapeFamily.ANGLE: (_ANGLE, "d", "b"),
    ShapeFamily.WIDE_FLANGE_TEE: (_TEE + ("PA", "PB", "PC", "PD", "WGi"), "d", "bf"),
    ShapeFamily.MISC_TEE: (_TEE, "d", "bf"),
    ShapeFamily.STANDARD_TEE: (_TEE, "d", "bf"),
    ShapeFamily.DOUBLE_ANGLE: (_DOUBLE_ANGLE, "d", "b"),
    ShapeFamily.TUBE: (_TUBE, "Ht", "B"),
    ShapeFamily.ROUND_TUBE: (_ROUND_TUBE, "OD", "OD"),
    ShapeFamily.PIPE: (_PIPE, "OD", "OD"),
    ShapeFamily.PLATE: (_PLATE, "t", "b"),
}

# Properties some shapes of a family leave blank in the AISC database.
OPTIONAL_PROPERTIES: Final[dict[ShapeFamily, frozenset[str]]] = {
    ShapeFamily.ANGLE: frozenset({"H", "SwB"}),
}


def _build_family(
    family: ShapeFamily,
    names: Iterable[str],
    depth_property: str,
    width_property: str,
    optional: frozenset[str] = frozenset(),
) -> FamilySchema:
    definitions = tuple(
        PropertyDefinition(name, *_CATALOG[name], required=name not in optional)
        for name in names
    )
    return FamilySchema(family, definitions, depth_property, width_property)


class PropertySchemaRegistry:
    """Read-only view over the per-family property definitions.

    Instances are built from a definition table once and never mutated.
    Use ``get_registry()`` rather than constructing one directly.
    """

    def __init__(
        self,
        table: Mapping[ShapeFamily, tuple[tuple[str, ...], str, str]],
        optional: Mapping[ShapeFamily, frozenset[str]] | None = None,
    ) -> None:
        optional = OPTIONAL_PROPERTIES if optional is None else optional
        families = {
            family: _build_family(
                family, names, depth, width, optional.get(family, frozenset())
            )
            for family, (names, depth, width) in table.items()
        }
        for schema in families.values():
            declared = schema.by_name
            for name in (schema.depth_property, schema.width_property):
                if name in declared and not declared[name].required:
                    raise ValueError(
                        f"{schema.family} nominal dimension {name!r} "
                        "cannot be optional"
                    )
            if schema.depth_property not in declared:
                raise ValueError(
                    f"{schema.family} depth property "
                    f"{schema.depth_property!r} is not declared"
                )
            if schema.width_property not in declared:
                raise ValueError(
                    f"{schema.family} width property "
                    f"{schema.width_property!r} is not declared"
                )
        self._families: Mapping[ShapeFamily, FamilySchema] = (
            types.MappingProxyType(families)
        )

    def all_families(self) -> frozenset[ShapeFamily]:
        return frozenset(self._families)

    def schema_for(self, family: ShapeFamily) -> FamilySchema:
        try:
            return self._families[family]
        except KeyError:
            raise ValueError(f"Unknown shape family {family!r}") from None

    def definitions_for(
        self, family: ShapeFamily
    ) -> tuple[PropertyDefinition, ...]:
        """Ordered property definitions declared for ``family``."""
        return self.schema_for(family).definitions

    def depth_property(self, family: ShapeFamily) -> str:
        return self.schema_for(family).depth_property

    def width_property(self, family: ShapeFamily) -> str:
        return self.schema_for(family).width_property

    def declares(self, family: ShapeFamily, name: str) -> bool:
        """True when ``name`` (or a virtual depth/width) is valid for family."""
        return name in VIRTUAL_NAMES or name in self.schema_for(family).by_name

    def resolve(self, family: ShapeFamily, name: str) -> PropertyDefinition:
        """Return the definition for ``name``, following depth/width aliases.

        Raises:
            UnknownProperty: If the family does not declare ``name``.
        """
        schema = self.schema_for(family)
        if name == DEPTH:
            name = schema.depth_property
        elif name == WIDTH:
            name = schema.width_property
        try:
            return schema.by_name[name]
        except KeyError:
            raise errors.UnknownProperty(str(family), name) from None

    def validate(self, family: ShapeFamily, name: str, unit: Unit) -> None:
        """Check that ``family`` declares ``name`` with ``unit``.

        Raises:
            UnknownProperty: If the property is not declared.
            SchemaViolation: If the declared unit differs.
        """
        definition = self.resolve(family, name)
        if definition.unit is not unit:
            raise errors.SchemaViolation(
                str(family),
                mismatched_units=[(definition.name, definition.unit, unit)],
            )

    def validate_value(
        self,
        family: ShapeFamily,
        name: str,
        measurement: Measurement,
    ) -> None:
        """Check unit and declared valid range of a single value."""
        self.validate(family, name, measurement.unit)
        definition = self.resolve(family, name)
        valid_range = definition.valid_range
        if valid_range is not None and not valid_range.contains(
            measurement.value
        ):
            raise errors.SchemaViolation(
                str(family),
                out_of_range=[(definition.name, measurement.value)],
            )


@functools.lru_cache
def get_registry() -> PropertySchemaRegistry:
    """Get the process-wide registry, building it on first use.

    Subsequent calls return the same instance, so test suites and
    application startup can both call it without ordering hazards.

    Returns:
        The shared, read-only PropertySchemaRegistry.
    """
    registry = PropertySchemaRegistry(DEFINITION_TABLE)
    logger.debug(
        "Property schema registry initialized with %d families",
        len(registry.all_families()),
    )
    return registry


initialize = get_registry
