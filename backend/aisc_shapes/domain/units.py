"""Unit-tagged measurements for section properties.

A ``Measurement`` pairs a magnitude with the physical quantity it
expresses. The catalog stores US customary values as published in the AISC
Shapes Database, so each ``Unit`` carries exactly one display symbol and
no conversion factors. Arithmetic and ordering are only defined between
measurements of the same unit; mixing units raises ``UnitMismatch``
instead of coercing.

Example:
    Compare two depths and scale a weight:
        >>> from aisc_shapes.domain.units import Measurement, Unit
        >>> a = Measurement(12.0, Unit.LENGTH)
        >>> b = Measurement(10.0, Unit.LENGTH)
        >>> a > b
        True
        >>> Measurement(26.0, Unit.MASS_PER_LENGTH) * 2
        Measurement(value=52.0, unit=<Unit.MASS_PER_LENGTH: 'mass_per_length'>)

    Mixing quantities fails loudly:
        >>> a < Measurement(7.68, Unit.AREA)
        Traceback (most recent call last):
        ...
        aisc_shapes.core.errors.UnitMismatch: Cannot compare length and area measurements
"""

from __future__ import annotations

import dataclasses
import enum
import math
import numbers

from aisc_shapes.core import errors


class Unit(enum.StrEnum):
    """Physical quantity of a section property."""

    LENGTH = "length"
    AREA = "area"
    MOMENT_OF_INERTIA = "moment_of_inertia"
    SECTION_MODULUS = "section_modulus"
    WARPING_CONSTANT = "warping_constant"
    MASS_PER_LENGTH = "mass_per_length"
    DIMENSIONLESS = "dimensionless"

    @property
    def symbol(self) -> str:
        """Display symbol as printed in the AISC Manual."""
        return _SYMBOLS[self]


_SYMBOLS: dict[Unit, str] = {
    Unit.LENGTH: "in.",
    Unit.AREA: "in.2",
    Unit.MOMENT_OF_INERTIA: "in.4",
    Unit.SECTION_MODULUS: "in.3",
    Unit.WARPING_CONSTANT: "in.6",
    Unit.MASS_PER_LENGTH: "lb/ft",
    Unit.DIMENSIONLESS: "",
}


def _as_float(value: object, unit: Unit | None) -> float:
    # bool is an int subclass but never a valid magnitude.
    if isinstance(value, bool) or not isinstance(value, numbers.Real):
        raise errors.InvalidMeasurement(value, unit)
    result = float(value)
    if math.isnan(result):
        raise errors.InvalidMeasurement(value, unit)
    return result


@dataclasses.dataclass(frozen=True, slots=True, order=False)
class Measurement:
    """A numeric magnitude tagged with its physical unit.

    Infinite magnitudes are accepted; NaN and non-numeric values raise
    ``InvalidMeasurement``. ``==`` is structural (value and unit) and never
    raises, while ``<``, ``<=``, ``>`` and ``>=`` go through ``compare`` and
    raise ``UnitMismatch`` across units. Signed zeros compare equal.

    Attributes:
        value: Magnitude in the unit's US customary symbol.
        unit: Physical quantity the magnitude expresses.
    """

    value: float
    unit: Unit

    def __post_init__(self) -> None:
        if not isinstance(self.unit, Unit):
            raise errors.InvalidMeasurement(self.value, None)
        object.__setattr__(self, "value", _as_float(self.value, self.unit))

    def __add__(self, other: object) -> Measurement:
        if not isinstance(other, Measurement):
            return NotImplemented
        _require_same_unit(self, other, "add")
        return Measurement(self.value + other.value, self.unit)

    def __sub__(self, other: object) -> Measurement:
        if not isinstance(other, Measurement):
            return NotImplemented
        _require_same_unit(self, other, "subtract")
        return Measurement(self.value - other.value, self.unit)

    def __mul__(self, other: object) -> Measurement:
        if isinstance(other, Measurement):
            if other.unit is Unit.DIMENSIONLESS:
                return Measurement(self.value * other.value, self.unit)
            if self.unit is Unit.DIMENSIONLESS:
                return Measurement(self.value * other.value, other.unit)
            raise errors.UnitMismatch(self.unit, other.unit, "multiply")
        if isinstance(other, bool) or not isinstance(other, numbers.Real):
            return NotImplemented
        return Measurement(self.value * _as_float(other, None), self.unit)

    __rmul__ = __mul__

    def __truediv__(self, other: object) -> Measurement:
        if isinstance(other, bool) or not isinstance(other, numbers.Real):
            return NotImplemented
        return Measurement(self.value / _as_float(other, None), self.unit)

    def __neg__(self) -> Measurement:
        return Measurement(-self.value, self.unit)

    def __lt__(self, other: Measurement) -> bool:
        return compare(self, other) < 0

    def __le__(self, other: Measurement) -> bool:
        return compare(self, other) <= 0

    def __gt__(self, other: Measurement) -> bool:
        return compare(self, other) > 0

    def __ge__(self, other: Measurement) -> bool:
        return compare(self, other) >= 0

    def __str__(self) -> str:
        symbol = self.unit.symbol
        return f"{self.value:g} {symbol}" if symbol else f"{self.value:g}"


def make(value: float, unit: Unit) -> Measurement:
    """Build a Measurement, raising ``InvalidMeasurement`` for NaN."""
    return Measurement(value, unit)


def compare(a: Measurement, b: Measurement) -> int:
    """Three-way comparison of two measurements of the same unit.

    Returns:
        -1, 0 or 1. ``-0.0`` and ``0.0`` compare equal.

    Raises:
        UnitMismatch: If the units differ.
    """
    if not isinstance(a, Measurement) or not isinstance(b, Measurement):
        raise TypeError("compare() expects two Measurement instances")
    _require_same_unit(a, b, "compare")
    if a.value < b.value:
        return -1
    if a.value > b.value:
        return 1
    return 0


def _require_same_unit(a: Measurement, b: Measurement, operation: str) -> None:
    if a.unit is not b.unit:
        raise errors.UnitMismatch(a.unit, b.unit, operation)
