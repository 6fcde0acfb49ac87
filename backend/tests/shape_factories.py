"""Builders for complete, schema-valid shape records used across tests.

Every declared property gets a magnitude of 1.0 (the flexural constant H
gets 0.5) unless overridden. Overrides are keyed by AISC property name;
``depth`` and ``width`` address the family's nominal dimension
properties.
"""

from __future__ import annotations

import csv
import io

from aisc_shapes.domain import schema
from aisc_shapes.domain.families import ShapeFamily
from aisc_shapes.domain.shapes import ShapeRecord
from aisc_shapes.domain.units import Measurement

DEFAULTS = {"H": 0.5}


def values_for(family: ShapeFamily, **overrides: float) -> dict[str, float]:
    """Plain magnitudes for every property ``family`` declares."""
    registry = schema.get_registry()
    resolved = {
        registry.resolve(family, name).name: value
        for name, value in overrides.items()
    }
    return {
        definition.name: resolved.get(
            definition.name, DEFAULTS.get(definition.name, 1.0)
        )
        for definition in registry.definitions_for(family)
    }


def properties_for(
    family: ShapeFamily, **overrides: float
) -> dict[str, Measurement]:
    """Unit-tagged measurements for every property ``family`` declares."""
    registry = schema.get_registry()
    return {
        name: Measurement(value, registry.resolve(family, name).unit)
        for name, value in values_for(family, **overrides).items()
    }


def make_record(
    family: ShapeFamily,
    designation: str,
    *,
    edi_nomenclature: str | None = None,
    t_f: bool | None = None,
    **overrides: float,
) -> ShapeRecord:
    return ShapeRecord(
        designation,
        family,
        properties_for(family, **overrides),
        edi_nomenclature=edi_nomenclature,
        t_f=t_f,
    )


def csv_header() -> list[str]:
    """AISC-style header: identity columns then every known property."""
    registry = schema.get_registry()
    names: dict[str, None] = {}
    for family in ShapeFamily:
        for definition in registry.definitions_for(family):
            names.setdefault(definition.name)
    return ["Type", "EDI_Std_Nomenclature", "AISC_Manual_Label", "T_F", *names]


def csv_row(
    type_code: str,
    label: str,
    family: ShapeFamily,
    nomenclature: str | None = None,
    **cells: str,
) -> dict[str, str]:
    """One CSV row with every declared property filled and others ``–``."""
    row = dict.fromkeys(csv_header(), "–")
    row.update(
        Type=type_code,
        EDI_Std_Nomenclature=nomenclature or label,
        AISC_Manual_Label=label,
    )
    row.update({name: f"{value:g}" for name, value in values_for(family).items()})
    row.update(cells)
    return row


def csv_text(rows: list[dict[str, str]]) -> str:
    buffer = io.StringIO()
    writer = csv.DictWriter(buffer, fieldnames=csv_header())
    writer.writeheader()
    writer.writerows(rows)
    return buffer.getvalue()
