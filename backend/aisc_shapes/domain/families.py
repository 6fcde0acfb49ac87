"""Closed set of structural steel shape families.

Values are the AISC Shapes Database ``Type`` codes. Rectangular and round
HSS share the ``HSS`` type in the database, so round HSS uses its own tag
here and the importer splits them by designation.
"""

from __future__ import annotations

import enum


class ShapeFamily(enum.StrEnum):
    """Shape family tag carried by every ShapeRecord."""

    WIDE_FLANGE = "W"
    MISC_BEAM = "M"
    STANDARD_BEAM = "S"
    H_PILE = "HP"
    CHANNEL = "C"
    MISC_CHANNEL = "MC"
    ANGLE = "L"
    WIDE_FLANGE_TEE = "WT"
    MISC_TEE = "MT"
    STANDARD_TEE = "ST"
    DOUBLE_ANGLE = "2L"
    TUBE = "HSS"
    ROUND_TUBE = "HSS_ROUND"
    PIPE = "PIPE"
    PLATE = "PL"

    @classmethod
    def parse(cls, text: str) -> ShapeFamily:
        """Parse a family from its tag or member name, case-insensitively.

        Raises:
            ValueError: If ``text`` names no family.
        """
        cleaned = text.strip()
        for member in cls:
            if cleaned.upper() in (member.value.upper(), member.name):
                return member
        raise ValueError(f"Unknown shape family {text!r}")
