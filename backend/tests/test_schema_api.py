"""API endpoint tests for the property schema discovery endpoints.

See Also:
    - backend/aisc_shapes/api/schema.py for API implementation,
    - backend/aisc_shapes/domain/schema.py for the definition table.
"""

from __future__ import annotations

from fastapi import testclient

from aisc_shapes import main
from aisc_shapes.domain.families import ShapeFamily


def test_list_families() -> None:
    """Test that every family is listed in declaration order."""
    client = testclient.TestClient(main.create_app())
    response = client.get("/api/schema")
    assert response.status_code == 200
    families = [entry["family"] for entry in response.json()]
    assert families == [family.value for family in ShapeFamily]


def test_get_family_by_code() -> None:
    """Test describing rectangular HSS by its code."""
    client = testclient.TestClient(main.create_app())
    data = client.get("/api/schema/HSS").json()
    assert data["name"] == "tube"
    assert data["depth_property"] == "Ht"
    assert data["width_property"] == "B"
    by_name = {entry["name"]: entry for entry in data["properties"]}
    assert by_name["Ix"]["unit"] == "moment_of_inertia"
    assert by_name["Ix"]["symbol"] == "in.4"
    assert by_name["Ix"]["minimum"] == 0.0
    assert by_name["Ix"]["maximum"] is None
    assert by_name["Ix"]["required"] is True


def test_get_family_by_name() -> None:
    """Test that member names are accepted case-insensitively."""
    client = testclient.TestClient(main.create_app())
    data = client.get("/api/schema/channel").json()
    assert data["family"] == "C"
    by_name = {entry["name"]: entry for entry in data["properties"]}
    assert by_name["H"]["maximum"] == 1.0


def test_angle_optional_properties_flagged() -> None:
    """Test that the angle schema marks H and SwB as not required."""
    client = testclient.TestClient(main.create_app())
    data = client.get("/api/schema/L").json()
    by_name = {entry["name"]: entry for entry in data["properties"]}
    assert by_name["H"]["required"] is False
    assert by_name["SwB"]["required"] is False
    assert by_name["SwA"]["required"] is True


def test_get_unknown_family() -> None:
    """Test that an unknown family returns 422."""
    client = testclient.TestClient(main.create_app())
    assert client.get("/api/schema/ZZ").status_code == 422
