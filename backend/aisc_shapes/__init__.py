"""Catalog service for AISC structural steel shapes.

This package stores and queries the section properties of hot-rolled and
hollow structural steel shapes (wide flanges, channels, angles, tees,
HSS, pipe, plate) as published in the AISC Shapes Database.

- Unit-tagged measurements that refuse to mix incompatible quantities
- A property schema registry declaring each family's properties
- A storage-agnostic repository with in-memory and PostgreSQL backends
- Validated queries with deterministic ordering and pagination
- CSV import of the AISC database, a FastAPI service and a CLI

See module sub-docstrings for details on architecture and usage.
"""
