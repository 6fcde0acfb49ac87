"""Database interface and repository abstractions.

This module consolidates the storage protocol and repository for shape
records. It provides a stable import location for repository dependency
injection throughout the application, supporting production (PostgreSQL)
and testing (in-memory) backends.

Re-exports ShapeStorageProtocol, ShapeRepository and the repository
factory from aisc_shapes.db.database for convenience.

Example:
    Use in a service or FastAPI dependency:
        >>> from aisc_shapes.db import get_shape_repository
        >>> repo = get_shape_repository(settings)
"""

from aisc_shapes.db.database import (
    InMemoryShapeStorage,
    PostgresShapeStorage,
    ShapeRepository,
    ShapeResults,
    ShapeStorageProtocol,
    get_shape_repository,
)

__all__ = [
    "InMemoryShapeStorage",
    "PostgresShapeStorage",
    "ShapeRepository",
    "ShapeResults",
    "ShapeStorageProtocol",
    "get_shape_repository",
]
