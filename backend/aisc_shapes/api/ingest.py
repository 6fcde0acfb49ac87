"""AISC shapes CSV upload and import API endpoint.

This module provides the endpoint that accepts the AISC Shapes Database
exported as CSV in a multipart upload, stages it in the configured
storage directory and imports every row through the shape repository.
Rows that cannot be imported are reported back with their line number;
they never abort the import.

Example:
    Upload the database, replacing shapes already stored:
        >>> with open("aisc-shapes-database-v16.0.csv", "rb") as handle:
        ...     response = client.post(
        ...         "/api/shapes/import",
        ...         files={"file": ("aisc.csv", handle, "text/csv")},
        ...         params={"replace": True},
        ...     )
        >>> response.json()["created"]
        2091
"""

from __future__ import annotations

import dataclasses
import logging
import pathlib
import shutil
import tempfile
import uuid
from typing import Any

import fastapi

from aisc_shapes.api import shapes as api_shapes
from aisc_shapes.core import config, errors
from aisc_shapes.db import database
from aisc_shapes.services import ingest_aisc

logger = logging.getLogger(__name__)

router = fastapi.APIRouter(prefix="/api/shapes", tags=["import"])


def _save_upload(
    file: fastapi.UploadFile,
    storage_dir: pathlib.Path,
    max_size: int,
) -> pathlib.Path:
    """Persist an uploaded file to disk with size validation.

    The file is stored under a generated name so concurrent uploads of the
    same filename never collide.

    Args:
        file: FastAPI UploadFile object containing the CSV data.
        storage_dir: Directory where the file should be staged.
        max_size: Maximum allowed file size in bytes.

    Returns:
        Path to the staged file.

    Raises:
        HTTPException: If the file exceeds the maximum size limit.
    """
    storage_dir.mkdir(parents=True, exist_ok=True)
    target_path = storage_dir / f"{uuid.uuid4().hex}.csv"
    with tempfile.NamedTemporaryFile(delete=False, dir=storage_dir) as tmp:
        size = 0
        for chunk in iter(lambda: file.file.read(1024 * 1024), b""):
            size += len(chunk)
            if size > max_size:
                tmp.close()
                pathlib.Path(tmp.name).unlink(missing_ok=True)
                raise fastapi.HTTPException(
                    status_code=413,
                    detail="Upload too large",
                )

            tmp.write(chunk)

        tmp.flush()

    shutil.move(tmp.name, target_path)

    return target_path


@router.post("/import")
async def import_shapes(
    file: fastapi.UploadFile,
    replace: bool = False,
    settings: config.Settings = fastapi.Depends(config.get_settings),  # noqa: B008
    repo: database.ShapeRepository = fastapi.Depends(api_shapes._get_repo),  # noqa: B008
) -> dict[str, Any]:
    """Import an uploaded AISC shapes CSV.

    Args:
        file: CSV file from multipart form data.
        replace: Replace shapes whose designation already exists instead
            of skipping them.
        settings: Application settings (injected via FastAPI Depends).
        repo: Shape repository (injected via FastAPI Depends).

    Returns:
        Dictionary with created, updated and skipped counts and the list
        of failed rows (line, designation, reason).

    Raises:
        HTTPException: 413 if the upload is too large, 422 if the file is
            not an AISC shapes CSV, 503 if the backend fails.
    """
    staged = _save_upload(
        file, settings.storage_dir, settings.max_upload_size_bytes
    )
    logger.info("Staged upload %s as %s", file.filename, staged.name)
    try:
        summary = ingest_aisc.import_csv(staged, repo, replace=replace)
    except errors.ShapesError as exc:
        raise api_shapes.to_http_error(exc) from exc
    finally:
        staged.unlink(missing_ok=True)
    return dataclasses.asdict(summary)
