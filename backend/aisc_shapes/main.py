"""FastAPI application entrypoint and configuration.

This module provides the main FastAPI application factory that configures
logging, sets up CORS middleware, includes the API routers for shapes,
schema discovery and CSV import, and exposes a health check endpoint for
monitoring.

Example:
    The application can be run with uvicorn:
        $ uvicorn aisc_shapes.main:app --reload

    Or imported and used programmatically:
        >>> from aisc_shapes.main import app
        >>> # Use app in ASGI server
"""

import logging

import fastapi
from fastapi.middleware import cors

from aisc_shapes.api import ingest, schema, shapes
from aisc_shapes.core import config
from aisc_shapes.domain import schema as shape_schema

logger = logging.getLogger(__name__)


def create_app() -> fastapi.FastAPI:
    """Create and configure the FastAPI application.

    Configures the root log level from settings, initializes the property
    schema registry, includes the API routers and adds a health check
    endpoint. CORS origins are configured from settings, allowing
    cross-origin requests from specified domains.

    Returns:
        Configured FastAPI application instance ready for ASGI server.

    Example:
        The app can be used with uvicorn or other ASGI servers:
            >>> app = create_app()
            >>> # Or use the module-level app instance:
            >>> from aisc_shapes.main import app
    """
    settings = config.get_settings()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    shape_schema.initialize()

    app = fastapi.FastAPI(title="AISC Shapes", version="0.1.0")

    app.include_router(ingest.router)
    app.include_router(shapes.router)
    app.include_router(schema.router)

    app.add_middleware(
        cors.CORSMiddleware,  # type: ignore[arg-type]
        allow_origins=settings.allow_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/health")
    async def health() -> dict[str, str]:  # type: ignore[misc]
        """Health check endpoint for monitoring and load balancers.

        Returns:
            Dictionary with status "ok" if the service is running.
        """
        return {"status": "ok"}

    logger.info(
        "AISC shapes API configured (%s backend)", settings.storage_backend
    )
    return app


app = create_app()
