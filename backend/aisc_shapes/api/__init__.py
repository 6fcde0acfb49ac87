"""API router subpackage for the AISC shapes service.

This package organizes the REST endpoints of the shape catalog. Each
module exposes its own APIRouter for composition in the application's
main FastAPI instance.

Submodules:
    - shapes: Create, fetch, replace, delete and query shape records.
    - schema: Describe each family's declared properties and units.
    - ingest: Upload and import the AISC Shapes Database CSV.

Core errors are translated to HTTP status codes in one place
(``shapes.to_http_error``) so every router reports them the same way.
"""
