"""Main FastAPI application."""

from fastapi import FastAPI

from minimal_server.routes import hello_router


def create_app() -> FastAPI:
    """Build the routing table: a single GET /hello/{name} route."""
    app = FastAPI(
        title="Minimal Server",
        version="0.1.0",
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )
    app.include_router(hello_router)
    return app
