"""API routes package."""

from minimal_server.routes.hello import router as hello_router

__all__ = [
    "hello_router",
]
