"""ASGI wrappers applied by the listener."""

from minimal_server.middleware.timeout import TimeoutMiddleware

__all__ = ["TimeoutMiddleware"]
