"""Minimal HTTP server with signal-driven graceful shutdown."""

__version__ = "0.1.0"
