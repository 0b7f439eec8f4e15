"""ASGI middleware for the FastAPI application."""

from .request_context import RequestContextMiddleware

__all__ = [
    "RequestContextMiddleware",
]
