"""Request context middleware.

Tags every HTTP response with a request id and writes one access log line
per request, using the pure ASGI pattern.
"""

import logging
import time
from uuid import uuid4

from ..config import settings

logger = logging.getLogger("kntor_mcp.access")


class RequestContextMiddleware:
    """
    Add a request id and baseline security headers, and log each request.

    Uses pure ASGI middleware pattern instead of BaseHTTPMiddleware
    so streaming (SSE) responses are passed through untouched.

    Headers added:
        - X-Request-Id: incoming value when supplied, otherwise a fresh UUID
        - X-Content-Type-Options: nosniff
        - Strict-Transport-Security: (production only)
    """

    def __init__(self, app):
        self.app = app

    async def __call__(self, scope, receive, send):
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        request_id = _header(scope, b"x-request-id") or str(uuid4())
        scope.setdefault("state", {})["request_id"] = request_id
        start_time = time.perf_counter()
        status_code = 500

        async def send_with_context(message):
            nonlocal status_code
            if message["type"] == "http.response.start":
                status_code = message["status"]
                headers = list(message.get("headers", []))
                headers.append((b"x-request-id", request_id.encode()))
                headers.append((b"x-content-type-options", b"nosniff"))
                if settings.environment == "production":
                    headers.append(
                        (b"strict-transport-security", b"max-age=31536000; includeSubDomains")
                    )
                message = {**message, "headers": headers}
            await send(message)

        try:
            await self.app(scope, receive, send_with_context)
        finally:
            duration_ms = int((time.perf_counter() - start_time) * 1000)
            logger.info(
                f"{scope['method']} {scope['path']} {status_code} {duration_ms}ms [{request_id}]"
            )


def _header(scope, name: bytes) -> str | None:
    for key, value in scope.get("headers", []):
        if key == name:
            return value.decode("latin-1")
    return None
