"""MCP HTTP transports.

Streamable HTTP (``/mcp``):
- POST: JSON-RPC message or batch; JSON response, or ``event: message`` SSE
  frames when the client accepts ``text/event-stream``
- GET: transport info, or an authenticated keep-alive SSE stream
- DELETE: session termination (sessions are labels only, nothing to drop)

Legacy SSE (``/sse`` + ``/messages``):
- GET /sse announces the ``/messages?sessionId=...`` endpoint, then pings
- POST /messages behaves like POST /mcp but always answers with plain JSON

Config example (Claude Code):
```json
{"mcpServers": {"kntor": {"type": "http", "url": "https://mcp.kntor.io/mcp", "headers": {"x-api-key": "kntor_..."}}}}
```
"""

import asyncio
import json
import logging
import uuid
from collections.abc import AsyncGenerator
from typing import Any

from fastapi import APIRouter, Depends, Request, Response
from fastapi.responses import JSONResponse, StreamingResponse

from . import __version__
from .auth import Authenticator, extract_api_key
from .config import settings
from .db import RestClient, get_rest
from .mcp import (
    AUTH_ERRORS,
    INTERNAL_ERROR,
    INVALID_REQUEST,
    PARSE_ERROR,
    ProtocolHandler,
    auth_error_body,
    jsonrpc_error,
    validate_message,
)
from .models import AuthContext, AuthOutcome
from .tools import ToolDispatcher, build_registry
from .usage import UsageMeter, get_meter

logger = logging.getLogger(__name__)

router = APIRouter(tags=["MCP Transport"])

SESSION_HEADER = "Mcp-Session-Id"
SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",  # Disable nginx buffering
}

# Built once; shared read-only by every request
REGISTRY = build_registry()


# ============ DEPENDENCIES ============


async def get_authenticator(store: RestClient = Depends(get_rest)) -> Authenticator:
    return Authenticator(store)


async def get_protocol_handler(
    store: RestClient = Depends(get_rest),
    meter: UsageMeter = Depends(get_meter),
) -> ProtocolHandler:
    return ProtocolHandler(ToolDispatcher(REGISTRY, store, meter))


# ============ HELPERS ============


def _wants_event_stream(request: Request) -> bool:
    return "text/event-stream" in request.headers.get("accept", "")


def _session_id(request: Request) -> str:
    """Echo the client's session id or mint a fresh one."""
    return request.headers.get("mcp-session-id") or str(uuid.uuid4())


def _auth_error_response(outcome: AuthOutcome) -> JSONResponse:
    spec = AUTH_ERRORS[outcome.error]
    return JSONResponse(
        auth_error_body(outcome.error, outcome.message),
        status_code=spec.http_status,
    )


async def _authenticate(request: Request, authenticator: Authenticator) -> AuthOutcome:
    return await authenticator.authenticate(extract_api_key(request.headers))


def _sse_frame(payload: Any) -> str:
    return f"event: message\ndata: {json.dumps(payload)}\n\n"


async def _keepalive_stream(
    request: Request,
    opening: str,
    comment: str,
) -> AsyncGenerator[str, None]:
    """Send ``opening``, then ``: <comment>`` every keep-alive interval.

    Ends at the configured maximum duration or when the client goes away.
    """
    loop = asyncio.get_running_loop()
    deadline = loop.time() + settings.sse_max_duration_seconds
    try:
        yield opening
        while True:
            remaining = deadline - loop.time()
            if remaining <= 0:
                break
            await asyncio.sleep(min(settings.sse_keepalive_seconds, remaining))
            if await request.is_disconnected():
                logger.debug("SSE client disconnected")
                break
            if loop.time() >= deadline:
                break
            yield f": {comment}\n\n"
    except asyncio.CancelledError:
        logger.debug("SSE stream cancelled")
        raise


async def _process_message(message: Any, ctx: AuthContext, handler: ProtocolHandler) -> dict | None:
    """Formation-check and dispatch one message; None for notifications."""
    invalid = validate_message(message)
    if invalid is not None:
        return invalid
    try:
        return await handler.handle(message, ctx)
    except Exception as e:
        logger.error(f"Error handling {message.get('method')}: {e}", exc_info=True)
        if "id" not in message:
            return None
        return jsonrpc_error(message.get("id"), INTERNAL_ERROR, "Internal error")


async def _process_body(
    request: Request,
    ctx: AuthContext,
    handler: ProtocolHandler,
) -> tuple[int, dict | list | None]:
    """Parse and dispatch a POST body.

    Returns the HTTP status and the payload to send (None means no body).
    """
    raw = await request.body()
    try:
        body = json.loads(raw)
    except ValueError:
        return 400, jsonrpc_error(None, PARSE_ERROR, "Parse error")

    if isinstance(body, list):
        if not body:
            return 400, jsonrpc_error(None, INVALID_REQUEST, "Invalid Request: empty batch")
        # Scatter/gather; gather keeps input order
        results = await asyncio.gather(*(_process_message(m, ctx, handler) for m in body))
        responses = [r for r in results if r is not None]
        return (200, responses) if responses else (202, None)

    invalid = validate_message(body)
    if invalid is not None:
        return 400, invalid

    response = await _process_message(body, ctx, handler)
    return (200, response) if response is not None else (202, None)


# ============ STREAMABLE HTTP ============


@router.post("/mcp")
async def mcp_post(
    request: Request,
    authenticator: Authenticator = Depends(get_authenticator),
    handler: ProtocolHandler = Depends(get_protocol_handler),
):
    """MCP Streamable HTTP endpoint (JSON-RPC over POST)."""
    outcome = await _authenticate(request, authenticator)
    if not outcome.valid:
        return _auth_error_response(outcome)

    session_id = _session_id(request)
    headers = {SESSION_HEADER: session_id}
    status_code, payload = await _process_body(request, outcome.context, handler)

    if payload is None:
        return Response(status_code=status_code, headers=headers)

    if status_code == 200 and _wants_event_stream(request):
        frames = payload if isinstance(payload, list) else [payload]

        async def event_stream() -> AsyncGenerator[str, None]:
            for frame in frames:
                yield _sse_frame(frame)

        return StreamingResponse(
            event_stream(),
            media_type="text/event-stream",
            headers={**SSE_HEADERS, **headers},
        )

    return JSONResponse(payload, status_code=status_code, headers=headers)


@router.get("/mcp")
async def mcp_get(
    request: Request,
    authenticator: Authenticator = Depends(get_authenticator),
):
    """Transport info, or a server-to-client SSE stream when requested."""
    if not _wants_event_stream(request):
        return {
            "name": settings.server_name,
            "version": __version__,
            "protocolVersion": settings.protocol_version,
            "transport": "streamable-http",
            "endpoints": {
                "POST /mcp": "JSON-RPC messages (single or batch)",
                "GET /mcp": "SSE stream (Accept: text/event-stream)",
                "DELETE /mcp": "Terminate session",
                "GET /sse": "Legacy SSE transport",
                "POST /messages": "Legacy SSE message endpoint",
            },
            "authentication": {
                "headers": ["x-api-key", "Authorization: Bearer"],
                "prefix": settings.api_key_prefix,
            },
        }

    outcome = await _authenticate(request, authenticator)
    if not outcome.valid:
        return _auth_error_response(outcome)

    session_id = str(uuid.uuid4())
    logger.info(f"SSE stream opened for brand {outcome.context.brand_id} (session {session_id})")
    return StreamingResponse(
        _keepalive_stream(request, ": connected\n\n", "keepalive"),
        media_type="text/event-stream",
        headers={**SSE_HEADERS, SESSION_HEADER: session_id},
    )


@router.delete("/mcp")
async def mcp_delete(request: Request):
    """Terminate a session. Sessions carry no server state."""
    headers = {}
    session_id = request.headers.get("mcp-session-id")
    if session_id:
        headers[SESSION_HEADER] = session_id
    return Response(status_code=204, headers=headers)


# ============ LEGACY SSE ============


@router.get("/sse")
async def legacy_sse(
    request: Request,
    authenticator: Authenticator = Depends(get_authenticator),
):
    """Legacy SSE transport: announce the message endpoint, then keep alive."""
    outcome = await _authenticate(request, authenticator)
    if not outcome.valid:
        return _auth_error_response(outcome)

    session_id = str(uuid.uuid4())
    messages_url = f"{str(request.base_url).rstrip('/')}/messages?sessionId={session_id}"
    return StreamingResponse(
        _keepalive_stream(request, f"event: endpoint\ndata: {messages_url}\n\n", "ping"),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )


@router.post("/messages")
async def legacy_messages(
    request: Request,
    authenticator: Authenticator = Depends(get_authenticator),
    handler: ProtocolHandler = Depends(get_protocol_handler),
):
    """Message endpoint of the legacy SSE transport (always plain JSON)."""
    outcome = await _authenticate(request, authenticator)
    if not outcome.valid:
        return _auth_error_response(outcome)

    status_code, payload = await _process_body(request, outcome.context, handler)
    if payload is None:
        return Response(status_code=status_code)
    return JSONResponse(payload, status_code=status_code)
