"""OAuth discovery shims for MCP clients.

Kntor authenticates with API keys, not OAuth. Some MCP clients (mcp-remote,
Claude Desktop connectors) probe the OAuth discovery endpoints before
connecting; these routes tell them no authorization server is involved so
they fall back to the configured headers:

- Protected Resource Metadata (RFC 9728) without ``authorization_servers``
- 404 for Authorization Server Metadata (RFC 8414) and any ``/oauth*`` path
- A mock public-client registration (RFC 7591) so the registration step succeeds
"""

import logging
import time

from fastapi import APIRouter, Request, Response
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)

router = APIRouter(tags=["OAuth Discovery"])

MOCK_CLIENT_ID = "kntor-api-key-auth"


def _origin(request: Request) -> str:
    return str(request.base_url).rstrip("/")


# ============ METADATA ============


@router.get("/.well-known/oauth-protected-resource")
@router.get("/.well-known/oauth-protected-resource/{resource_path:path}")
async def protected_resource_metadata(request: Request) -> dict:
    """Protected Resource Metadata with no authorization servers."""
    return {"resource": _origin(request)}


@router.get("/.well-known/oauth-authorization-server")
@router.get("/.well-known/oauth-authorization-server/{resource_path:path}")
async def authorization_server_metadata() -> Response:
    """No authorization server: OAuth is not supported."""
    return Response(status_code=404)


# ============ REGISTRATION ============


@router.post("/register", status_code=201)
async def register_client() -> JSONResponse:
    """Dynamic Client Registration stub.

    Issues a fixed public client id (no secret) so clients skip the OAuth
    flow and send their API key instead.
    """
    logger.debug("Mock OAuth client registration issued")
    return JSONResponse(
        {"client_id": MOCK_CLIENT_ID, "client_id_issued_at": int(time.time())},
        status_code=201,
    )


@router.api_route("/oauth{rest:path}", methods=["GET", "POST"], include_in_schema=False)
async def oauth_not_supported() -> Response:
    return Response(status_code=404)
