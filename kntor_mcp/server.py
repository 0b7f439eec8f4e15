"""FastAPI MCP Server for the Kntor.io ERP."""

import logging
from contextlib import asynccontextmanager
from datetime import UTC, datetime

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from . import __version__
from .config import settings
from .db import close_rest, get_rest
from .mcp import INTERNAL_ERROR, jsonrpc_error
from .mcp_transport import router as mcp_router
from .middleware import RequestContextMiddleware
from .models import HealthResponse
from .oauth_provider import router as oauth_router
from .usage import flush_meter

logger = logging.getLogger(__name__)

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, DELETE, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type, Authorization, x-api-key, Accept, Mcp-Session-Id",
}

ENDPOINTS = {
    "/": "Health check",
    "/health": "Health check",
    "/mcp": "MCP JSON-RPC endpoint (Streamable HTTP)",
    "/sse": "MCP SSE endpoint (legacy transport)",
    "/messages": "MCP message endpoint for the SSE transport",
}

# ============ SENTRY INITIALIZATION ============


def _filter_sentry_event(event: dict) -> dict:
    """Remove credentials from Sentry events."""
    if "request" in event and "headers" in event["request"]:
        headers = event["request"]["headers"]
        for key in ["authorization", "x-api-key", "apikey"]:
            if key in headers:
                headers[key] = "[REDACTED]"
    return event


# Initialize Sentry if DSN is configured
if settings.sentry_dsn:
    try:
        import sentry_sdk
        from sentry_sdk.integrations.fastapi import FastApiIntegration
        from sentry_sdk.integrations.starlette import StarletteIntegration

        sentry_sdk.init(
            dsn=settings.sentry_dsn,
            environment=settings.environment,
            traces_sample_rate=0.1 if settings.environment == "production" else 1.0,
            integrations=[
                FastApiIntegration(),
                StarletteIntegration(),
            ],
            before_send=lambda event, hint: _filter_sentry_event(event),
        )
        logger.info("Sentry error tracking initialized")
    except ImportError:
        logger.warning("Sentry DSN configured but sentry-sdk not installed")
else:
    logger.debug("Sentry DSN not configured - error tracking disabled")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown."""
    # Startup
    logger.info(f"Starting Kntor MCP Server v{__version__}")

    if not settings.supabase_service_role_key:
        logger.warning(
            "SUPABASE_SERVICE_ROLE_KEY is not set; every API key validation will fail "
            "with a configuration error."
        )

    await get_rest()  # Initialize the REST client

    yield
    # Shutdown
    await flush_meter()
    await close_rest()


app = FastAPI(
    title="Kntor MCP Server",
    description="MCP gateway exposing Kntor.io ERP tools (customers, expedientes, sales funnel)",
    version=__version__,
    lifespan=lifespan,
)

# Request id + access log
app.add_middleware(RequestContextMiddleware)

# CORS middleware - MCP clients connect from arbitrary origins
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization", "x-api-key", "Accept", "Mcp-Session-Id"],
    expose_headers=["Mcp-Session-Id"],
)

# Mount MCP transports and OAuth discovery shims
app.include_router(mcp_router)
app.include_router(oauth_router)


# ============ EXCEPTION HANDLERS ============


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Answer stray OPTIONS, list endpoints on 404, keep other errors uniform."""
    if request.method == "OPTIONS":
        return Response(status_code=204, headers=CORS_HEADERS)

    if exc.status_code == 404:
        return JSONResponse(
            status_code=404,
            content={"error": "Not found", "endpoints": ENDPOINTS},
        )

    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.detail},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """Handle unexpected exceptions with a JSON-RPC internal error body."""
    logger.error(f"Unhandled exception: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content=jsonrpc_error(None, INTERNAL_ERROR, "Internal error"),
    )


# ============ HEALTH ENDPOINTS ============


@app.get("/health", response_model=HealthResponse, tags=["Health"])
@app.get("/", response_model=HealthResponse, tags=["Health"])
async def health_check() -> HealthResponse:
    """Health check endpoint (lightweight liveness check)."""
    return HealthResponse(
        status="healthy",
        server=settings.server_name,
        version=__version__,
        timestamp=datetime.now(UTC),
    )


# ============ MAIN ============


def main():
    """Run the server with uvicorn."""
    import uvicorn

    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    uvicorn.run(
        "kntor_mcp.server:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )


if __name__ == "__main__":
    main()
