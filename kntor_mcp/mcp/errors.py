"""Authentication and quota error taxonomy.

Each failure kind maps to a fixed JSON-RPC error code (custom server block),
an HTTP status, a user-facing message and a hint. The table is exhaustive over
``AuthErrorKind``; ``auth_error_body`` builds the JSON-RPC envelope returned as
the body of the HTTP error response.
"""

from dataclasses import dataclass
from datetime import UTC, date, datetime
from types import MappingProxyType

from ..config import settings
from ..models import AuthContext, AuthErrorKind
from .jsonrpc import jsonrpc_error


@dataclass(frozen=True)
class AuthErrorSpec:
    code: int
    http_status: int
    message: str
    hint: str
    anchor: str


AUTH_ERRORS: MappingProxyType[AuthErrorKind, AuthErrorSpec] = MappingProxyType(
    {
        AuthErrorKind.MISSING: AuthErrorSpec(
            -32001,
            401,
            "API key required",
            "Provide your API key in the x-api-key header or as 'Authorization: Bearer kntor_...'",
            "missing-api-key",
        ),
        AuthErrorKind.INVALID_FORMAT: AuthErrorSpec(
            -32002,
            401,
            "Invalid API key format",
            "API keys start with 'kntor_'. Copy the full key from your Kntor dashboard.",
            "invalid-format",
        ),
        AuthErrorKind.NOT_FOUND: AuthErrorSpec(
            -32003,
            401,
            "Invalid API key",
            "The key was not recognised. Create a new key in Settings > API Keys.",
            "invalid-api-key",
        ),
        AuthErrorKind.INACTIVE: AuthErrorSpec(
            -32004,
            401,
            "API key is inactive",
            "This key was revoked or disabled. Ask a brand administrator to reactivate it.",
            "inactive-api-key",
        ),
        AuthErrorKind.EXPIRED: AuthErrorSpec(
            -32005,
            401,
            "API key has expired",
            "Generate a new key in Settings > API Keys.",
            "expired-api-key",
        ),
        AuthErrorKind.RATE_LIMIT: AuthErrorSpec(
            -32006,
            401,
            "Monthly API call limit exceeded",
            "Your quota resets on the first day of next month, or upgrade your plan.",
            "rate-limit",
        ),
        AuthErrorKind.CONFIG_ERROR: AuthErrorSpec(
            -32007,
            500,
            "Server misconfiguration",
            "The MCP server cannot reach its credential store. Contact support.",
            "server-configuration",
        ),
        AuthErrorKind.INTERNAL_ERROR: AuthErrorSpec(
            -32008,
            500,
            "Internal error during API key validation",
            "Retry the request. If the problem persists, contact support.",
            "internal-error",
        ),
    }
)

RATE_LIMIT_CODE = AUTH_ERRORS[AuthErrorKind.RATE_LIMIT].code


def docs_link(anchor: str) -> str:
    return f"{settings.docs_url}#{anchor}"


def auth_error_body(kind: AuthErrorKind, message: str | None = None) -> dict:
    """JSON-RPC error envelope (id null) for an authentication failure."""
    spec = AUTH_ERRORS[kind]
    return jsonrpc_error(
        None,
        spec.code,
        message or spec.message,
        {"error": kind.value, "hint": spec.hint, "docs": docs_link(spec.anchor)},
    )


def next_reset_date(today: date | None = None) -> date:
    """First day of the next calendar month (UTC)."""
    today = today or datetime.now(UTC).date()
    if today.month == 12:
        return date(today.year + 1, 1, 1)
    return date(today.year, today.month + 1, 1)


def quota_exceeded_error(id, ctx: AuthContext) -> dict:
    """Application error for a tools/call made with no remaining calls."""
    spec = AUTH_ERRORS[AuthErrorKind.RATE_LIMIT]
    limit = ctx.monthly_limit
    message = (
        f"Monthly API call limit exceeded ({limit} calls on the {ctx.tier.value} tier)"
        if limit is not None
        else spec.message
    )
    return jsonrpc_error(
        id,
        spec.code,
        message,
        {
            "error": AuthErrorKind.RATE_LIMIT.value,
            "tier": ctx.tier.value,
            "monthly_limit": limit,
            "current_usage": ctx.current_usage,
            "reset_date": next_reset_date().isoformat(),
            "upgrade_hint": f"Upgrade your plan at {settings.upgrade_url}",
            "docs": docs_link(spec.anchor),
        },
    )
