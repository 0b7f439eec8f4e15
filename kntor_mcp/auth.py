"""API key authentication.

Keys are opaque tokens with a fixed prefix (``kntor_``). A key with the right
prefix is validated on every request through the ``validate_mcp_api_key`` RPC,
which resolves it to a brand, the key creator and the monthly quota. Results
are never cached.
"""

import logging
from collections.abc import Mapping
from typing import Any

from pydantic import ValidationError

from .config import settings
from .db import RestClient, StoreError
from .models import AuthContext, AuthErrorKind, AuthOutcome, ServiceType
from .usage import log_security_event

logger = logging.getLogger(__name__)

VALIDATION_RPC = "validate_mcp_api_key"


def extract_api_key(headers: Mapping[str, str]) -> str | None:
    """Extract the API key from request headers.

    Supports ``x-api-key`` (preferred) or ``Authorization: Bearer <key>``
    when the bearer token carries the API key prefix.
    """
    x_api_key = headers.get("x-api-key")
    if x_api_key:
        return x_api_key.strip()

    authorization = headers.get("authorization")
    bearer_prefix = f"Bearer {settings.api_key_prefix}"
    if authorization and authorization.startswith(bearer_prefix):
        return authorization[len("Bearer ") :].strip()

    return None


def _key_prefix(api_key: str) -> str:
    """Loggable prefix of a key (never log the full secret)."""
    return api_key[:12]


class Authenticator:
    """Validates API keys against the REST backend."""

    def __init__(self, store: RestClient, prefix: str | None = None):
        self.store = store
        self.prefix = prefix or settings.api_key_prefix

    async def authenticate(self, raw_key: str | None) -> AuthOutcome:
        if not raw_key:
            return AuthOutcome.fail(AuthErrorKind.MISSING)

        if not raw_key.startswith(self.prefix):
            log_security_event(
                "auth.failed", "api_key", _key_prefix(raw_key), "anonymous",
                details={"reason": AuthErrorKind.INVALID_FORMAT.value},
            )
            return AuthOutcome.fail(
                AuthErrorKind.INVALID_FORMAT, f"API key must start with {self.prefix}"
            )

        try:
            result = await self.store.rpc(VALIDATION_RPC, {"p_api_key": raw_key})
        except StoreError as e:
            kind = (
                AuthErrorKind.CONFIG_ERROR
                if e.status_code in (401, 403)
                else AuthErrorKind.INTERNAL_ERROR
            )
            logger.error(f"API key validation failed ({kind.value}): {e}")
            return AuthOutcome.fail(kind)
        except ValueError as e:
            logger.error(f"API key validation returned invalid JSON: {e}")
            return AuthOutcome.fail(AuthErrorKind.INTERNAL_ERROR)

        if isinstance(result, list):
            result = result[0] if result else None
        if not isinstance(result, dict):
            logger.error(f"Unexpected API key validation payload: {result!r}")
            return AuthOutcome.fail(AuthErrorKind.INTERNAL_ERROR)

        if not result.get("valid"):
            kind = _error_kind(result.get("error"))
            log_security_event(
                "auth.failed", "api_key", _key_prefix(raw_key), "anonymous",
                details={"reason": kind.value},
            )
            return AuthOutcome.fail(kind, result.get("message"))

        try:
            context = _build_context(result)
        except ValidationError as e:
            logger.error(f"API key validation payload is incomplete: {e}")
            return AuthOutcome.fail(AuthErrorKind.INTERNAL_ERROR)

        logger.debug(f"Authenticated key {_key_prefix(raw_key)} for brand {context.brand_id}")
        return AuthOutcome.ok(context)


def _error_kind(tag: Any) -> AuthErrorKind:
    try:
        kind = AuthErrorKind(tag)
    except ValueError:
        return AuthErrorKind.NOT_FOUND
    if kind is AuthErrorKind.MISSING:
        return AuthErrorKind.NOT_FOUND
    return kind


def _service_types(rows: Any) -> list[ServiceType]:
    """Keep the well-formed catalogue rows; a bad row must not lock out the brand."""
    if not isinstance(rows, list):
        return []
    service_types = []
    for row in rows:
        try:
            service_types.append(ServiceType.model_validate(row))
        except ValidationError as e:
            logger.warning(f"Skipping invalid service type {row!r}: {e.error_count()} error(s)")
    return service_types


def _build_context(result: dict[str, Any]) -> AuthContext:
    fields = {
        "api_key_id": result.get("api_key_id"),
        "brand_id": result.get("brand_id"),
        "brand_name": result.get("brand_name") or "",
        "brand_industry_type": result.get("brand_industry_type") or "other",
        "service_types": _service_types(result.get("service_types")),
        "tier": result.get("tier") or "free",
        "user_id": result.get("user_id"),
        "user_email": result.get("user_email") or "",
        "user_role": result.get("user_role") or "authenticated",
        "monthly_limit": result.get("monthly_limit"),
        "current_usage": result.get("current_usage"),
        "remaining_calls": result.get("remaining_calls"),
    }
    return AuthContext.model_validate(fields)
