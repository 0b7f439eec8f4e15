"""Usage metering and security event logging.

Every tool invocation produces one usage event, written to the ``mcp_usage``
table through the ``log_mcp_usage`` RPC. Metering is fire-and-forget: events
are sent from detached tasks, failures are logged and swallowed, and the
request path never waits for them.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any

from .db import RestClient, get_rest

logger = logging.getLogger(__name__)
security_logger = logging.getLogger("kntor_mcp.security")


@dataclass(frozen=True)
class UsageEvent:
    """One tool invocation, as recorded for billing and analytics."""

    api_key_id: str
    brand_id: str
    tool_name: str
    user_id: str | None
    success: bool
    duration_ms: int
    error_message: str | None = None
    request_metadata: dict[str, Any] = field(default_factory=dict)

    def rpc_params(self) -> dict[str, Any]:
        return {
            "p_api_key_id": self.api_key_id,
            "p_brand_id": self.brand_id,
            "p_tool_name": self.tool_name,
            "p_user_id": self.user_id or None,
            "p_success": self.success,
            "p_error_message": self.error_message or None,
            "p_duration_ms": self.duration_ms,
            "p_request_metadata": self.request_metadata,
        }


class UsageMeter:
    """Records usage events without ever blocking or failing the caller."""

    def __init__(self, store: RestClient):
        self.store = store
        self._pending: set[asyncio.Task] = set()

    def record(self, event: UsageEvent) -> None:
        """Schedule the event for delivery and return immediately."""
        try:
            task = asyncio.get_running_loop().create_task(self._send(event))
        except RuntimeError:
            logger.warning(f"No running event loop, dropping usage event for {event.tool_name}")
            return
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _send(self, event: UsageEvent) -> None:
        try:
            await self.store.rpc("log_mcp_usage", event.rpc_params())
        except Exception as e:
            logger.warning(f"Failed to log usage for {event.tool_name}: {e}")

    async def flush(self) -> None:
        """Wait for in-flight events (shutdown and tests)."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)


# Global meter bound to the shared REST client
_meter: UsageMeter | None = None


async def get_meter() -> UsageMeter:
    """Get or create the shared usage meter."""
    global _meter
    if _meter is None:
        _meter = UsageMeter(await get_rest())
    return _meter


async def flush_meter() -> None:
    """Deliver pending usage events and drop the shared meter."""
    global _meter
    if _meter is not None:
        await _meter.flush()
        _meter = None


def log_security_event(
    action: str,
    resource_type: str,
    resource_id: str,
    actor: str,
    details: dict[str, Any] | None = None,
) -> None:
    """Emit a structured security log record (auth failures, quota exhaustion)."""
    security_logger.warning(
        f"security.{action} {resource_type}={resource_id} actor={actor}",
        extra={
            "security_action": action,
            "resource_type": resource_type,
            "resource_id": resource_id,
            "actor": actor,
            "details": details or {},
        },
    )
