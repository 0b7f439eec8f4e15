"""Tool registry and dispatcher.

The registry is a read-only name -> ToolSpec mapping built once at startup.
The dispatcher resolves a name, validates the arguments against the tool's
params model, runs the executor and meters the call. Every failure mode
(unknown tool, invalid input, executor exception) comes back as a failed
ToolResult; nothing escapes to the protocol layer.
"""

import logging
import time
from collections.abc import Iterable
from types import MappingProxyType
from typing import Any

from pydantic import ValidationError

from ..db import RestClient
from ..models import AuthContext
from ..usage import UsageEvent, UsageMeter
from .base import ToolContext, ToolResult, ToolSpec, format_validation_error

logger = logging.getLogger(__name__)


class ToolRegistry:
    """Immutable mapping of tool name to its spec."""

    def __init__(self, specs: Iterable[ToolSpec]):
        specs = tuple(specs)
        by_name = {spec.name: spec for spec in specs}
        if len(by_name) != len(specs):
            raise ValueError("Duplicate tool names in registry")
        self._specs = MappingProxyType(by_name)
        self._descriptors = tuple(spec.descriptor() for spec in specs)

    def list_tools(self) -> list[dict[str, Any]]:
        """Descriptors in registration order, as returned by tools/list."""
        return list(self._descriptors)

    def get(self, name: str) -> ToolSpec | None:
        return self._specs.get(name)

    def names(self) -> list[str]:
        return list(self._specs)

    def __contains__(self, name: object) -> bool:
        return name in self._specs

    def __len__(self) -> int:
        return len(self._specs)


class ToolDispatcher:
    """Routes validated calls to executors and meters each invocation."""

    def __init__(self, registry: ToolRegistry, store: RestClient, meter: UsageMeter | None = None):
        self.registry = registry
        self.store = store
        self.meter = meter

    def list_tools(self) -> list[dict[str, Any]]:
        return self.registry.list_tools()

    async def invoke(self, name: str, args: dict[str, Any], ctx: AuthContext) -> ToolResult:
        spec = self.registry.get(name)
        if spec is None:
            return ToolResult.fail(
                f"Unknown tool: {name}. Available tools: {', '.join(self.registry.names())}"
            )

        start_time = time.perf_counter()
        result = await self._run(spec, args, ctx)
        duration_ms = int((time.perf_counter() - start_time) * 1000)

        if self.meter is not None:
            self.meter.record(
                UsageEvent(
                    api_key_id=ctx.api_key_id,
                    brand_id=ctx.brand_id,
                    tool_name=name,
                    user_id=ctx.user_id,
                    success=result.success,
                    duration_ms=duration_ms,
                    error_message=result.error,
                )
            )
        return result

    async def _run(self, spec: ToolSpec, args: dict[str, Any], ctx: AuthContext) -> ToolResult:
        try:
            params = spec.params_model.model_validate(args)
        except ValidationError as e:
            return ToolResult.fail(f"Invalid input: {format_validation_error(e)}")

        try:
            return await spec.executor(params, ToolContext(auth=ctx, store=self.store))
        except Exception as e:
            logger.error(f"[{spec.name}] Error: {e}", exc_info=True)
            return ToolResult.fail(str(e) or f"Unknown error in {spec.name}")
