"""Base infrastructure for tool executors.

Each executor receives its validated params model and a ToolContext, and
returns a ToolResult. Executors never see raw arguments.
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Coroutine

from pydantic import BaseModel, ValidationError

from ..db import RestClient
from ..models import AuthContext


@dataclass(frozen=True)
class ToolContext:
    """Context object passed to all executors.

    Carries the caller identity and the REST client; every tenant-scoped
    query must filter on ``auth.brand_id``.
    """

    auth: AuthContext
    store: RestClient

    @property
    def brand_id(self) -> str:
        return self.auth.brand_id

    @property
    def user_id(self) -> str | None:
        return self.auth.user_id


@dataclass(frozen=True)
class ToolResult:
    """Outcome of a tool call: ``data`` on success, ``error`` otherwise."""

    success: bool
    data: Any = None
    error: str | None = None

    @classmethod
    def ok(cls, data: Any) -> "ToolResult":
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, error: str) -> "ToolResult":
        return cls(success=False, error=error)


# Type alias for executor functions
Executor = Callable[[Any, ToolContext], Coroutine[Any, Any, ToolResult]]


@dataclass(frozen=True)
class ToolSpec:
    """Static registration of one tool: wire descriptor plus executor."""

    name: str
    description: str
    input_schema: dict[str, Any]
    params_model: type[BaseModel]
    executor: Executor = field(repr=False)

    def descriptor(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "inputSchema": self.input_schema,
        }


def format_validation_error(exc: ValidationError) -> str:
    """Compact one-line rendering of a pydantic ValidationError."""
    parts = []
    for err in exc.errors():
        location = ".".join(str(part) for part in err.get("loc", ())) or "input"
        parts.append(f"{location}: {err.get('msg')}")
    return "; ".join(parts)
