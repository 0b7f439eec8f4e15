"""MCP tool implementations.

Each module exports ``ToolSpec`` values; ``TOOLS`` fixes the order in which
they are advertised by tools/list.
"""

from .base import ToolContext, ToolResult, ToolSpec
from .brand import GET_BRAND_CONTEXT
from .customers import CREATE_CUSTOMER, IDENTIFY_CUSTOMER, SEARCH_CUSTOMERS
from .expedientes import CREATE_EXPEDIENTE, MANAGE_EXPEDIENTE_SERVICES
from .funnel import UPDATE_FUNNEL_STAGE
from .registry import ToolDispatcher, ToolRegistry

TOOLS: tuple[ToolSpec, ...] = (
    GET_BRAND_CONTEXT,
    SEARCH_CUSTOMERS,
    IDENTIFY_CUSTOMER,
    CREATE_CUSTOMER,
    CREATE_EXPEDIENTE,
    UPDATE_FUNNEL_STAGE,
    MANAGE_EXPEDIENTE_SERVICES,
)


def build_registry() -> ToolRegistry:
    """Registry of every tool served by this process."""
    return ToolRegistry(TOOLS)


__all__ = [
    "TOOLS",
    "build_registry",
    "ToolContext",
    "ToolDispatcher",
    "ToolRegistry",
    "ToolResult",
    "ToolSpec",
]
