"""Pydantic models for the Kntor MCP Server.

    from kntor_mcp.models import AuthContext, ToolName
    from kntor_mcp.models.requests import CreateCustomerParams
"""

from .auth import AuthContext, AuthOutcome, ServiceType
from .enums import (
    AuthErrorKind,
    CustomerStatus,
    CustomerType,
    IndustryType,
    ServiceAction,
    Tier,
    ToolName,
)
from .requests import (
    CreateCustomerParams,
    CreateExpedienteParams,
    GetBrandContextParams,
    IdentifyCustomerParams,
    ManageExpedienteServicesParams,
    SearchCustomersParams,
    UpdateFunnelStageParams,
)
from .responses import HealthResponse

__all__ = [
    # Auth
    "AuthContext",
    "AuthOutcome",
    "ServiceType",
    # Enums
    "AuthErrorKind",
    "CustomerStatus",
    "CustomerType",
    "IndustryType",
    "ServiceAction",
    "Tier",
    "ToolName",
    # Tool params
    "CreateCustomerParams",
    "CreateExpedienteParams",
    "GetBrandContextParams",
    "IdentifyCustomerParams",
    "ManageExpedienteServicesParams",
    "SearchCustomersParams",
    "UpdateFunnelStageParams",
    # Responses
    "HealthResponse",
]
