"""Enumeration types for the Kntor MCP Server."""

from enum import StrEnum


class ToolName(StrEnum):
    """Available MCP tools."""

    GET_BRAND_CONTEXT = "get_brand_context"
    SEARCH_CUSTOMERS = "search_customers"
    IDENTIFY_CUSTOMER = "identify_customer"
    CREATE_CUSTOMER = "create_customer"
    CREATE_EXPEDIENTE = "create_expediente"
    UPDATE_FUNNEL_STAGE = "update_funnel_stage"
    MANAGE_EXPEDIENTE_SERVICES = "manage_expediente_services"


class Tier(StrEnum):
    """API key subscription tiers."""

    FREE = "free"
    STARTER = "starter"
    PRO = "pro"
    ENTERPRISE = "enterprise"


class IndustryType(StrEnum):
    """Brand industry (shared with expedientes.expediente_tipo)."""

    TRAVEL = "travel"
    LEGAL = "legal"
    MEDICAL = "medical"
    EDUCATION = "education"
    OTHER = "other"


class AuthErrorKind(StrEnum):
    """Failure tags returned by API key validation."""

    MISSING = "missing"
    INVALID_FORMAT = "invalid_format"
    NOT_FOUND = "not_found"
    INACTIVE = "inactive"
    EXPIRED = "expired"
    RATE_LIMIT = "rate_limit"
    CONFIG_ERROR = "config_error"
    INTERNAL_ERROR = "internal_error"


class CustomerType(StrEnum):
    INDIVIDUAL = "individual"
    COMPANY = "company"


class CustomerStatus(StrEnum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    LEAD = "lead"
    PROSPECT = "prospect"


class ServiceAction(StrEnum):
    """Actions supported by manage_expediente_services."""

    LIST_TYPES = "list_types"
    LIST = "list"
    ADD = "add"
    UPDATE = "update"
    REMOVE = "remove"
