"""Request models (Pydantic *Params classes) for the MCP tools."""

from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from .enums import CustomerStatus, CustomerType, ServiceAction

DATE_PATTERN = r"^\d{4}-\d{2}-\d{2}$"


# ============ BRAND ============


class GetBrandContextParams(BaseModel):
    """Parameters for get_brand_context tool (none accepted)."""

    model_config = ConfigDict(extra="forbid")


# ============ CUSTOMERS ============


class SearchCustomersParams(BaseModel):
    """Parameters for search_customers tool."""

    query: str | None = Field(
        default=None,
        min_length=2,
        max_length=100,
        description="Search query (searches name, email, phone, RUT, customer code)",
    )
    customer_type: CustomerType | None = Field(default=None, description="Filter by customer type")
    status: CustomerStatus | None = Field(default=None, description="Filter by status")
    limit: int = Field(default=20, ge=1, le=50, description="Maximum results to return")


class IdentifyCustomerParams(BaseModel):
    """Parameters for identify_customer tool."""

    phone: str | None = Field(default=None, min_length=8, max_length=20)
    email: EmailStr | None = None
    rut: str | None = None


class CreateCustomerParams(BaseModel):
    """Parameters for create_customer tool."""

    customer_type: CustomerType = Field(..., description="Type of customer")
    first_name: str | None = Field(default=None, min_length=1, max_length=100)
    last_name: str | None = Field(default=None, min_length=1, max_length=100)
    company_name: str | None = Field(default=None, min_length=1, max_length=200)
    email: EmailStr | None = None
    phone: str | None = Field(default=None, min_length=8, max_length=20)
    rut: str | None = Field(default=None, max_length=20)
    tax_id: str | None = Field(default=None, max_length=50)
    notes: str | None = Field(
        default=None,
        max_length=1000,
        description="Customer needs, requirements and conversation summary",
    )


# ============ EXPEDIENTES ============


class CreateExpedienteParams(BaseModel):
    """Parameters for create_expediente tool."""

    expediente_nombre: str = Field(..., min_length=3, max_length=200)
    expediente_tipo: str = Field(..., min_length=2, max_length=50)
    customer_id: UUID | None = None
    start_date: str = Field(..., pattern=DATE_PATTERN, description="Start date (YYYY-MM-DD)")
    end_date: str | None = Field(default=None, pattern=DATE_PATTERN)
    description: str | None = Field(default=None, max_length=2000)
    notes: str | None = Field(default=None, max_length=1000)


class ManageExpedienteServicesParams(BaseModel):
    """Parameters for manage_expediente_services tool."""

    action: ServiceAction = Field(..., description="Action to perform")
    expediente_id: UUID | None = None
    service_id: UUID | None = None
    service_type_id: UUID | None = None
    service_name: str | None = Field(default=None, min_length=1, max_length=200)
    service_description: str | None = Field(default=None, max_length=1000)
    start_date: str | None = Field(default=None, pattern=DATE_PATTERN)
    end_date: str | None = Field(default=None, pattern=DATE_PATTERN)
    unit_price: float | None = Field(default=None, ge=0)
    quantity: int | None = Field(default=None, ge=1)
    provider_name: str | None = Field(default=None, max_length=200)
    confirmation_number: str | None = Field(default=None, max_length=100)


# ============ FUNNEL ============


class UpdateFunnelStageParams(BaseModel):
    """Parameters for update_funnel_stage tool."""

    customer_id: UUID = Field(..., description="UUID of the customer to move")
    stage_name: str = Field(..., min_length=2, max_length=50, description="Target stage name")
