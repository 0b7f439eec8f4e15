"""Authentication models: validated API key context."""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from .enums import AuthErrorKind, IndustryType, Tier


class ServiceType(BaseModel):
    """Service type available to a brand."""

    code: str
    name: str
    category: str = "other"
    subcategory: str | None = None
    description: str | None = None
    required_fields: list[str] = Field(default_factory=list)
    optional_fields: list[str] = Field(default_factory=list)
    field_schemas: dict[str, Any] = Field(default_factory=dict)


class AuthContext(BaseModel):
    """Per-request identity and quota, built from a successful key validation.

    Only ``Authenticator`` constructs this; downstream code treats it as read-only.
    """

    model_config = ConfigDict(frozen=True)

    api_key_id: str
    brand_id: str
    brand_name: str = ""
    brand_industry_type: IndustryType = IndustryType.OTHER
    service_types: tuple[ServiceType, ...] = ()
    tier: Tier = Tier.FREE
    user_id: str | None = None
    user_email: str = ""
    user_role: str = "authenticated"
    monthly_limit: int | None = None
    current_usage: int | None = None
    remaining_calls: int | None = None

    @property
    def quota_exhausted(self) -> bool:
        """True when the quota is tracked and no calls remain."""
        return self.remaining_calls is not None and self.remaining_calls <= 0


class AuthOutcome(BaseModel):
    """Result of authenticating one request: a context or a failure kind."""

    context: AuthContext | None = None
    error: AuthErrorKind | None = None
    message: str | None = None

    @property
    def valid(self) -> bool:
        return self.context is not None

    @classmethod
    def ok(cls, context: AuthContext) -> "AuthOutcome":
        return cls(context=context)

    @classmethod
    def fail(cls, error: AuthErrorKind, message: str | None = None) -> "AuthOutcome":
        return cls(error=error, message=message)
