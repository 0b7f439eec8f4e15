"""Customer tool handlers.

Handles:
- search_customers: free-text search with type/status filters
- identify_customer: duplicate check by phone, email or RUT
- create_customer: insert + best-effort enrolment in the default sales funnel
"""

import logging
import re
import secrets
import string
import time
from datetime import UTC, datetime
from typing import Any

from ..db import Order, Query, StoreError, eq, ilike
from ..models import (
    CreateCustomerParams,
    CustomerType,
    IdentifyCustomerParams,
    SearchCustomersParams,
    ToolName,
)
from .base import ToolContext, ToolResult, ToolSpec

logger = logging.getLogger(__name__)

CUSTOMER_COLUMNS = (
    "id,customer_code,customer_type,first_name,last_name,company_name,email,phone,rut,"
    "status,customer_category,total_orders,total_sales,last_order_date,created_at"
)
SEARCH_FIELDS = (
    "first_name",
    "last_name",
    "company_name",
    "email",
    "phone",
    "rut",
    "customer_code",
)
BASE36 = string.digits + string.ascii_uppercase


def display_name(customer: dict[str, Any]) -> str:
    if customer.get("customer_type") == CustomerType.COMPANY.value:
        return customer.get("company_name") or ""
    return f"{customer.get('first_name') or ''} {customer.get('last_name') or ''}".strip()


def _stats(customer: dict[str, Any]) -> dict[str, Any]:
    return {
        "total_orders": customer.get("total_orders") or 0,
        "total_sales": customer.get("total_sales") or 0,
        "last_order": customer.get("last_order_date"),
    }


def _pattern_term(text: str) -> str:
    # Commas and parentheses are PostgREST syntax inside or=(...)
    return re.sub(r"[,()]", " ", text).strip()


# ============ SEARCH ============


async def handle_search_customers(params: SearchCustomersParams, ctx: ToolContext) -> ToolResult:
    """Search customers of the brand, newest first."""
    filters = [eq("brand_id", ctx.brand_id)]
    if params.customer_type:
        filters.append(eq("customer_type", params.customer_type.value))
    if params.status:
        filters.append(eq("status", params.status.value))

    any_of: tuple[str, ...] = ()
    if params.query:
        term = _pattern_term(params.query)
        any_of = tuple(ilike(column, f"*{term}*").expression() for column in SEARCH_FIELDS)

    rows = await ctx.store.execute_query(
        Query(
            table="customers",
            columns=CUSTOMER_COLUMNS,
            filters=tuple(filters),
            any_of=any_of,
            order=(Order("created_at"),),
            limit=params.limit,
        )
    )

    customers = [
        {
            "id": row.get("id"),
            "customer_code": row.get("customer_code"),
            "type": row.get("customer_type"),
            "name": display_name(row),
            "email": row.get("email"),
            "phone": row.get("phone"),
            "rut": row.get("rut"),
            "status": row.get("status"),
            "category": row.get("customer_category"),
            "stats": _stats(row),
        }
        for row in rows
    ]
    return ToolResult.ok({"count": len(customers), "customers": customers})


# ============ IDENTIFY ============


def normalize_phone(phone: str) -> str:
    """Strip spaces, dashes, parentheses and plus signs."""
    return re.sub(r"[\s\-()+]", "", phone)


def phone_variants(phone: str) -> list[str]:
    """Normalised number plus variants without the CL (56) or US (1) country code."""
    normalized = normalize_phone(phone)
    candidates = [normalized, re.sub(r"^56", "", normalized), re.sub(r"^1", "", normalized)]
    variants = []
    for candidate in candidates:
        if len(candidate) >= 8 and candidate not in variants:
            variants.append(candidate)
    return variants or [normalized]


def normalize_rut(rut: str) -> str:
    return re.sub(r"[.\s]", "", rut)


async def handle_identify_customer(params: IdentifyCustomerParams, ctx: ToolContext) -> ToolResult:
    """Find the most recently active customer matching any given identifier."""
    if not params.phone and not params.email and not params.rut:
        return ToolResult.fail("At least one search parameter required: phone, email, or rut")

    phone_conditions = (
        [ilike("phone", f"*{_pattern_term(p)}*").expression() for p in phone_variants(params.phone)]
        if params.phone
        else []
    )
    email_condition = ilike("email", params.email) if params.email else None
    rut_condition = ilike("rut", f"*{_pattern_term(normalize_rut(params.rut))}*") if params.rut else None

    provided = [c for c in (params.phone, params.email, params.rut) if c]
    filters = [eq("brand_id", ctx.brand_id)]
    any_of: tuple[str, ...] = ()
    if len(provided) > 1:
        conditions = []
        if phone_conditions:
            conditions.append(f"or({','.join(phone_conditions)})")
        if email_condition:
            conditions.append(email_condition.expression())
        if rut_condition:
            conditions.append(rut_condition.expression())
        any_of = tuple(conditions)
    elif phone_conditions:
        any_of = tuple(phone_conditions)
    elif email_condition:
        filters.append(email_condition)
    elif rut_condition:
        filters.append(rut_condition)

    rows = await ctx.store.execute_query(
        Query(
            table="customers",
            columns=CUSTOMER_COLUMNS,
            filters=tuple(filters),
            any_of=any_of,
            order=(Order("last_order_date", nulls_last=True), Order("created_at")),
            limit=1,
        )
    )

    if not rows:
        searched_by = ", ".join(
            f"{label}: {value}"
            for label, value in (("phone", params.phone), ("email", params.email), ("rut", params.rut))
            if value
        )
        return ToolResult.ok(
            {
                "found": False,
                "message": f"No customer found with {searched_by}",
                "customer": None,
                "action_hint": "You can safely create a new customer using create_customer tool",
            }
        )

    customer = rows[0]
    name = display_name(customer)
    return ToolResult.ok(
        {
            "found": True,
            "message": f"Customer found: {name} ({customer.get('customer_code')})",
            "customer": {
                "id": customer.get("id"),
                "customer_code": customer.get("customer_code"),
                "type": customer.get("customer_type"),
                "name": name,
                "first_name": customer.get("first_name"),
                "last_name": customer.get("last_name"),
                "company_name": customer.get("company_name"),
                "email": customer.get("email"),
                "phone": customer.get("phone"),
                "rut": customer.get("rut"),
                "status": customer.get("status"),
                "category": customer.get("customer_category"),
                "stats": _stats(customer),
                "created_at": customer.get("created_at"),
            },
            "action_hint": "Use the customer.id for creating expedientes or other operations",
        }
    )


# ============ CREATE ============


def _base36(number: int) -> str:
    digits = ""
    while number:
        number, remainder = divmod(number, 36)
        digits = BASE36[remainder] + digits
    return digits or "0"


def generate_customer_code(customer_type: CustomerType) -> str:
    """``CLI-``/``EMP-`` + base36 millisecond timestamp + 4 random chars."""
    prefix = "EMP" if customer_type == CustomerType.COMPANY else "CLI"
    timestamp = _base36(time.time_ns() // 1_000_000)
    suffix = "".join(secrets.choice(BASE36) for _ in range(4))
    return f"{prefix}-{timestamp}-{suffix}"


async def add_to_default_funnel(ctx: ToolContext, customer_id: str, notes: str | None) -> dict:
    """Place a new customer at the first stage of the brand's default funnel.

    Best effort: failures are reported in the returned dict, never raised.
    """
    try:
        funnels = await ctx.store.execute_query(
            Query(
                table="sales_funnels",
                columns="id,name",
                filters=(eq("brand_id", ctx.brand_id), eq("is_default", True)),
                limit=1,
            )
        )
        if not funnels:
            return {"added": False}
        funnel = funnels[0]

        stages = await ctx.store.execute_query(
            Query(
                table="funnel_stages",
                columns="id,name",
                filters=(eq("funnel_id", funnel["id"]), eq("position", 0)),
                limit=1,
            )
        )
        if not stages:
            return {"added": False}
        lead_stage = stages[0]

        await ctx.store.rpc(
            "add_customer_to_funnel",
            {
                "p_customer_id": customer_id,
                "p_funnel_id": funnel["id"],
                "p_stage_id": lead_stage["id"],
                "p_deal_value": None,
                "p_expected_close_date": None,
                "p_notes": notes,
            },
        )
    except StoreError as e:
        logger.error(f"[create_customer] Failed to add to funnel: {e}")
        return {"added": False, "error": "Failed to add to funnel"}

    return {"added": True, "stage": lead_stage.get("name"), "funnel_name": funnel.get("name")}


async def handle_create_customer(params: CreateCustomerParams, ctx: ToolContext) -> ToolResult:
    """Create a customer and enrol it in the default sales funnel."""
    if params.customer_type == CustomerType.INDIVIDUAL:
        if not params.first_name or not params.last_name:
            return ToolResult.fail("first_name and last_name are required for individual customers")
    elif not params.company_name:
        return ToolResult.fail("company_name is required for company customers")

    now = datetime.now(UTC).isoformat()
    row = {
        "customer_code": generate_customer_code(params.customer_type),
        "customer_type": params.customer_type.value,
        "first_name": params.first_name,
        "last_name": params.last_name,
        "company_name": params.company_name,
        "email": params.email,
        "phone": params.phone,
        "rut": params.rut,
        "tax_id": params.tax_id,
        "notes": params.notes,
        "brand_id": ctx.brand_id,
        "created_by": ctx.user_id,
        "status": "active",
        "created_at": now,
        "updated_at": now,
    }

    try:
        customer = await ctx.store.insert("customers", row)
    except StoreError as e:
        return ToolResult.fail(f"Failed to create customer: {e}")

    funnel = await add_to_default_funnel(ctx, customer.get("id"), params.notes)

    return ToolResult.ok(
        {
            "message": "Customer created successfully",
            "customer": customer,
            "funnel": funnel,
        }
    )


# ============ TOOL SPECS ============

SEARCH_CUSTOMERS = ToolSpec(
    name=ToolName.SEARCH_CUSTOMERS.value,
    description="""Search for customers (clients) in the system.

You can search by name (first_name, last_name, company_name), email, phone number,
RUT (Chilean tax ID) or customer code. Optionally filter by customer_type or status.""",
    input_schema={
        "type": "object",
        "properties": {
            "query": {
                "type": "string",
                "description": "Search query - searches across name, email, phone, RUT, and customer code",
                "minLength": 2,
                "maxLength": 100,
            },
            "customer_type": {
                "type": "string",
                "enum": ["individual", "company"],
                "description": "Filter by customer type",
            },
            "status": {
                "type": "string",
                "enum": ["active", "inactive", "lead", "prospect"],
                "description": "Filter by customer status",
            },
            "limit": {
                "type": "integer",
                "description": "Maximum number of results (default: 20, max: 50)",
                "minimum": 1,
                "maximum": 50,
            },
        },
        "required": [],
    },
    params_model=SearchCustomersParams,
    executor=handle_search_customers,
)

IDENTIFY_CUSTOMER = ToolSpec(
    name=ToolName.IDENTIFY_CUSTOMER.value,
    description="""Identify an existing customer by phone, email, or RUT.

IMPORTANT: Use this tool BEFORE creating a new customer to prevent duplicates.

PARAMETERS (at least one required):
- phone: partial match, ignores formatting and country code (+56, +1)
- email: exact match, case insensitive
- rut: Chilean RUT/tax ID, partial match ignoring dots

RETURNS found (true/false), the customer when found, and a hint for the next step.
If found=false it is safe to call create_customer.""",
    input_schema={
        "type": "object",
        "properties": {
            "phone": {
                "type": "string",
                "description": "Phone number to search. Works with or without country code, spaces, dashes",
                "minLength": 8,
                "maxLength": 20,
            },
            "email": {
                "type": "string",
                "format": "email",
                "description": "Email address to search (case insensitive)",
            },
            "rut": {
                "type": "string",
                "description": 'Chilean RUT/tax ID to search (e.g., "12.345.678-9" or "12345678-9")',
            },
        },
        "required": [],
    },
    params_model=IdentifyCustomerParams,
    executor=handle_identify_customer,
)

CREATE_CUSTOMER = ToolSpec(
    name=ToolName.CREATE_CUSTOMER.value,
    description="""Create a new customer (client) in the system. The customer is automatically added to the sales funnel at the "Lead" stage.

REQUIRED FIELDS by customer_type:
- customer_type="individual": first_name AND last_name
- customer_type="company": company_name

MANDATORY FOR AI AGENTS:
- notes: summary of the customer's needs, requirements and conversation context.

After creating a customer, create an expediente with create_expediente using the returned customer ID.""",
    input_schema={
        "type": "object",
        "properties": {
            "customer_type": {
                "type": "string",
                "enum": ["individual", "company"],
                "description": 'REQUIRED. "individual" for persons, "company" for businesses',
            },
            "first_name": {
                "type": "string",
                "description": "REQUIRED for individual. Person's first name",
                "maxLength": 100,
            },
            "last_name": {
                "type": "string",
                "description": "REQUIRED for individual. Person's last name",
                "maxLength": 100,
            },
            "company_name": {
                "type": "string",
                "description": "REQUIRED for company. Business/company name",
                "maxLength": 200,
            },
            "email": {"type": "string", "format": "email", "description": "Contact email address"},
            "phone": {"type": "string", "description": "Phone number (8-20 characters)"},
            "rut": {"type": "string", "description": 'Chilean RUT/tax ID (e.g., "12.345.678-9")'},
            "tax_id": {"type": "string", "description": "Tax identification number for other countries"},
            "notes": {
                "type": "string",
                "description": "Customer needs, requirements and conversation summary. Never leave empty.",
                "maxLength": 1000,
            },
        },
        "required": ["customer_type"],
    },
    params_model=CreateCustomerParams,
    executor=handle_create_customer,
)
