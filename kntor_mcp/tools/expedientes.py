"""Expediente tool handlers.

Handles:
- create_expediente: open a new case file for the brand
- manage_expediente_services: list_types / list / add / update / remove services
"""

import logging
import secrets
from datetime import UTC, date, datetime
from typing import Any

from ..db import Order, Query, StoreError, eq
from ..models import (
    CreateExpedienteParams,
    ManageExpedienteServicesParams,
    ServiceAction,
    ToolName,
)
from .base import ToolContext, ToolResult, ToolSpec
from .customers import BASE36

logger = logging.getLogger(__name__)

SERVICE_COLUMNS = (
    "id,service_name,service_description,start_date,end_date,unit_price,quantity,subtotal,total,"
    "provider_name,confirmation_number,service_status,sort_order,created_at"
)

# Service fields copied verbatim from params on update when provided
UPDATABLE_SERVICE_FIELDS = (
    "service_name",
    "service_description",
    "start_date",
    "end_date",
    "provider_name",
    "confirmation_number",
)


# ============ CREATE ============


def generate_expediente_code(tipo: str, today: date | None = None) -> str:
    """``<TIP>-<YYMM>-<6 random>``, e.g. ``PRO-2601-A1B2C3``."""
    today = today or datetime.now(UTC).date()
    random_part = "".join(secrets.choice(BASE36) for _ in range(6))
    return f"{tipo[:3].upper()}-{today:%y%m}-{random_part}"


def duration_days(start: date, end: date | None) -> int:
    """Inclusive length in days; 0 when open-ended."""
    if end is None:
        return 0
    return abs((end - start).days) + 1


def _parse_date(value: str) -> date | None:
    try:
        return date.fromisoformat(value)
    except ValueError:
        return None


async def handle_create_expediente(params: CreateExpedienteParams, ctx: ToolContext) -> ToolResult:
    """Create an expediente owned by the brand."""
    start = _parse_date(params.start_date)
    if start is None:
        return ToolResult.fail("Invalid start_date format. Use YYYY-MM-DD")

    end = None
    if params.end_date:
        end = _parse_date(params.end_date)
        if end is None:
            return ToolResult.fail("Invalid end_date format. Use YYYY-MM-DD")
        if end < start:
            return ToolResult.fail("end_date cannot be before start_date")

    now = datetime.now(UTC).isoformat()
    row = {
        "expediente_codigo": generate_expediente_code(params.expediente_tipo),
        "expediente_nombre": params.expediente_nombre,
        "expediente_tipo": params.expediente_tipo,
        "expediente_estado": "activo",
        "customer_id": str(params.customer_id) if params.customer_id else None,
        # Stored in the travel-era departure/return columns
        "departure_date": params.start_date,
        "return_date": params.end_date,
        "duration_days": duration_days(start, end),
        "departure_city": "-",
        "arrival_city": "-",
        "total_seats": 1,
        "available_seats": 1,
        "description": params.description,
        "notes": params.notes,
        "brand_id": ctx.brand_id,
        "created_by": ctx.user_id,
        "created_at": now,
        "updated_at": now,
    }

    try:
        data = await ctx.store.insert("expedientes", row)
    except StoreError as e:
        logger.error(f"[create_expediente] Database error: {e}")
        return ToolResult.fail(f"Failed to create expediente: {e}")

    return ToolResult.ok(
        {
            "message": "Expediente created successfully",
            "expediente": {
                "id": data.get("id"),
                "codigo": data.get("expediente_codigo"),
                "nombre": data.get("expediente_nombre"),
                "tipo": data.get("expediente_tipo"),
                "estado": data.get("expediente_estado"),
                "customer_id": data.get("customer_id"),
                "start_date": data.get("departure_date"),
                "end_date": data.get("return_date"),
                "duration_days": data.get("duration_days"),
                "description": data.get("description"),
                "created_at": data.get("created_at"),
            },
        }
    )


# ============ SERVICES ============


async def _list_service_types(params: ManageExpedienteServicesParams, ctx: ToolContext) -> ToolResult:
    try:
        rows = await ctx.store.execute_query(
            Query(
                table="service_types",
                columns="id,code,name,description,is_active",
                filters=(eq("brand_id", ctx.brand_id), eq("is_active", True)),
                order=(Order("sort_order", ascending=True),),
            )
        )
    except StoreError as e:
        return ToolResult.fail(f"Failed to list service types: {e}")
    return ToolResult.ok({"count": len(rows), "service_types": rows})


async def _list_services(params: ManageExpedienteServicesParams, ctx: ToolContext) -> ToolResult:
    if not params.expediente_id:
        return ToolResult.fail("expediente_id is required for list action")

    try:
        rows = await ctx.store.execute_query(
            Query(
                table="expediente_servicios",
                columns=SERVICE_COLUMNS,
                filters=(
                    eq("expediente_id", params.expediente_id),
                    eq("brand_id", ctx.brand_id),
                ),
                order=(Order("sort_order", ascending=True),),
            )
        )
    except StoreError as e:
        return ToolResult.fail(f"Failed to list services: {e}")

    total_amount = sum(_number(row.get("total")) for row in rows)
    return ToolResult.ok({"count": len(rows), "total_amount": total_amount, "services": rows})


async def _add_service(params: ManageExpedienteServicesParams, ctx: ToolContext) -> ToolResult:
    if not params.expediente_id:
        return ToolResult.fail("expediente_id is required for add action")
    if not params.service_name:
        return ToolResult.fail("service_name is required for adding a service")

    quantity = params.quantity or 1
    unit_price = params.unit_price or 0
    subtotal = unit_price * quantity

    try:
        last = await ctx.store.execute_query(
            Query(
                table="expediente_servicios",
                columns="sort_order",
                filters=(
                    eq("expediente_id", params.expediente_id),
                    eq("brand_id", ctx.brand_id),
                ),
                order=(Order("sort_order"),),
                limit=1,
            )
        )
        next_sort_order = int(_number(last[0].get("sort_order"))) + 1 if last else 1

        now = datetime.now(UTC).isoformat()
        service = await ctx.store.insert(
            "expediente_servicios",
            {
                "brand_id": ctx.brand_id,
                "expediente_id": str(params.expediente_id),
                "service_type_id": str(params.service_type_id) if params.service_type_id else None,
                "service_name": params.service_name,
                "service_description": params.service_description,
                "start_date": params.start_date,
                "end_date": params.end_date,
                "unit_price": unit_price,
                "quantity": quantity,
                "subtotal": subtotal,
                "total": subtotal,
                "provider_name": params.provider_name,
                "confirmation_number": params.confirmation_number,
                "service_status": "pending",
                "sort_order": next_sort_order,
                "created_by": ctx.user_id,
                "created_at": now,
                "updated_at": now,
            },
        )
    except StoreError as e:
        return ToolResult.fail(f"Failed to add service: {e}")

    return ToolResult.ok({"message": "Service added successfully", "service": service})


async def _update_service(params: ManageExpedienteServicesParams, ctx: ToolContext) -> ToolResult:
    if not params.service_id:
        return ToolResult.fail("service_id is required for updating a service")

    provided = params.model_fields_set
    values: dict[str, Any] = {"updated_at": datetime.now(UTC).isoformat()}
    for name in UPDATABLE_SERVICE_FIELDS:
        if name in provided:
            values[name] = getattr(params, name)

    scope = (eq("id", params.service_id), eq("brand_id", ctx.brand_id))
    try:
        if "unit_price" in provided or "quantity" in provided:
            current_rows = await ctx.store.execute_query(
                Query(
                    table="expediente_servicios",
                    columns="unit_price,quantity",
                    filters=scope,
                    limit=1,
                )
            )
            current = current_rows[0] if current_rows else {}
            unit_price = (
                params.unit_price if params.unit_price is not None else _number(current.get("unit_price"))
            )
            quantity = params.quantity if params.quantity is not None else current.get("quantity") or 1
            values["unit_price"] = unit_price
            values["quantity"] = quantity
            values["subtotal"] = unit_price * quantity
            values["total"] = values["subtotal"]

        rows = await ctx.store.update("expediente_servicios", scope, values)
    except StoreError as e:
        return ToolResult.fail(f"Failed to update service: {e}")

    if not rows:
        return ToolResult.fail(f"Service not found: {params.service_id}")
    return ToolResult.ok({"message": "Service updated successfully", "service": rows[0]})


async def _remove_service(params: ManageExpedienteServicesParams, ctx: ToolContext) -> ToolResult:
    if not params.service_id:
        return ToolResult.fail("service_id is required for removing a service")

    try:
        await ctx.store.delete(
            "expediente_servicios",
            (eq("id", params.service_id), eq("brand_id", ctx.brand_id)),
        )
    except StoreError as e:
        return ToolResult.fail(f"Failed to remove service: {e}")

    return ToolResult.ok(
        {"message": "Service removed successfully", "service_id": str(params.service_id)}
    )


def _number(value: Any) -> float:
    try:
        return float(value or 0)
    except (TypeError, ValueError):
        return 0.0


SERVICE_ACTIONS = {
    ServiceAction.LIST_TYPES: _list_service_types,
    ServiceAction.LIST: _list_services,
    ServiceAction.ADD: _add_service,
    ServiceAction.UPDATE: _update_service,
    ServiceAction.REMOVE: _remove_service,
}


async def handle_manage_expediente_services(
    params: ManageExpedienteServicesParams,
    ctx: ToolContext,
) -> ToolResult:
    """Route to the handler for ``params.action``."""
    return await SERVICE_ACTIONS[params.action](params, ctx)


# ============ TOOL SPECS ============

CREATE_EXPEDIENTE = ToolSpec(
    name=ToolName.CREATE_EXPEDIENTE.value,
    description="""Create a new expediente (case file/business record) in the system.

An expediente tracks business activities and services for a customer (projects, contracts, trips, etc.).

REQUIRED FIELDS:
- expediente_nombre: Name/title (e.g., "Proyecto Marketing 2026")
- expediente_tipo: Type (proyecto, servicio, contrato, consulta, viaje, etc.)
- start_date: Start date in YYYY-MM-DD format

OPTIONAL FIELDS:
- customer_id: UUID of associated customer (use search_customers first to get ID)
- end_date, description, notes

Returns the created expediente with its unique code (e.g., "PRO-2601-ABC123").""",
    input_schema={
        "type": "object",
        "properties": {
            "expediente_nombre": {
                "type": "string",
                "description": "REQUIRED. Name/title of the expediente",
                "minLength": 3,
                "maxLength": 200,
            },
            "expediente_tipo": {
                "type": "string",
                "description": "REQUIRED. Type: proyecto, servicio, contrato, consulta, viaje, etc.",
            },
            "customer_id": {
                "type": "string",
                "format": "uuid",
                "description": "Optional. UUID of the associated customer (use search_customers to find)",
            },
            "start_date": {
                "type": "string",
                "pattern": "^\\d{4}-\\d{2}-\\d{2}$",
                "description": 'REQUIRED. Start date in YYYY-MM-DD format (e.g., "2026-01-18")',
            },
            "end_date": {
                "type": "string",
                "pattern": "^\\d{4}-\\d{2}-\\d{2}$",
                "description": "Optional. End date in YYYY-MM-DD format",
            },
            "description": {
                "type": "string",
                "description": "Optional. Detailed description of the expediente",
                "maxLength": 2000,
            },
            "notes": {"type": "string", "description": "Optional. Internal notes", "maxLength": 1000},
        },
        "required": ["expediente_nombre", "expediente_tipo", "start_date"],
    },
    params_model=CreateExpedienteParams,
    executor=handle_create_expediente,
)

MANAGE_EXPEDIENTE_SERVICES = ToolSpec(
    name=ToolName.MANAGE_EXPEDIENTE_SERVICES.value,
    description="""Manage services within an expediente (case file).

ACTIONS AND REQUIRED FIELDS:
1. action="list_types" - available service types for this brand. Call this FIRST.
2. action="list" - services in an expediente with totals. Requires expediente_id.
3. action="add" - add a service. Requires expediente_id and service_name.
4. action="update" - update a service. Requires service_id; send only fields to change.
5. action="remove" - remove a service. Requires service_id.

PRICING: subtotal/total are calculated from unit_price and quantity automatically.""",
    input_schema={
        "type": "object",
        "properties": {
            "action": {
                "type": "string",
                "enum": ["list_types", "list", "add", "update", "remove"],
                "description": "REQUIRED. Action: list_types, list, add, update, or remove",
            },
            "expediente_id": {
                "type": "string",
                "format": "uuid",
                "description": "Required for list/add. UUID of the expediente",
            },
            "service_id": {
                "type": "string",
                "format": "uuid",
                "description": "Required for update/remove. UUID of the service",
            },
            "service_type_id": {
                "type": "string",
                "format": "uuid",
                "description": "Optional. UUID from list_types action",
            },
            "service_name": {
                "type": "string",
                "description": 'Required for add. Name of the service (e.g., "Hotel Marriott 3 noches")',
                "maxLength": 200,
            },
            "service_description": {
                "type": "string",
                "description": "Optional. Detailed description",
                "maxLength": 1000,
            },
            "start_date": {
                "type": "string",
                "pattern": "^\\d{4}-\\d{2}-\\d{2}$",
                "description": "Optional. Service start date (YYYY-MM-DD)",
            },
            "end_date": {
                "type": "string",
                "pattern": "^\\d{4}-\\d{2}-\\d{2}$",
                "description": "Optional. Service end date (YYYY-MM-DD)",
            },
            "unit_price": {
                "type": "number",
                "description": "Optional. Price per unit (e.g., 50000)",
                "minimum": 0,
            },
            "quantity": {"type": "integer", "description": "Optional. Quantity (default: 1)", "minimum": 1},
            "provider_name": {
                "type": "string",
                "description": "Optional. Provider/vendor name",
                "maxLength": 200,
            },
            "confirmation_number": {
                "type": "string",
                "description": "Optional. Booking/reservation confirmation number",
                "maxLength": 100,
            },
        },
        "required": ["action"],
    },
    params_model=ManageExpedienteServicesParams,
    executor=handle_manage_expediente_services,
)
