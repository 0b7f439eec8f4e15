"""Sales funnel tool handler.

Handles:
- update_funnel_stage: move a customer to a named stage of their funnel
"""

import logging
from typing import Any

from ..db import Query, StoreError, eq, ilike
from ..models import ToolName, UpdateFunnelStageParams
from .base import ToolContext, ToolResult, ToolSpec

logger = logging.getLogger(__name__)


async def _find_stage(ctx: ToolContext, funnel_id: Any, stage_name: str) -> dict | None:
    stages = await ctx.store.execute_query(
        Query(
            table="funnel_stages",
            columns="id,name",
            filters=(
                eq("funnel_id", funnel_id),
                ilike("name", stage_name),
                eq("is_active", True),
            ),
            limit=1,
        )
    )
    return stages[0] if stages else None


async def _enter_funnel(ctx: ToolContext, customer_id: str, stage_name: str) -> ToolResult:
    """Place a customer with no funnel position into the default funnel."""
    funnels = await ctx.store.execute_query(
        Query(
            table="sales_funnels",
            columns="id",
            filters=(
                eq("brand_id", ctx.brand_id),
                eq("is_default", True),
                eq("is_active", True),
            ),
            limit=1,
        )
    )
    if not funnels:
        return ToolResult.fail("No default funnel configured for this brand")
    funnel_id = funnels[0]["id"]

    stage = await _find_stage(ctx, funnel_id, stage_name)
    if stage is None:
        return ToolResult.fail(f'Stage "{stage_name}" not found in funnel')

    try:
        added = await ctx.store.rpc(
            "add_customer_to_funnel",
            {"p_customer_id": customer_id, "p_funnel_id": funnel_id, "p_stage_id": stage["id"]},
        )
    except StoreError as e:
        return ToolResult.fail(f"Failed to add customer to funnel: {e}")

    return ToolResult.ok(
        {
            "message": f'Customer added to funnel at stage "{stage["name"]}"',
            "old_stage": None,
            "new_stage": stage["name"],
            "customer_id": customer_id,
            "position_id": added.get("position_id") if isinstance(added, dict) else None,
        }
    )


async def handle_update_funnel_stage(params: UpdateFunnelStageParams, ctx: ToolContext) -> ToolResult:
    """Move a customer to ``stage_name`` (case insensitive).

    Customers without a funnel position are added to the brand's default
    funnel; a customer already in the target stage is a successful no-op.
    """
    customer_id = str(params.customer_id)

    owned = await ctx.store.execute_query(
        Query(
            table="customers",
            columns="id",
            filters=(eq("id", customer_id), eq("brand_id", ctx.brand_id)),
            limit=1,
        )
    )
    if not owned:
        return ToolResult.fail(f"Customer not found: {customer_id}")

    positions = await ctx.store.execute_query(
        Query(
            table="customer_funnel_positions",
            columns="id,stage_id,funnel_id,funnel_stages(id,name)",
            filters=(eq("customer_id", customer_id),),
            limit=1,
        )
    )
    if not positions:
        return await _enter_funnel(ctx, customer_id, params.stage_name)

    position = positions[0]
    current_stage = (position.get("funnel_stages") or {}).get("name") or "Unknown"

    stage = await _find_stage(ctx, position["funnel_id"], params.stage_name)
    if stage is None:
        return ToolResult.fail(f'Stage "{params.stage_name}" not found in funnel')

    if position.get("stage_id") == stage["id"]:
        return ToolResult.ok(
            {
                "message": f'Customer already in stage "{stage["name"]}"',
                "old_stage": current_stage,
                "new_stage": stage["name"],
                "customer_id": customer_id,
                "no_change": True,
            }
        )

    try:
        moved = await ctx.store.rpc(
            "move_customer_in_funnel",
            {
                "p_position_id": position["id"],
                "p_new_stage_id": stage["id"],
                "p_new_position": 0,
                "p_user_id": ctx.user_id,
            },
        )
    except StoreError as e:
        return ToolResult.fail(f"Failed to move customer: {e}")

    if not isinstance(moved, dict) or not moved.get("success"):
        error = moved.get("error") if isinstance(moved, dict) else None
        return ToolResult.fail(error or "Unknown error moving customer")

    logger.info(f"[update_funnel_stage] {customer_id}: {current_stage} -> {stage['name']}")
    return ToolResult.ok(
        {
            "message": f'Customer moved from "{current_stage}" to "{stage["name"]}"',
            "old_stage": current_stage,
            "new_stage": stage["name"],
            "customer_id": customer_id,
        }
    )


UPDATE_FUNNEL_STAGE = ToolSpec(
    name=ToolName.UPDATE_FUNNEL_STAGE.value,
    description="""Move a customer to a different stage in the sales funnel.

USE CASE: After identifying or creating a customer, move them to reflect their current status in the sales process.

COMMON STAGES (in order): "Lead", "Contactado", "Calificado", "Propuesta", "Negociacion", "Ganado", "Perdido"

PARAMETERS:
- customer_id: UUID of the customer (from identify_customer or create_customer)
- stage_name: Target stage name (case insensitive, e.g., "Contactado")

RETURNS old_stage, new_stage and customer_id.""",
    input_schema={
        "type": "object",
        "properties": {
            "customer_id": {
                "type": "string",
                "format": "uuid",
                "description": "REQUIRED. UUID of the customer to move",
            },
            "stage_name": {
                "type": "string",
                "description": 'REQUIRED. Target stage name (e.g., "Contactado", "Calificado")',
                "minLength": 2,
                "maxLength": 50,
            },
        },
        "required": ["customer_id", "stage_name"],
    },
    params_model=UpdateFunnelStageParams,
    executor=handle_update_funnel_stage,
)
