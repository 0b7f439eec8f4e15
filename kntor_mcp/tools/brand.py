"""Brand context tool.

Handles:
- get_brand_context: brand identity, industry type and service types
"""

from ..models import GetBrandContextParams, ToolName
from .base import ToolContext, ToolResult, ToolSpec

GET_BRAND_CONTEXT_DESCRIPTION = """Returns the current brand context including:
- Brand ID and name
- Industry type (travel, legal, medical, education, other)
- Available service types that can be used when creating expedientes

Use this tool to understand what services you can create for this brand.
No input parameters required - context comes from your API key."""


async def handle_get_brand_context(
    params: GetBrandContextParams,
    ctx: ToolContext,
) -> ToolResult:
    """Describe the authenticated brand.

    Answered entirely from the validated API key; no backend call.
    """
    auth = ctx.auth
    by_category: dict[str, list[dict]] = {}
    for st in auth.service_types:
        by_category.setdefault(st.category or "other", []).append(
            {"code": st.code, "name": st.name, "subcategory": st.subcategory}
        )

    industry = auth.brand_industry_type.value
    return ToolResult.ok(
        {
            "brand": {
                "id": auth.brand_id,
                "name": auth.brand_name,
                "industry_type": industry,
            },
            "service_types": {
                "total_count": len(auth.service_types),
                "by_category": by_category,
                "all": [
                    {"code": st.code, "name": st.name, "category": st.category}
                    for st in auth.service_types
                ],
            },
            "hint": (
                f'When creating expedientes for this brand, use expediente_tipo="{industry}" '
                "and service_type_code from the available service types."
            ),
        }
    )


GET_BRAND_CONTEXT = ToolSpec(
    name=ToolName.GET_BRAND_CONTEXT.value,
    description=GET_BRAND_CONTEXT_DESCRIPTION,
    input_schema={"type": "object", "properties": {}, "required": []},
    params_model=GetBrandContextParams,
    executor=handle_get_brand_context,
)
