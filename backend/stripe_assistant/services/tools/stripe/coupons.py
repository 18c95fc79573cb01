"""
Coupon Tools - percentage and fixed-amount discounts
"""

from typing import Any, Dict, List

from stripe_assistant.core.config import settings
from stripe_assistant.services.tools.executor import ToolValidationError
from stripe_assistant.services.tools.registry import tool_registry
from stripe_assistant.services.tools.schema import ToolCategory, ToolDefinition, ToolSchema
from stripe_assistant.services.tools.stripe.common import (
    compact,
    dashboard_url,
    field,
    list_limit,
    optional_int,
    optional_number,
    optional_str,
    require_str,
)

COUPON_DURATIONS = ["once", "repeating", "forever"]


# =============================================================================
# Tool Definitions
# =============================================================================

CREATE_COUPON_SCHEMA = ToolSchema(
    name="createCoupon",
    description="""Create a discount coupon.
Give either percentOff or amountOff (with currency). duration=repeating needs durationInMonths.""",
    parameters={
        "type": "object",
        "properties": {
            "percentOff": {
                "type": "number",
                "description": "Percentage discount (1-100). Exclusive with amountOff"
            },
            "amountOff": {
                "type": "integer",
                "description": "Fixed discount in the smallest currency unit. Exclusive with percentOff"
            },
            "currency": {
                "type": "string",
                "description": "Currency of amountOff (default: jpy)"
            },
            "duration": {
                "type": "string",
                "description": "How long the discount applies: once, repeating or forever",
                "enum": COUPON_DURATIONS
            },
            "durationInMonths": {
                "type": "integer",
                "description": "Number of months when duration is repeating"
            },
            "name": {
                "type": "string",
                "description": "Coupon name shown to customers (optional)"
            },
            "maxRedemptions": {
                "type": "integer",
                "description": "Maximum number of times the coupon can be redeemed (optional)"
            }
        },
        "required": ["duration"]
    }
)

CREATE_COUPON_DEF = ToolDefinition(
    tool_schema=CREATE_COUPON_SCHEMA,
    category=ToolCategory.COUPON,
    mutating=True,
)


LIST_COUPONS_SCHEMA = ToolSchema(
    name="listCoupons",
    description="List coupons.",
    parameters={
        "type": "object",
        "properties": {
            "limit": {
                "type": "integer",
                "description": "Number of results (1-100, default 10)"
            }
        },
        "required": []
    }
)

LIST_COUPONS_DEF = ToolDefinition(
    tool_schema=LIST_COUPONS_SCHEMA,
    category=ToolCategory.COUPON,
)


DELETE_COUPON_SCHEMA = ToolSchema(
    name="deleteCoupon",
    description="Delete a coupon. Existing discounts that use it are not affected.",
    parameters={
        "type": "object",
        "properties": {
            "couponId": {
                "type": "string",
                "description": "Coupon ID"
            }
        },
        "required": ["couponId"]
    }
)

DELETE_COUPON_DEF = ToolDefinition(
    tool_schema=DELETE_COUPON_SCHEMA,
    category=ToolCategory.COUPON,
    mutating=True,
)


# =============================================================================
# Tool Implementations
# =============================================================================

@tool_registry.register(CREATE_COUPON_DEF)
async def create_coupon(stripe, args: Dict[str, Any]) -> Dict[str, Any]:
    params: Dict[str, Any] = {"duration": require_str(args, "duration")}

    percent_off = optional_number(args, "percentOff")
    amount_off = optional_int(args, "amountOff")
    if percent_off:
        params["percent_off"] = percent_off
    elif amount_off:
        params["amount_off"] = amount_off
        params["currency"] = (optional_str(args, "currency") or settings.DEFAULT_CURRENCY).lower()
    else:
        raise ToolValidationError("Either percentOff or amountOff is required")

    params.update(compact({
        "duration_in_months": optional_int(args, "durationInMonths") or None,
        "name": optional_str(args, "name"),
        "max_redemptions": optional_int(args, "maxRedemptions") or None,
    }))

    coupon = await stripe.v1.coupons.create_async(params=params)

    return {
        "id": coupon.id,
        "name": field(coupon, "name"),
        "percentOff": field(coupon, "percent_off"),
        "amountOff": field(coupon, "amount_off"),
        "currency": field(coupon, "currency"),
        "duration": field(coupon, "duration"),
        "durationInMonths": field(coupon, "duration_in_months"),
        "dashboardUrl": dashboard_url("coupons", coupon.id),
    }


@tool_registry.register(LIST_COUPONS_DEF)
async def list_coupons(stripe, args: Dict[str, Any]) -> List[Dict[str, Any]]:
    coupons = await stripe.v1.coupons.list_async(params={"limit": list_limit(args)})

    return [
        {
            "id": c.id,
            "name": field(c, "name"),
            "percentOff": field(c, "percent_off"),
            "amountOff": field(c, "amount_off"),
            "currency": field(c, "currency"),
            "duration": field(c, "duration"),
            "valid": field(c, "valid"),
            "dashboardUrl": dashboard_url("coupons", c.id),
        }
        for c in coupons.data
    ]


@tool_registry.register(DELETE_COUPON_DEF)
async def delete_coupon(stripe, args: Dict[str, Any]) -> Dict[str, Any]:
    deleted = await stripe.v1.coupons.delete_async(require_str(args, "couponId"))
    return {
        "id": deleted.id,
        "deleted": field(deleted, "deleted", False),
    }
