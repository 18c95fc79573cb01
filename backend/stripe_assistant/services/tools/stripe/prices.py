"""
Price Tools - one-off and recurring prices for products
"""

from typing import Any, Dict, List

from stripe_assistant.core.config import settings
from stripe_assistant.services.tools.registry import tool_registry
from stripe_assistant.services.tools.schema import ToolCategory, ToolDefinition, ToolSchema
from stripe_assistant.services.tools.stripe.common import (
    compact,
    dashboard_url,
    field,
    list_limit,
    optional_bool,
    optional_int,
    optional_str,
    recurring_summary,
    require_int,
    require_str,
)

RECURRING_INTERVALS = ["day", "week", "month", "year"]


# =============================================================================
# Tool Definitions
# =============================================================================

CREATE_PRICE_SCHEMA = ToolSchema(
    name="createPrice",
    description="""Create a price for a product.
Without recurringInterval the price is a one-off payment; with it the price is a subscription price.""",
    parameters={
        "type": "object",
        "properties": {
            "productId": {
                "type": "string",
                "description": "Product ID (starts with prod_)"
            },
            "unitAmount": {
                "type": "integer",
                "description": "Amount in the smallest currency unit (yen for JPY, cents for USD)"
            },
            "currency": {
                "type": "string",
                "description": "Three-letter currency code such as jpy or usd (default: jpy)"
            },
            "recurringInterval": {
                "type": "string",
                "description": "Billing interval for subscription prices (omit for a one-off price)",
                "enum": RECURRING_INTERVALS
            },
            "recurringIntervalCount": {
                "type": "integer",
                "description": "Number of intervals between billings (default: 1)"
            },
            "nickname": {
                "type": "string",
                "description": "Internal nickname for the price (optional)"
            }
        },
        "required": ["productId", "unitAmount"]
    }
)

CREATE_PRICE_DEF = ToolDefinition(
    tool_schema=CREATE_PRICE_SCHEMA,
    category=ToolCategory.PRICE,
    mutating=True,
)


LIST_PRICES_SCHEMA = ToolSchema(
    name="listPrices",
    description="List prices together with the name of their product.",
    parameters={
        "type": "object",
        "properties": {
            "productId": {
                "type": "string",
                "description": "Only return prices of this product (optional)"
            },
            "active": {
                "type": "boolean",
                "description": "Only return active (true) or inactive (false) prices (optional)"
            },
            "limit": {
                "type": "integer",
                "description": "Number of results (1-100, default 10)"
            }
        },
        "required": []
    }
)

LIST_PRICES_DEF = ToolDefinition(
    tool_schema=LIST_PRICES_SCHEMA,
    category=ToolCategory.PRICE,
)


# =============================================================================
# Tool Implementations
# =============================================================================

@tool_registry.register(CREATE_PRICE_DEF)
async def create_price(stripe, args: Dict[str, Any]) -> Dict[str, Any]:
    interval = optional_str(args, "recurringInterval")
    recurring = None
    if interval:
        recurring = {
            "interval": interval,
            "interval_count": optional_int(args, "recurringIntervalCount") or 1,
        }

    params = compact({
        "product": require_str(args, "productId"),
        "unit_amount": require_int(args, "unitAmount"),
        "currency": (optional_str(args, "currency") or settings.DEFAULT_CURRENCY).lower(),
        "recurring": recurring,
        "nickname": optional_str(args, "nickname"),
    })

    price = await stripe.v1.prices.create_async(params=params)

    return {
        "id": price.id,
        "unitAmount": field(price, "unit_amount"),
        "currency": field(price, "currency"),
        "recurring": recurring_summary(price),
        "nickname": field(price, "nickname"),
        "dashboardUrl": dashboard_url("prices", price.id),
    }


@tool_registry.register(LIST_PRICES_DEF)
async def list_prices(stripe, args: Dict[str, Any]) -> List[Dict[str, Any]]:
    params = compact({
        "product": optional_str(args, "productId"),
        "active": optional_bool(args, "active"),
        "limit": list_limit(args),
        "expand": ["data.product"],
    })

    prices = await stripe.v1.prices.list_async(params=params)

    results = []
    for p in prices.data:
        product = field(p, "product")
        # Only an expanded product carries its name
        product_name = None if isinstance(product, str) else field(product, "name")
        results.append({
            "id": p.id,
            "unitAmount": field(p, "unit_amount"),
            "currency": field(p, "currency"),
            "recurring": recurring_summary(p),
            "nickname": field(p, "nickname"),
            "productName": product_name,
            "dashboardUrl": dashboard_url("prices", p.id),
        })
    return results
