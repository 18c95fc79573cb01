"""
Product Tools - create and list Stripe products
"""

from typing import Any, Dict, List

from stripe_assistant.services.tools.registry import tool_registry
from stripe_assistant.services.tools.schema import ToolCategory, ToolDefinition, ToolSchema
from stripe_assistant.services.tools.stripe.common import (
    compact,
    dashboard_url,
    field,
    list_limit,
    optional_bool,
    optional_str,
    require_str,
)


# =============================================================================
# Tool Definitions
# =============================================================================

CREATE_PRODUCT_SCHEMA = ToolSchema(
    name="createProduct",
    description="Create a new product. Prices are created separately with createPrice.",
    parameters={
        "type": "object",
        "properties": {
            "name": {
                "type": "string",
                "description": "Product name"
            },
            "description": {
                "type": "string",
                "description": "Product description (optional)"
            },
            "active": {
                "type": "boolean",
                "description": "Whether the product is available for purchase (default: true)"
            }
        },
        "required": ["name"]
    }
)

CREATE_PRODUCT_DEF = ToolDefinition(
    tool_schema=CREATE_PRODUCT_SCHEMA,
    category=ToolCategory.PRODUCT,
    mutating=True,
)


LIST_PRODUCTS_SCHEMA = ToolSchema(
    name="listProducts",
    description="List products.",
    parameters={
        "type": "object",
        "properties": {
            "active": {
                "type": "boolean",
                "description": "Only return active (true) or inactive (false) products (optional)"
            },
            "limit": {
                "type": "integer",
                "description": "Number of results (1-100, default 10)"
            }
        },
        "required": []
    }
)

LIST_PRODUCTS_DEF = ToolDefinition(
    tool_schema=LIST_PRODUCTS_SCHEMA,
    category=ToolCategory.PRODUCT,
)


# =============================================================================
# Tool Implementations
# =============================================================================

def _product_summary(product: Any) -> Dict[str, Any]:
    return {
        "id": product.id,
        "name": field(product, "name"),
        "description": field(product, "description"),
        "active": field(product, "active"),
        "dashboardUrl": dashboard_url("products", product.id),
    }


@tool_registry.register(CREATE_PRODUCT_DEF)
async def create_product(stripe, args: Dict[str, Any]) -> Dict[str, Any]:
    active = optional_bool(args, "active")
    params = compact({
        "name": require_str(args, "name"),
        "description": optional_str(args, "description"),
        "active": active is not False,
    })

    product = await stripe.v1.products.create_async(params=params)
    return _product_summary(product)


@tool_registry.register(LIST_PRODUCTS_DEF)
async def list_products(stripe, args: Dict[str, Any]) -> List[Dict[str, Any]]:
    params = compact({
        "active": optional_bool(args, "active"),
        "limit": list_limit(args),
    })

    products = await stripe.v1.products.list_async(params=params)
    return [_product_summary(p) for p in products.data]
