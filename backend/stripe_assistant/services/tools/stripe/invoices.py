"""
Invoice Preview Tools - simulate what a customer would be billed

Both tools use the invoice preview endpoint, which computes an upcoming
invoice without creating anything in the account.
"""

from typing import Any, Dict, List, Optional

from stripe_assistant.services.tools.registry import tool_registry
from stripe_assistant.services.tools.schema import ToolCategory, ToolDefinition, ToolSchema
from stripe_assistant.services.tools.stripe.common import (
    dashboard_url,
    field,
    optional_str,
    require_str,
)

PREVIEW_NOTE = "Simulation result: no subscription was created."


# =============================================================================
# Tool Definitions
# =============================================================================

PREVIEW_INVOICE_SCHEMA = ToolSchema(
    name="previewInvoice",
    description="""[Simulation] Preview the next invoice of a customer.
Shows the amounts after discounts; nothing is created.""",
    parameters={
        "type": "object",
        "properties": {
            "customerId": {
                "type": "string",
                "description": "Customer ID"
            },
            "subscriptionId": {
                "type": "string",
                "description": "Existing subscription to preview (optional)"
            },
            "priceId": {
                "type": "string",
                "description": "Price of a new subscription to preview (optional)"
            },
            "couponId": {
                "type": "string",
                "description": "Coupon to simulate (optional)"
            }
        },
        "required": ["customerId"]
    }
)

PREVIEW_INVOICE_DEF = ToolDefinition(
    tool_schema=PREVIEW_INVOICE_SCHEMA,
    category=ToolCategory.INVOICE,
)


PREVIEW_SUBSCRIPTION_SCHEMA = ToolSchema(
    name="previewSubscription",
    description="""[Simulation] Preview the cost of subscribing a customer to a price.
No subscription is created.""",
    parameters={
        "type": "object",
        "properties": {
            "customerId": {
                "type": "string",
                "description": "Customer ID"
            },
            "priceId": {
                "type": "string",
                "description": "Price ID"
            },
            "couponId": {
                "type": "string",
                "description": "Coupon to simulate (optional)"
            }
        },
        "required": ["customerId", "priceId"]
    }
)

PREVIEW_SUBSCRIPTION_DEF = ToolDefinition(
    tool_schema=PREVIEW_SUBSCRIPTION_SCHEMA,
    category=ToolCategory.INVOICE,
)


# =============================================================================
# Tool Implementations
# =============================================================================

def _first_discount(invoice: Any) -> Optional[Dict[str, Any]]:
    discounts = field(invoice, "discounts", [])
    if not discounts:
        return None

    discount = discounts[0]
    # Unexpanded discounts are bare IDs
    if isinstance(discount, str):
        return {"discountId": discount}

    coupon = field(discount, "coupon")
    if coupon is None:
        coupon = field(field(discount, "source"), "coupon")
    if isinstance(coupon, str):
        return {"couponId": coupon, "couponName": None, "percentOff": None, "amountOff": None}

    return {
        "couponId": field(coupon, "id"),
        "couponName": field(coupon, "name"),
        "percentOff": field(coupon, "percent_off"),
        "amountOff": field(coupon, "amount_off"),
    }


def _lines(invoice: Any, with_quantity: bool) -> List[Dict[str, Any]]:
    lines = []
    for line in field(field(invoice, "lines"), "data", []):
        entry = {
            "description": field(line, "description"),
            "amount": field(line, "amount"),
        }
        if with_quantity:
            entry["quantity"] = field(line, "quantity")
        lines.append(entry)
    return lines


@tool_registry.register(PREVIEW_INVOICE_DEF)
async def preview_invoice(stripe, args: Dict[str, Any]) -> Dict[str, Any]:
    customer_id = require_str(args, "customerId")
    subscription_id = optional_str(args, "subscriptionId")
    price_id = optional_str(args, "priceId")
    coupon_id = optional_str(args, "couponId")

    params: Dict[str, Any] = {"customer": customer_id}
    if subscription_id:
        params["subscription"] = subscription_id
    if price_id:
        params["subscription_details"] = {"items": [{"price": price_id}]}
    if coupon_id:
        params["discounts"] = [{"coupon": coupon_id}]

    invoice = await stripe.v1.invoices.create_preview_async(params=params)

    return {
        "subtotal": field(invoice, "subtotal"),
        "total": field(invoice, "total"),
        "amountDue": field(invoice, "amount_due"),
        "currency": field(invoice, "currency"),
        "discount": _first_discount(invoice),
        "lines": _lines(invoice, with_quantity=True),
        "customerDashboardUrl": dashboard_url("customers", customer_id),
    }


@tool_registry.register(PREVIEW_SUBSCRIPTION_DEF)
async def preview_subscription(stripe, args: Dict[str, Any]) -> Dict[str, Any]:
    customer_id = require_str(args, "customerId")
    coupon_id = optional_str(args, "couponId")

    params: Dict[str, Any] = {
        "customer": customer_id,
        "subscription_details": {"items": [{"price": require_str(args, "priceId")}]},
    }
    if coupon_id:
        params["discounts"] = [{"coupon": coupon_id}]

    invoice = await stripe.v1.invoices.create_preview_async(params=params)

    return {
        "message": PREVIEW_NOTE,
        "subtotal": field(invoice, "subtotal"),
        "total": field(invoice, "total"),
        "currency": field(invoice, "currency"),
        "discount": _first_discount(invoice),
        "lines": _lines(invoice, with_quantity=False),
        "customerDashboardUrl": dashboard_url("customers", customer_id),
    }
