"""
Subscription Tools - create, list and cancel subscriptions
"""

from typing import Any, Dict, List, Optional

from stripe_assistant.services.tools.registry import tool_registry
from stripe_assistant.services.tools.schema import ToolCategory, ToolDefinition, ToolSchema
from stripe_assistant.services.tools.stripe.common import (
    compact,
    dashboard_url,
    field,
    iso_from_unix,
    list_limit,
    optional_bool,
    optional_int,
    optional_str,
    require_str,
)


# =============================================================================
# Tool Definitions
# =============================================================================

CREATE_SUBSCRIPTION_SCHEMA = ToolSchema(
    name="createSubscription",
    description="Subscribe a customer to a recurring price, optionally with a trial or a coupon.",
    parameters={
        "type": "object",
        "properties": {
            "customerId": {
                "type": "string",
                "description": "Customer ID"
            },
            "priceId": {
                "type": "string",
                "description": "Recurring price ID"
            },
            "trialPeriodDays": {
                "type": "integer",
                "description": "Length of the free trial in days (optional)"
            },
            "couponId": {
                "type": "string",
                "description": "Coupon to apply as a discount (optional)"
            }
        },
        "required": ["customerId", "priceId"]
    }
)

CREATE_SUBSCRIPTION_DEF = ToolDefinition(
    tool_schema=CREATE_SUBSCRIPTION_SCHEMA,
    category=ToolCategory.SUBSCRIPTION,
    mutating=True,
)


LIST_SUBSCRIPTIONS_SCHEMA = ToolSchema(
    name="listSubscriptions",
    description="List subscriptions, optionally filtered by customer or status.",
    parameters={
        "type": "object",
        "properties": {
            "customerId": {
                "type": "string",
                "description": "Only return subscriptions of this customer (optional)"
            },
            "status": {
                "type": "string",
                "description": "Filter by status such as active, trialing, past_due, canceled or all (optional)"
            },
            "limit": {
                "type": "integer",
                "description": "Number of results (1-100, default 10)"
            }
        },
        "required": []
    }
)

LIST_SUBSCRIPTIONS_DEF = ToolDefinition(
    tool_schema=LIST_SUBSCRIPTIONS_SCHEMA,
    category=ToolCategory.SUBSCRIPTION,
)


CANCEL_SUBSCRIPTION_SCHEMA = ToolSchema(
    name="cancelSubscription",
    description="""Cancel a subscription.
By default the cancellation is scheduled for the end of the current period;
cancelAtPeriodEnd=false cancels immediately.""",
    parameters={
        "type": "object",
        "properties": {
            "subscriptionId": {
                "type": "string",
                "description": "Subscription ID (starts with sub_)"
            },
            "cancelAtPeriodEnd": {
                "type": "boolean",
                "description": "true: cancel at period end (default), false: cancel immediately"
            }
        },
        "required": ["subscriptionId"]
    }
)

CANCEL_SUBSCRIPTION_DEF = ToolDefinition(
    tool_schema=CANCEL_SUBSCRIPTION_SCHEMA,
    category=ToolCategory.SUBSCRIPTION,
    mutating=True,
)


# =============================================================================
# Tool Implementations
# =============================================================================

def _period_boundary(subscription: Any, name: str) -> Optional[str]:
    """
    current_period_start / current_period_end of a subscription.

    Newer API versions report the billing period on the subscription items
    instead of the subscription itself.
    """
    value = field(subscription, name)
    if value is None:
        items = field(field(subscription, "items"), "data", [])
        if items:
            value = field(items[0], name)
    return iso_from_unix(value)


@tool_registry.register(CREATE_SUBSCRIPTION_DEF)
async def create_subscription(stripe, args: Dict[str, Any]) -> Dict[str, Any]:
    coupon_id = optional_str(args, "couponId")
    params = compact({
        "customer": require_str(args, "customerId"),
        "items": [{"price": require_str(args, "priceId")}],
        "trial_period_days": optional_int(args, "trialPeriodDays") or None,
        "discounts": [{"coupon": coupon_id}] if coupon_id else None,
    })

    subscription = await stripe.v1.subscriptions.create_async(params=params)

    return {
        "id": subscription.id,
        "status": field(subscription, "status"),
        "currentPeriodStart": _period_boundary(subscription, "current_period_start"),
        "currentPeriodEnd": _period_boundary(subscription, "current_period_end"),
        "trialEnd": iso_from_unix(field(subscription, "trial_end")),
        "dashboardUrl": dashboard_url("subscriptions", subscription.id),
    }


@tool_registry.register(LIST_SUBSCRIPTIONS_DEF)
async def list_subscriptions(stripe, args: Dict[str, Any]) -> List[Dict[str, Any]]:
    params = compact({
        "customer": optional_str(args, "customerId"),
        "status": optional_str(args, "status"),
        "limit": list_limit(args),
    })

    subscriptions = await stripe.v1.subscriptions.list_async(params=params)

    return [
        {
            "id": s.id,
            "status": field(s, "status"),
            "currentPeriodStart": _period_boundary(s, "current_period_start"),
            "currentPeriodEnd": _period_boundary(s, "current_period_end"),
            "dashboardUrl": dashboard_url("subscriptions", s.id),
        }
        for s in subscriptions.data
    ]


@tool_registry.register(CANCEL_SUBSCRIPTION_DEF)
async def cancel_subscription(stripe, args: Dict[str, Any]) -> Dict[str, Any]:
    subscription_id = require_str(args, "subscriptionId")
    at_period_end = optional_bool(args, "cancelAtPeriodEnd") is not False

    if not at_period_end:
        canceled = await stripe.v1.subscriptions.cancel_async(subscription_id)
        return {
            "id": canceled.id,
            "status": field(canceled, "status"),
            "canceledAt": iso_from_unix(field(canceled, "canceled_at")),
            "dashboardUrl": dashboard_url("subscriptions", canceled.id),
        }

    subscription = await stripe.v1.subscriptions.update_async(
        subscription_id, params={"cancel_at_period_end": True}
    )
    return {
        "id": subscription.id,
        "status": field(subscription, "status"),
        "cancelAtPeriodEnd": field(subscription, "cancel_at_period_end"),
        "cancelAt": iso_from_unix(field(subscription, "cancel_at")),
        "dashboardUrl": dashboard_url("subscriptions", subscription.id),
    }
