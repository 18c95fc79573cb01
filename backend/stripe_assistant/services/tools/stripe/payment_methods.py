"""
Payment Method Tools - test cards and their attachment to customers
"""

from typing import Any, Dict, List

from stripe_assistant.services.tools.registry import tool_registry
from stripe_assistant.services.tools.schema import ToolCategory, ToolDefinition, ToolSchema
from stripe_assistant.services.tools.stripe.common import (
    card_summary,
    dashboard_url,
    field,
    iso_from_unix,
    list_limit,
    optional_str,
    require_int,
    require_str,
)


# =============================================================================
# Tool Definitions
# =============================================================================

CREATE_PAYMENT_METHOD_SCHEMA = ToolSchema(
    name="createPaymentMethod",
    description="""Create a card payment method from a Stripe test card number.
Only test cards work (test mode). Attach it to a customer with attachPaymentMethod.""",
    parameters={
        "type": "object",
        "properties": {
            "cardNumber": {
                "type": "string",
                "description": "Test card number, e.g. 4242424242424242"
            },
            "expMonth": {
                "type": "integer",
                "description": "Expiry month (1-12)"
            },
            "expYear": {
                "type": "integer",
                "description": "Expiry year, e.g. 2030"
            },
            "cvc": {
                "type": "string",
                "description": "CVC, e.g. 123"
            }
        },
        "required": ["cardNumber", "expMonth", "expYear", "cvc"]
    }
)

CREATE_PAYMENT_METHOD_DEF = ToolDefinition(
    tool_schema=CREATE_PAYMENT_METHOD_SCHEMA,
    category=ToolCategory.PAYMENT_METHOD,
    mutating=True,
)


ATTACH_PAYMENT_METHOD_SCHEMA = ToolSchema(
    name="attachPaymentMethod",
    description="Attach a payment method to a customer.",
    parameters={
        "type": "object",
        "properties": {
            "paymentMethodId": {
                "type": "string",
                "description": "Payment method ID (starts with pm_)"
            },
            "customerId": {
                "type": "string",
                "description": "Customer ID (starts with cus_)"
            }
        },
        "required": ["paymentMethodId", "customerId"]
    }
)

ATTACH_PAYMENT_METHOD_DEF = ToolDefinition(
    tool_schema=ATTACH_PAYMENT_METHOD_SCHEMA,
    category=ToolCategory.PAYMENT_METHOD,
    mutating=True,
)


LIST_PAYMENT_METHODS_SCHEMA = ToolSchema(
    name="listPaymentMethods",
    description="List the payment methods of a customer.",
    parameters={
        "type": "object",
        "properties": {
            "customerId": {
                "type": "string",
                "description": "Customer ID"
            },
            "type": {
                "type": "string",
                "description": "Payment method type such as card (default) or customer_balance"
            },
            "limit": {
                "type": "integer",
                "description": "Number of results (1-100, default 10)"
            }
        },
        "required": ["customerId"]
    }
)

LIST_PAYMENT_METHODS_DEF = ToolDefinition(
    tool_schema=LIST_PAYMENT_METHODS_SCHEMA,
    category=ToolCategory.PAYMENT_METHOD,
)


DETACH_PAYMENT_METHOD_SCHEMA = ToolSchema(
    name="detachPaymentMethod",
    description="Detach a payment method from its customer.",
    parameters={
        "type": "object",
        "properties": {
            "paymentMethodId": {
                "type": "string",
                "description": "Payment method ID"
            }
        },
        "required": ["paymentMethodId"]
    }
)

DETACH_PAYMENT_METHOD_DEF = ToolDefinition(
    tool_schema=DETACH_PAYMENT_METHOD_SCHEMA,
    category=ToolCategory.PAYMENT_METHOD,
    mutating=True,
)


SET_DEFAULT_PAYMENT_METHOD_SCHEMA = ToolSchema(
    name="setDefaultPaymentMethod",
    description="Make a payment method the customer's default for invoices and subscriptions.",
    parameters={
        "type": "object",
        "properties": {
            "customerId": {
                "type": "string",
                "description": "Customer ID"
            },
            "paymentMethodId": {
                "type": "string",
                "description": "Payment method ID to use as default (must be attached to the customer)"
            }
        },
        "required": ["customerId", "paymentMethodId"]
    }
)

SET_DEFAULT_PAYMENT_METHOD_DEF = ToolDefinition(
    tool_schema=SET_DEFAULT_PAYMENT_METHOD_SCHEMA,
    category=ToolCategory.PAYMENT_METHOD,
    mutating=True,
)


# =============================================================================
# Tool Implementations
# =============================================================================

@tool_registry.register(CREATE_PAYMENT_METHOD_DEF)
async def create_payment_method(stripe, args: Dict[str, Any]) -> Dict[str, Any]:
    params = {
        "type": "card",
        "card": {
            "number": require_str(args, "cardNumber").replace(" ", ""),
            "exp_month": require_int(args, "expMonth"),
            "exp_year": require_int(args, "expYear"),
            "cvc": require_str(args, "cvc"),
        },
    }

    payment_method = await stripe.v1.payment_methods.create_async(params=params)

    return {
        "id": payment_method.id,
        "type": field(payment_method, "type"),
        "card": card_summary(payment_method),
        "created": iso_from_unix(field(payment_method, "created")),
        "hint": "Use attachPaymentMethod to attach this payment method to a customer.",
    }


@tool_registry.register(ATTACH_PAYMENT_METHOD_DEF)
async def attach_payment_method(stripe, args: Dict[str, Any]) -> Dict[str, Any]:
    customer_id = require_str(args, "customerId")
    payment_method = await stripe.v1.payment_methods.attach_async(
        require_str(args, "paymentMethodId"), params={"customer": customer_id}
    )

    return {
        "id": payment_method.id,
        "type": field(payment_method, "type"),
        "customerId": field(payment_method, "customer"),
        "card": card_summary(payment_method),
        "message": "Payment method attached to the customer.",
        "dashboardUrl": dashboard_url("customers", customer_id),
    }


@tool_registry.register(LIST_PAYMENT_METHODS_DEF)
async def list_payment_methods(stripe, args: Dict[str, Any]) -> List[Dict[str, Any]]:
    params = {
        "type": optional_str(args, "type") or "card",
        "limit": list_limit(args),
    }
    payment_methods = await stripe.v1.customers.payment_methods.list_async(
        require_str(args, "customerId"), params=params
    )

    return [
        {
            "id": pm.id,
            "type": field(pm, "type"),
            "card": card_summary(pm),
            "created": iso_from_unix(field(pm, "created")),
        }
        for pm in payment_methods.data
    ]


@tool_registry.register(DETACH_PAYMENT_METHOD_DEF)
async def detach_payment_method(stripe, args: Dict[str, Any]) -> Dict[str, Any]:
    payment_method = await stripe.v1.payment_methods.detach_async(require_str(args, "paymentMethodId"))
    return {
        "id": payment_method.id,
        "type": field(payment_method, "type"),
        "message": "Payment method detached from the customer.",
    }


@tool_registry.register(SET_DEFAULT_PAYMENT_METHOD_DEF)
async def set_default_payment_method(stripe, args: Dict[str, Any]) -> Dict[str, Any]:
    customer = await stripe.v1.customers.update_async(
        require_str(args, "customerId"),
        params={"invoice_settings": {"default_payment_method": require_str(args, "paymentMethodId")}},
    )

    default_pm = field(field(customer, "invoice_settings"), "default_payment_method")
    if default_pm is not None and not isinstance(default_pm, str):
        default_pm = field(default_pm, "id")

    return {
        "customerId": customer.id,
        "defaultPaymentMethod": default_pm,
        "message": "Default payment method updated.",
        "dashboardUrl": dashboard_url("customers", customer.id),
    }
