"""
Customer Tools - create, list and look up Stripe customers
"""

import logging
from typing import Any, Dict, List

from stripe_assistant.services.tools.registry import tool_registry
from stripe_assistant.services.tools.schema import ToolCategory, ToolDefinition, ToolSchema
from stripe_assistant.services.tools.stripe.common import (
    compact,
    dashboard_url,
    field,
    iso_from_unix,
    list_limit,
    optional_str,
    require_str,
)

logger = logging.getLogger(__name__)


# =============================================================================
# Tool Definitions
# =============================================================================

CREATE_CUSTOMER_SCHEMA = ToolSchema(
    name="createCustomer",
    description="""Create a new Stripe customer.
Pass testClockId to attach the customer to a test clock (only possible at creation time).""",
    parameters={
        "type": "object",
        "properties": {
            "email": {
                "type": "string",
                "description": "Customer email address"
            },
            "name": {
                "type": "string",
                "description": "Customer name"
            },
            "description": {
                "type": "string",
                "description": "Free-form description (optional)"
            },
            "testClockId": {
                "type": "string",
                "description": "Test clock ID (starts with clock_) to attach the customer to"
            }
        },
        "required": ["email"]
    }
)

CREATE_CUSTOMER_DEF = ToolDefinition(
    tool_schema=CREATE_CUSTOMER_SCHEMA,
    category=ToolCategory.CUSTOMER,
    mutating=True,
)


LIST_CUSTOMERS_SCHEMA = ToolSchema(
    name="listCustomers",
    description="List customers, optionally filtered by email address.",
    parameters={
        "type": "object",
        "properties": {
            "email": {
                "type": "string",
                "description": "Only return customers with this email (optional)"
            },
            "limit": {
                "type": "integer",
                "description": "Number of results (1-100, default 10)"
            }
        },
        "required": []
    }
)

LIST_CUSTOMERS_DEF = ToolDefinition(
    tool_schema=LIST_CUSTOMERS_SCHEMA,
    category=ToolCategory.CUSTOMER,
)


GET_CUSTOMER_SCHEMA = ToolSchema(
    name="getCustomer",
    description="Retrieve one customer by ID.",
    parameters={
        "type": "object",
        "properties": {
            "customerId": {
                "type": "string",
                "description": "Stripe customer ID (starts with cus_)"
            }
        },
        "required": ["customerId"]
    }
)

GET_CUSTOMER_DEF = ToolDefinition(
    tool_schema=GET_CUSTOMER_SCHEMA,
    category=ToolCategory.CUSTOMER,
)


# =============================================================================
# Tool Implementations
# =============================================================================

@tool_registry.register(CREATE_CUSTOMER_DEF)
async def create_customer(stripe, args: Dict[str, Any]) -> Dict[str, Any]:
    params = compact({
        "email": require_str(args, "email"),
        "name": optional_str(args, "name"),
        "description": optional_str(args, "description"),
        "test_clock": optional_str(args, "testClockId"),
    })

    customer = await stripe.v1.customers.create_async(params=params)

    return {
        "id": customer.id,
        "email": field(customer, "email"),
        "name": field(customer, "name"),
        "created": iso_from_unix(field(customer, "created")),
        "testClock": field(customer, "test_clock"),
        "dashboardUrl": dashboard_url("customers", customer.id),
    }


@tool_registry.register(LIST_CUSTOMERS_DEF)
async def list_customers(stripe, args: Dict[str, Any]) -> List[Dict[str, Any]]:
    params = compact({
        "email": optional_str(args, "email"),
        "limit": list_limit(args),
    })

    customers = await stripe.v1.customers.list_async(params=params)

    return [
        {
            "id": c.id,
            "email": field(c, "email"),
            "name": field(c, "name"),
            "created": iso_from_unix(field(c, "created")),
            "dashboardUrl": dashboard_url("customers", c.id),
        }
        for c in customers.data
    ]


@tool_registry.register(GET_CUSTOMER_DEF)
async def get_customer(stripe, args: Dict[str, Any]) -> Dict[str, Any]:
    customer = await stripe.v1.customers.retrieve_async(require_str(args, "customerId"))

    if field(customer, "deleted", False):
        return {"error": "Customer has been deleted"}

    return {
        "id": customer.id,
        "email": field(customer, "email"),
        "name": field(customer, "name"),
        "description": field(customer, "description"),
        "created": iso_from_unix(field(customer, "created")),
        "testClock": field(customer, "test_clock"),
        "dashboardUrl": dashboard_url("customers", customer.id),
    }
