"""
Stripe tool catalog.

Importing this package registers every Stripe tool on the process-wide
`tool_registry`. CATALOG_TOOL_NAMES is the list the registry is checked
against at startup; the names are persisted in chat history and audit logs
and must not change.
"""

# Import order is the order the tools are offered to the model
from stripe_assistant.services.tools.stripe import customers  # noqa: F401
from stripe_assistant.services.tools.stripe import products  # noqa: F401
from stripe_assistant.services.tools.stripe import prices  # noqa: F401
from stripe_assistant.services.tools.stripe import subscriptions  # noqa: F401
from stripe_assistant.services.tools.stripe import coupons  # noqa: F401
from stripe_assistant.services.tools.stripe import invoices  # noqa: F401
from stripe_assistant.services.tools.stripe import test_clocks  # noqa: F401
from stripe_assistant.services.tools.stripe import payment_methods  # noqa: F401

CATALOG_TOOL_NAMES = (
    "createCustomer",
    "listCustomers",
    "getCustomer",
    "createProduct",
    "listProducts",
    "createPrice",
    "listPrices",
    "createSubscription",
    "listSubscriptions",
    "cancelSubscription",
    "createCoupon",
    "listCoupons",
    "deleteCoupon",
    "previewInvoice",
    "previewSubscription",
    "createTestClock",
    "getTestClock",
    "listTestClocks",
    "advanceTestClock",
    "deleteTestClock",
    "createPaymentMethod",
    "attachPaymentMethod",
    "listPaymentMethods",
    "detachPaymentMethod",
    "setDefaultPaymentMethod",
)

__all__ = ["CATALOG_TOOL_NAMES"]
