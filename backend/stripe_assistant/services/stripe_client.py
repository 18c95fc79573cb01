"""
Stripe client construction and secret key checks.

The assistant works against test-mode accounts only. Each chat request
builds its own StripeClient from the organization's stored key.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

import stripe

from stripe_assistant.core.config import settings

logger = logging.getLogger(__name__)

TEST_KEY_PREFIX = "sk_test_"
LIVE_KEY_PREFIX = "sk_live_"
KEY_PREVIEW = "sk_****...****"


class StripeKeyError(ValueError):
    """The submitted secret key cannot be used."""
    pass


def build_stripe_client(secret_key: str, http_client: Optional[stripe.HTTPClient] = None) -> stripe.StripeClient:
    """Create a client for one organization's Stripe account."""
    kwargs = {"http_client": http_client or stripe.HTTPXClient()}
    if settings.STRIPE_API_VERSION:
        kwargs["stripe_version"] = settings.STRIPE_API_VERSION
    return stripe.StripeClient(secret_key, **kwargs)


@asynccontextmanager
async def stripe_client_session(secret_key: str) -> AsyncIterator[stripe.StripeClient]:
    """
    Client scoped to one request; the HTTP connection pool is closed on exit.

    Usage:
        async with stripe_client_session(key) as client:
            await client.v1.customers.list_async(params={"limit": 1})
    """
    http_client = stripe.HTTPXClient()
    try:
        yield build_stripe_client(secret_key, http_client=http_client)
    finally:
        await http_client.close_async()


def check_key_format(secret_key: str) -> str:
    """
    Accept test-mode secret keys only.

    Raises:
        StripeKeyError: live key, or not a Stripe secret key at all
    """
    key = (secret_key or "").strip()
    if key.startswith(LIVE_KEY_PREFIX):
        raise StripeKeyError(
            f"Live keys ({LIVE_KEY_PREFIX}) cannot be used. Use a test key ({TEST_KEY_PREFIX})."
        )
    if not key.startswith(TEST_KEY_PREFIX):
        raise StripeKeyError(
            f"Invalid key format. Enter a Stripe test secret key starting with {TEST_KEY_PREFIX}."
        )
    return key


async def verify_secret_key(secret_key: str) -> None:
    """
    Make one cheap authenticated call to confirm the key works.

    Raises:
        StripeKeyError: Stripe rejected the key or could not be reached
    """
    async with stripe_client_session(secret_key) as client:
        try:
            await client.v1.customers.list_async(params={"limit": 1})
        except stripe.StripeError as exc:
            logger.info(f"Stripe key verification failed: {exc.__class__.__name__}")
            raise StripeKeyError("The Stripe key is invalid. Enter a valid secret key.") from exc


def key_preview(stored_key: Optional[str]) -> Optional[str]:
    """Masked form shown in the settings screen; never reveals any part of the key."""
    return KEY_PREVIEW if stored_key else None
