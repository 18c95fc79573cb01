import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from stripe_assistant.api.deps import get_db, require_admin
from stripe_assistant.core.rate_limiter import RateLimits, limiter
from stripe_assistant.models.organization import Organization
from stripe_assistant.models.user import User
from stripe_assistant.schemas.settings import StripeKeyStatus, StripeKeyUpdate
from stripe_assistant.services.stripe_client import (
    StripeKeyError,
    check_key_format,
    key_preview,
    verify_secret_key,
)

logger = logging.getLogger("stripe_assistant.api.settings")

router = APIRouter()


async def _get_organization(db: AsyncSession, organization_id: str) -> Organization:
    result = await db.execute(select(Organization).where(Organization.id == organization_id))
    organization = result.scalar_one_or_none()
    if organization is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Organization not found")
    return organization


@router.get("/stripe-key", response_model=StripeKeyStatus, response_model_by_alias=True)
async def get_stripe_key_status(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_admin),
) -> Any:
    """Whether the organization has a Stripe key. The key itself is never returned."""
    organization = await _get_organization(db, current_user.organization_id)
    return StripeKeyStatus(
        has_key=bool(organization.stripe_secret_key),
        key_preview=key_preview(organization.stripe_secret_key),
    )


@router.post("/stripe-key")
@limiter.limit(RateLimits.ADMIN_WRITE)
async def save_stripe_key(
    request: Request,
    response: Response,
    key_in: StripeKeyUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_admin),
) -> Any:
    """
    Save the organization's Stripe secret key.

    Only test-mode keys are accepted, and only after Stripe confirms them.
    """
    try:
        secret_key = check_key_format(key_in.secret_key)
        await verify_secret_key(secret_key)
    except StripeKeyError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    organization = await _get_organization(db, current_user.organization_id)
    organization.stripe_secret_key = secret_key
    await db.commit()

    logger.info(f"Stripe key updated for organization {organization.id} by user {current_user.id}")
    return {"success": True, "message": "Stripe key saved"}


@router.delete("/stripe-key")
@limiter.limit(RateLimits.ADMIN_WRITE)
async def delete_stripe_key(
    request: Request,
    response: Response,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_admin),
) -> Any:
    organization = await _get_organization(db, current_user.organization_id)
    organization.stripe_secret_key = None
    await db.commit()

    logger.info(f"Stripe key removed for organization {organization.id} by user {current_user.id}")
    return {"success": True, "message": "Stripe key deleted"}
