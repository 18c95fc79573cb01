import logging
from typing import AsyncGenerator, Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from stripe_assistant.core.config import settings
from stripe_assistant.db.session import AsyncSessionLocal
from stripe_assistant.models.user import User
from stripe_assistant.schemas.token import TokenPayload
from stripe_assistant.services.tools.provider_adapter import LLMProvider, create_provider

logger = logging.getLogger("stripe_assistant.deps")

# Allow graceful handling when Authorization header is absent so we can fall back to cookies
oauth2_scheme = OAuth2PasswordBearer(tokenUrl=f"{settings.API_V1_STR}/auth/login", auto_error=False)


async def get_db() -> AsyncGenerator:
    async with AsyncSessionLocal() as session:
        yield session


async def get_current_user(
    db: AsyncSession = Depends(get_db),
    token: Optional[str] = Depends(oauth2_scheme),
    request: Request = None
) -> User:
    """
    Get the current authenticated user from JWT token.

    Args:
        db: Database session
        token: JWT access token
        request: Incoming request (used for cookie fallback)

    Raises:
        HTTPException: If token is invalid or user not found
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    if not token and request is not None:
        token = request.cookies.get("access_token")
        if token and token.lower().startswith("bearer "):
            parts = token.split(" ", 1)
            token = parts[1] if len(parts) > 1 and parts[1].strip() else None

    if not token:
        raise credentials_exception

    try:
        payload = jwt.decode(
            token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM]
        )
        token_data = TokenPayload(**payload)
        if token_data.sub is None:
            raise credentials_exception
        user_id = int(token_data.sub)
    except (JWTError, ValueError):
        raise credentials_exception

    result = await db.execute(select(User).filter(User.id == user_id))
    user = result.scalar_one_or_none()

    if user is None:
        raise credentials_exception

    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Inactive user"
        )

    # Rate limiter keys on the user when one is known
    if request is not None:
        request.state.user = user

    return user


async def require_admin(
    current_user: User = Depends(get_current_user),
) -> User:
    """
    Get the current user if they administer their organization.

    Raises:
        HTTPException: If the user is not an admin
    """
    if not current_user.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin privileges required"
        )
    return current_user


def get_llm_provider(request: Request) -> LLMProvider:
    """
    The process-wide LLM provider.

    Created at startup when credentials are present; otherwise created on
    first use so a key added later is picked up without a restart.

    Raises:
        ProviderError: no API key is configured for the selected provider
    """
    provider = getattr(request.app.state, "llm_provider", None)
    if provider is None:
        provider = create_provider(settings.LLM_PROVIDER, settings)
        request.app.state.llm_provider = provider
    return provider
