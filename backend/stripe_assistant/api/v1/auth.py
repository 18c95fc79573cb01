from datetime import timedelta
from typing import Any, Tuple

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from pydantic import ValidationError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from stripe_assistant.api.deps import get_current_user, get_db
from stripe_assistant.core.config import settings
from stripe_assistant.core.rate_limiter import RateLimits, limiter
from stripe_assistant.core.security import create_access_token, verify_password
from stripe_assistant.models.user import User
from stripe_assistant.schemas.token import LoginRequest, Token
from stripe_assistant.schemas.user import UserResponse

router = APIRouter()


async def _read_credentials(request: Request) -> LoginRequest:
    """Credentials from a JSON body or an OAuth2 password form."""
    content_type = request.headers.get("content-type", "")
    try:
        if content_type.startswith("application/json"):
            return LoginRequest(**(await request.json()))
        form = await request.form()
        return LoginRequest(username=form.get("username"), password=form.get("password"))
    except (ValidationError, ValueError, TypeError):
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="username and password are required",
        )


async def _authenticate_user(username: str, password: str, db: AsyncSession) -> Tuple[User, str]:
    """
    Authenticate a user by username or email.

    Returns:
        Tuple of (authenticated User, access_token string)

    Raises:
        HTTPException: If authentication fails
    """
    result = await db.execute(
        select(User).filter(
            (User.username == username) | (User.email == username)
        )
    )
    user = result.scalar_one_or_none()

    if not user or not verify_password(password, user.hashed_password):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect username or password",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Inactive user"
        )

    access_token = create_access_token(
        subject=user.id, expires_delta=timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    )
    return user, access_token


@router.post("/login", response_model=Token)
@limiter.limit(RateLimits.AUTH_LOGIN)
async def login(
    request: Request,
    response: Response,
    db: AsyncSession = Depends(get_db)
) -> Any:
    """
    Token login. Accepts a JSON body or OAuth2 form data, so the
    interactive API docs can authenticate as well.
    """
    credentials = await _read_credentials(request)
    _, access_token = await _authenticate_user(credentials.username, credentials.password, db)

    # Also set an HTTP-only cookie so the frontend remains authenticated even if headers are dropped
    response.set_cookie(
        key="access_token",
        value=access_token,
        httponly=True,
        secure=settings.COOKIE_SECURE,
        samesite="lax",
        max_age=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        path="/"
    )

    return Token(
        access_token=access_token,
        token_type="bearer",
        expires_in=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60
    )


@router.get("/me", response_model=UserResponse)
async def read_current_user(
    current_user: User = Depends(get_current_user),
) -> Any:
    return current_user
