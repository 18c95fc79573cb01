"""
Rate limiting for the chat API.
Uses SlowAPI; Redis backs the counters when REDIS_URL is configured.
"""

import logging

from fastapi import Request
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address
from starlette.responses import JSONResponse

from stripe_assistant.core.config import settings

logger = logging.getLogger("stripe_assistant.rate_limiter")


def get_real_client_ip(request: Request) -> str:
    """Client IP, honouring X-Forwarded-For and X-Real-IP from a reverse proxy."""
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()

    real_ip = request.headers.get("X-Real-IP")
    if real_ip:
        return real_ip.strip()

    return get_remote_address(request)


def get_user_identifier(request: Request) -> str:
    """Rate limit key: authenticated user ID if known, otherwise client IP."""
    user = getattr(request.state, "user", None)
    if user is not None and getattr(user, "id", None) is not None:
        return f"user:{user.id}"
    return f"ip:{get_real_client_ip(request)}"


storage_uri = settings.REDIS_URL or None

if storage_uri:
    logged_url = storage_uri.split("@")[-1]
    logger.info(f"Rate limiter using Redis backend: {logged_url}")
elif settings.ENVIRONMENT.lower() == "production":
    logger.warning(
        "Rate limiting is using in-memory storage; limits will not be shared across instances. "
        "Configure REDIS_URL for distributed rate limiting."
    )


limiter = Limiter(
    key_func=get_user_identifier,
    enabled=settings.RATE_LIMIT_ENABLED,
    default_limits=["1000/hour", "100/minute"],
    storage_uri=storage_uri,
    strategy="fixed-window",
    headers_enabled=True,
)


def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """JSON 429 response with retry information."""
    logger.warning(
        f"Rate limit exceeded for {get_user_identifier(request)} "
        f"on {request.method} {request.url.path}"
    )

    retry_after = getattr(exc, "retry_after", 60)

    return JSONResponse(
        status_code=429,
        content={
            "error": "Rate limit exceeded",
            "detail": f"Too many requests. Please retry after {retry_after} seconds.",
            "retry_after": retry_after,
        },
        headers={"Retry-After": str(retry_after)},
    )


class RateLimits:
    """Pre-configured rate limits for different endpoint types."""

    AUTH_LOGIN = "5/minute"

    API_READ = "100/minute"
    API_WRITE = "30/minute"

    # Each chat turn may fan out into several LLM and Stripe calls
    AI_CHAT = "30/minute"

    ADMIN_WRITE = "20/minute"
