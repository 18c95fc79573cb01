"""
Translation of LLM provider failures into HTTP responses.

Clients get a short message, a hint on how to fix the cause, and the
category so that the UI can react to it.
"""

import logging

from fastapi import status
from fastapi.responses import JSONResponse

from stripe_assistant.core.config import settings
from stripe_assistant.services.tools.provider_adapter import ProviderError, ProviderErrorCategory

logger = logging.getLogger("stripe_assistant.errors")


def _active_model() -> str:
    if settings.LLM_PROVIDER == "openai":
        return settings.OPENAI_MODEL
    return settings.GEMINI_MODEL


def _key_variable() -> str:
    return "OPENAI_API_KEY" if settings.LLM_PROVIDER == "openai" else "GEMINI_API_KEY"


def provider_error_to_http(exc: ProviderError) -> JSONResponse:
    """Status code and {error, hint, category} body for a provider failure"""
    category = exc.category

    if category == ProviderErrorCategory.AUTH:
        status_code = status.HTTP_401_UNAUTHORIZED
        error = "The AI provider API key is missing or invalid."
        hint = f"Set the {_key_variable()} environment variable."
    elif category == ProviderErrorCategory.QUOTA:
        status_code = status.HTTP_429_TOO_MANY_REQUESTS
        error = "The AI provider rate limit was reached. Wait a moment and try again."
        hint = "Free tiers allow only a few requests per minute."
    elif category == ProviderErrorCategory.NETWORK:
        status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        error = "Could not connect to the AI provider. Check the network connection."
        hint = "Check the provider's status page for outages."
    elif category == ProviderErrorCategory.MODEL_NOT_FOUND:
        status_code = status.HTTP_400_BAD_REQUEST
        error = f"The AI model '{_active_model()}' was not found."
        hint = "Valid Gemini models include gemini-2.5-flash, gemini-2.5-flash-lite and gemini-2.5-pro."
    elif category == ProviderErrorCategory.SAFETY:
        status_code = status.HTTP_400_BAD_REQUEST
        error = "The content was blocked by the safety filter."
        hint = "Try rephrasing the request."
    elif category == ProviderErrorCategory.EMPTY_RESPONSE:
        status_code = status.HTTP_502_BAD_GATEWAY
        error = "The AI provider returned no usable response."
        hint = "Try again."
    else:
        status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
        error = "An error occurred."
        hint = None

    logger.warning(f"Provider error ({exc.provider}, {category.value}): {exc.message}")
    return JSONResponse(
        status_code=status_code,
        content={"error": error, "hint": hint, "category": category.value},
    )
