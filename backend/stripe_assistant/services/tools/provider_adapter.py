"""
Provider Adapter - one interface over the supported LLM providers

The conversation loop only sees `Turn`, `ModelResponse` and `ProviderError`.
Each provider translates the transcript, the tool catalog and the
instructions into its own wire format and back:

- Gemini (google-genai): instructions via system_instruction, tools as
  function declarations, tool results as function_response parts.
- OpenAI: instructions as a leading system message, tools in function
  format, one `tool` message per result matched by call id.
"""

import asyncio
import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence

import httpx
import openai
from google import genai
from google.genai import errors as genai_errors
from google.genai import types as genai_types
from openai import AsyncOpenAI

from stripe_assistant.services.tools.executor import RAW_ARGUMENTS_KEY
from stripe_assistant.services.tools.schema import ToolCall, ToolInvocationResult, ToolSchema

logger = logging.getLogger(__name__)


class TurnRole(str, Enum):
    USER = "user"
    MODEL = "model"
    TOOL = "tool"


@dataclass
class Turn:
    """One transcript entry in provider-neutral form."""
    role: TurnRole
    text: str = ""
    tool_calls: List[ToolCall] = field(default_factory=list)
    tool_results: List[ToolInvocationResult] = field(default_factory=list)
    # Provider-native payload of a model turn, echoed back verbatim when present
    raw: Any = None


@dataclass
class ModelResponse:
    text: str = ""
    tool_calls: List[ToolCall] = field(default_factory=list)
    raw: Any = None
    usage: Dict[str, Optional[int]] = field(default_factory=dict)


class ProviderErrorCategory(str, Enum):
    AUTH = "auth"
    QUOTA = "quota"
    NETWORK = "network"
    MODEL_NOT_FOUND = "model_not_found"
    SAFETY = "safety"
    EMPTY_RESPONSE = "empty_response"
    UNKNOWN = "unknown"


class ProviderError(Exception):
    """A model request failed or produced nothing usable."""

    def __init__(self, message: str, category: str = ProviderErrorCategory.UNKNOWN, provider: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.category = ProviderErrorCategory(category)
        self.provider = provider

    def __repr__(self) -> str:
        return f"ProviderError({self.message!r}, category={self.category.value!r}, provider={self.provider!r})"


@dataclass
class ProviderCapabilities:
    """Limits of a provider's native function calling"""
    max_tools_per_request: int


PROVIDER_CAPABILITIES: Dict[str, ProviderCapabilities] = {
    "google": ProviderCapabilities(max_tools_per_request=128),
    "openai": ProviderCapabilities(max_tools_per_request=128),
}


# Checked in order against the lower-cased error message
_MESSAGE_KEYWORDS = (
    (ProviderErrorCategory.AUTH, ("api key", "api_key", "unauthorized", "unauthenticated", "permission denied")),
    (ProviderErrorCategory.MODEL_NOT_FOUND, ("model not found", "is not found", "does not exist", "unknown model")),
    (ProviderErrorCategory.QUOTA, ("quota", "429", "rate limit", "resource_exhausted", "resource exhausted")),
    (ProviderErrorCategory.NETWORK, ("fetch failed", "network", "timed out", "timeout", "connection")),
    (ProviderErrorCategory.SAFETY, ("safety", "blocked", "content_filter", "content filter")),
)

_STATUS_CATEGORIES = {
    401: ProviderErrorCategory.AUTH,
    403: ProviderErrorCategory.AUTH,
    404: ProviderErrorCategory.MODEL_NOT_FOUND,
    429: ProviderErrorCategory.QUOTA,
}


def _category_from_message(message: str) -> ProviderErrorCategory:
    lowered = message.lower()
    for category, keywords in _MESSAGE_KEYWORDS:
        if any(keyword in lowered for keyword in keywords):
            return category
    return ProviderErrorCategory.UNKNOWN


def classify_provider_error(exc: BaseException, provider: Optional[str] = None) -> ProviderError:
    """
    Wrap an SDK exception into a ProviderError.

    SDK exception types and HTTP status codes decide the category; the
    message text is only consulted when they do not.
    """
    if isinstance(exc, ProviderError):
        return exc

    message = str(exc) or exc.__class__.__name__
    category: Optional[ProviderErrorCategory] = None

    if isinstance(exc, (openai.AuthenticationError, openai.PermissionDeniedError)):
        category = ProviderErrorCategory.AUTH
    elif isinstance(exc, openai.RateLimitError):
        category = ProviderErrorCategory.QUOTA
    elif isinstance(exc, openai.NotFoundError):
        category = ProviderErrorCategory.MODEL_NOT_FOUND
    elif isinstance(exc, (openai.APIConnectionError, httpx.TransportError, asyncio.TimeoutError, ConnectionError)):
        category = ProviderErrorCategory.NETWORK
    elif isinstance(exc, genai_errors.APIError):
        category = _STATUS_CATEGORIES.get(getattr(exc, "code", None))

    if category is None:
        status_code = getattr(exc, "status_code", None)
        category = _STATUS_CATEGORIES.get(status_code) or _category_from_message(message)

    return ProviderError(message, category, provider)


class LLMProvider(ABC):
    """A chat model with native function calling."""

    name: str = "unknown"

    @property
    def capabilities(self) -> ProviderCapabilities:
        return PROVIDER_CAPABILITIES[self.name]

    @abstractmethod
    async def generate(
        self,
        transcript: Sequence[Turn],
        tools: Sequence[ToolSchema],
        instructions: str,
    ) -> ModelResponse:
        """
        Request the next model turn.

        Raises:
            ProviderError: the request failed or returned no usable content
        """

    def _check_tool_count(self, tools: Sequence[ToolSchema]) -> None:
        limit = self.capabilities.max_tools_per_request
        if len(tools) > limit:
            raise ProviderError(
                f"{len(tools)} tools exceed the {self.name} limit of {limit}",
                ProviderErrorCategory.UNKNOWN,
                self.name,
            )


class GeminiProvider(LLMProvider):
    """Gemini through the google-genai SDK (async API under client.aio)."""

    name = "google"

    def __init__(
        self,
        client: genai.Client,
        model: str,
        temperature: Optional[float] = None,
        timeout: Optional[float] = None,
    ):
        self.client = client
        self.model = model
        self.temperature = temperature
        self.timeout = timeout

    async def generate(
        self,
        transcript: Sequence[Turn],
        tools: Sequence[ToolSchema],
        instructions: str,
    ) -> ModelResponse:
        self._check_tool_count(tools)

        config_kwargs: Dict[str, Any] = {
            "system_instruction": instructions,
            # The loop executes tool calls itself
            "automatic_function_calling": genai_types.AutomaticFunctionCallingConfig(disable=True),
        }
        if self.temperature is not None:
            config_kwargs["temperature"] = self.temperature
        if tools:
            config_kwargs["tools"] = [
                genai_types.Tool(
                    function_declarations=[
                        genai_types.FunctionDeclaration(**schema.to_gemini_format()) for schema in tools
                    ]
                )
            ]

        try:
            response = await asyncio.wait_for(
                self.client.aio.models.generate_content(
                    model=self.model,
                    contents=self._to_contents(transcript),
                    config=genai_types.GenerateContentConfig(**config_kwargs),
                ),
                timeout=self.timeout,
            )
        except Exception as e:
            error = classify_provider_error(e, self.name)
            logger.warning(f"Gemini request failed ({error.category.value}): {error.message}")
            raise error from e

        return self._parse_response(response)

    def _to_contents(self, transcript: Sequence[Turn]) -> List[genai_types.Content]:
        contents = []
        for turn in transcript:
            if turn.role == TurnRole.USER:
                contents.append(genai_types.Content(role="user", parts=[genai_types.Part.from_text(text=turn.text)]))
            elif turn.role == TurnRole.MODEL:
                if isinstance(turn.raw, genai_types.Content):
                    # Keeps thought signatures attached to function calls
                    contents.append(turn.raw)
                    continue
                parts = []
                if turn.text:
                    parts.append(genai_types.Part.from_text(text=turn.text))
                for call in turn.tool_calls:
                    parts.append(genai_types.Part.from_function_call(name=call.name, args=call.arguments))
                contents.append(genai_types.Content(role="model", parts=parts))
            else:
                contents.append(
                    genai_types.Content(
                        role="user",
                        parts=[
                            genai_types.Part.from_function_response(name=result.name, response=result.outcome)
                            for result in turn.tool_results
                        ],
                    )
                )
        return contents

    def _parse_response(self, response: Any) -> ModelResponse:
        candidates = getattr(response, "candidates", None) or []
        if not candidates:
            feedback = getattr(response, "prompt_feedback", None)
            block_reason = getattr(feedback, "block_reason", None) if feedback else None
            if block_reason:
                raise ProviderError(f"Prompt blocked: {block_reason}", ProviderErrorCategory.SAFETY, self.name)
            raise ProviderError("No valid response from Gemini", ProviderErrorCategory.EMPTY_RESPONSE, self.name)

        candidate = candidates[0]
        content = getattr(candidate, "content", None)
        parts = (getattr(content, "parts", None) or []) if content else []

        finish_reason = str(getattr(candidate, "finish_reason", "") or "")
        if not parts and "SAFETY" in finish_reason.upper():
            raise ProviderError("Response blocked by safety filters", ProviderErrorCategory.SAFETY, self.name)
        if not parts:
            raise ProviderError("No valid response from Gemini", ProviderErrorCategory.EMPTY_RESPONSE, self.name)

        texts = []
        tool_calls = []
        for index, part in enumerate(parts):
            function_call = getattr(part, "function_call", None)
            if function_call:
                tool_calls.append(
                    ToolCall(
                        id=getattr(function_call, "id", None) or f"gemini_call_{index}",
                        name=function_call.name,
                        arguments=dict(function_call.args or {}),
                    )
                )
            elif getattr(part, "text", None) and not getattr(part, "thought", False):
                texts.append(part.text)

        usage_metadata = getattr(response, "usage_metadata", None)
        usage = {
            "prompt_tokens": getattr(usage_metadata, "prompt_token_count", None),
            "completion_tokens": getattr(usage_metadata, "candidates_token_count", None),
        }

        return ModelResponse(text="".join(texts), tool_calls=tool_calls, raw=content, usage=usage)


class OpenAIProvider(LLMProvider):
    """OpenAI chat completions with function tools."""

    name = "openai"

    def __init__(self, client: AsyncOpenAI, model: str, temperature: Optional[float] = None):
        self.client = client
        self.model = model
        self.temperature = temperature

    async def generate(
        self,
        transcript: Sequence[Turn],
        tools: Sequence[ToolSchema],
        instructions: str,
    ) -> ModelResponse:
        self._check_tool_count(tools)

        request_kwargs: Dict[str, Any] = {
            "model": self.model,
            "messages": self._to_messages(transcript, instructions),
        }
        if self.temperature is not None:
            request_kwargs["temperature"] = self.temperature
        if tools:
            request_kwargs["tools"] = [schema.to_openai_format() for schema in tools]
            request_kwargs["tool_choice"] = "auto"

        try:
            response = await self.client.chat.completions.create(**request_kwargs)
        except Exception as e:
            error = classify_provider_error(e, self.name)
            logger.warning(f"OpenAI request failed ({error.category.value}): {error.message}")
            raise error from e

        return self._parse_response(response)

    @staticmethod
    def _to_messages(transcript: Sequence[Turn], instructions: str) -> List[Dict[str, Any]]:
        messages: List[Dict[str, Any]] = [{"role": "system", "content": instructions}]
        for turn in transcript:
            if turn.role == TurnRole.USER:
                messages.append({"role": "user", "content": turn.text})
            elif turn.role == TurnRole.MODEL:
                message: Dict[str, Any] = {"role": "assistant", "content": turn.text or None}
                if turn.tool_calls:
                    message["tool_calls"] = [
                        {
                            "id": call.id,
                            "type": "function",
                            "function": {
                                "name": call.name,
                                "arguments": json.dumps(call.arguments, ensure_ascii=False),
                            },
                        }
                        for call in turn.tool_calls
                    ]
                messages.append(message)
            else:
                for result in turn.tool_results:
                    messages.append({
                        "role": "tool",
                        "tool_call_id": result.call_id,
                        "content": result.to_message_content(),
                    })
        return messages

    @staticmethod
    def _parse_arguments(raw_arguments: Optional[str]) -> Dict[str, Any]:
        if not raw_arguments:
            return {}
        try:
            parsed = json.loads(raw_arguments)
        except json.JSONDecodeError:
            parsed = None
        if not isinstance(parsed, dict):
            logger.warning(f"Model sent malformed tool arguments: {raw_arguments[:200]}")
            return {RAW_ARGUMENTS_KEY: raw_arguments}
        return parsed

    def _parse_response(self, response: Any) -> ModelResponse:
        if not response.choices:
            raise ProviderError("No valid response from OpenAI", ProviderErrorCategory.EMPTY_RESPONSE, self.name)

        choice = response.choices[0]
        if choice.finish_reason == "content_filter":
            raise ProviderError("Response blocked by content filter", ProviderErrorCategory.SAFETY, self.name)

        message = choice.message
        if message.content is None and not message.tool_calls:
            raise ProviderError("No valid response from OpenAI", ProviderErrorCategory.EMPTY_RESPONSE, self.name)

        tool_calls = [
            ToolCall(
                id=tc.id,
                name=tc.function.name,
                arguments=self._parse_arguments(tc.function.arguments),
            )
            for tc in (message.tool_calls or [])
        ]

        usage = response.usage
        return ModelResponse(
            text=message.content or "",
            tool_calls=tool_calls,
            usage={
                "prompt_tokens": getattr(usage, "prompt_tokens", None),
                "completion_tokens": getattr(usage, "completion_tokens", None),
            },
        )


def create_provider(name: Optional[str], settings: Any) -> LLMProvider:
    """
    Build the configured provider with its SDK client.

    Raises:
        ProviderError: the provider's API key is not configured
        ValueError: unknown provider name
    """
    provider_name = (name or settings.LLM_PROVIDER).strip().lower()

    if provider_name == "google":
        if not settings.GOOGLE_API_KEY:
            raise ProviderError("GEMINI_API_KEY is not configured", ProviderErrorCategory.AUTH, provider_name)
        client = genai.Client(api_key=settings.GOOGLE_API_KEY)
        provider: LLMProvider = GeminiProvider(
            client,
            model=settings.GEMINI_MODEL,
            temperature=settings.LLM_TEMPERATURE,
            timeout=settings.LLM_REQUEST_TIMEOUT,
        )
    elif provider_name == "openai":
        if not settings.OPENAI_API_KEY:
            raise ProviderError("OPENAI_API_KEY is not configured", ProviderErrorCategory.AUTH, provider_name)
        client = AsyncOpenAI(api_key=settings.OPENAI_API_KEY, timeout=settings.LLM_REQUEST_TIMEOUT)
        provider = OpenAIProvider(client, model=settings.OPENAI_MODEL, temperature=settings.LLM_TEMPERATURE)
    else:
        raise ValueError(f"Unsupported LLM provider: {provider_name}")

    logger.info(f"LLM provider ready: {provider_name} ({provider.model})")
    return provider
