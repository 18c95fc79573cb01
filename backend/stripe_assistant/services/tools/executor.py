"""
Tool Executor - Dispatch of model-requested operations to their handlers

Every invocation produces a JSON-safe outcome mapping:
- unknown tool or invalid arguments: {"error": ...}
- handler failure (Stripe API errors included): {"error": ...}
- mapping result: the mapping itself
- any other result: {"value": result}

No exception escapes `invoke`, so one failing call never aborts the batch
it belongs to.
"""

import asyncio
import logging
import time
from collections.abc import Mapping
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional, Sequence, Union

import stripe

from stripe_assistant.services.tools.registry import ToolRegistry
from stripe_assistant.services.tools.schema import ToolCall, ToolInvocationResult

logger = logging.getLogger(__name__)

# Marker set by provider adapters when the model sent unparseable arguments
RAW_ARGUMENTS_KEY = "_raw_arguments"


class ToolValidationError(Exception):
    """Raised when tool parameters are invalid"""
    pass


def ensure_json_safe(value: Any) -> Any:
    """
    Convert a handler result into plain JSON types.

    Datetimes become ISO-8601 strings; objects with no JSON form become
    their string representation.
    """
    if value is None or isinstance(value, (str, bool, int, float)):
        return value
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, Mapping):
        return {str(k): ensure_json_safe(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [ensure_json_safe(v) for v in value]
    return str(value)


def _error_message(exc: Exception) -> str:
    if isinstance(exc, stripe.StripeError):
        # user_message is Stripe's end-user wording; fall back to the raw message
        return getattr(exc, "user_message", None) or str(exc) or exc.__class__.__name__
    return str(exc) or exc.__class__.__name__


class ToolExecutor:
    """
    Runs registered tool handlers against one Stripe client.

    Handlers hold no state between invocations and are never retried.
    """

    DEFAULT_TIMEOUT_MS = 30000

    def __init__(self, registry: ToolRegistry, stripe_client: Any):
        """
        Args:
            registry: Catalog to dispatch against
            stripe_client: Client passed as the first argument to each handler
        """
        self.registry = registry
        self.stripe_client = stripe_client

    async def invoke(
        self,
        name: str,
        arguments: Optional[Dict[str, Any]] = None,
        timeout_ms: Optional[int] = None,
    ) -> Dict[str, Any]:
        """
        Execute one tool and return its outcome mapping.
        """
        arguments = dict(arguments or {})
        start_time = time.perf_counter()

        registered_tool = self.registry.get_tool(name)
        if registered_tool is None:
            logger.warning(f"Model requested unknown tool: {name}")
            return {"error": f"Unknown function: {name}"}

        definition = registered_tool.definition

        try:
            self._validate_arguments(name, arguments, definition.tool_schema.parameters)
        except ToolValidationError as e:
            logger.info(f"Rejected arguments for {name}: {e}")
            return {"error": str(e)}

        timeout = timeout_ms or definition.max_execution_time_ms or self.DEFAULT_TIMEOUT_MS

        try:
            result = await asyncio.wait_for(
                registered_tool.handler(self.stripe_client, arguments),
                timeout=timeout / 1000,
            )
        except asyncio.TimeoutError:
            elapsed_ms = int((time.perf_counter() - start_time) * 1000)
            logger.error(f"Tool {name} timed out after {elapsed_ms}ms")
            return {"error": f"Tool execution timed out after {timeout}ms"}
        except stripe.StripeError as e:
            elapsed_ms = int((time.perf_counter() - start_time) * 1000)
            logger.warning(f"Tool {name} failed with Stripe error after {elapsed_ms}ms: {e}")
            return {"error": _error_message(e)}
        except Exception as e:
            elapsed_ms = int((time.perf_counter() - start_time) * 1000)
            logger.exception(f"Tool {name} failed after {elapsed_ms}ms: {e}")
            return {"error": _error_message(e)}

        elapsed_ms = int((time.perf_counter() - start_time) * 1000)
        outcome = ensure_json_safe(result)
        if not isinstance(outcome, dict):
            outcome = {"value": outcome}

        logger.info(
            f"Tool {name} executed in {elapsed_ms}ms "
            f"(success={'error' not in outcome}, mutating={definition.mutating})"
        )
        return outcome

    async def execute_call(self, call: ToolCall) -> ToolInvocationResult:
        start_time = time.perf_counter()
        outcome = await self.invoke(call.name, call.arguments)
        return ToolInvocationResult(
            name=call.name,
            arguments=call.arguments,
            outcome=outcome,
            call_id=call.id,
            execution_time_ms=int((time.perf_counter() - start_time) * 1000),
        )

    async def execute_batch(self, calls: Sequence[ToolCall]) -> List[ToolInvocationResult]:
        """
        Run a batch one call at a time; results keep the request order.
        """
        results = []
        for call in calls:
            results.append(await self.execute_call(call))
        return results

    def _validate_arguments(
        self,
        tool_name: str,
        arguments: Dict[str, Any],
        schema: Dict[str, Any]
    ) -> None:
        """
        Validate tool arguments against the schema.

        Raises ToolValidationError if validation fails.
        """
        if RAW_ARGUMENTS_KEY in arguments:
            raise ToolValidationError("Arguments were not valid JSON")

        properties = schema.get("properties", {})
        required = schema.get("required", [])

        for param in required:
            if arguments.get(param) is None:
                raise ToolValidationError(f"Missing required parameter: {param}")

        for param_name, param_value in arguments.items():
            if param_name not in properties:
                logger.warning(f"Unknown parameter {param_name} for tool {tool_name}")
                continue
            if param_value is None:
                continue

            param_spec = properties[param_name]
            expected_type = param_spec.get("type")
            enum_values = param_spec.get("enum")

            if expected_type and not self._check_types(param_value, expected_type):
                if isinstance(expected_type, list):
                    expected_type = " or ".join(expected_type)
                raise ToolValidationError(
                    f"Parameter {param_name} should be {expected_type}, got {type(param_value).__name__}"
                )

            if enum_values and param_value not in enum_values:
                raise ToolValidationError(
                    f"Parameter {param_name} must be one of: {', '.join(enum_values)}"
                )

    @classmethod
    def _check_types(cls, value: Any, expected: Union[str, List[str]]) -> bool:
        """A type may be a single JSON Schema type or a list of alternatives."""
        if isinstance(expected, list):
            return any(cls._check_type(value, t) for t in expected)
        return cls._check_type(value, expected)

    @staticmethod
    def _check_type(value: Any, expected: str) -> bool:
        """
        Check a value against a JSON Schema type.

        Integers may arrive as integral floats (Gemini) or digit strings;
        handlers coerce those.
        """
        if expected == "boolean":
            return isinstance(value, bool)
        if isinstance(value, bool):
            return False
        if expected == "integer":
            if isinstance(value, int):
                return True
            if isinstance(value, float):
                return value.is_integer()
            return isinstance(value, str) and value.strip().lstrip("-").isdigit()
        if expected == "number":
            return isinstance(value, (int, float))

        type_map = {
            "string": str,
            "array": list,
            "object": dict,
        }
        expected_types = type_map.get(expected)
        if expected_types is None:
            return True
        return isinstance(value, expected_types)
