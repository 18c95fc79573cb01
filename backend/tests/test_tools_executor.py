"""
Tests for services/tools/executor.py - argument validation and fault-isolated dispatch.
"""
import asyncio
from datetime import datetime, timezone
from decimal import Decimal

import pytest
import stripe

from stripe_assistant.services.tools.executor import (
    RAW_ARGUMENTS_KEY,
    ToolExecutor,
    ensure_json_safe,
)
from stripe_assistant.services.tools.registry import ToolRegistry
from stripe_assistant.services.tools.schema import ToolCall, ToolCategory, ToolDefinition, ToolSchema


def _definition(name, properties=None, required=None, timeout_ms=30000):
    return ToolDefinition(
        tool_schema=ToolSchema(
            name=name,
            description=name,
            parameters={
                "type": "object",
                "properties": properties or {},
                "required": required or [],
            },
        ),
        category=ToolCategory.CUSTOMER,
        max_execution_time_ms=timeout_ms,
    )


@pytest.fixture
def registry():
    registry = ToolRegistry()

    async def echo(stripe_client, args):
        return {"args": args}

    async def boom(stripe_client, args):
        raise RuntimeError("handler exploded")

    async def card_declined(stripe_client, args):
        raise stripe.CardError("Your card was declined.", param="card", code="card_declined")

    async def scalar(stripe_client, args):
        return 42

    async def slow(stripe_client, args):
        await asyncio.sleep(1)
        return {}

    registry.register_tool(
        _definition(
            "echo",
            properties={
                "email": {"type": "string"},
                "limit": {"type": "integer"},
                "amount": {"type": "number"},
                "active": {"type": "boolean"},
                "interval": {"type": "string", "enum": ["day", "week", "month", "year"]},
            },
            required=["email"],
        ),
        echo,
    )
    registry.register_tool(_definition("boom"), boom)
    registry.register_tool(_definition("cardDeclined"), card_declined)
    registry.register_tool(_definition("scalar"), scalar)
    registry.register_tool(_definition("slow", timeout_ms=10), slow)
    return registry


@pytest.fixture
def executor(registry):
    return ToolExecutor(registry, stripe_client=object())


class TestEnsureJsonSafe:

    def test_datetimes_become_iso_strings(self):
        value = datetime(2025, 1, 1, tzinfo=timezone.utc)
        assert ensure_json_safe({"at": value}) == {"at": value.isoformat()}

    def test_nested_structures(self):
        assert ensure_json_safe({"a": (1, Decimal("2.5")), "b": None}) == {"a": [1, 2.5], "b": None}

    def test_unknown_objects_become_strings(self):
        class Thing:
            def __str__(self):
                return "thing"

        assert ensure_json_safe([Thing()]) == ["thing"]


class TestInvoke:

    @pytest.mark.asyncio
    async def test_success_returns_handler_mapping(self, executor):
        outcome = await executor.invoke("echo", {"email": "a@example.com"})
        assert outcome == {"args": {"email": "a@example.com"}}

    @pytest.mark.asyncio
    async def test_unknown_tool(self, executor):
        outcome = await executor.invoke("deleteEverything", {})
        assert outcome == {"error": "Unknown function: deleteEverything"}

    @pytest.mark.asyncio
    async def test_missing_required_parameter(self, executor):
        outcome = await executor.invoke("echo", {})
        assert "email" in outcome["error"]

    @pytest.mark.asyncio
    async def test_wrong_type(self, executor):
        outcome = await executor.invoke("echo", {"email": 5})
        assert "error" in outcome

    @pytest.mark.asyncio
    async def test_enum_violation(self, executor):
        outcome = await executor.invoke("echo", {"email": "a@example.com", "interval": "fortnight"})
        assert "must be one of" in outcome["error"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("limit", [5, 5.0, "5"])
    async def test_integer_accepts_integral_forms(self, executor, limit):
        outcome = await executor.invoke("echo", {"email": "a@example.com", "limit": limit})
        assert "error" not in outcome

    @pytest.mark.asyncio
    @pytest.mark.parametrize("limit", [5.5, "five", True])
    async def test_integer_rejects_other_values(self, executor, limit):
        outcome = await executor.invoke("echo", {"email": "a@example.com", "limit": limit})
        assert "error" in outcome

    @pytest.mark.asyncio
    async def test_boolean_is_not_a_number(self, executor):
        outcome = await executor.invoke("echo", {"email": "a@example.com", "amount": True})
        assert "error" in outcome

    @pytest.mark.asyncio
    async def test_unknown_parameters_are_passed_through(self, executor):
        outcome = await executor.invoke("echo", {"email": "a@example.com", "extra": 1})
        assert outcome["args"]["extra"] == 1

    @pytest.mark.asyncio
    async def test_unparseable_arguments(self, executor):
        outcome = await executor.invoke("echo", {RAW_ARGUMENTS_KEY: "{not json"})
        assert outcome == {"error": "Arguments were not valid JSON"}

    @pytest.mark.asyncio
    async def test_handler_exception_becomes_error(self, executor):
        outcome = await executor.invoke("boom", {})
        assert outcome == {"error": "handler exploded"}

    @pytest.mark.asyncio
    async def test_stripe_error_becomes_error(self, executor):
        outcome = await executor.invoke("cardDeclined", {})
        assert "declined" in outcome["error"]

    @pytest.mark.asyncio
    async def test_non_mapping_result_is_wrapped(self, executor):
        assert await executor.invoke("scalar", {}) == {"value": 42}

    @pytest.mark.asyncio
    async def test_timeout(self, executor):
        outcome = await executor.invoke("slow", {})
        assert "timed out" in outcome["error"]


class TestBatch:

    @pytest.mark.asyncio
    async def test_batch_keeps_order_and_isolates_failures(self, executor):
        calls = [
            ToolCall(id="1", name="echo", arguments={"email": "a@example.com"}),
            ToolCall(id="2", name="boom", arguments={}),
            ToolCall(id="3", name="nope", arguments={}),
            ToolCall(id="4", name="scalar", arguments={}),
        ]

        results = await executor.execute_batch(calls)

        assert [r.name for r in results] == ["echo", "boom", "nope", "scalar"]
        assert [r.call_id for r in results] == ["1", "2", "3", "4"]
        assert [r.success for r in results] == [True, False, False, True]
        assert results[3].outcome == {"value": 42}

    @pytest.mark.asyncio
    async def test_result_record_form(self, executor):
        result = await executor.execute_call(ToolCall(id="1", name="scalar", arguments={}))
        assert result.to_record() == {"name": "scalar", "arguments": {}, "outcome": {"value": 42}}
