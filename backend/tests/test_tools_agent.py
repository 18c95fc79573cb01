"""
Tests for services/tools/agent.py - the model/tool conversation loop.
"""
from unittest.mock import patch

import pytest

from stripe_assistant.services.tools.agent import (
    EMPTY_RESPONSE_FALLBACK,
    ITERATION_LIMIT_MESSAGE,
    ToolCallingAgent,
)
from stripe_assistant.services.tools.executor import ToolExecutor
from stripe_assistant.services.tools.prompts import ChatMode, instructions_for
from stripe_assistant.services.tools.provider_adapter import (
    ModelResponse,
    ProviderError,
    ProviderErrorCategory,
    TurnRole,
)
from stripe_assistant.services.tools.registry import ToolRegistry
from stripe_assistant.services.tools.schema import ToolCall, ToolCategory, ToolDefinition, ToolSchema


def _definition(name, required=None):
    return ToolDefinition(
        tool_schema=ToolSchema(
            name=name,
            description=name,
            parameters={
                "type": "object",
                "properties": {"email": {"type": "string"}},
                "required": required or [],
            },
        ),
        category=ToolCategory.CUSTOMER,
    )


@pytest.fixture
def registry():
    registry = ToolRegistry()
    executed = []

    async def create_customer(stripe_client, args):
        executed.append("createCustomer")
        return {"id": "cus_1", "email": args["email"]}

    async def list_customers(stripe_client, args):
        executed.append("listCustomers")
        return {"customers": []}

    async def failing(stripe_client, args):
        executed.append("failing")
        raise RuntimeError("Stripe is down")

    registry.register_tool(_definition("createCustomer", required=["email"]), create_customer)
    registry.register_tool(_definition("listCustomers"), list_customers)
    registry.register_tool(_definition("failing"), failing)
    registry.executed = executed
    return registry


def _agent(provider, registry, max_iterations=None):
    return ToolCallingAgent(provider, ToolExecutor(registry, stripe_client=None), registry, max_iterations)


def _call(call_id, name, **arguments):
    return ToolCall(id=call_id, name=name, arguments=arguments)


class TestTermination:

    @pytest.mark.asyncio
    async def test_text_answer_ends_the_loop(self, registry, scripted_provider):
        provider = scripted_provider([ModelResponse(text="Hello!")])

        result = await _agent(provider, registry).run([], "Hi", ChatMode.SIMULATION)

        assert result.content == "Hello!"
        assert result.tool_results == []
        assert result.function_calls is None
        assert result.iterations == 1
        assert len(provider.calls) == 1

    @pytest.mark.asyncio
    async def test_blank_answer_uses_fallback(self, registry, scripted_provider):
        provider = scripted_provider([ModelResponse(text="   ")])

        result = await _agent(provider, registry).run([], "Hi")

        assert result.content == EMPTY_RESPONSE_FALLBACK

    @pytest.mark.asyncio
    async def test_tool_round_then_answer(self, registry, scripted_provider):
        provider = scripted_provider([
            ModelResponse(tool_calls=[_call("c1", "createCustomer", email="taro@example.com")]),
            ModelResponse(text="Created cus_1"),
        ])

        result = await _agent(provider, registry).run([], "Create taro@example.com", ChatMode.ACTUAL)

        assert result.content == "Created cus_1"
        assert result.iterations == 2
        assert result.function_calls == [{
            "name": "createCustomer",
            "arguments": {"email": "taro@example.com"},
            "outcome": {"id": "cus_1", "email": "taro@example.com"},
        }]

    @pytest.mark.asyncio
    async def test_ceiling_aborts_without_an_extra_model_call(self, registry, endless_tool_provider):
        provider = endless_tool_provider("listCustomers")

        result = await _agent(provider, registry).run([], "Loop forever")

        assert result.content == ITERATION_LIMIT_MESSAGE
        assert result.max_iterations_reached is True
        assert len(provider.calls) == 10
        assert len(result.tool_results) == 10
        assert registry.executed == ["listCustomers"] * 10

    @pytest.mark.asyncio
    async def test_custom_ceiling(self, registry, endless_tool_provider):
        provider = endless_tool_provider("listCustomers")

        result = await _agent(provider, registry, max_iterations=3).run([], "Loop")

        assert result.max_iterations_reached is True
        assert len(provider.calls) == 3


class TestTranscript:

    @pytest.mark.asyncio
    async def test_history_is_seeded_before_the_user_message(self, registry, scripted_provider):
        provider = scripted_provider([ModelResponse(text="ok")])
        history = [
            {"role": "user", "content": "first"},
            {"role": "assistant", "content": "answer"},
        ]

        await _agent(provider, registry).run(history, "second")

        transcript = provider.calls[0]["transcript"]
        assert [turn.role for turn in transcript] == [TurnRole.USER, TurnRole.MODEL, TurnRole.USER]
        assert [turn.text for turn in transcript] == ["first", "answer", "second"]

    @pytest.mark.asyncio
    async def test_results_are_appended_in_call_order(self, registry, scripted_provider):
        provider = scripted_provider([
            ModelResponse(tool_calls=[
                _call("c1", "listCustomers"),
                _call("c2", "createCustomer", email="a@example.com"),
            ], raw="model-content"),
            ModelResponse(text="done"),
        ])

        await _agent(provider, registry).run([], "go")

        transcript = provider.calls[1]["transcript"]
        model_turn, tool_turn = transcript[-2], transcript[-1]
        assert model_turn.role == TurnRole.MODEL
        assert model_turn.raw == "model-content"
        assert [c.id for c in model_turn.tool_calls] == ["c1", "c2"]
        assert tool_turn.role == TurnRole.TOOL
        assert [r.call_id for r in tool_turn.tool_results] == ["c1", "c2"]
        assert registry.executed == ["listCustomers", "createCustomer"]

    @pytest.mark.asyncio
    async def test_each_round_is_one_executor_batch(self, registry, scripted_provider):
        provider = scripted_provider([
            ModelResponse(tool_calls=[_call("c1", "listCustomers"), _call("c2", "listCustomers")]),
            ModelResponse(text="done"),
        ])
        agent = _agent(provider, registry)

        with patch.object(agent.executor, "execute_batch", wraps=agent.executor.execute_batch) as execute_batch:
            result = await agent.run([], "go")

        execute_batch.assert_awaited_once()
        assert [c.id for c in execute_batch.call_args.args[0]] == ["c1", "c2"]
        assert [r.call_id for r in result.tool_results] == ["c1", "c2"]

    @pytest.mark.asyncio
    async def test_same_catalog_and_mode_instructions_on_every_call(self, registry, scripted_provider):
        provider = scripted_provider([
            ModelResponse(tool_calls=[_call("c1", "listCustomers")]),
            ModelResponse(tool_calls=[_call("c2", "listCustomers")]),
            ModelResponse(text="done"),
        ])

        await _agent(provider, registry).run([], "go", ChatMode.ACTUAL)

        assert len(provider.calls) == 3
        first_tools = provider.calls[0]["tools"]
        assert all(call["tools"] is first_tools for call in provider.calls)
        assert all(call["instructions"] == instructions_for(ChatMode.ACTUAL) for call in provider.calls)


class TestFaultIsolation:

    @pytest.mark.asyncio
    async def test_failing_tool_does_not_stop_the_batch(self, registry, scripted_provider):
        provider = scripted_provider([
            ModelResponse(tool_calls=[
                _call("c1", "failing"),
                _call("c2", "listCustomers"),
            ]),
            ModelResponse(text="One call failed"),
        ])

        result = await _agent(provider, registry).run([], "go")

        assert result.content == "One call failed"
        assert result.tool_results[0].outcome == {"error": "Stripe is down"}
        assert result.tool_results[1].outcome == {"customers": []}

    @pytest.mark.asyncio
    async def test_unknown_tool_is_reported_to_the_model(self, registry, scripted_provider):
        provider = scripted_provider([
            ModelResponse(tool_calls=[_call("c1", "refundEverything")]),
            ModelResponse(text="I cannot do that"),
        ])

        result = await _agent(provider, registry).run([], "go")

        assert result.tool_results[0].outcome == {"error": "Unknown function: refundEverything"}
        tool_turn = provider.calls[1]["transcript"][-1]
        assert tool_turn.tool_results[0].outcome["error"].startswith("Unknown function")

    @pytest.mark.asyncio
    async def test_invalid_arguments_are_reported_to_the_model(self, registry, scripted_provider):
        provider = scripted_provider([
            ModelResponse(tool_calls=[_call("c1", "createCustomer")]),
            ModelResponse(text="Which email?"),
        ])

        result = await _agent(provider, registry).run([], "go")

        assert "email" in result.tool_results[0].outcome["error"]
        assert registry.executed == []

    @pytest.mark.asyncio
    async def test_provider_error_propagates(self, registry, scripted_provider):
        provider = scripted_provider([
            ModelResponse(tool_calls=[_call("c1", "listCustomers")]),
            ProviderError("quota exceeded", ProviderErrorCategory.QUOTA, "google"),
        ])

        with pytest.raises(ProviderError) as exc_info:
            await _agent(provider, registry).run([], "go")

        assert exc_info.value.category == ProviderErrorCategory.QUOTA

