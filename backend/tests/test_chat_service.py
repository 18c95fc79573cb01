"""
Tests for services/chat_service.py - chat sessions and the request flow.
"""
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from stripe_assistant.models.chat import ChatMessage
from stripe_assistant.services.chat_service import (
    DEFAULT_SESSION_TITLE,
    ChatService,
    SessionNotFoundError,
    StripeKeyMissingError,
    title_from_message,
)
from stripe_assistant.services.tools.agent import AgentResult
from stripe_assistant.services.tools.prompts import ChatMode
from stripe_assistant.services.tools.provider_adapter import ProviderError, ProviderErrorCategory
from stripe_assistant.services.tools.schema import ToolInvocationResult

NOW = datetime(2025, 1, 1, tzinfo=timezone.utc)


def _chat_session(messages=None, title=None, mode="simulation"):
    return SimpleNamespace(
        id="session-1",
        title=title,
        mode=mode,
        created_at=NOW,
        updated_at=NOW,
        messages=messages or [],
    )


class FakeAgent:
    def __init__(self, result=None, error=None):
        self.result = result
        self.error = error
        self.runs = []

    async def run(self, history, message, mode):
        self.runs.append((history, message, mode))
        if self.error:
            raise self.error
        return self.result


@pytest.fixture
def stripe_clients():
    """Stripe client factory that records the keys it was opened with."""
    opened = []

    @asynccontextmanager
    async def factory(secret_key):
        opened.append(secret_key)
        yield SimpleNamespace(secret_key=secret_key)

    factory.opened = opened
    return factory


def _service(db, agent, stripe_clients):
    def agent_factory(provider, stripe_client):
        agent.stripe_client = stripe_client
        return agent

    return ChatService(db, provider=MagicMock(), agent_factory=agent_factory, stripe_client_factory=stripe_clients)


def _added(db, cls):
    return [c.args[0] for c in db.add.call_args_list if isinstance(c.args[0], cls)]


class TestTitleFromMessage:

    def test_short_message_is_kept(self):
        assert title_from_message("List customers") == "List customers"

    def test_long_message_is_truncated(self):
        message = "a" * 31
        assert title_from_message(message) == "a" * 30 + "..."

    def test_exactly_thirty_characters(self):
        assert title_from_message("b" * 30) == "b" * 30


class TestSendMessage:

    @pytest.mark.asyncio
    async def test_unknown_session(self, mock_db_session, mock_user, make_scalar_result, stripe_clients):
        mock_db_session.execute.side_effect = [make_scalar_result(None)]
        agent = FakeAgent()

        with pytest.raises(SessionNotFoundError):
            await _service(mock_db_session, agent, stripe_clients).send_message(mock_user, "nope", "hi")

        assert agent.runs == []
        mock_db_session.add.assert_not_called()

    @pytest.mark.asyncio
    async def test_missing_stripe_key(self, mock_db_session, mock_user, make_scalar_result, stripe_clients):
        mock_db_session.execute.side_effect = [
            make_scalar_result(_chat_session()),
            make_scalar_result(None),
        ]
        agent = FakeAgent()

        with pytest.raises(StripeKeyMissingError) as exc_info:
            await _service(mock_db_session, agent, stripe_clients).send_message(mock_user, "session-1", "hi")

        assert "settings page" in str(exc_info.value)
        assert agent.runs == []
        assert stripe_clients.opened == []

    @pytest.mark.asyncio
    async def test_first_message_flow(self, mock_db_session, mock_user, make_scalar_result, stripe_clients):
        chat_session = _chat_session()
        mock_db_session.execute.side_effect = [
            make_scalar_result(chat_session),
            make_scalar_result("sk_test_123"),
        ]
        tool_result = ToolInvocationResult(
            name="createCustomer",
            arguments={"email": "taro@example.com"},
            outcome={"id": "cus_1"},
        )
        agent = FakeAgent(AgentResult(content="Created cus_1", tool_results=[tool_result], iterations=2))
        message = "Create a customer for taro@example.com please"

        with patch("stripe_assistant.services.chat_service.AuditLogger.log_tool_call", new_callable=AsyncMock) as audit:
            response = await _service(mock_db_session, agent, stripe_clients).send_message(
                mock_user, "session-1", message, ChatMode.ACTUAL
            )

        assert response.content == "Created cus_1"
        assert response.function_calls[0].name == "createCustomer"
        assert stripe_clients.opened == ["sk_test_123"]
        assert agent.runs == [([], message, ChatMode.ACTUAL)]

        user_turn, assistant_turn = _added(mock_db_session, ChatMessage)
        assert (user_turn.role, user_turn.content) == ("user", message)
        assert assistant_turn.role == "assistant"
        assert assistant_turn.function_calls == [tool_result.to_record()]

        assert chat_session.title == title_from_message(message)
        assert chat_session.mode == "actual"
        assert chat_session.updated_at > NOW
        audit.assert_awaited_once_with(mock_db_session, mock_user.id, mock_user.organization_id, tool_result)

    @pytest.mark.asyncio
    async def test_history_is_passed_and_title_kept(self, mock_db_session, mock_user, make_scalar_result, stripe_clients):
        previous = [
            SimpleNamespace(role="user", content="List customers"),
            SimpleNamespace(role="assistant", content="There are none"),
        ]
        chat_session = _chat_session(messages=previous, title="Customers")
        mock_db_session.execute.side_effect = [
            make_scalar_result(chat_session),
            make_scalar_result("sk_test_123"),
        ]
        agent = FakeAgent(AgentResult(content="Still none", iterations=1))

        response = await _service(mock_db_session, agent, stripe_clients).send_message(
            mock_user, "session-1", "Check again"
        )

        history, _, mode = agent.runs[0]
        assert history == [
            {"role": "user", "content": "List customers"},
            {"role": "assistant", "content": "There are none"},
        ]
        assert mode == ChatMode.SIMULATION
        assert chat_session.title == "Customers"
        assert response.function_calls is None
        assert _added(mock_db_session, ChatMessage)[1].function_calls is None

    @pytest.mark.asyncio
    async def test_provider_error_keeps_user_message(self, mock_db_session, mock_user, make_scalar_result, stripe_clients):
        mock_db_session.execute.side_effect = [
            make_scalar_result(_chat_session()),
            make_scalar_result("sk_test_123"),
        ]
        agent = FakeAgent(error=ProviderError("quota", ProviderErrorCategory.QUOTA, "google"))

        with pytest.raises(ProviderError):
            await _service(mock_db_session, agent, stripe_clients).send_message(mock_user, "session-1", "hi")

        added = _added(mock_db_session, ChatMessage)
        assert [m.role for m in added] == ["user"]
        mock_db_session.commit.assert_awaited_once()


class TestSessions:

    @pytest.mark.asyncio
    async def test_create_session(self, mock_db_session, mock_user):
        async def refresh(obj):
            obj.id = "session-1"

        mock_db_session.refresh.side_effect = refresh
        service = ChatService(mock_db_session)

        summary = await service.create_session(mock_user, ChatMode.ACTUAL)

        created = mock_db_session.add.call_args.args[0]
        assert created.user_id == mock_user.id
        assert created.organization_id == mock_user.organization_id
        assert created.mode == "actual"
        assert summary.title == DEFAULT_SESSION_TITLE
        assert summary.message_count == 0
        mock_db_session.commit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_list_sessions(self, mock_db_session, mock_user):
        result = MagicMock()
        result.all.return_value = [
            (_chat_session(title="Recent"), 4),
            (_chat_session(), 0),
        ]
        mock_db_session.execute.return_value = result

        sessions = await ChatService(mock_db_session).list_sessions(mock_user)

        assert [s.title for s in sessions] == ["Recent", DEFAULT_SESSION_TITLE]
        assert [s.message_count for s in sessions] == [4, 0]

    @pytest.mark.asyncio
    async def test_get_session_with_messages(self, mock_db_session, mock_user, make_scalar_result):
        messages = [
            SimpleNamespace(id=1, role="user", content="hi", function_calls=None, created_at=NOW),
            SimpleNamespace(
                id=2, role="assistant", content="hello", created_at=NOW,
                function_calls=[{"name": "listCustomers", "arguments": {}, "outcome": {"value": []}}],
            ),
        ]
        mock_db_session.execute.return_value = make_scalar_result(_chat_session(messages=messages))

        detail = await ChatService(mock_db_session).get_session(mock_user, "session-1")

        assert [m.role for m in detail.messages] == ["user", "assistant"]
        assert detail.messages[1].function_calls[0].name == "listCustomers"

    @pytest.mark.asyncio
    async def test_get_missing_session(self, mock_db_session, mock_user, make_scalar_result):
        mock_db_session.execute.return_value = make_scalar_result(None)
        assert await ChatService(mock_db_session).get_session(mock_user, "nope") is None

    @pytest.mark.asyncio
    async def test_rename_session(self, mock_db_session, mock_user, make_scalar_result):
        chat_session = _chat_session()
        mock_db_session.execute.side_effect = [make_scalar_result(chat_session), make_scalar_result(3)]

        summary = await ChatService(mock_db_session).rename_session(mock_user, "session-1", "Billing tests")

        assert chat_session.title == "Billing tests"
        assert summary.title == "Billing tests"
        assert summary.message_count == 3

    @pytest.mark.asyncio
    async def test_delete_session(self, mock_db_session, mock_user, make_scalar_result):
        chat_session = _chat_session()
        mock_db_session.execute.return_value = make_scalar_result(chat_session)

        assert await ChatService(mock_db_session).delete_session(mock_user, "session-1") is True
        mock_db_session.delete.assert_awaited_once_with(chat_session)

    @pytest.mark.asyncio
    async def test_delete_missing_session(self, mock_db_session, mock_user, make_scalar_result):
        mock_db_session.execute.return_value = make_scalar_result(None)

        assert await ChatService(mock_db_session).delete_session(mock_user, "nope") is False
        mock_db_session.delete.assert_not_awaited()
