"""
Shared test fixtures and configuration for the Stripe assistant backend tests.
"""
import os
from datetime import datetime, timedelta, timezone
from typing import Any, List, Sequence
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

# Set test environment before importing app modules
os.environ["ENVIRONMENT"] = "development"
os.environ["DEBUG"] = "true"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///./test.db"
os.environ["SECRET_KEY"] = "test-secret-key-for-testing-only-min-32-chars"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["LLM_PROVIDER"] = "google"
os.environ.pop("GOOGLE_API_KEY", None)
os.environ.pop("GEMINI_API_KEY", None)


class ScriptedProvider:
    """
    LLM provider double that replays a fixed list of ModelResponses.

    Every call records the transcript it was given (copied), the tools and
    the instructions. An exception in the script is raised instead of
    returned.
    """

    name = "google"

    def __init__(self, responses: Sequence[Any]):
        self.responses = list(responses)
        self.calls: List[dict] = []

    async def generate(self, transcript, tools, instructions):
        self.calls.append({
            "transcript": list(transcript),
            "tools": tools,
            "instructions": instructions,
        })
        if not self.responses:
            raise AssertionError("provider called more often than scripted")
        response = self.responses.pop(0)
        if isinstance(response, BaseException):
            raise response
        return response


class EndlessToolProvider(ScriptedProvider):
    """Provider that requests the same tool on every call."""

    def __init__(self, tool_name: str = "listCustomers"):
        super().__init__([])
        self.tool_name = tool_name

    async def generate(self, transcript, tools, instructions):
        from stripe_assistant.services.tools.provider_adapter import ModelResponse
        from stripe_assistant.services.tools.schema import ToolCall

        self.calls.append({"transcript": list(transcript), "tools": tools, "instructions": instructions})
        return ModelResponse(
            tool_calls=[ToolCall(id=f"call_{len(self.calls)}", name=self.tool_name, arguments={})]
        )


@pytest.fixture
def scripted_provider():
    """Factory: scripted_provider([ModelResponse(...), ...])"""
    return ScriptedProvider


@pytest.fixture
def endless_tool_provider():
    return EndlessToolProvider


@pytest.fixture
def mock_db_session():
    """Create a mock async database session."""
    session = AsyncMock(spec=AsyncSession)
    session.execute = AsyncMock()
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    session.refresh = AsyncMock()
    session.add = MagicMock()
    session.delete = AsyncMock()
    session.close = AsyncMock()
    return session


@pytest.fixture
def mock_user():
    """Create a mock member user for testing."""
    user = MagicMock()
    user.id = 1
    user.email = "member@example.com"
    user.username = "member"
    user.full_name = "Member User"
    user.role = "member"
    user.is_admin = False
    user.organization_id = "org_default"
    user.is_active = True
    user.created_at = datetime.now(timezone.utc)
    return user


@pytest.fixture
def mock_admin(mock_user):
    """Create a mock admin user for testing."""
    mock_user.id = 2
    mock_user.email = "admin@example.com"
    mock_user.username = "admin"
    mock_user.role = "admin"
    mock_user.is_admin = True
    return mock_user


@pytest.fixture
def mock_request():
    """Create a mock FastAPI request object."""
    request = MagicMock()
    request.cookies = {}
    request.client = MagicMock()
    request.client.host = "127.0.0.1"
    request.headers = {}
    request.url = MagicMock()
    request.url.path = "/api/v1/test"
    request.method = "POST"
    request.app.state.llm_provider = MagicMock()
    return request


@pytest.fixture
def valid_jwt_token():
    """Generate a valid JWT token for testing."""
    from stripe_assistant.core.security import create_access_token
    return create_access_token(subject="1", expires_delta=timedelta(hours=1))


@pytest.fixture
def expired_jwt_token():
    """Generate an expired JWT token for testing."""
    from stripe_assistant.core.security import create_access_token
    return create_access_token(subject="1", expires_delta=timedelta(seconds=-1))


def scalar_result(value):
    """execute() result whose scalar_one_or_none() returns value."""
    result = MagicMock()
    result.scalar_one_or_none.return_value = value
    result.scalar.return_value = value
    return result


@pytest.fixture
def make_scalar_result():
    return scalar_result
