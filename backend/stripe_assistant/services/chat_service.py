"""
Chat Service - chat sessions and the request flow around the agent

send_message() is the whole lifecycle of one user request: persist the
user turn, run the agent against the organization's Stripe account,
persist the answer with its tool calls, and audit every tool call.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from stripe_assistant.core.audit import AuditLogger
from stripe_assistant.core.config import settings
from stripe_assistant.models.chat import ChatMessage, ChatSession
from stripe_assistant.models.organization import Organization
from stripe_assistant.models.user import User
from stripe_assistant.schemas.chat import ChatResponse, SessionDetail, SessionSummary
from stripe_assistant.services.stripe_client import stripe_client_session
from stripe_assistant.services.tools.agent import ToolCallingAgent
from stripe_assistant.services.tools.executor import ToolExecutor
from stripe_assistant.services.tools.prompts import ChatMode
from stripe_assistant.services.tools.provider_adapter import LLMProvider
from stripe_assistant.services.tools.registry import tool_registry

logger = logging.getLogger(__name__)

DEFAULT_SESSION_TITLE = "New chat"
TITLE_PREVIEW_LENGTH = 30

AgentFactory = Callable[[LLMProvider, Any], ToolCallingAgent]


class SessionNotFoundError(Exception):
    pass


class StripeKeyMissingError(Exception):
    pass


def default_agent_factory(provider: LLMProvider, stripe_client: Any) -> ToolCallingAgent:
    return ToolCallingAgent(
        provider,
        ToolExecutor(tool_registry, stripe_client),
        tool_registry,
        max_iterations=settings.AGENT_MAX_ITERATIONS,
    )


def title_from_message(message: str) -> str:
    if len(message) > TITLE_PREVIEW_LENGTH:
        return message[:TITLE_PREVIEW_LENGTH] + "..."
    return message


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ChatService:
    def __init__(
        self,
        db: AsyncSession,
        provider: Optional[LLMProvider] = None,
        agent_factory: AgentFactory = default_agent_factory,
        stripe_client_factory=stripe_client_session,
    ):
        self.db = db
        self.provider = provider
        self.agent_factory = agent_factory
        self.stripe_client_factory = stripe_client_factory

    async def _get_owned_session(self, user: User, session_id: str, with_messages: bool = False) -> Optional[ChatSession]:
        query = select(ChatSession).where(
            ChatSession.id == session_id,
            ChatSession.user_id == user.id,
            ChatSession.organization_id == user.organization_id,
        )
        if with_messages:
            query = query.options(selectinload(ChatSession.messages))
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def _get_stripe_key(self, organization_id: str) -> Optional[str]:
        result = await self.db.execute(
            select(Organization.stripe_secret_key).where(Organization.id == organization_id)
        )
        return result.scalar_one_or_none()

    async def send_message(
        self,
        user: User,
        session_id: str,
        message: str,
        mode: ChatMode = ChatMode.SIMULATION,
    ) -> ChatResponse:
        """
        Process one chat request.

        Raises:
            SessionNotFoundError: no such session for this user
            StripeKeyMissingError: the organization has no Stripe key
            ProviderError: the model failed; the user message stays saved
        """
        mode = ChatMode(mode)
        chat_session = await self._get_owned_session(user, session_id, with_messages=True)
        if not chat_session:
            raise SessionNotFoundError("Session not found")

        secret_key = await self._get_stripe_key(user.organization_id)
        if not secret_key:
            raise StripeKeyMissingError(
                "Stripe key not configured. Register an API key on the settings page."
            )

        history = self.history_of(chat_session)
        is_first_message = not history

        self.db.add(ChatMessage(session_id=chat_session.id, role="user", content=message))
        await self.db.commit()

        async with self.stripe_client_factory(secret_key) as stripe_client:
            agent = self.agent_factory(self.provider, stripe_client)
            result = await agent.run(history, message, mode)

        function_calls = result.function_calls
        self.db.add(
            ChatMessage(
                session_id=chat_session.id,
                role="assistant",
                content=result.content,
                function_calls=function_calls,
            )
        )

        if is_first_message and not chat_session.title:
            chat_session.title = title_from_message(message)
        if chat_session.mode != mode.value:
            chat_session.mode = mode.value
        chat_session.updated_at = _utcnow()
        await self.db.commit()

        for tool_result in result.tool_results:
            await AuditLogger.log_tool_call(self.db, user.id, user.organization_id, tool_result)

        logger.info(
            f"Chat turn done for session {chat_session.id}: "
            f"{len(result.tool_results)} tool call(s), {result.iterations} model call(s)"
        )
        return ChatResponse(content=result.content, function_calls=function_calls)

    async def create_session(self, user: User, mode: ChatMode = ChatMode.SIMULATION) -> SessionSummary:
        now = _utcnow()
        chat_session = ChatSession(
            user_id=user.id,
            organization_id=user.organization_id,
            mode=ChatMode(mode).value,
            created_at=now,
            updated_at=now,
        )
        self.db.add(chat_session)
        await self.db.commit()
        await self.db.refresh(chat_session)
        return self._summary(chat_session, message_count=0)

    async def list_sessions(self, user: User) -> List[SessionSummary]:
        """Sessions of a user, most recently active first"""
        result = await self.db.execute(
            select(ChatSession, func.count(ChatMessage.id).label("message_count"))
            .outerjoin(ChatMessage, ChatMessage.session_id == ChatSession.id)
            .where(
                ChatSession.user_id == user.id,
                ChatSession.organization_id == user.organization_id,
            )
            .group_by(ChatSession.id)
            .order_by(ChatSession.updated_at.desc())
        )
        return [self._summary(chat_session, message_count) for chat_session, message_count in result.all()]

    async def get_session(self, user: User, session_id: str) -> Optional[SessionDetail]:
        chat_session = await self._get_owned_session(user, session_id, with_messages=True)
        if not chat_session:
            return None
        return SessionDetail(
            id=chat_session.id,
            title=chat_session.title or DEFAULT_SESSION_TITLE,
            mode=chat_session.mode,
            created_at=chat_session.created_at,
            updated_at=chat_session.updated_at,
            messages=list(chat_session.messages),
        )

    async def rename_session(self, user: User, session_id: str, title: str) -> Optional[SessionSummary]:
        chat_session = await self._get_owned_session(user, session_id)
        if not chat_session:
            return None
        chat_session.title = title
        chat_session.updated_at = _utcnow()
        await self.db.commit()
        await self.db.refresh(chat_session)

        count = await self.db.execute(
            select(func.count(ChatMessage.id)).where(ChatMessage.session_id == chat_session.id)
        )
        return self._summary(chat_session, count.scalar() or 0)

    async def delete_session(self, user: User, session_id: str) -> bool:
        chat_session = await self._get_owned_session(user, session_id, with_messages=True)
        if not chat_session:
            return False

        await self.db.delete(chat_session)
        await self.db.commit()
        return True

    @staticmethod
    def _summary(chat_session: ChatSession, message_count: int) -> SessionSummary:
        return SessionSummary(
            id=chat_session.id,
            title=chat_session.title or DEFAULT_SESSION_TITLE,
            mode=chat_session.mode,
            created_at=chat_session.created_at,
            updated_at=chat_session.updated_at,
            message_count=message_count,
        )

    @staticmethod
    def history_of(chat_session: ChatSession) -> List[Dict[str, str]]:
        return [{"role": m.role, "content": m.content} for m in chat_session.messages]
