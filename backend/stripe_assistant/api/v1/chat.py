import logging
from typing import Any, List

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from stripe_assistant.api.deps import get_current_user, get_db, get_llm_provider
from stripe_assistant.api.errors import provider_error_to_http
from stripe_assistant.core.rate_limiter import RateLimits, limiter
from stripe_assistant.models.user import User
from stripe_assistant.schemas.chat import (
    ChatRequest,
    ChatResponse,
    SessionCreate,
    SessionDetail,
    SessionRename,
    SessionSummary,
)
from stripe_assistant.services.chat_service import ChatService, SessionNotFoundError, StripeKeyMissingError
from stripe_assistant.services.tools.provider_adapter import ProviderError

logger = logging.getLogger("stripe_assistant.api.chat")

router = APIRouter()

SESSION_NOT_FOUND = "Session not found"


@router.post("", response_model=ChatResponse, response_model_by_alias=True)
@limiter.limit(RateLimits.AI_CHAT)
async def send_message(
    request: Request,
    response: Response,
    chat_request: ChatRequest,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> Any:
    """
    Send a message to the assistant.

    The assistant may call Stripe operations on the organization's test
    account before answering; each call is returned in functionCalls.
    """
    try:
        provider = get_llm_provider(request)
        service = ChatService(db, provider)
        return await service.send_message(
            current_user, chat_request.session_id, chat_request.message, chat_request.mode
        )
    except SessionNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=SESSION_NOT_FOUND)
    except StripeKeyMissingError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except ProviderError as e:
        return provider_error_to_http(e)


@router.get("/sessions", response_model=List[SessionSummary], response_model_by_alias=True)
async def list_sessions(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> Any:
    return await ChatService(db).list_sessions(current_user)


@router.post(
    "/sessions",
    response_model=SessionSummary,
    response_model_by_alias=True,
    status_code=status.HTTP_201_CREATED,
)
async def create_session(
    session_in: SessionCreate = SessionCreate(),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> Any:
    return await ChatService(db).create_session(current_user, session_in.mode)


@router.get("/sessions/{session_id}", response_model=SessionDetail, response_model_by_alias=True)
async def get_session(
    session_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> Any:
    detail = await ChatService(db).get_session(current_user, session_id)
    if detail is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=SESSION_NOT_FOUND)
    return detail


@router.patch("/sessions/{session_id}", response_model=SessionSummary, response_model_by_alias=True)
async def rename_session(
    session_id: str,
    session_in: SessionRename,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> Any:
    summary = await ChatService(db).rename_session(current_user, session_id, session_in.title)
    if summary is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=SESSION_NOT_FOUND)
    return summary


@router.delete("/sessions/{session_id}")
async def delete_session(
    session_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> Any:
    deleted = await ChatService(db).delete_session(current_user, session_id)
    if not deleted:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=SESSION_NOT_FOUND)
    return {"success": True}
