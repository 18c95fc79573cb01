from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel

from stripe_assistant.core.config import settings
from stripe_assistant.services.tools.prompts import ChatMode


class CamelModel(BaseModel):
    """Accepts and emits camelCase keys, as the web client sends them."""

    class Config:
        alias_generator = to_camel
        populate_by_name = True
        from_attributes = True


class ChatRequest(CamelModel):
    session_id: str = Field(..., min_length=1)
    message: str = Field(..., min_length=1, max_length=settings.CHAT_MESSAGE_MAX_LENGTH)
    mode: ChatMode = ChatMode.SIMULATION


class FunctionCallRecord(CamelModel):
    name: str
    arguments: Dict[str, Any] = {}
    outcome: Dict[str, Any] = {}


class ChatResponse(CamelModel):
    content: str
    function_calls: Optional[List[FunctionCallRecord]] = None


class SessionCreate(CamelModel):
    mode: ChatMode = ChatMode.SIMULATION


class SessionRename(CamelModel):
    title: str = Field(..., min_length=1, max_length=100)


class MessageResponse(CamelModel):
    id: int
    role: str
    content: str
    function_calls: Optional[List[FunctionCallRecord]] = None
    created_at: datetime


class SessionSummary(CamelModel):
    id: str
    title: str
    mode: ChatMode
    created_at: datetime
    updated_at: datetime
    message_count: int = 0


class SessionDetail(CamelModel):
    id: str
    title: str
    mode: ChatMode
    created_at: datetime
    updated_at: datetime
    messages: List[MessageResponse] = []
