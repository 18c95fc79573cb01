from typing import Optional

from pydantic import BaseModel, Field

from stripe_assistant.schemas.chat import CamelModel


class StripeKeyUpdate(BaseModel):
    secret_key: str = Field(..., min_length=1, validation_alias="secretKey")


class StripeKeyStatus(CamelModel):
    has_key: bool
    key_preview: Optional[str] = None
