"""
Tool Definition Schema

Pydantic models for the operations the model may request, rendered into
the function-declaration formats of the supported LLM providers.
"""

import json
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field


class ToolCategory(str, Enum):
    """Stripe resource a tool works on"""
    CUSTOMER = "customer"
    PRODUCT = "product"
    PRICE = "price"
    SUBSCRIPTION = "subscription"
    COUPON = "coupon"
    INVOICE = "invoice"
    TEST_CLOCK = "test_clock"
    PAYMENT_METHOD = "payment_method"


class ToolSchema(BaseModel):
    """
    Provider-neutral function declaration.

    Instances are frozen; the catalog hands the same objects to every
    provider call.
    """
    name: str = Field(..., description="Unique tool identifier (camelCase, persisted in history)")
    description: str = Field(..., description="What the tool does and when to use it")
    parameters: Dict[str, Any] = Field(
        default_factory=lambda: {"type": "object", "properties": {}, "required": []},
        description="JSON Schema for the tool's parameters"
    )

    class Config:
        frozen = True

    def to_openai_format(self) -> Dict[str, Any]:
        """Convert to OpenAI tools API format"""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters,
            },
        }

    def to_gemini_format(self) -> Dict[str, Any]:
        """Convert to a Gemini function declaration"""
        return {
            "name": self.name,
            "description": self.description,
            "parameters_json_schema": self.parameters,
        }


class ToolDefinition(BaseModel):
    """
    Tool registration metadata.

    `mutating` marks operations that create, update or delete Stripe
    objects. It is informational; nothing blocks a mutating tool.
    """
    # Named tool_schema to avoid shadowing BaseModel.schema
    tool_schema: ToolSchema
    category: ToolCategory
    mutating: bool = False
    max_execution_time_ms: int = Field(
        default=30000,
        description="Maximum execution time in milliseconds"
    )

    class Config:
        use_enum_values = True
        frozen = True

    @property
    def name(self) -> str:
        return self.tool_schema.name


class ToolCall(BaseModel):
    """A single operation request issued by the model. Arguments are untrusted."""
    id: str = Field(..., description="Identifier for this tool call")
    name: str = Field(..., description="Name of the tool to call")
    arguments: Dict[str, Any] = Field(
        default_factory=dict,
        description="Arguments to pass to the tool"
    )


class ToolInvocationResult(BaseModel):
    """Outcome of one tool call. `outcome` holds an ``error`` key on failure."""
    name: str
    arguments: Dict[str, Any] = Field(default_factory=dict)
    outcome: Dict[str, Any]
    call_id: Optional[str] = None
    execution_time_ms: int = 0

    @property
    def success(self) -> bool:
        return "error" not in self.outcome

    def to_message_content(self) -> str:
        """Serialize the outcome for a provider message"""
        return json.dumps(self.outcome, ensure_ascii=False, default=str)

    def to_record(self) -> Dict[str, Any]:
        """Form persisted with the assistant message and returned to the client"""
        return {"name": self.name, "arguments": self.arguments, "outcome": self.outcome}
