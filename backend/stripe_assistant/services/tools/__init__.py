"""
Tool Calling System for the Stripe assistant

This package lets the LLM operate the Stripe API through declared tools.

Main components:
- schema.py: Pydantic models for tool declarations and results
- registry.py: Registry of the tool catalog and its handlers
- executor.py: Argument validation and fault-isolated dispatch
- agent.py: Agent loop orchestrating model turns and tool calls
- provider_adapter.py: Gemini and OpenAI adapters behind one interface
- prompts.py: Chat modes and system instructions
- stripe/: The Stripe operation handlers
"""

from stripe_assistant.services.tools.schema import ToolSchema, ToolDefinition, ToolCall, ToolInvocationResult
from stripe_assistant.services.tools.registry import tool_registry, ToolRegistry, ToolRegistryError
from stripe_assistant.services.tools.executor import ToolExecutor
from stripe_assistant.services.tools.agent import ToolCallingAgent, AgentResult
from stripe_assistant.services.tools.provider_adapter import (
    LLMProvider,
    ProviderError,
    ProviderErrorCategory,
    create_provider,
)
from stripe_assistant.services.tools.prompts import ChatMode

# Register the Stripe tools on tool_registry
from stripe_assistant.services.tools.stripe import CATALOG_TOOL_NAMES

__all__ = [
    "ToolSchema",
    "ToolDefinition",
    "ToolCall",
    "ToolInvocationResult",
    "tool_registry",
    "ToolRegistry",
    "ToolRegistryError",
    "ToolExecutor",
    "ToolCallingAgent",
    "AgentResult",
    "LLMProvider",
    "ProviderError",
    "ProviderErrorCategory",
    "create_provider",
    "ChatMode",
    "CATALOG_TOOL_NAMES",
]
