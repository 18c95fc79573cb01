"""
Tool Registry - Central registration for all available tools

Each tool is registered together with its handler, so a declared tool can
never lack one. The process-wide `tool_registry` is filled when the Stripe
handler modules are imported and is checked against CATALOG_TOOL_NAMES at
startup.
"""

import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Tuple

from stripe_assistant.services.tools.schema import ToolDefinition, ToolSchema

logger = logging.getLogger(__name__)

ToolHandler = Callable[[Any, Dict[str, Any]], Awaitable[Any]]


class ToolRegistryError(Exception):
    """Catalog and handler table disagree."""
    pass


@dataclass(frozen=True)
class RegisteredTool:
    """A tool that has been registered with the registry"""
    definition: ToolDefinition
    handler: ToolHandler

    @property
    def name(self) -> str:
        return self.definition.tool_schema.name


class ToolRegistry:
    """
    Registry of tool definitions and their handlers.

    Usage:
        from stripe_assistant.services.tools.registry import tool_registry

        @tool_registry.register(CREATE_CUSTOMER_DEF)
        async def create_customer(stripe, args):
            ...

        schemas = tool_registry.get_tool_schemas()
    """

    def __init__(self) -> None:
        self._tools: Dict[str, RegisteredTool] = {}
        self._schemas: Optional[Tuple[ToolSchema, ...]] = None

    def register(self, definition: ToolDefinition) -> Callable[[ToolHandler], ToolHandler]:
        """
        Decorator to register a tool handler.

        Usage:
            @tool_registry.register(my_tool_definition)
            async def my_tool(stripe, args):
                ...
        """
        def decorator(func: ToolHandler) -> ToolHandler:
            self.register_tool(definition, func)
            return func
        return decorator

    def register_tool(self, definition: ToolDefinition, handler: ToolHandler) -> None:
        name = definition.tool_schema.name
        if name in self._tools:
            raise ToolRegistryError(f"Tool already registered: {name}")

        self._tools[name] = RegisteredTool(definition=definition, handler=handler)
        self._schemas = None
        logger.debug(f"Registered tool: {name}")

    def get_tool(self, name: str) -> Optional[RegisteredTool]:
        return self._tools.get(name)

    def get_tool_schemas(self) -> Tuple[ToolSchema, ...]:
        """
        Schemas in registration order.

        The same tuple is returned on every call until another tool is
        registered, so every model request of a process sees an identical
        catalog.
        """
        if self._schemas is None:
            self._schemas = tuple(tool.definition.tool_schema for tool in self._tools.values())
        return self._schemas

    def names(self) -> List[str]:
        return list(self._tools.keys())

    def validate_parity(self, expected_names: Iterable[str]) -> None:
        """
        Raise ToolRegistryError unless exactly the expected tools are registered.
        """
        expected = set(expected_names)
        registered = set(self._tools)

        missing = sorted(expected - registered)
        unexpected = sorted(registered - expected)
        if missing or unexpected:
            problems = []
            if missing:
                problems.append(f"missing handlers: {', '.join(missing)}")
            if unexpected:
                problems.append(f"undeclared tools: {', '.join(unexpected)}")
            raise ToolRegistryError("Tool catalog mismatch: " + "; ".join(problems))

        logger.info(f"Tool catalog verified: {len(registered)} tools")

    def clear(self) -> None:
        """Clear all registered tools (useful for testing)"""
        self._tools.clear()
        self._schemas = None

    def __len__(self) -> int:
        return len(self._tools)

    def __contains__(self, name: str) -> bool:
        return name in self._tools


# Process-wide catalog, filled by stripe_assistant.services.tools.stripe
tool_registry = ToolRegistry()
