"""
Tool Calling Agent - conversation loop between the model and the Stripe tools

1. Send the transcript, the tool catalog and the mode instructions to the model
2. If the model requests tools, execute them in order and append the results
3. Repeat until the model answers with text or the round ceiling is reached

Tool failures are data and go back to the model. Provider failures are not
caught here; they propagate to the caller as ProviderError.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence

from stripe_assistant.services.tools.executor import ToolExecutor
from stripe_assistant.services.tools.prompts import ChatMode, instructions_for
from stripe_assistant.services.tools.provider_adapter import LLMProvider, ModelResponse, Turn, TurnRole
from stripe_assistant.services.tools.registry import ToolRegistry
from stripe_assistant.services.tools.schema import ToolInvocationResult

logger = logging.getLogger(__name__)

EMPTY_RESPONSE_FALLBACK = "An error occurred while generating a response."
ITERATION_LIMIT_MESSAGE = "The request is too complex to finish. Please be more specific."


class AgentState(str, Enum):
    """States the agent can be in during execution"""
    AWAITING_MODEL = "awaiting_model"
    DISPATCHING_TOOLS = "dispatching_tools"
    DONE = "done"


@dataclass
class AgentContext:
    """Per-run state of the loop"""
    transcript: List[Turn] = field(default_factory=list)
    tool_results: List[ToolInvocationResult] = field(default_factory=list)
    iteration: int = 0
    state: AgentState = AgentState.AWAITING_MODEL
    prompt_tokens: int = 0
    completion_tokens: int = 0


@dataclass
class AgentResult:
    content: str
    tool_results: List[ToolInvocationResult] = field(default_factory=list)
    iterations: int = 0
    max_iterations_reached: bool = False

    @property
    def function_calls(self) -> Optional[List[Dict[str, Any]]]:
        """Tool results in their persisted form, or None when no tool ran"""
        if not self.tool_results:
            return None
        return [result.to_record() for result in self.tool_results]


class ToolCallingAgent:
    """
    Runs one user request to completion.

    Usage:
        agent = ToolCallingAgent(provider, ToolExecutor(tool_registry, stripe_client), tool_registry)
        result = await agent.run(history, "Create a customer for taro@example.com", ChatMode.ACTUAL)
        print(result.content)
    """

    MAX_ITERATIONS = 10

    def __init__(
        self,
        provider: LLMProvider,
        executor: ToolExecutor,
        registry: ToolRegistry,
        max_iterations: Optional[int] = None,
    ):
        self.provider = provider
        self.executor = executor
        self.registry = registry
        self.max_iterations = max_iterations or self.MAX_ITERATIONS
        self.context = AgentContext()

    async def run(
        self,
        history: Optional[Sequence[Dict[str, Any]]],
        user_message: str,
        mode: ChatMode = ChatMode.SIMULATION,
    ) -> AgentResult:
        """
        Run the loop until the model answers or the ceiling is reached.

        Args:
            history: Prior messages as {"role": "user"|"assistant", "content": str}
            user_message: The new user message
            mode: Chat mode; selects the instructions sent to the model

        Raises:
            ProviderError: the model could not be reached or answered with nothing usable
        """
        self.context = AgentContext(transcript=self._initial_transcript(history, user_message))
        instructions = instructions_for(mode)
        tools = self.registry.get_tool_schemas()

        while self.context.iteration < self.max_iterations:
            self.context.iteration += 1
            self.context.state = AgentState.AWAITING_MODEL

            response = await self.provider.generate(self.context.transcript, tools, instructions)
            self._record_usage(response)

            if not response.tool_calls:
                self.context.transcript.append(Turn(role=TurnRole.MODEL, text=response.text, raw=response.raw))
                content = response.text if response.text.strip() else EMPTY_RESPONSE_FALLBACK
                return self._finish(content, max_iterations_reached=False)

            logger.info(
                f"Iteration {self.context.iteration}: model requested "
                f"{', '.join(call.name for call in response.tool_calls)}"
            )
            self.context.transcript.append(
                Turn(role=TurnRole.MODEL, text=response.text, tool_calls=list(response.tool_calls), raw=response.raw)
            )

            self.context.state = AgentState.DISPATCHING_TOOLS
            batch = await self.executor.execute_batch(response.tool_calls)

            self.context.tool_results.extend(batch)
            self.context.transcript.append(Turn(role=TurnRole.TOOL, tool_results=batch))

        logger.warning(f"Agent stopped after {self.context.iteration} tool rounds without a final answer")
        return self._finish(ITERATION_LIMIT_MESSAGE, max_iterations_reached=True)

    @staticmethod
    def _initial_transcript(history: Optional[Sequence[Dict[str, Any]]], user_message: str) -> List[Turn]:
        transcript = []
        for message in history or []:
            role = TurnRole.MODEL if message.get("role") == "assistant" else TurnRole.USER
            transcript.append(Turn(role=role, text=message.get("content") or ""))
        transcript.append(Turn(role=TurnRole.USER, text=user_message))
        return transcript

    def _record_usage(self, response: ModelResponse) -> None:
        self.context.prompt_tokens += response.usage.get("prompt_tokens") or 0
        self.context.completion_tokens += response.usage.get("completion_tokens") or 0

    def _finish(self, content: str, max_iterations_reached: bool) -> AgentResult:
        self.context.state = AgentState.DONE
        return AgentResult(
            content=content,
            tool_results=list(self.context.tool_results),
            iterations=self.context.iteration,
            max_iterations_reached=max_iterations_reached,
        )
