"""
Agent interface: the collaborator the call_agent step delegates to.

Reasoning and tool selection live outside the core. An agent gets the
current input, the user's prior messages and the run context (for
context.tools) and returns the reply text.
"""

from abc import ABC, abstractmethod
from typing import Any, Callable

from agentflow.memory.messages import Message


class Agent(ABC):

    @abstractmethod
    async def ainvoke(self, input: str, history: list[Message], context) -> str:
        raise NotImplementedError


class ToolCallAgent(Agent):
    """
    Calls one named tool with parameters built from the input. No
    selection logic: the wiring decides which tool runs.

        agent = ToolCallAgent("searchBooks", lambda text: {"query": text})
    """

    def __init__(
        self,
        tool_name: str,
        build_params: Callable[[str], dict[str, Any]],
        *,
        idempotency_key: Callable[[str], str | None] | None = None,
    ):
        self.tool_name = tool_name
        self.build_params = build_params
        self.idempotency_key = idempotency_key

    async def ainvoke(self, input: str, history: list[Message], context) -> str:
        if context is None or context.tools is None:
            raise RuntimeError("ToolCallAgent needs context.tools (a ToolInvoker)")
        key = self.idempotency_key(input) if self.idempotency_key else None
        return await context.tools.invoke(self.tool_name, self.build_params(input), idempotency_key=key)
