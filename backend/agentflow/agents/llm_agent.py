"""
Tool-calling LLM agent.

    system + history + input → model (tools bound)
        ├─ text reply          → done
        └─ tool_calls          → invoke each via context.tools, append
                                 ToolMessages, ask the model again

The model decides which tools to call; this class only runs the loop, up to
max_iterations model calls. Tool failures propagate as ToolExecutionError so
the call_agent step's retry policy can act on them; arguments that do not
match the tool's parameters raise SchemaError and are never retried.
"""

from langchain_core.language_models.chat_models import BaseChatModel
from langchain_core.messages import HumanMessage, SystemMessage, ToolMessage

from agentflow.agents.base import Agent
from agentflow.core.config import get_settings
from agentflow.core.errors import GraphError
from agentflow.core.llm import get_chat_model
from agentflow.core.logging import get_logger
from agentflow.memory.messages import Message, to_langchain
from agentflow.tools.langchain import call_tool, to_langchain_tool

log = get_logger(__name__)

SYSTEM_PROMPT = "You are a helpful assistant"


class ToolCallingLLMAgent(Agent):

    def __init__(
        self,
        model: BaseChatModel | None = None,
        *,
        system_prompt: str = SYSTEM_PROMPT,
        max_iterations: int | None = None,
    ):
        self._model = model
        self.system_prompt = system_prompt
        self.max_iterations = max_iterations or get_settings().agent_max_iterations

    @property
    def model(self) -> BaseChatModel:
        if self._model is None:
            self._model = get_chat_model()
        return self._model

    async def ainvoke(self, input: str, history: list[Message], context) -> str:
        tools = []
        if context is not None and context.tools is not None:
            tools = [
                to_langchain_tool(item, context.tools, run_id=context.run_id)
                for item in context.tools.registry.tools()
            ]
        llm = self.model.bind_tools(tools) if tools else self.model

        messages = [SystemMessage(content=self.system_prompt)]
        messages += [to_langchain(m) for m in history]
        messages.append(HumanMessage(content=input))

        for iteration in range(self.max_iterations):
            response = await llm.ainvoke(messages)
            tool_calls = getattr(response, "tool_calls", None) or []

            log.debug(
                "agent_response",
                iteration=iteration,
                has_tool_calls=bool(tool_calls),
                content_length=len(response.content) if response.content else 0,
            )

            if not tool_calls:
                return response.content if isinstance(response.content, str) else str(response.content)

            messages.append(response)
            for call in tool_calls:
                if not tools or call["name"] not in context.tools.registry:
                    content = f"Unknown tool: {call['name']}"
                else:
                    # validated by the invoker; bad args raise SchemaError
                    item = context.tools.registry.get(call["name"])
                    content = await call_tool(context.tools, item, call["args"], run_id=context.run_id)
                messages.append(ToolMessage(content=content, tool_call_id=call["id"]))

        raise GraphError(f"agent made no final reply after {self.max_iterations} model calls")
