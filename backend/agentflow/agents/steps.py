"""
Step implementations for the agent graphs.

    START → echo_input → call_agent → return → END

echo_input:
    - Keeps the caller's input (and user id) in state for later steps
    - Fails fast with SchemaError when input is missing or not text

call_agent:
    - Without memory: agent sees only the current input
    - With memory: resolves the user's store from context.memory, passes the
      prior messages to the agent, stores user + assistant messages in one
      extend() after a successful exchange (never on failure, and never one
      without the other, so retries do not duplicate history)
    - Populates: output, conversation_history

return_output:
    - Final pass over the reply before it leaves the graph
"""

from agentflow.agents.base import Agent
from agentflow.core.errors import SchemaError
from agentflow.core.logging import get_logger
from agentflow.memory import messages

log = get_logger(__name__)


def echo_input(state) -> dict:
    text = state.get("input")
    if not isinstance(text, str):
        raise SchemaError(f"'input' must be text, got {type(text).__name__}", step="echo_input")
    update = {"input": text}
    if "user_id" in state:
        update["user_id"] = state["user_id"]
    return update


def make_call_agent(agent: Agent, *, with_memory: bool = False):

    async def call_agent(state, context) -> dict:
        if not with_memory:
            reply = await agent.ainvoke(state["input"], [], context)
            return {"output": reply}

        if context is None or context.memory is None:
            raise RuntimeError("memory-aware graph needs context.memory (a MemoryFactory)")

        user_id = state.get("user_id")
        store = context.memory.create_or_get(user_id)
        history = await store.read_all()

        reply = await agent.ainvoke(state["input"], history, context)

        exchange = [messages.user(state["input"]), messages.assistant(reply)]
        await store.extend(exchange)

        log.debug("agent_exchange", user_id=user_id, history_length=len(history) + len(exchange))
        return {"output": reply, "conversation_history": history + exchange}

    return call_agent


def return_output(state) -> dict:
    output = state.get("output")
    if not isinstance(output, str):
        raise SchemaError(f"'output' must be text, got {type(output).__name__}", step="return")
    return {"output": output}
