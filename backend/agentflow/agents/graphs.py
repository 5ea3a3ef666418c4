"""
Agent graphs: the linear request pipeline, with or without memory.

    START → echo_input → call_agent → return → END

build_agent_graph(agent)                         stateless: input → output
build_agent_graph(agent, with_memory=True)       per-user history via context.memory
build_agent_graph(agent, ..., retry=RetryPolicy) call_agent retried on transient failure

The compiled graph is stateless: safe to build once per process and reuse.
"""

from typing import Any

from agentflow.agents.base import Agent
from agentflow.agents.steps import echo_input, make_call_agent, return_output
from agentflow.core.errors import SchemaError
from agentflow.graph.definition import END, START, GraphBuilder, GraphDefinition
from agentflow.graph.executor import ExecutableGraph, RunContext, compile_graph
from agentflow.graph.retry import RetryPolicy
from agentflow.graph.state import GraphState, MemoryGraphState


def agent_graph_definition(
    agent: Agent,
    *,
    with_memory: bool = False,
    retry: RetryPolicy | None = None,
) -> GraphDefinition:
    schema = MemoryGraphState if with_memory else GraphState
    echo_reads = ("input", "user_id") if with_memory else ("input",)
    agent_reads = ("input", "user_id") if with_memory else ("input",)

    return (
        GraphBuilder(schema)
        .add_step("echo_input", echo_input, reads=echo_reads)
        .add_step("call_agent", make_call_agent(agent, with_memory=with_memory), reads=agent_reads, retry=retry)
        .add_step("return", return_output, reads=("output",))
        .add_edge(START, "echo_input")
        .add_edge("echo_input", "call_agent")
        .add_edge("call_agent", "return")
        .add_edge("return", END)
        .build()
    )


def build_agent_graph(
    agent: Agent,
    *,
    with_memory: bool = False,
    retry: RetryPolicy | None = None,
    **compile_kwargs: Any,
) -> ExecutableGraph:
    return compile_graph(agent_graph_definition(agent, with_memory=with_memory, retry=retry), **compile_kwargs)


async def invoke_agent_graph(
    graph: ExecutableGraph,
    *,
    input: str,
    user_id: str | None = None,
    context: RunContext | None = None,
) -> dict[str, str]:
    """
    Entry point: {input, user_id?} → {output}.
    Raises GraphError / SchemaError / ToolExecutionError / InvalidKeyError;
    never returns partial state.
    """
    if not isinstance(input, str):
        raise SchemaError(f"'input' must be text, got {type(input).__name__}")
    initial: dict[str, Any] = {"input": input}
    # stateless graphs declare no user_id field
    if user_id is not None and "user_id" in graph.fields:
        initial["user_id"] = user_id

    final = await graph.run(initial, context)
    return {"output": final["output"]}
