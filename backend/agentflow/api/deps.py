"""
Runtime wiring shared by the routers.

main.py builds one Runtime in the lifespan and stores it on app.state;
routes receive it through FastAPI's dependency injection:
    runtime: Runtime = Depends(get_runtime)
"""

from dataclasses import dataclass

from fastapi import Request

from agentflow.agents.base import Agent, ToolCallAgent
from agentflow.agents.graphs import build_agent_graph
from agentflow.agents.llm_agent import ToolCallingLLMAgent
from agentflow.core.config import Settings, get_settings
from agentflow.graph.executor import ExecutableGraph, RunContext
from agentflow.graph.retry import RetryPolicy
from agentflow.memory.factory import MemoryFactory, build_store_factory
from agentflow.tools.catalog import default_registry
from agentflow.tools.registry import ToolInvoker, ToolRegistry


@dataclass
class Runtime:
    settings: Settings
    memory: MemoryFactory
    registry: ToolRegistry
    invoker: ToolInvoker
    graph: ExecutableGraph

    def context(self) -> RunContext:
        """Fresh per-request context; the factory and invoker are shared."""
        return RunContext(memory=self.memory, tools=self.invoker)


def build_agent(settings: Settings) -> Agent:
    if settings.agent_mode == "llm":
        return ToolCallingLLMAgent()
    if settings.agent_mode == "books":
        return ToolCallAgent("searchBooks", lambda text: {"query": text})
    raise ValueError(f"unknown agent mode: {settings.agent_mode!r}")


def build_runtime(
    settings: Settings | None = None,
    *,
    agent: Agent | None = None,
    registry: ToolRegistry | None = None,
    memory: MemoryFactory | None = None,
) -> Runtime:
    settings = settings or get_settings()
    registry = registry or default_registry(settings)
    graph = build_agent_graph(
        agent or build_agent(settings),
        with_memory=settings.agent_with_memory,
        retry=RetryPolicy.from_settings(settings),
    )
    return Runtime(
        settings=settings,
        memory=memory or MemoryFactory(build_store_factory(settings)),
        registry=registry,
        invoker=ToolInvoker(registry),
        graph=graph,
    )


def get_runtime(request: Request) -> Runtime:
    return request.app.state.runtime
