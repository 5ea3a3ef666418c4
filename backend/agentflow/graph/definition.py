"""
Declarative graph definition.

A GraphDefinition is a plain value: a state schema, named steps, fixed edges
and conditional edges. It holds no execution state; compile_graph() in
graph/executor.py validates it and returns something runnable.

    definition = (
        GraphBuilder(MemoryGraphState)
        .add_step("echo_input", echo_input)
        .add_step("call_agent", call_agent, retry=RetryPolicy())
        .add_step("return", return_output)
        .add_edge(START, "echo_input")
        .add_edge("echo_input", "call_agent")
        .add_edge("call_agent", "return")
        .add_edge("return", END)
        .build()
    )
"""

import inspect
from dataclasses import dataclass, field
from typing import Any, Callable

from agentflow.core.errors import GraphError
from agentflow.graph.retry import RetryPolicy

START = "__start__"
END = "__end__"


def _accepts_context(fn: Callable) -> bool:
    try:
        params = list(inspect.signature(fn).parameters.values())
    except (TypeError, ValueError):
        return False
    if any(p.kind is p.VAR_POSITIONAL for p in params):
        return True
    positional = [p for p in params if p.kind in (p.POSITIONAL_ONLY, p.POSITIONAL_OR_KEYWORD)]
    return len(positional) >= 2


@dataclass(frozen=True)
class Step:
    """
    Named unit of work: fn(state) or fn(state, context) returning a partial
    update (a mapping of changed fields, or None). May be sync or async.
    """
    name: str
    fn: Callable[..., Any]
    reads: tuple[str, ...] | None = None   # None = the whole state
    retry: RetryPolicy | None = None

    async def execute(self, state, context) -> Any:
        result = self.fn(state, context) if _accepts_context(self.fn) else self.fn(state)
        if inspect.isawaitable(result):
            result = await result
        return result


@dataclass(frozen=True)
class ConditionalEdge:
    resolver: Callable[[Any], str]
    path_map: dict[str, str] | None = None   # resolver result -> step name

    def targets(self) -> set[str] | None:
        return set(self.path_map.values()) if self.path_map is not None else None

    def resolve(self, state) -> Any:
        key = self.resolver(state)
        if self.path_map is None:
            return key
        if key not in self.path_map:
            raise GraphError(f"conditional resolver returned unmapped key {key!r}")
        return self.path_map[key]


@dataclass(frozen=True)
class GraphDefinition:
    schema: type
    steps: dict[str, Step] = field(default_factory=dict)
    edges: dict[str, str] = field(default_factory=dict)
    conditional_edges: dict[str, ConditionalEdge] = field(default_factory=dict)

    def describe(self) -> dict[str, Any]:
        """Plain-data description of the graph (no callables)."""
        return {
            "schema": self.schema.__name__,
            "steps": {
                name: {
                    "reads": list(step.reads) if step.reads is not None else None,
                    "retry": step.retry.model_dump() if step.retry else None,
                }
                for name, step in self.steps.items()
            },
            "edges": dict(self.edges),
            "conditional_edges": {
                source: sorted(edge.targets()) if edge.targets() is not None else None
                for source, edge in self.conditional_edges.items()
            },
        }


class GraphBuilder:
    """Convenience for assembling a GraphDefinition step by step."""

    def __init__(self, schema: type):
        self.schema = schema
        self._steps: dict[str, Step] = {}
        self._edges: dict[str, str] = {}
        self._conditional: dict[str, ConditionalEdge] = {}

    def add_step(
        self,
        name: str,
        fn: Callable[..., Any],
        *,
        reads: tuple[str, ...] | list[str] | None = None,
        retry: RetryPolicy | None = None,
    ) -> "GraphBuilder":
        if name in (START, END):
            raise GraphError(f"'{name}' is a reserved marker")
        if name in self._steps:
            raise GraphError(f"step '{name}' already defined")
        self._steps[name] = Step(name, fn, tuple(reads) if reads is not None else None, retry)
        return self

    def add_edge(self, source: str, target: str) -> "GraphBuilder":
        if source == END:
            raise GraphError("no edge may leave the end marker")
        if source in self._edges or source in self._conditional:
            raise GraphError(f"'{source}' already has a successor; add a conditional edge to branch")
        self._edges[source] = target
        return self

    def add_conditional_edges(
        self,
        source: str,
        resolver: Callable[[Any], str],
        path_map: dict[str, str] | None = None,
    ) -> "GraphBuilder":
        if source in self._edges or source in self._conditional:
            raise GraphError(f"'{source}' already has a successor")
        self._conditional[source] = ConditionalEdge(resolver, dict(path_map) if path_map is not None else None)
        return self

    def build(self) -> GraphDefinition:
        return GraphDefinition(
            schema=self.schema,
            steps=dict(self._steps),
            edges=dict(self._edges),
            conditional_edges=dict(self._conditional),
        )
