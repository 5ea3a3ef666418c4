"""
Graph compiler and executor.

compile_graph(definition) validates a GraphDefinition and returns an
ExecutableGraph. The compiled graph is stateless: compile once per process
and reuse it for every request; each run() works on its own copy of the
initial state.

Run loop:
    current = START
    while True:
        next = fixed edge of current, or its conditional resolver(state)
        stop if next is END
        execute next with a read-only view of the state
        merge the returned partial update (field-wise overwrite)

Strictly sequential within a run: a step may suspend while awaiting I/O, but
no other step of the same run proceeds until it returns. No step runs twice
in one invocation.
"""

import asyncio
import copy
import time
import uuid
from collections import deque
from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any

import structlog

from agentflow.core.errors import GraphError, OrchestrationError, SchemaError, StepFailedError
from agentflow.core.logging import get_logger
from agentflow.graph.definition import END, START, GraphDefinition, Step
from agentflow.graph.retry import with_retry
from agentflow.graph.state import check_fields, merge_update, schema_fields

log = get_logger(__name__)


@dataclass
class RunContext:
    """
    Per-run collaborators handed to steps that accept a second argument.
    Nothing here is global: the host builds one (or shares the factory and
    invoker across runs) and passes it in explicitly.
    """
    memory: Any = None          # MemoryFactory
    tools: Any = None           # ToolInvoker
    run_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    config: dict[str, Any] = field(default_factory=dict)


class ExecutableGraph:

    def __init__(self, definition: GraphDefinition, steps: dict[str, Step], fields: frozenset[str]):
        self.definition = definition
        self.fields = fields
        self._steps = steps

    @property
    def step_names(self) -> list[str]:
        return list(self._steps)

    def _successor(self, current: str, state: dict) -> str:
        if current in self.definition.edges:
            return self.definition.edges[current]

        edge = self.definition.conditional_edges.get(current)
        if edge is None:
            raise GraphError(f"'{current}' has no successor", step=current)
        try:
            target = edge.resolve(MappingProxyType(state))
        except GraphError as exc:
            exc.step = exc.step or current
            raise
        except Exception as exc:
            raise GraphError(f"conditional resolver after '{current}' raised {type(exc).__name__}: {exc}", step=current) from exc

        if target != END and target not in self._steps:
            raise GraphError(f"conditional resolver after '{current}' returned unknown step {target!r}", step=current)
        return target

    @staticmethod
    def _view(step: Step, state: dict) -> Mapping[str, Any]:
        names = state.keys() if step.reads is None else [n for n in step.reads if n in state]
        # containers are copied: in-place edits never reach the run state
        return MappingProxyType({name: _detach(state[name]) for name in names})

    async def run(self, initial_state: Mapping[str, Any], context: RunContext | None = None) -> dict[str, Any]:
        """Execute the graph start to end for one request; return the final state."""
        context = context or RunContext()
        if not isinstance(initial_state, Mapping):
            raise SchemaError(f"initial state must be a mapping, got {type(initial_state).__name__}")
        check_fields(initial_state, self.fields)
        state = dict(initial_state)

        executed: set[str] = set()
        current = START
        started = time.perf_counter()

        with structlog.contextvars.bound_contextvars(run_id=context.run_id):
            log.debug("graph_run_start", graph=self.definition.schema.__name__)
            try:
                while True:
                    target = self._successor(current, state)
                    log.debug("workflow_transition", from_node=current, to_node=target)
                    if target == END:
                        break
                    if target in executed:
                        raise GraphError(f"step '{target}' would run twice in one invocation", step=target)

                    step = self._steps[target]
                    update = await self._execute(step, state, context)
                    merge_update(state, update, self.fields, step.name)
                    executed.add(step.name)
                    log.debug("step_complete", step=step.name, updated=sorted(update or {}))
                    current = target
            except OrchestrationError as exc:
                log.warning(
                    "graph_run_failed",
                    step=exc.step,
                    error_type=type(exc).__name__,
                    attempts=exc.attempts,
                    error=exc.message,
                )
                raise

            log.debug(
                "graph_run_complete",
                steps=len(executed),
                latency_ms=round((time.perf_counter() - started) * 1000, 1),
            )
        return state

    async def _execute(self, step: Step, state: dict, context: RunContext) -> Any:
        try:
            return await step.execute(self._view(step, state), context)
        except OrchestrationError as exc:
            exc.step = exc.step or step.name
            raise
        except Exception as exc:
            attempts = getattr(exc, "retry_attempts", 1)
            raise StepFailedError(
                f"step '{step.name}' raised {type(exc).__name__}: {exc}",
                step=step.name,
                attempts=attempts,
            ) from exc

    def invoke(self, initial_state: Mapping[str, Any], context: RunContext | None = None) -> dict[str, Any]:
        """Blocking wrapper around run() for scripts and sync callers."""
        return asyncio.run(self.run(initial_state, context))


def _detach(value: Any) -> Any:
    if isinstance(value, (list, dict, set)):
        return copy.copy(value)
    return value


def _reachable(definition: GraphDefinition) -> set[str]:
    seen: set[str] = set()
    queue = deque([START])
    while queue:
        node = queue.popleft()
        if node in definition.edges:
            nexts = {definition.edges[node]}
        elif node in definition.conditional_edges:
            nexts = definition.conditional_edges[node].targets()
            if nexts is None:
                # opaque resolver: any step may follow
                nexts = set(definition.steps)
        else:
            nexts = set()
        for target in nexts - seen:
            seen.add(target)
            if target != END:
                queue.append(target)
    return seen


def compile_graph(definition: GraphDefinition, *, sleep=asyncio.sleep) -> ExecutableGraph:
    """
    Validate the definition and return a runnable graph.
    Raises GraphError for structural problems, SchemaError for undeclared
    `reads` fields. Steps declared with a RetryPolicy are wrapped here;
    `sleep` is the backoff wait they use.
    """
    fields = schema_fields(definition.schema)
    steps = definition.steps
    known_sources = set(steps) | {START}
    known_targets = set(steps) | {END}

    for name, step in steps.items():
        if name != step.name:
            raise GraphError(f"step registered as '{name}' is named '{step.name}'")
        if step.reads is not None:
            undeclared = sorted(set(step.reads) - fields)
            if undeclared:
                raise SchemaError(f"step '{name}' reads undeclared field(s): {', '.join(undeclared)}", step=name)

    for source, target in definition.edges.items():
        if source not in known_sources:
            raise GraphError(f"edge from unknown step '{source}'")
        if target not in known_targets:
            raise GraphError(f"edge from '{source}' to unknown step '{target}'")

    for source, edge in definition.conditional_edges.items():
        if source not in known_sources:
            raise GraphError(f"conditional edge from unknown step '{source}'")
        if source in definition.edges:
            raise GraphError(f"'{source}' has both a fixed and a conditional edge")
        unknown = sorted((edge.targets() or set()) - known_targets)
        if unknown:
            raise GraphError(f"conditional edge from '{source}' maps to unknown step(s): {', '.join(unknown)}")

    if START not in definition.edges and START not in definition.conditional_edges:
        raise GraphError("graph has no entry edge from the start marker")

    for name in steps:
        if name not in definition.edges and name not in definition.conditional_edges:
            raise GraphError(f"step '{name}' has no successor", step=name)

    unreachable = sorted(set(steps) - _reachable(definition))
    if unreachable:
        raise GraphError(f"unreachable step(s): {', '.join(unreachable)}")

    runnable = {
        name: with_retry(step, step.retry, sleep=sleep) if step.retry is not None else step
        for name, step in steps.items()
    }
    return ExecutableGraph(definition, runnable, fields)
