"""
Tests for graph compilation and execution.

Verifies:
- Steps run in edge order and partial updates merge field-wise
- Undeclared fields fail with SchemaError
- Structural problems fail with GraphError at compile or run time
- Conditional edges route by state
- Runs are deterministic and never share state
"""

from typing import TypedDict

import pytest

from agentflow.core.errors import GraphError, SchemaError, StepFailedError, ToolExecutionError
from agentflow.graph.definition import END, START, ConditionalEdge, GraphBuilder, GraphDefinition, Step
from agentflow.graph.executor import RunContext, compile_graph
from agentflow.graph.retry import RetryPolicy
from agentflow.graph.state import GraphState, MemoryGraphState, schema_fields


class CounterState(TypedDict, total=False):
    input: str
    output: str
    trail: list
    route: str


def appender(name):
    def step(state):
        return {"trail": list(state.get("trail", [])) + [name]}
    return step


def linear(*names, schema=CounterState):
    """START → names... → END where each step appends its name to `trail`."""
    builder = GraphBuilder(schema)
    for name in names:
        builder.add_step(name, appender(name))
    chain = [START, *names, END]
    for source, target in zip(chain, chain[1:]):
        builder.add_edge(source, target)
    return builder


class TestSchema:

    def test_schema_fields_include_inherited(self):
        assert schema_fields(GraphState) == {"input", "output"}
        assert schema_fields(MemoryGraphState) == {"input", "output", "conversation_history", "user_id"}

    @pytest.mark.asyncio
    async def test_undeclared_update_field(self):
        graph = compile_graph(
            GraphBuilder(GraphState)
            .add_step("leaky", lambda s: {"output": "x", "secret": 1})
            .add_edge(START, "leaky")
            .add_edge("leaky", END)
            .build()
        )
        with pytest.raises(SchemaError, match="secret") as info:
            await graph.run({"input": "hi"})
        assert info.value.step == "leaky"

    @pytest.mark.asyncio
    async def test_undeclared_initial_field(self):
        graph = compile_graph(linear("a").build())
        with pytest.raises(SchemaError, match="bogus"):
            await graph.run({"input": "x", "bogus": True})

    @pytest.mark.asyncio
    async def test_non_mapping_update(self):
        graph = compile_graph(
            GraphBuilder(GraphState)
            .add_step("bad", lambda s: "not a dict")
            .add_edge(START, "bad")
            .add_edge("bad", END)
            .build()
        )
        with pytest.raises(SchemaError):
            await graph.run({"input": "x"})

    def test_reads_must_be_declared(self):
        definition = (
            GraphBuilder(GraphState)
            .add_step("a", lambda s: None, reads=["input", "nope"])
            .add_edge(START, "a")
            .add_edge("a", END)
            .build()
        )
        with pytest.raises(SchemaError, match="nope"):
            compile_graph(definition)


class TestExecution:

    @pytest.mark.asyncio
    async def test_steps_run_in_edge_order(self):
        graph = compile_graph(linear("one", "two", "three").build())
        final = await graph.run({"input": "x"})
        assert final["trail"] == ["one", "two", "three"]

    @pytest.mark.asyncio
    async def test_merge_preserves_unreturned_fields(self):
        graph = compile_graph(
            GraphBuilder(CounterState)
            .add_step("set_route", lambda s: {"route": "left"})
            .add_step("set_output", lambda s: {"output": s["input"].upper()})
            .add_step("noop", lambda s: None)
            .add_edge(START, "set_route")
            .add_edge("set_route", "set_output")
            .add_edge("set_output", "noop")
            .add_edge("noop", END)
            .build()
        )
        final = await graph.run({"input": "hey"})
        assert final == {"input": "hey", "route": "left", "output": "HEY"}

    @pytest.mark.asyncio
    async def test_sync_and_async_steps_mix(self):
        async def shout(state):
            return {"output": state["input"] + "!"}

        graph = compile_graph(
            GraphBuilder(GraphState)
            .add_step("shout", shout)
            .add_step("trim", lambda s: {"output": s["output"].strip()})
            .add_edge(START, "shout")
            .add_edge("shout", "trim")
            .add_edge("trim", END)
            .build()
        )
        assert (await graph.run({"input": " hi "}))["output"] == "hi !"

    @pytest.mark.asyncio
    async def test_context_passed_to_two_arg_steps(self):
        seen = {}

        def uses_context(state, context):
            seen["run_id"] = context.run_id
            return {"output": context.config["greeting"]}

        graph = compile_graph(
            GraphBuilder(GraphState)
            .add_step("greet", uses_context)
            .add_edge(START, "greet")
            .add_edge("greet", END)
            .build()
        )
        context = RunContext(config={"greeting": "hello"}, run_id="run-1")
        final = await graph.run({"input": ""}, context)
        assert final["output"] == "hello"
        assert seen["run_id"] == "run-1"

    @pytest.mark.asyncio
    async def test_reads_limits_visible_fields(self):
        seen = {}

        def peek(state):
            seen.update(state)
            return None

        graph = compile_graph(
            GraphBuilder(CounterState)
            .add_step("peek", peek, reads=("input",))
            .add_edge(START, "peek")
            .add_edge("peek", END)
            .build()
        )
        await graph.run({"input": "x", "route": "hidden"})
        assert seen == {"input": "x"}

    @pytest.mark.asyncio
    async def test_steps_cannot_mutate_state_in_place(self):
        def sneaky(state):
            state["output"] = "mutated"

        graph = compile_graph(
            GraphBuilder(GraphState)
            .add_step("sneaky", sneaky)
            .add_edge(START, "sneaky")
            .add_edge("sneaky", END)
            .build()
        )
        with pytest.raises(StepFailedError) as info:
            await graph.run({"input": "x"})
        assert isinstance(info.value.__cause__, TypeError)

    @pytest.mark.asyncio
    async def test_in_place_edits_to_containers_do_not_leak(self):
        def sneaky_append(state):
            state["trail"].append("sneaky")

        graph = compile_graph(
            GraphBuilder(CounterState)
            .add_step("sneaky_append", sneaky_append)
            .add_step("after", appender("after"))
            .add_edge(START, "sneaky_append")
            .add_edge("sneaky_append", "after")
            .add_edge("after", END)
            .build()
        )
        initial = {"input": "x", "trail": ["start"]}
        final = await graph.run(initial)

        assert final["trail"] == ["start", "after"]
        assert initial["trail"] == ["start"]

    @pytest.mark.asyncio
    async def test_initial_state_not_mutated_and_runs_isolated(self):
        graph = compile_graph(linear("a", "b").build())
        initial = {"input": "x"}

        first = await graph.run(initial)
        second = await graph.run(initial)

        assert initial == {"input": "x"}
        assert first == second
        assert first is not second

    @pytest.mark.asyncio
    async def test_deterministic_final_state(self):
        graph = compile_graph(
            GraphBuilder(GraphState)
            .add_step("reverse", lambda s: {"output": s["input"][::-1]})
            .add_step("wrap", lambda s: {"output": f"[{s['output']}]"})
            .add_edge(START, "reverse")
            .add_edge("reverse", "wrap")
            .add_edge("wrap", END)
            .build()
        )
        runs = [await graph.run({"input": "abc"}) for _ in range(2)]
        assert runs[0] == runs[1] == {"input": "abc", "output": "[cba]"}

    def test_invoke_sync_wrapper(self):
        graph = compile_graph(linear("a").build())
        assert graph.invoke({"input": "x"})["trail"] == ["a"]


class TestErrors:

    @pytest.mark.asyncio
    async def test_untyped_exception_wrapped_with_step(self):
        def explode(state):
            raise ValueError("kaput")

        graph = compile_graph(
            GraphBuilder(GraphState)
            .add_step("explode", explode)
            .add_edge(START, "explode")
            .add_edge("explode", END)
            .build()
        )
        with pytest.raises(StepFailedError) as info:
            await graph.run({"input": "x"})
        assert info.value.step == "explode"
        assert info.value.attempts == 1
        assert isinstance(info.value.__cause__, ValueError)

    @pytest.mark.asyncio
    async def test_typed_error_propagates_unmodified(self):
        error = ToolExecutionError("search", ConnectionError("down"))

        def call_tool(state):
            raise error

        graph = compile_graph(
            GraphBuilder(GraphState)
            .add_step("call_tool", call_tool)
            .add_edge(START, "call_tool")
            .add_edge("call_tool", END)
            .build()
        )
        with pytest.raises(ToolExecutionError) as info:
            await graph.run({"input": "x"})
        assert info.value is error
        assert info.value.step == "call_tool"

    @pytest.mark.asyncio
    async def test_failing_step_aborts_run(self):
        ran = []

        def fail(state):
            raise RuntimeError("stop")

        graph = compile_graph(
            GraphBuilder(GraphState)
            .add_step("fail", fail)
            .add_step("after", lambda s: ran.append("after"))
            .add_edge(START, "fail")
            .add_edge("fail", "after")
            .add_edge("after", END)
            .build()
        )
        with pytest.raises(StepFailedError):
            await graph.run({"input": "x"})
        assert ran == []

    @pytest.mark.asyncio
    async def test_step_retry_policy_applied(self, recording_sleep):
        calls = []

        def flaky(state):
            calls.append(1)
            if len(calls) < 3:
                raise ToolExecutionError("search", ConnectionError("blip"))
            return {"output": "ok"}

        graph = compile_graph(
            GraphBuilder(GraphState)
            .add_step("flaky", flaky, retry=RetryPolicy(initial_delay=1, backoff_factor=2, max_attempts=3))
            .add_edge(START, "flaky")
            .add_edge("flaky", END)
            .build(),
            sleep=recording_sleep,
        )
        assert (await graph.run({"input": "x"}))["output"] == "ok"
        assert len(calls) == 3
        assert recording_sleep.delays == [1, 2]

    @pytest.mark.asyncio
    async def test_exhausted_untyped_error_reports_attempts(self, recording_sleep):
        def always(state):
            raise ConnectionError("down")

        graph = compile_graph(
            GraphBuilder(GraphState)
            .add_step("always", always, retry=RetryPolicy(initial_delay=0, max_attempts=4))
            .add_edge(START, "always")
            .add_edge("always", END)
            .build(),
            sleep=recording_sleep,
        )
        with pytest.raises(StepFailedError) as info:
            await graph.run({"input": "x"})
        assert info.value.attempts == 4


class TestStructure:

    def test_unreachable_step(self):
        definition = linear("a").add_step("orphan", lambda s: None).add_edge("orphan", END).build()
        with pytest.raises(GraphError, match="orphan"):
            compile_graph(definition)

    def test_missing_entry(self):
        definition = GraphBuilder(GraphState).add_step("a", lambda s: None).add_edge("a", END).build()
        with pytest.raises(GraphError, match="start"):
            compile_graph(definition)

    def test_edge_to_unknown_step(self):
        definition = GraphBuilder(GraphState).add_step("a", lambda s: None).add_edge(START, "a").add_edge("a", "ghost").build()
        with pytest.raises(GraphError, match="ghost"):
            compile_graph(definition)

    def test_step_without_successor(self):
        definition = GraphBuilder(GraphState).add_step("a", lambda s: None).add_edge(START, "a").build()
        with pytest.raises(GraphError, match="no successor"):
            compile_graph(definition)

    def test_builder_rejects_fan_out(self):
        builder = GraphBuilder(GraphState).add_step("a", lambda s: None).add_step("b", lambda s: None)
        builder.add_edge("a", "b")
        with pytest.raises(GraphError):
            builder.add_edge("a", END)
        with pytest.raises(GraphError):
            builder.add_conditional_edges("a", lambda s: "b")

    def test_definition_with_fixed_and_conditional_edge(self):
        definition = GraphDefinition(
            schema=GraphState,
            steps={"a": Step("a", lambda s: None)},
            edges={START: "a", "a": END},
            conditional_edges={"a": ConditionalEdge(lambda s: END)},
        )
        with pytest.raises(GraphError, match="both"):
            compile_graph(definition)

    def test_reserved_names(self):
        with pytest.raises(GraphError):
            GraphBuilder(GraphState).add_step(END, lambda s: None)

    def test_describe_is_plain_data(self):
        definition = (
            linear("a", "b")
            .add_step("c", lambda s: None, retry=RetryPolicy(max_attempts=2))
            .add_conditional_edges("c", lambda s: "done", {"done": END})
            .build()
        )
        described = definition.describe()
        assert described["edges"][START] == "a"
        assert described["steps"]["c"]["retry"]["max_attempts"] == 2
        assert described["conditional_edges"] == {"c": [END]}


class TestConditionalEdges:

    def build(self, resolver, path_map=None):
        return compile_graph(
            GraphBuilder(CounterState)
            .add_step("classify", lambda s: {"route": "left" if "l" in s["input"] else "right"})
            .add_step("left", lambda s: {"output": "went left"})
            .add_step("right", lambda s: {"output": "went right"})
            .add_edge(START, "classify")
            .add_conditional_edges("classify", resolver, path_map)
            .add_edge("left", END)
            .add_edge("right", END)
            .build()
        )

    @pytest.mark.asyncio
    async def test_routes_by_state(self):
        graph = self.build(lambda s: s["route"])
        assert (await graph.run({"input": "lol"}))["output"] == "went left"
        assert (await graph.run({"input": "xyz"}))["output"] == "went right"

    @pytest.mark.asyncio
    async def test_path_map(self):
        graph = self.build(lambda s: s["route"][0], {"l": "left", "r": "right"})
        assert (await graph.run({"input": "l"}))["output"] == "went left"

    @pytest.mark.asyncio
    async def test_unknown_resolver_result(self):
        graph = self.build(lambda s: "sideways")
        with pytest.raises(GraphError, match="sideways") as info:
            await graph.run({"input": "x"})
        assert info.value.step == "classify"

    @pytest.mark.asyncio
    async def test_unmapped_key(self):
        graph = self.build(lambda s: "?", {"l": "left", "r": "right"})
        with pytest.raises(GraphError):
            await graph.run({"input": "x"})

    @pytest.mark.asyncio
    async def test_resolver_exception_becomes_graph_error(self):
        graph = self.build(lambda s: s["missing"])
        with pytest.raises(GraphError) as info:
            await graph.run({"input": "x"})
        assert isinstance(info.value.__cause__, KeyError)

    @pytest.mark.asyncio
    async def test_step_never_runs_twice(self):
        graph = compile_graph(
            GraphBuilder(CounterState)
            .add_step("agent", lambda s: {"trail": list(s.get("trail", [])) + ["agent"]})
            .add_step("tools", lambda s: {"trail": list(s["trail"]) + ["tools"]})
            .add_edge(START, "agent")
            .add_conditional_edges("agent", lambda s: "tools" if len(s["trail"]) < 3 else END)
            .add_edge("tools", "agent")
            .build()
        )
        with pytest.raises(GraphError, match="twice"):
            await graph.run({"input": "x"})
