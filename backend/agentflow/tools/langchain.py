"""
LangChain adapters.

to_langchain_tool(): expose a registry tool to a chat model via bind_tools();
                       calls are routed back through the ToolInvoker so
                       validation, logging and error typing stay in one place.
from_langchain_tool(): wrap an existing LangChain BaseTool as a Tool.
"""

import hashlib
import json
from typing import Any

from langchain_core.tools import BaseTool, StructuredTool
from pydantic import BaseModel

from agentflow.tools.base import Tool
from agentflow.tools.registry import ToolInvoker


def idempotency_key(run_id: str, tool_name: str, params: Any) -> str:
    """Stable key for one logical call: same run, tool and params → same key."""
    payload = json.dumps({"run": run_id, "tool": tool_name, "params": params}, sort_keys=True, default=str)
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


async def call_tool(invoker: ToolInvoker, item: Tool, params: Any, *, run_id: str | None = None) -> str:
    """
    Invoke `item` with raw, unvalidated params (e.g. a model's tool-call args).
    With a run_id, non-idempotent tools get a derived idempotency key, so a
    retried step repeats the same downstream request instead of a new one.
    """
    key = None
    if not item.idempotent and run_id is not None:
        key = idempotency_key(run_id, item.name, params)
    return await invoker.invoke(item.name, params, idempotency_key=key)


def to_langchain_tool(item: Tool, invoker: ToolInvoker, *, run_id: str | None = None) -> StructuredTool:
    async def call(**kwargs: Any) -> str:
        return await call_tool(invoker, item, kwargs, run_id=run_id)

    return StructuredTool.from_function(
        coroutine=call,
        name=item.name,
        description=item.description,
        args_schema=item.parameters,
    )


def from_langchain_tool(lc_tool: BaseTool, *, idempotent: bool = True) -> Tool:
    schema = lc_tool.args_schema
    if not (isinstance(schema, type) and issubclass(schema, BaseModel)):
        raise TypeError(f"tool '{lc_tool.name}' has no pydantic args_schema")

    async def run(params: BaseModel, idempotency_key: str | None = None) -> str:
        result = await lc_tool.ainvoke(params.model_dump())
        return result if isinstance(result, str) else json.dumps(result, default=str)

    if idempotent:
        async def fn(params: BaseModel) -> str:
            return await run(params)
    else:
        fn = run

    return Tool(
        name=lc_tool.name,
        description=lc_tool.description,
        parameters=schema,
        fn=fn,
        idempotent=idempotent,
    )
