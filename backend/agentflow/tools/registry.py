"""
Tool registry and invoker.

    registry = ToolRegistry([search_books_tool, refund_tool])
    invoker = ToolInvoker(registry)
    text = await invoker.invoke("searchBooks", {"query": "dune"})

invoke() is the only path from a step to a tool:
  - parameters are validated against the tool's model  → SchemaError
  - the tool runs (awaited if async)
  - a non-text result                                  → SchemaError
  - any other failure                                  → ToolExecutionError
    (retry_safe=False for non-idempotent tools called without a key)
"""

import inspect
import time
from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel, ValidationError

from agentflow.core.errors import SchemaError, ToolExecutionError, UnknownToolError
from agentflow.core.logging import get_logger
from agentflow.tools.base import Tool

log = get_logger(__name__)


class ToolRegistry:

    def __init__(self, tools: list[Tool] | None = None):
        self._tools: dict[str, Tool] = {}
        for item in tools or []:
            self.register(item)

    def register(self, item: Tool) -> None:
        if item.name in self._tools:
            raise ValueError(f"tool '{item.name}' already registered")
        self._tools[item.name] = item

    def get(self, name: str) -> Tool:
        try:
            return self._tools[name]
        except KeyError:
            raise UnknownToolError(name) from None

    def tools(self) -> list[Tool]:
        return list(self._tools.values())

    def specs(self) -> list[dict[str, Any]]:
        return [item.spec() for item in self._tools.values()]

    def __contains__(self, name: str) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)


class ToolInvoker:

    def __init__(self, registry: ToolRegistry):
        self.registry = registry

    async def invoke(
        self,
        tool_name: str,
        params: Mapping[str, Any] | BaseModel,
        *,
        idempotency_key: str | None = None,
    ) -> str:
        item = self.registry.get(tool_name)
        args = self._validate(item, params)
        retry_safe = item.idempotent or idempotency_key is not None

        started = time.perf_counter()
        try:
            if item.idempotent:
                result = item.fn(args)
            else:
                result = item.fn(args, idempotency_key)
            if inspect.isawaitable(result):
                result = await result
        except Exception as exc:
            log.warning(
                "tool_execution",
                tool_name=tool_name,
                success=False,
                duration_ms=round((time.perf_counter() - started) * 1000, 1),
                error_type=type(exc).__name__,
                error=str(exc),
            )
            raise ToolExecutionError(tool_name, exc, retry_safe=retry_safe) from exc

        if not isinstance(result, str):
            raise SchemaError(f"tool '{tool_name}' returned {type(result).__name__}, expected text")

        log.info(
            "tool_execution",
            tool_name=tool_name,
            success=True,
            duration_ms=round((time.perf_counter() - started) * 1000, 1),
        )
        return result

    @staticmethod
    def _validate(item: Tool, params: Mapping[str, Any] | BaseModel) -> BaseModel:
        if isinstance(params, item.parameters):
            return params
        if isinstance(params, BaseModel):
            params = params.model_dump()
        try:
            return item.parameters.model_validate(params)
        except ValidationError as exc:
            raise SchemaError(f"invalid parameters for tool '{item.name}': {exc.errors()}") from exc
