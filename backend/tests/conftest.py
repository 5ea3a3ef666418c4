"""Shared fixtures: isolated factories, fake tools and a recording sleep."""

import pytest
from pydantic import BaseModel

from agentflow.graph.executor import RunContext
from agentflow.memory.factory import MemoryFactory
from agentflow.tools.base import Tool
from agentflow.tools.registry import ToolInvoker, ToolRegistry


class QueryParams(BaseModel):
    query: str


class FlakyTool:
    """Fails `failures` times with ConnectionError, then answers 'found: <query>'."""

    def __init__(self, failures: int = 0):
        self.failures = failures
        self.calls = 0

    async def __call__(self, params: QueryParams) -> str:
        self.calls += 1
        if self.calls <= self.failures:
            raise ConnectionError(f"transient failure #{self.calls}")
        return f"found: {params.query}"


class RecordingSleep:
    """Stands in for asyncio.sleep; records every requested delay."""

    def __init__(self):
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)

    @property
    def offsets(self) -> list[float]:
        """Start offsets of each attempt if the only time spent was sleeping."""
        offsets = [0.0]
        for delay in self.delays:
            offsets.append(offsets[-1] + delay)
        return offsets


class FakeRedis:
    """The three list commands RedisConversationStore uses; counts RPUSH calls."""

    def __init__(self):
        self.lists: dict[str, list[str]] = {}
        self.rpush_calls = 0

    async def rpush(self, key, *values):
        self.rpush_calls += 1
        self.lists.setdefault(key, []).extend(values)
        return len(self.lists[key])

    async def lrange(self, key, start, end):
        items = self.lists.get(key, [])
        return items[start:] if end == -1 else items[start:end + 1]

    async def delete(self, key):
        return 1 if self.lists.pop(key, None) is not None else 0


def search_tool(fn=None, name: str = "search") -> Tool:
    return Tool(name, "mock search", QueryParams, fn or FlakyTool(), idempotent=True)


@pytest.fixture
def factory():
    return MemoryFactory()


@pytest.fixture
def flaky():
    return FlakyTool()


@pytest.fixture
def registry(flaky):
    return ToolRegistry([search_tool(flaky)])


@pytest.fixture
def invoker(registry):
    return ToolInvoker(registry)


@pytest.fixture
def context(factory, invoker):
    return RunContext(memory=factory, tools=invoker)


@pytest.fixture
def recording_sleep():
    return RecordingSleep()
