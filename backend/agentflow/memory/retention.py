"""
Retention policies: explicit, host-scheduled limits on conversation growth.

Stores never expire or summarise history on their own. The host picks a
policy and runs it on a schedule:

    policy = IdleEvictionPolicy(max_idle_seconds=3600)
    task = asyncio.create_task(run_retention(factory, policy, interval=60, stop=stop_event))

main.py starts this loop from the FastAPI lifespan when
settings.retention_interval_seconds > 0.
"""

import asyncio
import time
from abc import ABC, abstractmethod
from typing import Callable

from agentflow.core.logging import get_logger
from agentflow.memory.factory import MemoryFactory

log = get_logger(__name__)


class RetentionPolicy(ABC):

    @abstractmethod
    async def apply(self, factory: MemoryFactory) -> int:
        """Apply the policy once. Returns how many users were affected."""
        raise NotImplementedError


class IdleEvictionPolicy(RetentionPolicy):
    """Evict users whose store has not been looked up for max_idle_seconds."""

    def __init__(self, max_idle_seconds: float, clock: Callable[[], float] = time.monotonic):
        if max_idle_seconds <= 0:
            raise ValueError("max_idle_seconds must be positive")
        self.max_idle_seconds = max_idle_seconds
        self._clock = clock

    async def apply(self, factory: MemoryFactory) -> int:
        now = self._clock()
        evicted = 0
        for user_id in factory.user_ids():
            last = factory.last_access(user_id)
            if last is not None and now - last >= self.max_idle_seconds:
                if await factory.evict(user_id):
                    evicted += 1
        return evicted


class MaxMessagesPolicy(RetentionPolicy):
    """Keep only the newest max_messages of each conversation."""

    def __init__(self, max_messages: int):
        if max_messages < 1:
            raise ValueError("max_messages must be >= 1")
        self.max_messages = max_messages

    async def apply(self, factory: MemoryFactory) -> int:
        trimmed = 0
        for user_id in factory.user_ids():
            store = factory.peek(user_id)
            if store is None:
                continue
            history = await store.read_all()
            if len(history) <= self.max_messages:
                continue
            await store.clear()
            await store.extend(history[-self.max_messages:])
            trimmed += 1
        return trimmed


class CompositePolicy(RetentionPolicy):

    def __init__(self, *policies: RetentionPolicy):
        self.policies = policies

    async def apply(self, factory: MemoryFactory) -> int:
        total = 0
        for policy in self.policies:
            total += await policy.apply(factory)
        return total


async def run_retention(
    factory: MemoryFactory,
    policy: RetentionPolicy,
    interval: float,
    stop: asyncio.Event,
) -> None:
    """Apply `policy` every `interval` seconds until `stop` is set."""
    while not stop.is_set():
        try:
            affected = await policy.apply(factory)
            if affected:
                log.info("retention_applied", policy=type(policy).__name__, affected=affected)
        except Exception as exc:
            log.error("retention_failed", policy=type(policy).__name__, error=str(exc))
        try:
            await asyncio.wait_for(stop.wait(), timeout=interval)
        except asyncio.TimeoutError:
            pass
