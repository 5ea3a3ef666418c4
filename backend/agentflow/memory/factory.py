"""
Memory factory: maps an opaque user id to exactly one ConversationStore.

    factory = MemoryFactory()                       # in-process stores
    factory = MemoryFactory(build_store_factory())  # backend from settings

    store = factory.create_or_get("user-123")   # created on first access
    store is factory.create_or_get("user-123")  # True until evicted
    await factory.evict("user-123")             # removes + clears, no-op if absent

The registry is the only resource shared across concurrent runs. The
check-then-create sequence runs under one lock, so two concurrent lookups for
an unseen user cannot produce two stores. Store construction does no I/O, so a
plain threading.Lock serves both threads and asyncio tasks.

Pass the factory explicitly into each run (RunContext.memory) instead of
reaching for a module-level singleton; tests get an isolated instance each.
"""

import threading
import time
from dataclasses import dataclass
from typing import Callable

from agentflow.core.config import Settings, get_settings
from agentflow.core.errors import InvalidKeyError
from agentflow.core.logging import get_logger
from agentflow.memory.store import ConversationStore, InMemoryConversationStore

log = get_logger(__name__)

MAX_KEY_LENGTH = 256

StoreFactory = Callable[[str], ConversationStore]


@dataclass(frozen=True)
class MemoryStats:
    user_count: int
    store_count: int


def validate_user_id(user_id) -> str:
    if not isinstance(user_id, str):
        raise InvalidKeyError(user_id, "user id must be a string")
    if not user_id.strip():
        raise InvalidKeyError(user_id, "user id must not be empty")
    if len(user_id) > MAX_KEY_LENGTH:
        raise InvalidKeyError(user_id[:32] + "...", f"user id longer than {MAX_KEY_LENGTH} characters")
    if any(not ch.isprintable() for ch in user_id):
        raise InvalidKeyError(user_id, "user id contains control characters")
    return user_id


class MemoryFactory:

    def __init__(self, store_factory: StoreFactory = InMemoryConversationStore, clock: Callable[[], float] = time.monotonic):
        self._store_factory = store_factory
        self._clock = clock
        self._stores: dict[str, ConversationStore] = {}
        self._last_access: dict[str, float] = {}
        self._lock = threading.Lock()

    def create_or_get(self, user_id: str) -> ConversationStore:
        """Return the user's store, creating it on first access."""
        validate_user_id(user_id)
        with self._lock:
            store = self._stores.get(user_id)
            created = store is None
            if created:
                store = self._store_factory(user_id)
                self._stores[user_id] = store
            self._last_access[user_id] = self._clock()

        if created:
            log.debug("memory_created", user_id=user_id, store=type(store).__name__)
        return store

    async def evict(self, user_id: str) -> bool:
        """
        Remove and clear the user's store. Returns False (and does nothing)
        when the user has no store.
        """
        with self._lock:
            store = self._stores.pop(user_id, None)
            self._last_access.pop(user_id, None)

        if store is None:
            return False

        await store.clear()
        log.info("memory_evicted", user_id=user_id)
        return True

    def stats(self) -> MemoryStats:
        with self._lock:
            return MemoryStats(
                user_count=len(self._stores),
                store_count=len({id(store) for store in self._stores.values()}),
            )

    def peek(self, user_id: str) -> ConversationStore | None:
        """Existing store or None. Does not create and does not count as an access."""
        with self._lock:
            return self._stores.get(user_id)

    def detached(self, user_id: str) -> ConversationStore:
        """
        A backend store for `user_id` that the factory does not track. Reads
        history a persistent backend kept across restarts without counting
        the user as active. In-process backends return an empty store.
        """
        validate_user_id(user_id)
        return self._store_factory(user_id)

    def user_ids(self) -> list[str]:
        with self._lock:
            return list(self._stores)

    def last_access(self, user_id: str) -> float | None:
        with self._lock:
            return self._last_access.get(user_id)

    def __contains__(self, user_id: str) -> bool:
        with self._lock:
            return user_id in self._stores


def build_store_factory(settings: Settings | None = None) -> StoreFactory:
    """Pick the backing store from settings.memory_backend."""
    settings = settings or get_settings()
    backend = settings.memory_backend

    if backend == "memory":
        return InMemoryConversationStore
    if backend == "redis":
        from agentflow.memory.redis_store import RedisConversationStore, get_redis

        client = get_redis()
        return lambda user_id: RedisConversationStore(user_id, client, prefix=settings.memory_key_prefix)
    if backend == "postgres":
        from agentflow.memory.postgres_store import PostgresConversationStore

        return PostgresConversationStore
    raise ValueError(f"unknown memory backend: {backend!r}")
