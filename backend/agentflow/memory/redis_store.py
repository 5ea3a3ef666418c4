"""
Redis-backed conversation store: one Redis list per user.

    RPUSH  {prefix}:{user_id}  <message json>   append
    RPUSH  {prefix}:{user_id}  <m1> <m2> ...    extend (one command, atomic)
    LRANGE {prefix}:{user_id}  0 -1             read_all
    DEL    {prefix}:{user_id}                   clear

History survives worker restarts and is shared by every worker pointed at
the same Redis, which is what lets the API run stateless behind a balancer.
"""

from functools import lru_cache

import redis.asyncio as aioredis

from agentflow.core.config import get_settings
from agentflow.memory.messages import Message
from agentflow.memory.store import ConversationStore


@lru_cache
def get_redis() -> aioredis.Redis:
    settings = get_settings()
    return aioredis.from_url(settings.redis_url, decode_responses=True)


class RedisConversationStore(ConversationStore):

    def __init__(self, user_id: str, client: aioredis.Redis | None = None, prefix: str = "chat_history"):
        self.user_id = user_id
        self.key = f"{prefix}:{user_id}"
        self._redis = client if client is not None else get_redis()

    async def append(self, message: Message) -> None:
        await self._redis.rpush(self.key, message.model_dump_json())

    async def extend(self, messages: list[Message]) -> None:
        if messages:
            await self._redis.rpush(self.key, *(m.model_dump_json() for m in messages))

    async def read_all(self) -> list[Message]:
        raw = await self._redis.lrange(self.key, 0, -1)
        return [Message.model_validate_json(item) for item in raw]

    async def clear(self) -> None:
        await self._redis.delete(self.key)
