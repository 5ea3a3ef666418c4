"""
Postgres-backed conversation store.

Rows live in conversation_messages (created by alembic revision 001).
`seq` is a bigserial, so ORDER BY seq is append order even when two
workers write for different users at the same time.
"""

from typing import Any, Callable

from agentflow.core.db import get_db
from agentflow.memory.messages import Message
from agentflow.memory.store import ConversationStore


class PostgresConversationStore(ConversationStore):

    def __init__(self, user_id: str, connect: Callable[[], Any] = get_db):
        self.user_id = user_id
        self._connect = connect

    async def append(self, message: Message) -> None:
        async with self._connect() as conn:
            async with conn.cursor() as cur:
                await cur.execute(
                    "INSERT INTO conversation_messages (user_id, role, content) "
                    "VALUES (%s, %s, %s)",
                    (self.user_id, message.role, message.content),
                )

    async def extend(self, messages: list[Message]) -> None:
        if not messages:
            return
        # single INSERT: all rows or none
        rows = ", ".join(["(%s, %s, %s)"] * len(messages))
        params = [value for m in messages for value in (self.user_id, m.role, m.content)]
        async with self._connect() as conn:
            async with conn.cursor() as cur:
                await cur.execute(
                    f"INSERT INTO conversation_messages (user_id, role, content) VALUES {rows}",
                    params,
                )

    async def read_all(self) -> list[Message]:
        async with self._connect() as conn:
            async with conn.cursor() as cur:
                await cur.execute(
                    """
                    SELECT role, content
                    FROM   conversation_messages
                    WHERE  user_id = %s
                    ORDER  BY seq
                    """,
                    (self.user_id,),
                )
                rows = await cur.fetchall()
        return [Message(role=row["role"], content=row["content"]) for row in rows]

    async def clear(self) -> None:
        async with self._connect() as conn:
            async with conn.cursor() as cur:
                await cur.execute(
                    "DELETE FROM conversation_messages WHERE user_id = %s",
                    (self.user_id,),
                )
