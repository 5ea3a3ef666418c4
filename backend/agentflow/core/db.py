"""
Connection helper for the Postgres conversation store.

Each store operation opens one short-lived autocommit connection:

    async with get_db() as conn:
        async with conn.cursor() as cur:
            await cur.execute("SELECT role, content FROM conversation_messages WHERE user_id = %s", (user_id,))
            rows = await cur.fetchall()   # dicts keyed by column name

Pass another factory as PostgresConversationStore(connect=...) to share a
pool or a test double.
"""

import psycopg
from psycopg.rows import dict_row
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from agentflow.core.config import get_settings


@asynccontextmanager
async def get_db() -> AsyncGenerator[psycopg.AsyncConnection, None]:
    """Async connection to settings.database_url; rows come back as dicts."""
    settings = get_settings()
    conn = await psycopg.AsyncConnection.connect(
        settings.database_url,
        autocommit=True,
        row_factory=dict_row,
    )
    try:
        yield conn
    finally:
        await conn.close()
