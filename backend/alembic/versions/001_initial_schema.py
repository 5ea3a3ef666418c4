"""Conversation store schema: one row per appended message.

Used when MEMORY_BACKEND=postgres (agentflow.memory.postgres_store).

Revision ID: 001
Revises:
Create Date: 2026-10-17
"""

revision = "001"
down_revision = None
branch_labels = None
depends_on = None

from alembic import op


def upgrade() -> None:
    op.execute("""
        CREATE TABLE IF NOT EXISTS conversation_messages (
            seq         BIGSERIAL PRIMARY KEY,
            user_id     TEXT NOT NULL,
            role        TEXT NOT NULL
                        CHECK (role IN ('user', 'assistant', 'tool')),
            content     TEXT NOT NULL,
            created_at  TIMESTAMPTZ DEFAULT now()
        )
    """)
    op.execute(
        "CREATE INDEX IF NOT EXISTS idx_conversation_messages_user "
        "ON conversation_messages(user_id, seq)"
    )


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS conversation_messages")
