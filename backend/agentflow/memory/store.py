"""
Conversation store: ordered message log for exactly one user/session.

Every backing store implements the same four operations so the
MemoryFactory can swap implementations without touching the graph:

    append(message)     add one message at the end
    extend(messages)    add several messages at once; all or none are stored
    read_all()          every message, in append order
    clear()             drop the whole history

The base design never expires history on its own; see memory/retention.py
for explicit, host-scheduled policies.
"""

from abc import ABC, abstractmethod

from agentflow.memory.messages import Message


class ConversationStore(ABC):

    @abstractmethod
    async def append(self, message: Message) -> None:
        raise NotImplementedError

    @abstractmethod
    async def extend(self, messages: list[Message]) -> None:
        raise NotImplementedError

    @abstractmethod
    async def read_all(self) -> list[Message]:
        raise NotImplementedError

    @abstractmethod
    async def clear(self) -> None:
        raise NotImplementedError


class InMemoryConversationStore(ConversationStore):
    """In-process history. Lost on restart; fine for dev and tests."""

    def __init__(self, user_id: str | None = None):
        self.user_id = user_id
        self._messages: list[Message] = []

    async def append(self, message: Message) -> None:
        self._messages.append(message)

    async def extend(self, messages: list[Message]) -> None:
        self._messages.extend(messages)

    async def read_all(self) -> list[Message]:
        # copy: callers must not be able to rewrite history
        return list(self._messages)

    async def clear(self) -> None:
        self._messages.clear()

    def __len__(self) -> int:
        return len(self._messages)

    def __repr__(self) -> str:
        return f"InMemoryConversationStore(user_id={self.user_id!r}, messages={len(self._messages)})"
