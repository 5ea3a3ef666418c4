"""Conversation messages and their LangChain counterparts."""

from typing import Literal

from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, ToolMessage
from pydantic import BaseModel, ConfigDict

Role = Literal["user", "assistant", "tool"]


class Message(BaseModel):
    """One exchanged message. Frozen: history entries never change once appended."""
    model_config = ConfigDict(frozen=True)

    role: Role
    content: str


def user(content: str) -> Message:
    return Message(role="user", content=content)


def assistant(content: str) -> Message:
    return Message(role="assistant", content=content)


def to_langchain(message: Message, tool_call_id: str = "history") -> BaseMessage:
    if message.role == "user":
        return HumanMessage(content=message.content)
    if message.role == "assistant":
        return AIMessage(content=message.content)
    return ToolMessage(content=message.content, tool_call_id=tool_call_id)


def from_langchain(message: BaseMessage) -> Message:
    content = message.content if isinstance(message.content, str) else str(message.content)
    if isinstance(message, HumanMessage):
        return Message(role="user", content=content)
    if isinstance(message, ToolMessage):
        return Message(role="tool", content=content)
    return Message(role="assistant", content=content)
