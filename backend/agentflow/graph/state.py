from collections.abc import Mapping
from typing import Any, TypedDict

from agentflow.core.errors import SchemaError
from agentflow.memory.messages import Message


class GraphState(TypedDict, total=False):
    """Minimum shared state for every graph run."""
    input:  str   # request text from the caller
    output: str   # produced once the terminal step has run


class MemoryGraphState(GraphState, total=False):
    """Shared state for the memory-aware graph."""
    conversation_history: list[Message]  # append-only within a run
    user_id:              str            # isolation key (required when memory is on)


def schema_fields(schema: type) -> frozenset[str]:
    """Declared field names of a TypedDict (or any annotated class)."""
    keys = getattr(schema, "__required_keys__", None)
    if keys is not None:
        return frozenset(keys) | frozenset(schema.__optional_keys__)
    fields: set[str] = set()
    for klass in reversed(schema.__mro__):
        fields.update(getattr(klass, "__annotations__", {}))
    return frozenset(fields)


def check_fields(data: Mapping[str, Any], fields: frozenset[str], *, step: str | None = None) -> None:
    unknown = sorted(set(data) - fields)
    if unknown:
        where = f"step '{step}' returned" if step else "initial state has"
        raise SchemaError(f"{where} undeclared field(s): {', '.join(unknown)}", step=step)


def merge_update(state: dict, update: Any, fields: frozenset[str], step: str) -> dict:
    """
    Field-wise overwrite of `state` with a step's partial update.
    Fields the step did not return are preserved; nothing is ever deleted.
    """
    if update is None:
        return state
    if not isinstance(update, Mapping):
        raise SchemaError(f"step '{step}' returned {type(update).__name__}, expected a mapping", step=step)
    check_fields(update, fields, step=step)
    state.update(update)
    return state
