"""
Tool: one external, side-effecting action behind a narrow interface.

A tool declares its name, a description, a pydantic model for its
parameters and whether repeating a call is safe:

    idempotent=True   search, lookups; the retry wrapper may repeat freely
    idempotent=False  payments, refunds; only retried when the caller passes
                      an idempotency key, which the tool forwards downstream

fn receives the validated parameter model (plus the idempotency key for
non-idempotent tools) and returns text. The core never looks inside it.
"""

from dataclasses import dataclass
from typing import Any, Awaitable, Callable

from pydantic import BaseModel


@dataclass(frozen=True)
class Tool:
    name: str
    description: str
    parameters: type[BaseModel]
    fn: Callable[..., str | Awaitable[str]]
    idempotent: bool = True

    @property
    def parameter_schema(self) -> dict[str, Any]:
        return self.parameters.model_json_schema()

    def spec(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "parameterSchema": self.parameter_schema,
            "idempotent": self.idempotent,
        }


def tool(
    name: str,
    parameters: type[BaseModel],
    *,
    description: str | None = None,
    idempotent: bool = True,
) -> Callable[[Callable[..., Any]], Tool]:
    """Decorator turning a function into a Tool; docstring is the default description."""
    def deco(fn: Callable[..., Any]) -> Tool:
        doc = (fn.__doc__ or "").strip().split("\n")[0]
        return Tool(name, description or doc or name, parameters, fn, idempotent)
    return deco
