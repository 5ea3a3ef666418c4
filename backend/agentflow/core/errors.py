"""
Error taxonomy for graph runs.

    SchemaError        data violating a declared shape (state field, tool params/result)
    GraphError         structural problem in a graph or its resolution at run time
    StepFailedError    an untyped exception escaped a step (GraphError subclass)
    ToolExecutionError a tool's underlying action failed; the only retryable error
    UnknownToolError   tool name not registered (never retried)
    InvalidKeyError    bad user identifier (never retried)

Every error can carry the failing step name and the number of attempts made,
so callers see which step/tool failed and how hard we tried.
"""


class OrchestrationError(Exception):
    """Base class for every error raised by the orchestration core."""

    retryable = False

    def __init__(self, message: str, *, step: str | None = None, attempts: int | None = None):
        super().__init__(message)
        self.message = message
        self.step = step
        self.attempts = attempts

    def __str__(self) -> str:
        extra = []
        if self.step:
            extra.append(f"step={self.step}")
        if self.attempts:
            extra.append(f"attempts={self.attempts}")
        if not extra:
            return self.message
        return f"{self.message} ({', '.join(extra)})"


class SchemaError(OrchestrationError):
    pass


class GraphError(OrchestrationError):
    pass


class StepFailedError(GraphError):
    """Wraps an exception that is not part of this taxonomy. Original is __cause__."""


class InvalidKeyError(OrchestrationError):
    def __init__(self, key, reason: str = "invalid user identifier"):
        super().__init__(f"{reason}: {key!r}")
        self.key = key


class ToolExecutionError(OrchestrationError):
    retryable = True

    def __init__(
        self,
        tool_name: str,
        cause: BaseException | None = None,
        *,
        retry_safe: bool = True,
        step: str | None = None,
        attempts: int | None = None,
    ):
        message = f"tool '{tool_name}' failed"
        if cause is not None:
            message = f"{message}: {type(cause).__name__}: {cause}"
        super().__init__(message, step=step, attempts=attempts)
        self.tool_name = tool_name
        self.cause = cause
        # False for side-effecting tools invoked without an idempotency key
        self.retry_safe = retry_safe


class UnknownToolError(ToolExecutionError):
    retryable = False

    def __init__(self, tool_name: str):
        super().__init__(tool_name, KeyError(tool_name), retry_safe=False)
