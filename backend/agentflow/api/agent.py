"""
Agent API endpoints.

POST /api/agent/invoke             run the graph for one request → {output}
GET  /api/agent/history/{user_id}  the user's stored conversation
GET  /api/agent/tools              declared tools (name, description, schema)

Typed core errors map to HTTP status codes here and nowhere else.
"""

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel

from agentflow.agents.graphs import invoke_agent_graph
from agentflow.api.deps import Runtime, get_runtime
from agentflow.core.errors import (
    GraphError,
    InvalidKeyError,
    SchemaError,
    ToolExecutionError,
)
from agentflow.core.logging import get_logger
from agentflow.memory.factory import validate_user_id

log = get_logger(__name__)
router = APIRouter(prefix="/api/agent", tags=["agent"])


class InvokeRequest(BaseModel):
    input: str
    user_id: str | None = None


class InvokeResponse(BaseModel):
    output: str


def _error_detail(exc, **extra) -> dict:
    return {
        "error": type(exc).__name__,
        "message": exc.message,
        "step": exc.step,
        "attempts": exc.attempts,
        **extra,
    }


@router.post("/invoke", response_model=InvokeResponse)
async def invoke_agent(req: InvokeRequest, runtime: Runtime = Depends(get_runtime)):
    """Synchronous invocation: waits for the full graph run."""
    context = runtime.context()
    try:
        result = await invoke_agent_graph(
            runtime.graph,
            input=req.input,
            user_id=req.user_id,
            context=context,
        )
    except InvalidKeyError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=_error_detail(exc))
    except SchemaError as exc:
        raise HTTPException(status_code=422, detail=_error_detail(exc))
    except ToolExecutionError as exc:
        log.error("invoke_failed", run_id=context.run_id, tool_name=exc.tool_name, attempts=exc.attempts)
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=_error_detail(exc, tool_name=exc.tool_name),
        )
    except GraphError as exc:
        log.error("invoke_failed", run_id=context.run_id, step=exc.step, error=exc.message)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=_error_detail(exc))

    log.info("invoke_complete", run_id=context.run_id, user_id=req.user_id)
    return result


@router.get("/history/{user_id}")
async def get_history(user_id: str, runtime: Runtime = Depends(get_runtime)):
    try:
        validate_user_id(user_id)
    except InvalidKeyError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=_error_detail(exc))

    store = runtime.memory.peek(user_id)
    if store is None:
        # not looked up since startup; a persistent backend may still hold history
        history = await runtime.memory.detached(user_id).read_all()
    else:
        history = await store.read_all()
    if store is None and not history:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No conversation for this user")
    return {"user_id": user_id, "messages": [m.model_dump() for m in history]}


@router.get("/tools")
async def list_tools(runtime: Runtime = Depends(get_runtime)):
    return {"tools": runtime.registry.specs()}
