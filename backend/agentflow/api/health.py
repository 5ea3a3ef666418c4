from fastapi import APIRouter, Depends

from agentflow.api.deps import Runtime, get_runtime

router = APIRouter(tags=["health"])


@router.get("/health")
async def health(runtime: Runtime = Depends(get_runtime)):
    """Health check endpoint. Reports the memory backend and how many users it holds."""
    stats = runtime.memory.stats()
    return {
        "status": "ok",
        "memory_backend": runtime.settings.memory_backend,
        "users": stats.user_count,
        "tools": len(runtime.registry),
    }
