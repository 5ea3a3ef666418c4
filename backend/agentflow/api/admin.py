"""
Admin memory endpoints.

GET    /api/admin/memory/stats      users and distinct stores held by the factory
DELETE /api/admin/memory/{user_id}  evict one user's conversation (no-op if absent)
"""

from fastapi import APIRouter, Depends

from agentflow.api.deps import Runtime, get_runtime
from agentflow.core.logging import get_logger

log = get_logger(__name__)
router = APIRouter(prefix="/api/admin", tags=["admin"])


@router.get("/memory/stats")
async def memory_stats(runtime: Runtime = Depends(get_runtime)):
    stats = runtime.memory.stats()
    return {"user_count": stats.user_count, "store_count": stats.store_count}


@router.delete("/memory/{user_id}")
async def evict_memory(user_id: str, runtime: Runtime = Depends(get_runtime)):
    evicted = await runtime.memory.evict(user_id)
    log.info("memory_evict_requested", user_id=user_id, evicted=evicted)
    return {"user_id": user_id, "evicted": evicted}
