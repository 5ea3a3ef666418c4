import asyncio
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

load_dotenv()

# Must come after load_dotenv so env vars are available
from agentflow.api import admin, agent, health              # noqa: E402
from agentflow.api.deps import Runtime, build_runtime       # noqa: E402
from agentflow.core.config import get_settings              # noqa: E402
from agentflow.core.logging import configure_logging, get_logger  # noqa: E402
from agentflow.memory.retention import (                    # noqa: E402
    CompositePolicy,
    IdleEvictionPolicy,
    MaxMessagesPolicy,
    RetentionPolicy,
    run_retention,
)

configure_logging()
log = get_logger(__name__)


def build_retention_policy(settings) -> RetentionPolicy | None:
    policies: list[RetentionPolicy] = []
    if settings.retention_max_idle_seconds > 0:
        policies.append(IdleEvictionPolicy(settings.retention_max_idle_seconds))
    if settings.retention_max_messages > 0:
        policies.append(MaxMessagesPolicy(settings.retention_max_messages))
    if not policies:
        return None
    return policies[0] if len(policies) == 1 else CompositePolicy(*policies)


def create_app(runtime: Runtime | None = None) -> FastAPI:

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        app.state.runtime = runtime or build_runtime()
        settings = app.state.runtime.settings

        stop = asyncio.Event()
        retention_task = None
        policy = build_retention_policy(settings)
        if settings.retention_interval_seconds > 0 and policy is not None:
            retention_task = asyncio.create_task(
                run_retention(app.state.runtime.memory, policy, settings.retention_interval_seconds, stop)
            )

        log.info(
            "startup",
            version="0.1.0",
            environment=settings.environment,
            memory_backend=settings.memory_backend,
            retention=type(policy).__name__ if retention_task else None,
        )
        yield
        stop.set()
        if retention_task is not None:
            await retention_task
        log.info("shutdown")

    app = FastAPI(
        title="agentflow",
        description="Graph-based agent orchestration with per-user memory and retry",
        version="0.1.0",
        lifespan=lifespan,
    )

    settings = get_settings()
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(health.router)
    app.include_router(agent.router)
    app.include_router(admin.router)
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("agentflow.main:app", host="0.0.0.0", port=8000, reload=True)
