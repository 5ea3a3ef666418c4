from functools import lru_cache
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # ── App ───────────────────────────────────────────────────────────────────
    environment: str = "development"
    log_level: str = "INFO"
    cors_origins: list[str] = ["http://localhost:3000"]

    # ── Retry (default policy for the agent step) ─────────────────────────────
    retry_initial_delay: float = 1.0      # seconds before the second attempt
    retry_backoff_factor: float = 2.0
    retry_max_attempts: int = 3
    retry_jitter: float = 0.0             # extra random delay, never below the floor

    # ── Conversation memory ───────────────────────────────────────────────────
    # backend: "memory" = in-process lists (dev default)
    #          "redis"  = one Redis list per user
    #          "postgres" = conversation_messages table (see alembic/)
    memory_backend: str = "memory"
    memory_key_prefix: str = "chat_history"
    retention_interval_seconds: float = 0.0   # 0 disables the retention loop
    retention_max_idle_seconds: float = 3600.0
    retention_max_messages: int = 0           # 0 disables trimming

    # ── Redis ─────────────────────────────────────────────────────────────────
    redis_host: str = "redis"
    redis_port: int = 6379
    redis_password: str = ""

    # ── Database ──────────────────────────────────────────────────────────────
    database_url: str = ""

    # ── Agent ─────────────────────────────────────────────────────────────────
    # mode: "llm"   = ToolCallingLLMAgent over the stock tools (default)
    #       "books" = ToolCallAgent that sends the input straight to searchBooks
    agent_mode: str = "llm"
    agent_with_memory: bool = True

    # ── Tools ─────────────────────────────────────────────────────────────────
    google_books_url: str = "https://www.googleapis.com/books/v1/volumes"
    google_api_key: str = ""
    books_max_results: int = 1
    stripe_base_url: str = "https://api.stripe.com"
    stripe_api_key: str = ""
    tool_timeout_seconds: float = 30.0

    # ── LiteLLM ───────────────────────────────────────────────────────────────
    # mode: "proxy" = external LiteLLM container (dev default)
    #       "library" = litellm imported directly (production, no network hop)
    litellm_mode: str = "proxy"
    litellm_base_url: str = "http://litellm:4000/v1"
    litellm_master_key: str = ""
    primary_model: str = "gpt-4o-mini"
    agent_max_iterations: int = 5

    model_config = {"env_file": ".env"}

    @property
    def redis_url(self) -> str:
        if self.redis_password:
            return f"redis://:{self.redis_password}@{self.redis_host}:{self.redis_port}/0"
        return f"redis://{self.redis_host}:{self.redis_port}/0"


@lru_cache
def get_settings() -> Settings:
    return Settings()
