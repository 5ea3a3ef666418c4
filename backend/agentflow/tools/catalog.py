"""
Stock tool catalog.

Current tools:
  - searchBooks:   Google Books search (idempotent)
  - refundPayment: Stripe refund (not idempotent; retried only with a key)

Add new tools here and they are available to every agent built from
default_registry().
"""

from agentflow.core.config import Settings, get_settings
from agentflow.tools.books import make_search_books_tool
from agentflow.tools.refunds import make_refund_tool
from agentflow.tools.registry import ToolRegistry


def default_registry(settings: Settings | None = None) -> ToolRegistry:
    settings = settings or get_settings()
    return ToolRegistry([
        make_search_books_tool(settings),
        make_refund_tool(settings),
    ])
