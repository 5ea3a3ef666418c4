"""
searchBooks: Google Books volumes search.

Returns JSON text: a list of {title, authors, link}. Read-only, so the tool
is idempotent and the retry wrapper may repeat it freely.
"""

import json

import httpx
from pydantic import BaseModel, Field

from agentflow.core.config import Settings, get_settings
from agentflow.tools.base import Tool


class SearchBooksParams(BaseModel):
    query: str = Field(min_length=1, description="Free-text search, e.g. a title or author.")


def _hits(data: dict) -> list[dict]:
    return [
        {
            "title": item.get("volumeInfo", {}).get("title"),
            "authors": item.get("volumeInfo", {}).get("authors", []),
            "link": item.get("volumeInfo", {}).get("infoLink"),
        }
        for item in data.get("items") or []
    ]


def make_search_books_tool(
    settings: Settings | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> Tool:
    settings = settings or get_settings()

    async def search_books(params: SearchBooksParams) -> str:
        query = {"q": params.query, "maxResults": settings.books_max_results}
        if settings.google_api_key:
            query["key"] = settings.google_api_key

        async with httpx.AsyncClient(transport=transport, timeout=settings.tool_timeout_seconds) as client:
            resp = await client.get(settings.google_books_url, params=query)
            resp.raise_for_status()
            data = resp.json()

        return json.dumps(_hits(data), indent=2)

    return Tool(
        name="searchBooks",
        description="Google Books search",
        parameters=SearchBooksParams,
        fn=search_books,
        idempotent=True,
    )
