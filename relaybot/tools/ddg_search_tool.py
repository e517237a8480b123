"""Web search through DuckDuckGo."""

from __future__ import annotations

import asyncio
from typing import Any

from ddgs import DDGS

from relaybot.tools.base import Tool

_DEFAULT_LIMIT = 5
_MAX_LIMIT = 20


class DdgSearchTool(Tool):
    """Search the web using DuckDuckGo (no API key required).

    Arguments arrive already validated by the registry, so ``limit`` is an
    ``int`` even when the backend sent it as a string.
    """

    name = "ddg_search"
    description = "Search the web using DuckDuckGo and return titles, links and snippets."
    parameters_schema: dict[str, Any] = {
        "type": "object",
        "properties": {
            "query": {"type": "string", "description": "The search query."},
            "limit": {
                "type": "integer",
                "description": f"Max results to return (default {_DEFAULT_LIMIT}, max {_MAX_LIMIT}).",
            },
        },
        "required": ["query"],
        "additionalProperties": False,
    }

    async def run(self, query: str, limit: int = _DEFAULT_LIMIT, **_: Any) -> str:
        query = query.strip()
        hits = await asyncio.to_thread(_search, query, max(1, min(limit, _MAX_LIMIT)))
        if not hits:
            return f"No results found for: {query}"

        lines = [f"Search results for: {query}"]
        for rank, hit in enumerate(hits, start=1):
            lines.append(f"{rank}. {hit['title']} <{hit['href']}>\n   {hit['body']}")
        return "\n".join(lines)


def _search(query: str, limit: int) -> list[dict[str, str]]:
    return DDGS().text(query, max_results=limit, backend="duckduckgo")
