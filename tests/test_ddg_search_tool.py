"""Tests for DdgSearchTool."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest

from relaybot.models import ToolCall
from relaybot.tools.ddg_search_tool import DdgSearchTool
from relaybot.tools.registry import ToolRegistry

# Patch path must match the import in the module under test
_DDGS_PATH = "relaybot.tools.ddg_search_tool.DDGS"


def _ddg_results(*items: tuple[str, str, str]) -> list[dict]:
    return [{"title": t, "href": h, "body": b} for t, h, b in items]


def _mock_ddgs(results: list[dict]) -> MagicMock:
    mock_ddgs = MagicMock()
    mock_ddgs.text = MagicMock(return_value=results)
    return mock_ddgs


@pytest.mark.asyncio
async def test_run_returns_ranked_results():
    mock_ddgs = _mock_ddgs(
        _ddg_results(
            ("Result One", "https://one.com", "First body text"),
            ("Result Two", "https://two.com", "Second body text"),
        )
    )

    with patch(_DDGS_PATH, return_value=mock_ddgs):
        result = await DdgSearchTool().run(query="  test query ")

    assert result == (
        "Search results for: test query\n"
        "1. Result One <https://one.com>\n   First body text\n"
        "2. Result Two <https://two.com>\n   Second body text"
    )
    mock_ddgs.text.assert_called_once_with("test query", max_results=5, backend="duckduckgo")


@pytest.mark.asyncio
async def test_run_returns_no_results_message():
    with patch(_DDGS_PATH, return_value=_mock_ddgs([])):
        result = await DdgSearchTool().run(query="nothing")

    assert result == "No results found for: nothing"


@pytest.mark.asyncio
@pytest.mark.parametrize(("limit", "expected"), [(99, 20), (0, 1)])
async def test_run_clamps_limit(limit, expected):
    mock_ddgs = _mock_ddgs([])

    with patch(_DDGS_PATH, return_value=mock_ddgs):
        await DdgSearchTool().run(query="test", limit=limit)

    mock_ddgs.text.assert_called_once_with("test", max_results=expected, backend="duckduckgo")


@pytest.mark.asyncio
async def test_string_limit_from_backend_is_validated_by_registry():
    mock_ddgs = _mock_ddgs([])
    registry = ToolRegistry()
    registry.register(DdgSearchTool())

    with patch(_DDGS_PATH, return_value=mock_ddgs):
        outcome = await registry.run(ToolCall.create("ddg_search", {"query": "cats", "limit": "3"}))

    assert outcome.is_error is False
    mock_ddgs.text.assert_called_once_with("cats", max_results=3, backend="duckduckgo")


@pytest.mark.asyncio
async def test_search_failure_is_reported_by_registry():
    registry = ToolRegistry()
    registry.register(DdgSearchTool())

    with patch(_DDGS_PATH, side_effect=RuntimeError("rate limited")):
        outcome = await registry.run(ToolCall.create("ddg_search", {"query": "cats"}))

    assert outcome.is_error is True
    assert outcome.output == "Tool execution error: rate limited"
