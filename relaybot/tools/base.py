"""Tool contracts."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Protocol

from relaybot.models import ToolCall, ToolOutcome


class Tool(ABC):
    """Base class for all tools the AI backend may call."""

    name: str
    description: str
    parameters_schema: dict[str, Any]

    @abstractmethod
    async def run(self, **kwargs: Any) -> str:
        """Execute tool with validated arguments and return text output."""


class ToolBackend(Protocol):
    """Executes tool calls; failures are reported in the outcome, not raised."""

    async def run(self, call: ToolCall) -> ToolOutcome: ...
