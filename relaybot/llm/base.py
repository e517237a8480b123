"""AI backend interface."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator, Sequence

from relaybot.events import BackendEvent
from relaybot.models import Message, ToolCallId, ToolOutcome


class AIBackend(ABC):
    """Streaming model backend used by the orchestrator."""

    @abstractmethod
    def complete(
        self,
        messages: Sequence[Message],
        continuity_token: str | None,
    ) -> AsyncIterator[BackendEvent]:
        """Stream events for a reply to ``messages``.

        The stream ends with exactly one ``Done`` or ``BackendError``.
        Implementations are async generators so that closing the iterator
        releases the underlying connection.
        """

    def submit_tool_result(self, call_id: ToolCallId, outcome: ToolOutcome) -> None:
        """Receive the outcome of a requested tool call.

        Called after the tool ran and before the next event is pulled from
        the stream. Backends that need the result to continue the reply
        override this; the default ignores it.
        """
