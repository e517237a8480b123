"""Core chat orchestrator."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import aclosing
from dataclasses import replace
from typing import assert_never

from relaybot.conversation import Clock, Conversation
from relaybot.events import (
    BackendError,
    BackendEvent,
    Completed,
    ContinuityToken,
    Done,
    Failed,
    OutputEvent,
    Text,
    TextChunk,
    ToolCallRequested,
    ToolCompleted,
    ToolStarted,
)
from relaybot.llm.base import AIBackend
from relaybot.models import ConversationKey, ConversationStatus, ToolCall, ToolOutcome, UserId, utc_now
from relaybot.store.base import ConversationStore
from relaybot.tools.base import ToolBackend

LOGGER = logging.getLogger(__name__)

_STREAM_CLOSED_EARLY = "AI backend closed the stream without completing"


class Orchestrator:
    """Drives one conversation turn against the AI backend, tools and store.

    Keeps no state between calls; everything is re-read from the store.
    """

    def __init__(
        self,
        backend: AIBackend,
        store: ConversationStore,
        tools: ToolBackend,
        clock: Clock = utc_now,
    ) -> None:
        self._backend = backend
        self._store = store
        self._tools = tools
        self._clock = clock

    async def chat(self, key: ConversationKey, user_id: UserId, text: str) -> AsyncIterator[OutputEvent]:
        """Send a user message and stream the response.

        The stream always ends with ``Completed`` or ``Failed``. Backend and
        tool faults are reported as events; store faults are raised.
        Closing the stream early closes the backend stream and skips any
        further store writes.
        """

        conversation = await self._store.find_by_key(key)
        if conversation is None:
            conversation = Conversation.start(key, clock=self._clock)
        else:
            conversation = replace(conversation, clock=self._clock)
        conversation = conversation.receive(user_id, text)
        await self._store.save(conversation)
        LOGGER.info("Chat turn started: key=%s messages=%d", key.value, len(conversation.messages))

        async with aclosing(self._backend_events(conversation)) as events:
            async for event in events:
                match event:
                    case Text(text=chunk):
                        conversation = conversation.add_text_chunk(chunk)
                        yield TextChunk(chunk)
                    case ToolCallRequested(call=call):
                        conversation = conversation.add_tool_call(call)
                        yield ToolStarted(call)
                        outcome = await self._run_tool(call)
                        self._backend.submit_tool_result(call.id, outcome)
                        conversation = conversation.add_tool_result(call.id, outcome.output)
                        yield ToolCompleted(call.id, outcome.output)
                    case ContinuityToken(token=token):
                        conversation = conversation.with_continuity_token(token)
                    case Done():
                        final_text = conversation.turn.text if conversation.turn else ""
                        conversation = conversation.complete(final_text)
                        await self._store.save(conversation)
                        LOGGER.info("Chat turn completed: key=%s chars=%d", key.value, len(final_text))
                        yield Completed(final_text)
                        return
                    case BackendError(message=message):
                        conversation = conversation.fail(message)
                        await self._store.save(conversation)
                        LOGGER.warning("Chat turn failed: key=%s error=%s", key.value, message)
                        yield Failed(message)
                        return
                    case _:
                        assert_never(event)

    async def clear(self, key: ConversationKey) -> None:
        """Delete the conversation for ``key``."""

        await self._store.delete(key)
        LOGGER.info("Conversation cleared: key=%s", key.value)

    async def status(self, key: ConversationKey) -> ConversationStatus | None:
        conversation = await self._store.find_by_key(key)
        if conversation is None:
            return None
        return ConversationStatus(
            message_count=len(conversation.messages),
            continuity_token=conversation.ai_continuity_token,
            created_at=conversation.created_at,
        )

    async def _backend_events(self, conversation: Conversation) -> AsyncIterator[BackendEvent]:
        # Faults raised by the backend are turned into a terminal BackendError.
        try:
            stream = self._backend.complete(conversation.messages, conversation.ai_continuity_token)
            async with aclosing(stream):
                async for event in stream:
                    yield event
        except Exception as exc:  # noqa: BLE001
            LOGGER.exception("AI backend stream faulted")
            yield BackendError(str(exc) or type(exc).__name__)
            return
        LOGGER.warning("AI backend stream ended without Done or Error")
        yield BackendError(_STREAM_CLOSED_EARLY)

    async def _run_tool(self, call: ToolCall) -> ToolOutcome:
        LOGGER.info("Running tool %s (call_id=%s)", call.name, call.id.value)
        try:
            return await self._tools.run(call)
        except Exception as exc:  # noqa: BLE001
            LOGGER.exception("Tool backend raised for %s", call.name)
            return ToolOutcome(str(exc) or type(exc).__name__, is_error=True)
