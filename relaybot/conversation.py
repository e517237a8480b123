"""Conversation aggregate and the in-flight turn it carries."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta
from typing import Callable

from relaybot.models import (
    AssistantMessage,
    ConversationId,
    ConversationKey,
    Message,
    ToolCall,
    ToolCallId,
    UserId,
    UserMessage,
    utc_now,
)

Clock = Callable[[], datetime]

_TICK = timedelta(microseconds=1)


@dataclass(frozen=True, slots=True)
class CompletedToolCall:
    call_id: ToolCallId
    result: str


@dataclass(frozen=True, slots=True)
class Turn:
    """State of one AI response cycle, from user message to completion.

    Every transition returns a new ``Turn``. Completing a call that was never
    pending still records the result, so replays of the same completion are
    harmless for the pending list.

    ``started_at`` defaults to the wall clock. Turns opened by a
    ``Conversation`` always get a time from the conversation's clock.
    """

    text: str = ""
    pending_tool_calls: tuple[ToolCall, ...] = ()
    completed_tool_calls: tuple[CompletedToolCall, ...] = ()
    started_at: datetime = field(default_factory=utc_now)

    def append_text(self, chunk: str) -> Turn:
        return replace(self, text=self.text + chunk)

    def add_tool_call(self, call: ToolCall) -> Turn:
        return replace(self, pending_tool_calls=(*self.pending_tool_calls, call))

    def complete_tool_call(self, call_id: ToolCallId, result: str) -> Turn:
        return replace(
            self,
            pending_tool_calls=tuple(c for c in self.pending_tool_calls if c.id != call_id),
            completed_tool_calls=(*self.completed_tool_calls, CompletedToolCall(call_id, result)),
        )

    def has_pending_tools(self) -> bool:
        return bool(self.pending_tool_calls)


@dataclass(frozen=True, slots=True)
class Conversation:
    """Aggregate root holding history, the current turn and the backend continuity token.

    ``turn`` is set between ``receive`` and ``complete``/``fail``. ``messages``
    only ever grows. ``updated_at`` strictly increases on every transition,
    even when the clock stalls or steps backwards.
    """

    id: ConversationId
    key: ConversationKey
    messages: tuple[Message, ...]
    turn: Turn | None
    ai_continuity_token: str | None
    created_at: datetime
    updated_at: datetime
    clock: Clock = field(default=utc_now, compare=False, repr=False)

    @classmethod
    def start(cls, key: ConversationKey, clock: Clock = utc_now) -> Conversation:
        now = clock()
        return cls(
            id=ConversationId.generate(),
            key=key,
            messages=(),
            turn=None,
            ai_continuity_token=None,
            created_at=now,
            updated_at=now,
            clock=clock,
        )

    def receive(self, user_id: UserId, text: str) -> Conversation:
        """Record a user message and open a fresh turn, dropping any in-flight one."""

        now = self._tick()
        return replace(
            self,
            messages=(*self.messages, UserMessage.create(user_id, text)),
            turn=Turn(started_at=now),
            updated_at=now,
        )

    def add_text_chunk(self, chunk: str) -> Conversation:
        now = self._tick()
        current = self.turn or Turn(started_at=now)
        return replace(self, turn=current.append_text(chunk), updated_at=now)

    def add_tool_call(self, call: ToolCall) -> Conversation:
        now = self._tick()
        current = self.turn or Turn(started_at=now)
        return replace(self, turn=current.add_tool_call(call), updated_at=now)

    def add_tool_result(self, call_id: ToolCallId, result: str) -> Conversation:
        # A result with no active turn is ignored rather than opening one.
        if self.turn is None:
            return self
        return replace(self, turn=self.turn.complete_tool_call(call_id, result), updated_at=self._tick())

    def complete(self, final_text: str) -> Conversation:
        return replace(
            self,
            messages=(*self.messages, AssistantMessage.create(final_text)),
            turn=None,
            updated_at=self._tick(),
        )

    def fail(self, error: str) -> Conversation:
        # Partial output of a failed turn is not kept in history.
        return replace(self, turn=None, updated_at=self._tick())

    def with_continuity_token(self, token: str) -> Conversation:
        return replace(self, ai_continuity_token=token, updated_at=self._tick())

    def has_pending_tools(self) -> bool:
        return self.turn.has_pending_tools() if self.turn else False

    def pending_tools(self) -> tuple[ToolCall, ...]:
        return self.turn.pending_tool_calls if self.turn else ()

    def _tick(self) -> datetime:
        now = self.clock()
        if now <= self.updated_at:
            return self.updated_at + _TICK
        return now
