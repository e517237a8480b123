"""Core domain models used across layers."""

from __future__ import annotations

import uuid
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True, slots=True)
class ConversationId:
    value: str

    @classmethod
    def generate(cls) -> ConversationId:
        return cls(str(uuid.uuid4()))


@dataclass(frozen=True, slots=True)
class UserId:
    value: str


@dataclass(frozen=True, slots=True)
class ChannelId:
    value: str


@dataclass(frozen=True, slots=True)
class ConversationKey:
    """Store lookup key: one conversation per user per channel."""

    value: str

    @classmethod
    def from_parts(cls, user_id: UserId, channel_id: ChannelId) -> ConversationKey:
        return cls(f"{user_id.value}:{channel_id.value}")


@dataclass(frozen=True, slots=True)
class ToolCallId:
    value: str

    @classmethod
    def generate(cls) -> ToolCallId:
        return cls(str(uuid.uuid4()))


@dataclass(frozen=True, slots=True)
class MessageId:
    value: str

    @classmethod
    def generate(cls) -> MessageId:
        return cls(str(uuid.uuid4()))


@dataclass(frozen=True, slots=True)
class ToolCall:
    """Tool invocation requested by the AI backend."""

    id: ToolCallId
    name: str
    arguments: Mapping[str, str] = field(default_factory=dict)

    @classmethod
    def create(cls, name: str, arguments: Mapping[str, str] | None = None) -> ToolCall:
        return cls(id=ToolCallId.generate(), name=name, arguments=dict(arguments or {}))


@dataclass(frozen=True, slots=True)
class ToolOutcome:
    """Result of running a tool call."""

    output: str
    is_error: bool = False


@dataclass(frozen=True, slots=True)
class UserMessage:
    id: MessageId
    user_id: UserId
    text: str
    timestamp: datetime

    @classmethod
    def create(cls, user_id: UserId, text: str) -> UserMessage:
        return cls(id=MessageId.generate(), user_id=user_id, text=text, timestamp=utc_now())


@dataclass(frozen=True, slots=True)
class AssistantMessage:
    id: MessageId
    text: str
    timestamp: datetime

    @classmethod
    def create(cls, text: str) -> AssistantMessage:
        return cls(id=MessageId.generate(), text=text, timestamp=utc_now())


@dataclass(frozen=True, slots=True)
class AssistantToolUseMessage:
    id: MessageId
    tool_calls: tuple[ToolCall, ...]
    timestamp: datetime

    @classmethod
    def create(cls, tool_calls: list[ToolCall] | tuple[ToolCall, ...]) -> AssistantToolUseMessage:
        return cls(id=MessageId.generate(), tool_calls=tuple(tool_calls), timestamp=utc_now())


@dataclass(frozen=True, slots=True)
class ToolResultMessage:
    id: MessageId
    tool_call_id: ToolCallId
    text: str
    timestamp: datetime
    is_error: bool = False

    @classmethod
    def create(cls, tool_call_id: ToolCallId, text: str, is_error: bool = False) -> ToolResultMessage:
        return cls(
            id=MessageId.generate(),
            tool_call_id=tool_call_id,
            text=text,
            timestamp=utc_now(),
            is_error=is_error,
        )


Message = UserMessage | AssistantMessage | AssistantToolUseMessage | ToolResultMessage


@dataclass(frozen=True, slots=True)
class ConversationStatus:
    """Read-only summary of a stored conversation."""

    message_count: int
    continuity_token: str | None
    created_at: datetime
