"""Events flowing into and out of the orchestrator.

``BackendEvent`` is what an AI backend streams while producing a reply.
``OutputEvent`` is the normalized stream handed to channel gateways.
"""

from __future__ import annotations

from dataclasses import dataclass

from relaybot.models import ToolCall, ToolCallId


@dataclass(frozen=True, slots=True)
class Text:
    text: str


@dataclass(frozen=True, slots=True)
class ToolCallRequested:
    call: ToolCall


@dataclass(frozen=True, slots=True)
class ContinuityToken:
    token: str


@dataclass(frozen=True, slots=True)
class Done:
    pass


@dataclass(frozen=True, slots=True)
class BackendError:
    message: str


BackendEvent = Text | ToolCallRequested | ContinuityToken | Done | BackendError


@dataclass(frozen=True, slots=True)
class TextChunk:
    text: str


@dataclass(frozen=True, slots=True)
class ToolStarted:
    call: ToolCall


@dataclass(frozen=True, slots=True)
class ToolCompleted:
    call_id: ToolCallId
    result: str


@dataclass(frozen=True, slots=True)
class Completed:
    response: str


@dataclass(frozen=True, slots=True)
class Failed:
    error: str


OutputEvent = TextChunk | ToolStarted | ToolCompleted | Completed | Failed
