"""OpenRouter implementation of AIBackend."""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import AsyncIterator, Sequence
from contextlib import aclosing
from typing import Any

import httpx

from relaybot.config import Settings
from relaybot.events import BackendError, BackendEvent, ContinuityToken, Done, Text, ToolCallRequested
from relaybot.llm.base import AIBackend
from relaybot.models import (
    AssistantMessage,
    AssistantToolUseMessage,
    Message,
    ToolCall,
    ToolCallId,
    ToolOutcome,
    ToolResultMessage,
    UserMessage,
)

_LOGGER = logging.getLogger(__name__)

_MAX_RETRIES = 3
_RETRY_BACKOFF_SECONDS = [5, 15, 45]
_MAX_TOOL_ROUNDS = 3

_SYSTEM_PROMPT = (
    "You are a helpful personal AI assistant reachable from chat apps. "
    "Reply in plain text and keep answers concise."
)


class OpenRouterBackend(AIBackend):
    """Streams replies from OpenRouter's OpenAI-compatible chat endpoint.

    OpenRouter keeps no server-side session, so the whole history is sent on
    every call. The generation id of the first request is surfaced as the
    continuity token.

    When the model asks for tools, the requested calls are streamed out and
    the stream pauses until their results arrive through
    ``submit_tool_result``. The assistant tool-use message and the results
    are then appended to the request and the model is called again. After
    ``_MAX_TOOL_ROUNDS`` rounds tools are no longer offered, which forces a
    plain text answer.
    """

    def __init__(self, settings: Settings, tool_specs: list[dict[str, Any]] | None = None) -> None:
        self._settings = settings
        self._tool_specs = tool_specs or []
        self._tool_results: dict[str, ToolOutcome] = {}

    def submit_tool_result(self, call_id: ToolCallId, outcome: ToolOutcome) -> None:
        self._tool_results[call_id.value] = outcome

    async def complete(
        self,
        messages: Sequence[Message],
        continuity_token: str | None,
    ) -> AsyncIterator[BackendEvent]:
        chat_messages = [{"role": "system", "content": _SYSTEM_PROMPT}, *to_chat_messages(messages)]
        _LOGGER.debug(
            "OpenRouter request: messages=%d previous_generation=%r", len(messages), continuity_token
        )
        token_sent = False

        timeout = httpx.Timeout(self._settings.request_timeout_seconds)
        async with httpx.AsyncClient(base_url=self._settings.openrouter_base_url, timeout=timeout) as client:
            for tool_round in range(_MAX_TOOL_ROUNDS + 1):
                offer_tools = bool(self._tool_specs) and tool_round < _MAX_TOOL_ROUNDS
                requested: list[ToolCall] = []
                async with aclosing(self._stream_round(client, chat_messages, offer_tools)) as events:
                    async for event in events:
                        match event:
                            case ContinuityToken():
                                if not token_sent:
                                    token_sent = True
                                    yield event
                            case ToolCallRequested(call=call):
                                requested.append(call)
                                yield event
                            case BackendError():
                                yield event
                                return
                            case Done() if requested:
                                pass
                            case _:
                                yield event
                if not requested:
                    return

                _LOGGER.info("Continuing after %d tool call(s) (round %d)", len(requested), tool_round + 1)
                chat_messages.extend(to_chat_messages(self._tool_round_messages(requested)))

        yield BackendError(f"Model kept requesting tools after {_MAX_TOOL_ROUNDS} rounds")

    def _tool_round_messages(self, requested: list[ToolCall]) -> list[Message]:
        round_messages: list[Message] = [AssistantToolUseMessage.create(requested)]
        for call in requested:
            outcome = self._tool_results.pop(call.id.value, None)
            if outcome is None:
                _LOGGER.warning("No result submitted for tool call %s (%s)", call.id.value, call.name)
                outcome = ToolOutcome("Tool result unavailable", is_error=True)
            round_messages.append(ToolResultMessage.create(call.id, outcome.output, is_error=outcome.is_error))
        return round_messages

    async def _stream_round(
        self,
        client: httpx.AsyncClient,
        chat_messages: list[dict[str, Any]],
        offer_tools: bool,
    ) -> AsyncIterator[BackendEvent]:
        payload: dict[str, Any] = {
            "model": self._settings.openrouter_model,
            "messages": chat_messages,
            "stream": True,
        }
        if offer_tools:
            payload["tools"] = self._tool_specs

        for attempt in range(_MAX_RETRIES + 1):
            async with client.stream(
                "POST",
                "/chat/completions",
                headers={
                    "Authorization": f"Bearer {self._settings.openrouter_api_key}",
                    "Content-Type": "application/json",
                },
                json=payload,
            ) as response:
                if response.status_code == 429 and attempt < _MAX_RETRIES:
                    wait = _RETRY_BACKOFF_SECONDS[attempt]
                    _LOGGER.warning(
                        "OpenRouter rate limited (429), retrying in %ds (attempt %d/%d)",
                        wait,
                        attempt + 1,
                        _MAX_RETRIES,
                    )
                elif response.status_code >= 400:
                    body = (await response.aread()).decode("utf-8", errors="replace")
                    _LOGGER.error("OpenRouter request failed: status=%d body=%r", response.status_code, body[:200])
                    yield BackendError(f"OpenRouter request failed with status {response.status_code}")
                    return
                else:
                    async for event in _read_stream(response.aiter_lines()):
                        yield event
                    return
            await asyncio.sleep(wait)


async def _read_stream(lines: AsyncIterator[str]) -> AsyncIterator[BackendEvent]:
    """Translate server-sent chat completion chunks into backend events."""

    generation_id: str | None = None
    partial_calls: dict[int, dict[str, str]] = {}

    async for line in lines:
        if not line.startswith("data:"):
            continue
        data = line[len("data:"):].strip()
        if data == "[DONE]":
            for call in _flush_tool_calls(partial_calls):
                yield ToolCallRequested(call)
            yield Done()
            return
        try:
            chunk = json.loads(data)
        except json.JSONDecodeError:
            _LOGGER.warning("Skipping malformed stream chunk: %r", data[:200])
            continue

        error = chunk.get("error")
        if error:
            message = error.get("message") if isinstance(error, dict) else str(error)
            yield BackendError(message or "Unknown OpenRouter error")
            return

        if generation_id is None and chunk.get("id"):
            generation_id = chunk["id"]
            yield ContinuityToken(generation_id)

        for choice in chunk.get("choices", []):
            delta = choice.get("delta") or {}
            content = delta.get("content")
            if content:
                yield Text(content)
            for fragment in delta.get("tool_calls") or []:
                slot = partial_calls.setdefault(fragment.get("index", 0), {"id": "", "name": "", "arguments": ""})
                if fragment.get("id"):
                    slot["id"] = fragment["id"]
                function_data = fragment.get("function") or {}
                slot["name"] += function_data.get("name") or ""
                slot["arguments"] += function_data.get("arguments") or ""
            if choice.get("finish_reason"):
                _LOGGER.info("LLM stream finished: finish_reason=%r", choice["finish_reason"])
                for call in _flush_tool_calls(partial_calls):
                    yield ToolCallRequested(call)

    yield BackendError("OpenRouter stream ended before completion")


def _flush_tool_calls(partial_calls: dict[int, dict[str, str]]) -> list[ToolCall]:
    calls = [
        ToolCall(
            id=ToolCallId(slot["id"]) if slot["id"] else ToolCallId.generate(),
            name=slot["name"],
            arguments=_string_arguments(slot["arguments"]),
        )
        for _, slot in sorted(partial_calls.items())
    ]
    partial_calls.clear()
    return calls


def to_chat_messages(messages: Sequence[Message]) -> list[dict[str, Any]]:
    """Convert conversation history into chat completion messages."""

    converted: list[dict[str, Any]] = []
    for message in messages:
        match message:
            case UserMessage():
                converted.append({"role": "user", "content": message.text})
            case AssistantMessage():
                converted.append({"role": "assistant", "content": message.text})
            case AssistantToolUseMessage():
                converted.append(
                    {
                        "role": "assistant",
                        "content": None,
                        "tool_calls": [
                            {
                                "id": call.id.value,
                                "type": "function",
                                "function": {"name": call.name, "arguments": json.dumps(dict(call.arguments))},
                            }
                            for call in message.tool_calls
                        ],
                    }
                )
            case ToolResultMessage():
                converted.append(
                    {"role": "tool", "tool_call_id": message.tool_call_id.value, "content": message.text}
                )
    return converted


def _string_arguments(raw: str) -> dict[str, str]:
    parsed = _safe_json_loads(raw or "{}")
    return {key: value if isinstance(value, str) else json.dumps(value) for key, value in parsed.items()}


def _safe_json_loads(raw: str) -> dict[str, Any]:
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError:
        return {}
    return parsed if isinstance(parsed, dict) else {}
