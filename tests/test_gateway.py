from __future__ import annotations

import pytest

from relaybot.events import BackendError, Done, Text, ToolCallRequested
from relaybot.gateway import Gateway, IncomingMessage, MessageChannel
from relaybot.llm.base import AIBackend
from relaybot.models import ChannelId, ConversationKey, ToolCall, ToolOutcome, UserId
from relaybot.orchestrator import Orchestrator
from relaybot.store.memory import MemoryConversationStore


class FakeBackend(AIBackend):
    def __init__(self, *events) -> None:
        self._events = events

    async def complete(self, messages, continuity_token):
        for event in self._events:
            yield event


class FakeTools:
    async def run(self, call):
        return ToolOutcome("tool output")


class ListChannel(MessageChannel):
    def __init__(self, *texts: str) -> None:
        self._texts = texts
        self.sent: list[tuple[ChannelId, str]] = []

    async def messages(self):
        for text in self._texts:
            yield _incoming(text)

    async def send_message(self, channel_id, text):
        self.sent.append((channel_id, text))


def _incoming(text: str) -> IncomingMessage:
    return IncomingMessage(UserId("u1"), ChannelId("c1"), text, platform="test")


def _gateway(*events, store=None) -> Gateway:
    orchestrator = Orchestrator(
        backend=FakeBackend(*events),
        store=store or MemoryConversationStore(),
        tools=FakeTools(),
    )
    return Gateway(orchestrator)


@pytest.mark.asyncio
async def test_handle_joins_text_chunks():
    gateway = _gateway(Text("Hello "), Text("World!"), Done())
    assert await gateway.handle(_incoming("hi")) == "Hello World!"


@pytest.mark.asyncio
async def test_handle_reports_failure():
    gateway = _gateway(BackendError("model overloaded"))
    assert await gateway.handle(_incoming("hi")) == "Error: model overloaded"


@pytest.mark.asyncio
async def test_handle_ignores_tool_events_in_reply():
    call = ToolCall.create("echo", {"text": "x"})
    gateway = _gateway(ToolCallRequested(call), Text("answer"), Done())
    assert await gateway.handle(_incoming("hi")) == "answer"


@pytest.mark.asyncio
async def test_handle_routes_commands_before_chat():
    store = MemoryConversationStore()
    gateway = _gateway(Text("x"), Done(), store=store)
    await gateway.handle(_incoming("hi"))
    key = ConversationKey("u1:c1")
    assert await store.find_by_key(key) is not None

    reply = await gateway.handle(_incoming("/clear"))

    assert "cleared" in reply.lower()
    assert await store.find_by_key(key) is None


@pytest.mark.asyncio
async def test_run_replies_to_every_message():
    channel = ListChannel("hi", "/status")
    await _gateway(Text("reply"), Done()).run(channel)

    assert channel.sent[0] == (ChannelId("c1"), "reply")
    assert "Messages: 2" in channel.sent[1][1]


@pytest.mark.asyncio
async def test_run_keeps_going_after_store_failure():
    class BrokenStore(MemoryConversationStore):
        async def find_by_key(self, key):
            raise OSError("disk gone")

    channel = ListChannel("first", "second")
    await _gateway(Done(), store=BrokenStore()).run(channel)

    assert [text for _, text in channel.sent] == [
        "An error occurred: disk gone",
        "An error occurred: disk gone",
    ]
