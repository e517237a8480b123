from datetime import datetime, timedelta, timezone

from relaybot.conversation import Conversation, Turn
from relaybot.models import (
    AssistantMessage,
    ChannelId,
    ConversationKey,
    ToolCall,
    ToolCallId,
    UserId,
    UserMessage,
)

KEY = ConversationKey("user-1:chat-1")
USER = UserId("user-1")


class FrozenClock:
    """Clock that never advances unless told to."""

    def __init__(self) -> None:
        self.now = datetime(2026, 1, 1, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now


def test_conversation_key_joins_user_and_channel():
    key = ConversationKey.from_parts(UserId("u1"), ChannelId("c9"))
    assert key == ConversationKey("u1:c9")


def test_start_creates_empty_conversation():
    clock = FrozenClock()
    conv = Conversation.start(KEY, clock=clock)

    assert conv.key == KEY
    assert conv.messages == ()
    assert conv.turn is None
    assert conv.ai_continuity_token is None
    assert conv.created_at == conv.updated_at == clock.now


def test_receive_adds_user_message_and_opens_turn():
    conv = Conversation.start(KEY).receive(USER, "Hi")

    assert len(conv.messages) == 1
    assert isinstance(conv.messages[0], UserMessage)
    assert conv.messages[0].text == "Hi"
    assert conv.messages[0].user_id == USER
    assert conv.turn is not None
    assert conv.turn.text == ""


def test_receive_hello_round_trip():
    messages = Conversation.start(KEY).receive(USER, "hello").messages
    assert len(messages) == 1
    assert isinstance(messages[0], UserMessage)
    assert messages[0].text == "hello"


def test_receive_discards_in_flight_turn():
    conv = Conversation.start(KEY).receive(USER, "first").add_text_chunk("partial")
    conv = conv.receive(USER, "second")

    assert conv.turn == Turn(started_at=conv.turn.started_at)
    assert [m.text for m in conv.messages] == ["first", "second"]


def test_add_text_chunk_accumulates():
    conv = Conversation.start(KEY).receive(USER, "Hi").add_text_chunk("Hello ").add_text_chunk("World!")
    assert conv.turn.text == "Hello World!"


def test_add_text_chunk_without_turn_opens_one():
    conv = Conversation.start(KEY).add_text_chunk("orphan")
    assert conv.turn is not None
    assert conv.turn.text == "orphan"


def test_add_tool_call_without_turn_opens_one():
    call = ToolCall.create("echo", {"text": "x"})
    conv = Conversation.start(KEY).add_tool_call(call)

    assert conv.has_pending_tools()
    assert conv.pending_tools() == (call,)


def test_add_tool_result_without_turn_is_ignored():
    conv = Conversation.start(KEY)
    assert conv.add_tool_result(ToolCallId("x"), "result") is conv


def test_add_tool_result_completes_pending_call():
    call = ToolCall.create("echo")
    conv = Conversation.start(KEY).receive(USER, "Hi").add_tool_call(call).add_tool_result(call.id, "ok")

    assert not conv.has_pending_tools()
    assert conv.turn.completed_tool_calls[0].result == "ok"


def test_complete_appends_assistant_message_and_closes_turn():
    conv = Conversation.start(KEY).receive(USER, "Hi").add_text_chunk("ignored")
    conv = conv.complete("Final answer")

    assert conv.turn is None
    assert len(conv.messages) == 2
    assert isinstance(conv.messages[1], AssistantMessage)
    assert conv.messages[1].text == "Final answer"


def test_fail_closes_turn_without_history():
    conv = Conversation.start(KEY).receive(USER, "Hi").add_text_chunk("partial")
    conv = conv.fail("boom")

    assert conv.turn is None
    assert len(conv.messages) == 1


def test_projections_without_turn():
    conv = Conversation.start(KEY)
    assert not conv.has_pending_tools()
    assert conv.pending_tools() == ()


def test_with_continuity_token():
    conv = Conversation.start(KEY).with_continuity_token("session-123")
    assert conv.ai_continuity_token == "session-123"


def test_transitions_do_not_mutate_original():
    original = Conversation.start(KEY)
    original.receive(USER, "Hi")
    assert original.messages == ()
    assert original.turn is None


def test_updated_at_strictly_increases_with_stalled_clock():
    clock = FrozenClock()
    call = ToolCall.create("echo")
    conv = Conversation.start(KEY, clock=clock)
    transitions = [
        lambda c: c.receive(USER, "Hi"),
        lambda c: c.add_text_chunk("a"),
        lambda c: c.add_tool_call(call),
        lambda c: c.add_tool_result(call.id, "r"),
        lambda c: c.with_continuity_token("t"),
        lambda c: c.complete("done"),
        lambda c: c.receive(USER, "again"),
        lambda c: c.fail("err"),
    ]
    for transition in transitions:
        updated = transition(conv)
        assert updated.updated_at > conv.updated_at
        conv = updated


def test_updated_at_follows_clock_when_it_advances():
    clock = FrozenClock()
    conv = Conversation.start(KEY, clock=clock)
    clock.now += timedelta(seconds=5)

    conv = conv.receive(USER, "Hi")

    assert conv.updated_at == clock.now
    assert conv.turn.started_at == clock.now


def test_updated_at_never_goes_backwards():
    clock = FrozenClock()
    conv = Conversation.start(KEY, clock=clock)
    clock.now -= timedelta(hours=1)

    updated = conv.receive(USER, "Hi")

    assert updated.updated_at > conv.updated_at


def test_turn_state_through_a_full_cycle():
    call = ToolCall.create("echo")
    conv = Conversation.start(KEY).receive(USER, "Hi")
    assert conv.turn is not None
    conv = conv.add_text_chunk("x")
    assert conv.turn is not None
    conv = conv.add_tool_call(call)
    assert conv.turn is not None
    conv = conv.add_tool_result(call.id, "r")
    assert conv.turn is not None
    conv = conv.complete("x")
    assert conv.turn is None


def test_turn_opened_implicitly_uses_conversation_clock():
    clock = FrozenClock()
    conv = Conversation.start(KEY, clock=clock)
    clock.now += timedelta(minutes=3)

    with_text = conv.add_text_chunk("x")
    with_call = conv.add_tool_call(ToolCall.create("echo"))

    assert with_text.turn.started_at == clock.now
    assert with_call.turn.started_at == clock.now
