"""SQLite persistence layer."""

from __future__ import annotations

import asyncio
import json
import logging
import sqlite3
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Any, Iterator

from relaybot.conversation import CompletedToolCall, Conversation, Turn
from relaybot.models import (
    AssistantMessage,
    AssistantToolUseMessage,
    ConversationId,
    ConversationKey,
    Message,
    MessageId,
    ToolCall,
    ToolCallId,
    ToolResultMessage,
    UserId,
    UserMessage,
)
from relaybot.store.base import ConversationStore

LOGGER = logging.getLogger(__name__)

SCHEMA_VERSION = 1


class SqliteConversationStore(ConversationStore):
    """Stores one JSON snapshot row per conversation key."""

    def __init__(self, path: Path) -> None:
        self._path = path

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        conn = sqlite3.connect(self._path)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        finally:
            conn.close()

    def initialize(self) -> None:
        """Create or migrate schema."""

        self._path.parent.mkdir(parents=True, exist_ok=True)
        with self._connect() as conn:
            conn.execute("CREATE TABLE IF NOT EXISTS schema_version (version INTEGER NOT NULL)")
            row = conn.execute("SELECT version FROM schema_version LIMIT 1").fetchone()
            if row is None:
                self._create_schema(conn)
                conn.execute("INSERT INTO schema_version (version) VALUES (?)", (SCHEMA_VERSION,))
            elif row["version"] != SCHEMA_VERSION:
                raise RuntimeError(
                    f"Unsupported schema version {row['version']} (expected {SCHEMA_VERSION})"
                )

    def _create_schema(self, conn: sqlite3.Connection) -> None:
        conn.executescript(
            """
            CREATE TABLE IF NOT EXISTS conversations (
                conversation_key TEXT PRIMARY KEY,
                conversation_id TEXT NOT NULL,
                ai_continuity_token TEXT,
                messages_json TEXT NOT NULL,
                turn_json TEXT,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL
            );
            """
        )

    async def find_by_key(self, key: ConversationKey) -> Conversation | None:
        return await asyncio.to_thread(self._find_by_key, key)

    async def save(self, conversation: Conversation) -> None:
        await asyncio.to_thread(self._save, conversation)

    async def delete(self, key: ConversationKey) -> None:
        await asyncio.to_thread(self._delete, key)

    def _find_by_key(self, key: ConversationKey) -> Conversation | None:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM conversations WHERE conversation_key = ?", (key.value,)
            ).fetchone()
        if row is None:
            return None
        try:
            return _row_to_conversation(row)
        except (json.JSONDecodeError, KeyError, TypeError, ValueError):
            LOGGER.exception("Failed to decode stored conversation %s", key.value)
            return None

    def _save(self, conversation: Conversation) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO conversations(
                    conversation_key, conversation_id, ai_continuity_token,
                    messages_json, turn_json, created_at, updated_at
                )
                VALUES (?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(conversation_key) DO UPDATE SET
                    conversation_id=excluded.conversation_id,
                    ai_continuity_token=excluded.ai_continuity_token,
                    messages_json=excluded.messages_json,
                    turn_json=excluded.turn_json,
                    updated_at=excluded.updated_at
                """,
                (
                    conversation.key.value,
                    conversation.id.value,
                    conversation.ai_continuity_token,
                    json.dumps([_message_to_dict(m) for m in conversation.messages]),
                    json.dumps(_turn_to_dict(conversation.turn)) if conversation.turn else None,
                    conversation.created_at.isoformat(),
                    conversation.updated_at.isoformat(),
                ),
            )
        LOGGER.debug("Saved conversation %s", conversation.key.value)

    def _delete(self, key: ConversationKey) -> None:
        with self._connect() as conn:
            conn.execute("DELETE FROM conversations WHERE conversation_key = ?", (key.value,))


def _row_to_conversation(row: sqlite3.Row) -> Conversation:
    turn_json = row["turn_json"]
    return Conversation(
        id=ConversationId(row["conversation_id"]),
        key=ConversationKey(row["conversation_key"]),
        messages=tuple(_message_from_dict(m) for m in json.loads(row["messages_json"])),
        turn=_turn_from_dict(json.loads(turn_json)) if turn_json else None,
        ai_continuity_token=row["ai_continuity_token"],
        created_at=datetime.fromisoformat(row["created_at"]),
        updated_at=datetime.fromisoformat(row["updated_at"]),
    )


def _tool_call_to_dict(call: ToolCall) -> dict[str, Any]:
    return {"id": call.id.value, "name": call.name, "arguments": dict(call.arguments)}


def _tool_call_from_dict(data: dict[str, Any]) -> ToolCall:
    return ToolCall(id=ToolCallId(data["id"]), name=data["name"], arguments=dict(data["arguments"]))


def _message_to_dict(message: Message) -> dict[str, Any]:
    base = {"id": message.id.value, "timestamp": message.timestamp.isoformat()}
    match message:
        case UserMessage():
            return {**base, "type": "user", "user_id": message.user_id.value, "text": message.text}
        case AssistantMessage():
            return {**base, "type": "assistant", "text": message.text}
        case AssistantToolUseMessage():
            return {
                **base,
                "type": "assistant_tool_use",
                "tool_calls": [_tool_call_to_dict(c) for c in message.tool_calls],
            }
        case ToolResultMessage():
            return {
                **base,
                "type": "tool_result",
                "tool_call_id": message.tool_call_id.value,
                "text": message.text,
                "is_error": message.is_error,
            }
    raise TypeError(f"Unknown message type: {type(message).__name__}")


def _message_from_dict(data: dict[str, Any]) -> Message:
    message_id = MessageId(data["id"])
    timestamp = datetime.fromisoformat(data["timestamp"])
    kind = data["type"]
    if kind == "user":
        return UserMessage(message_id, UserId(data["user_id"]), data["text"], timestamp)
    if kind == "assistant":
        return AssistantMessage(message_id, data["text"], timestamp)
    if kind == "assistant_tool_use":
        calls = tuple(_tool_call_from_dict(c) for c in data["tool_calls"])
        return AssistantToolUseMessage(message_id, calls, timestamp)
    if kind == "tool_result":
        return ToolResultMessage(
            message_id,
            ToolCallId(data["tool_call_id"]),
            data["text"],
            timestamp,
            is_error=bool(data.get("is_error", False)),
        )
    raise ValueError(f"Unknown message type: {kind}")


def _turn_to_dict(turn: Turn) -> dict[str, Any]:
    return {
        "text": turn.text,
        "pending_tool_calls": [_tool_call_to_dict(c) for c in turn.pending_tool_calls],
        "completed_tool_calls": [
            {"call_id": c.call_id.value, "result": c.result} for c in turn.completed_tool_calls
        ],
        "started_at": turn.started_at.isoformat(),
    }


def _turn_from_dict(data: dict[str, Any]) -> Turn:
    return Turn(
        text=data["text"],
        pending_tool_calls=tuple(_tool_call_from_dict(c) for c in data["pending_tool_calls"]),
        completed_tool_calls=tuple(
            CompletedToolCall(ToolCallId(c["call_id"]), c["result"]) for c in data["completed_tool_calls"]
        ),
        started_at=datetime.fromisoformat(data["started_at"]),
    )
