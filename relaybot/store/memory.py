"""In-memory conversation store."""

from __future__ import annotations

from relaybot.conversation import Conversation
from relaybot.models import ConversationKey
from relaybot.store.base import ConversationStore


class MemoryConversationStore(ConversationStore):
    """Dictionary-backed store for tests and throwaway sessions."""

    def __init__(self) -> None:
        self._conversations: dict[ConversationKey, Conversation] = {}

    async def find_by_key(self, key: ConversationKey) -> Conversation | None:
        return self._conversations.get(key)

    async def save(self, conversation: Conversation) -> None:
        self._conversations[conversation.key] = conversation

    async def delete(self, key: ConversationKey) -> None:
        self._conversations.pop(key, None)
