"""Conversation store interface."""

from __future__ import annotations

from abc import ABC, abstractmethod

from relaybot.conversation import Conversation
from relaybot.models import ConversationKey


class ConversationStore(ABC):
    """Key-value persistence of conversations, one per ``ConversationKey``.

    Implementations are last-write-wins and provide no isolation between
    concurrent writers.
    """

    @abstractmethod
    async def find_by_key(self, key: ConversationKey) -> Conversation | None:
        """Return the stored conversation for ``key``, if any."""

    @abstractmethod
    async def save(self, conversation: Conversation) -> None:
        """Store ``conversation`` under its own key, replacing any previous value."""

    @abstractmethod
    async def delete(self, key: ConversationKey) -> None:
        """Remove the conversation for ``key``. Missing keys are not an error."""
