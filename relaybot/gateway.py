"""Channel gateway connecting inbound chat messages to the orchestrator."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from contextlib import aclosing
from dataclasses import dataclass

from relaybot.commands import CommandDispatcher
from relaybot.events import Completed, Failed, TextChunk, ToolCompleted, ToolStarted
from relaybot.models import ChannelId, ConversationKey, UserId
from relaybot.orchestrator import Orchestrator

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class IncomingMessage:
    """Message normalized by channel adapters."""

    user_id: UserId
    channel_id: ChannelId
    text: str
    platform: str


class MessageChannel(ABC):
    """Inbound/outbound side of one chat platform."""

    @abstractmethod
    def messages(self) -> AsyncIterator[IncomingMessage]:
        """Yield inbound messages until the channel closes."""

    @abstractmethod
    async def send_message(self, channel_id: ChannelId, text: str) -> None:
        """Deliver a reply to ``channel_id``."""


class Gateway:
    """Routes commands and chat turns for messages arriving on a channel."""

    def __init__(self, orchestrator: Orchestrator, dispatcher: CommandDispatcher | None = None) -> None:
        self._orchestrator = orchestrator
        self._dispatcher = dispatcher or CommandDispatcher(orchestrator)

    async def handle(self, incoming: IncomingMessage) -> str:
        """Handle one inbound message and return the reply text."""

        text = incoming.text.strip()
        key = ConversationKey.from_parts(incoming.user_id, incoming.channel_id)

        cmd_reply = await self._dispatcher.dispatch(key, text)
        if cmd_reply is not None:
            return cmd_reply

        response: list[str] = []
        async with aclosing(self._orchestrator.chat(key, incoming.user_id, text)) as events:
            async for event in events:
                match event:
                    case TextChunk(text=chunk):
                        response.append(chunk)
                    case ToolStarted(call=call):
                        LOGGER.debug("Tool started: %s", call.name)
                    case ToolCompleted(call_id=call_id):
                        LOGGER.debug("Tool completed: %s", call_id.value)
                    case Completed():
                        return "".join(response)
                    case Failed(error=error):
                        return f"Error: {error}"
        return "".join(response)

    async def run(self, channel: MessageChannel) -> None:
        """Consume ``channel`` until it closes, replying to every message."""

        async for incoming in channel.messages():
            try:
                reply = await self.handle(incoming)
            except Exception as exc:  # noqa: BLE001
                LOGGER.exception("Error handling message from %s", incoming.platform)
                reply = f"An error occurred: {exc}"
            await channel.send_message(incoming.channel_id, reply)
