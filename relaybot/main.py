"""Application entrypoint."""

from __future__ import annotations

import asyncio
import logging
import sys
from collections.abc import AsyncIterator
from pathlib import Path

from relaybot.config import Settings, load_settings, uses_memory_store
from relaybot.gateway import Gateway, IncomingMessage, MessageChannel
from relaybot.llm.openrouter import OpenRouterBackend
from relaybot.models import ChannelId, UserId
from relaybot.orchestrator import Orchestrator
from relaybot.store.base import ConversationStore
from relaybot.store.memory import MemoryConversationStore
from relaybot.store.sqlite import SqliteConversationStore
from relaybot.tools.ddg_search_tool import DdgSearchTool
from relaybot.tools.echo_tool import EchoTool
from relaybot.tools.registry import ToolRegistry
from relaybot.tools.time_tool import GetCurrentTimeTool

LOGGER = logging.getLogger(__name__)


class ConsoleChannel(MessageChannel):
    """Reads messages from stdin and prints replies to stdout."""

    def __init__(self, user_id: str, channel_id: str) -> None:
        self._user_id = UserId(user_id)
        self._channel_id = ChannelId(channel_id)

    async def messages(self) -> AsyncIterator[IncomingMessage]:
        while True:
            line = await asyncio.to_thread(sys.stdin.readline)
            if not line:
                return
            text = line.strip()
            if text:
                yield IncomingMessage(self._user_id, self._channel_id, text, platform="console")

    async def send_message(self, channel_id: ChannelId, text: str) -> None:
        print(text, flush=True)


def build_store(settings: Settings) -> ConversationStore:
    if uses_memory_store(settings):
        LOGGER.info("Using in-memory conversation store")
        return MemoryConversationStore()
    LOGGER.info("Using SQLite conversation store at %s", settings.database_path)
    store = SqliteConversationStore(Path(settings.database_path).expanduser())
    store.initialize()
    return store


def build_orchestrator(settings: Settings) -> Orchestrator:
    tools = ToolRegistry()
    tools.register(GetCurrentTimeTool())
    tools.register(EchoTool())
    tools.register(DdgSearchTool())

    backend = OpenRouterBackend(settings, tool_specs=tools.list_tool_specs())
    return Orchestrator(backend=backend, store=build_store(settings), tools=tools)


async def run() -> None:
    """Initialize app layers and start processing loop."""

    settings = load_settings()
    logging.basicConfig(level=settings.log_level.upper())

    gateway = Gateway(build_orchestrator(settings))
    channel = ConsoleChannel(settings.console_user_id, settings.console_channel_id)
    try:
        await gateway.run(channel)
    finally:
        LOGGER.info("Relaybot shutdown complete")


def main() -> None:
    """Synchronous wrapper for asyncio entrypoint."""

    asyncio.run(run())


if __name__ == "__main__":
    main()
