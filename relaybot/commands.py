"""Command dispatcher for /-prefixed messages.

Commands bypass the AI backend and act on the conversation directly.
An unrecognised /command returns None, letting it fall through to chat.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from relaybot.models import ConversationKey

if TYPE_CHECKING:
    from relaybot.orchestrator import Orchestrator

LOGGER = logging.getLogger(__name__)

_HELP = (
    "Commands:\n"
    "/new - Start a new session\n"
    "/clear - Clear conversation history and start fresh\n"
    "/status - Show current session info\n"
    "/help - Show this help message\n\n"
    "Just type normally to chat."
)


def parse_command(text: str) -> tuple[str, list[str]] | None:
    """Split a /-prefixed message into (command, args).

    Returns:
        A (command, args) tuple where command is lowercased, or None if text
        is not a valid /command.
    """
    text = text.strip()
    if not text.startswith("/"):
        return None
    parts = text[1:].split()
    if not parts:
        return None
    return parts[0].lower(), parts[1:]


class CommandDispatcher:
    """Routes /-prefixed messages to handlers, bypassing the AI backend.

    Returns None for unrecognised commands so the caller can fall through.
    """

    def __init__(self, orchestrator: Orchestrator) -> None:
        self._orchestrator = orchestrator

    async def dispatch(self, key: ConversationKey, text: str) -> str | None:
        """Dispatch a message to a command handler.

        Returns:
            A reply string for recognised commands, or None for unknown ones.
        """
        parsed = parse_command(text)
        if parsed is None:
            return None
        command, args = parsed
        LOGGER.info("Command dispatch: command=%r args=%r key=%s", command, args, key.value)
        if command == "start":
            return "Welcome! Send me a message to chat.\n\n" + _HELP
        if command == "help":
            return _HELP
        if command == "new":
            await self._orchestrator.clear(key)
            return "New session started."
        if command == "clear":
            await self._orchestrator.clear(key)
            return "Session cleared. Starting fresh!"
        if command == "status":
            return await self._handle_status(key)
        return None

    async def _handle_status(self, key: ConversationKey) -> str:
        status = await self._orchestrator.status(key)
        if status is None:
            return "No active session. Send a message to start!"
        token = status.continuity_token[:20] if status.continuity_token else "none"
        return (
            "Session status:\n"
            f"- Messages: {status.message_count}\n"
            f"- AI session: {token}\n"
            f"- Created: {status.created_at.isoformat()}"
        )
