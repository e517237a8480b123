"""Echo tool, handy for checking the tool round trip end to end."""

from __future__ import annotations

from typing import Any

from relaybot.tools.base import Tool


class EchoTool(Tool):
    name = "echo"
    description = "Return the given text unchanged."
    parameters_schema: dict[str, Any] = {
        "type": "object",
        "properties": {
            "text": {"type": "string", "description": "Text to echo back."},
        },
        "required": ["text"],
        "additionalProperties": False,
    }

    async def run(self, **kwargs: Any) -> str:
        return str(kwargs["text"])
