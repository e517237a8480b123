"""Registry for tool registration and execution."""

from __future__ import annotations

import logging
from typing import Any

from pydantic import ValidationError, create_model

from relaybot.models import ToolCall, ToolOutcome
from relaybot.tools.base import Tool

LOGGER = logging.getLogger(__name__)


class ToolRegistry:
    """Explicit registry of tools, usable as the orchestrator's tool backend."""

    def __init__(self) -> None:
        self._tools: dict[str, Tool] = {}

    def register(self, tool: Tool) -> None:
        self._tools[tool.name] = tool

    def list_tool_specs(self) -> list[dict[str, Any]]:
        return [
            {
                "type": "function",
                "function": {
                    "name": tool.name,
                    "description": tool.description,
                    "parameters": tool.parameters_schema,
                },
            }
            for tool in self._tools.values()
        ]

    async def run(self, call: ToolCall) -> ToolOutcome:
        tool = self._tools.get(call.name)
        if tool is None:
            LOGGER.warning("Unknown tool requested: %s", call.name)
            return ToolOutcome(f"Unknown tool: {call.name}", is_error=True)

        try:
            validated = _validate_json_schema(tool.parameters_schema, dict(call.arguments))
        except ValueError as exc:
            return ToolOutcome(str(exc), is_error=True)

        try:
            output = await tool.run(**validated)
        except Exception as exc:  # noqa: BLE001
            LOGGER.exception("Tool %s failed", call.name)
            return ToolOutcome(f"Tool execution error: {exc}", is_error=True)
        LOGGER.info("Tool %s succeeded (call_id=%s)", call.name, call.id.value)
        return ToolOutcome(output)


def _validate_json_schema(schema: dict[str, Any], payload: dict[str, Any]) -> dict[str, Any]:
    props = schema.get("properties", {})
    required = set(schema.get("required", []))
    fields: dict[str, tuple[type[Any], Any]] = {}
    for name, config in props.items():
        typ = _python_type(config.get("type", "string"))
        default = ... if name in required else None
        fields[name] = (typ, default)

    model = create_model("ToolInputModel", **fields)
    try:
        value = model(**payload)
    except ValidationError as exc:
        raise ValueError(f"Invalid input for tool: {exc}") from exc
    return value.model_dump(exclude_none=True)


def _python_type(schema_type: str) -> type[Any]:
    mapping: dict[str, type[Any]] = {
        "string": str,
        "integer": int,
        "number": float,
        "boolean": bool,
    }
    return mapping.get(schema_type, str)
