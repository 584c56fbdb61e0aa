"""Tool-call parsing helpers.

Streamed responses deliver tool calls as fragments keyed by ``index``:
``id`` and ``name`` show up once, ``arguments`` arrives in pieces that are
concatenated until the upstream stream ends.
"""

import json
import logging
from typing import Any

from chatgateway.domain.chat.types import ToolCall, arguments_text

logger = logging.getLogger(__name__)


def try_parse_json(raw: Any) -> Any | None:
    """Parse ``raw`` as JSON, returning None when it is incomplete, invalid or not text."""
    try:
        return json.loads(raw)
    except (TypeError, ValueError):
        return None


def parse_tool_arguments(arguments: Any) -> dict[str, Any]:
    """Decode a tool call's JSON arguments, falling back to no arguments."""
    if isinstance(arguments, dict):
        return arguments
    if not arguments:
        return {}
    parsed = try_parse_json(arguments)
    if not isinstance(parsed, dict):
        logger.warning("Failed to parse tool arguments: %r", str(arguments)[:200])
        return {}
    return parsed


class ToolCallAccumulator:
    """Merges streamed tool-call deltas into complete tool calls."""

    def __init__(self) -> None:
        self._calls: dict[int, ToolCall] = {}

    def __len__(self) -> int:
        return len(self._calls)

    def add(self, delta: dict[str, Any]) -> None:
        if not isinstance(delta, dict):
            logger.debug("Skipping malformed tool call delta: %r", delta)
            return
        index = delta.get("index")
        if not isinstance(index, int):
            index = 0

        call = self._calls.get(index)
        if call is None:
            call = self._calls[index] = ToolCall()

        if delta.get("id") and not call.id:
            call.id = str(delta["id"])

        function = delta.get("function")
        if not isinstance(function, dict):
            return
        if function.get("name") and not call.function.name:
            call.function.name = str(function["name"])
        call.function.arguments += arguments_text(function.get("arguments"))

    def extend(self, deltas: list[dict[str, Any]]) -> None:
        for delta in deltas:
            self.add(delta)

    def tool_calls(self) -> list[ToolCall]:
        """Accumulated calls ordered by their stream index."""
        return [self._calls[index] for index in sorted(self._calls)]
