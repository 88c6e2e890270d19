"""Tool registry and dispatcher.

The registry maps tool names to async handlers and optional result
formatters. The dispatcher runs a handler at most once per call and turns
handler failures into unsuccessful results; only an unknown tool name is
raised to the caller.
"""

import json
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from pydantic import BaseModel

from api_command_agent.exceptions import UnknownToolError

logger = logging.getLogger(__name__)


class SideEffects(BaseModel):
    """Changes a tool made to shared state."""

    created_path: list[str] = []  # folder ids, top-level collection first


class ToolResult(BaseModel):
    success: bool
    payload: dict = {}
    error: str | None = None
    side_effects: SideEffects | None = None


Handler = Callable[[dict], Awaitable[ToolResult]]
Formatter = Callable[[ToolResult], str]


@dataclass
class Tool:
    name: str
    handler: Handler
    description: str = ""
    formatter: Formatter | None = None


class ToolRegistry:
    """Named tools available to the assistant."""

    def __init__(self):
        self._tools: dict[str, Tool] = {}

    def register(
        self,
        name: str,
        handler: Handler,
        *,
        description: str = "",
        formatter: Formatter | None = None,
    ) -> Tool:
        """Register ``handler`` under ``name``, replacing any previous tool."""
        tool = Tool(name=name, handler=handler, description=description, formatter=formatter)
        self._tools[name] = tool
        logger.info("Registered tool: %s", name)
        return tool

    def get(self, name: str) -> Tool | None:
        return self._tools.get(name)

    def names(self) -> list[str]:
        return list(self._tools)

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)


class ToolDispatcher:
    """Executes tools from a registry and formats their results."""

    def __init__(self, registry: ToolRegistry):
        self.registry = registry

    async def execute(self, name: str, parameters: dict) -> ToolResult:
        """Run the named tool once.

        Raises UnknownToolError if no tool is registered under ``name``.
        Any exception from the handler is returned as a failed ToolResult.
        """
        tool = self.registry.get(name)
        if tool is None:
            raise UnknownToolError(name)

        logger.info("Executing tool: %s", name)
        try:
            result = await tool.handler(parameters)
        except Exception as e:
            logger.error("Tool %s failed: %s", name, e)
            return ToolResult(success=False, error=str(e) or type(e).__name__)

        if not result.success:
            logger.warning("Tool %s returned an error: %s", name, result.error)
        return result

    def format_result(self, name: str, result: ToolResult) -> str:
        """Render a result for display, falling back to a JSON dump."""
        tool = self.registry.get(name)
        if tool is None or tool.formatter is None:
            return json.dumps(result.model_dump(mode="json"), indent=2)
        return tool.formatter(result)
