"""ToolSpec and ToolRegistry for read-only tool filtering.

This module provides a centralized registry for MCP tools that can hide
every tool that changes the vault, so operators can expose a vault to an
agent for inspection only.

Key concepts:
- ToolSpec: Immutable dataclass linking a Tool definition, a read-only
  flag, and an async handler with standardized signature
  (controller, args) -> CallToolResult.
- ToolRegistry: Filters specs at construction time, then provides
  list_tools() and call_tool() dispatch with error translation.
"""

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

import mcp.types as types

from ...errors import HivemindError
from ...sync.controller import BidirectionalSyncController

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ToolSpec:
    """Immutable specification for a single MCP tool.

    Attributes:
        tool: The MCP Tool definition (name, description, inputSchema).
        read_only: True if the tool never modifies the vault or the store.
        handler: Async handler with signature (controller, args) -> CallToolResult.
    """

    tool: types.Tool
    read_only: bool
    handler: Callable[
        [BidirectionalSyncController, dict], Awaitable[types.CallToolResult]
    ]


class ToolRegistry:
    """Registry of ToolSpecs, optionally restricted to read-only tools."""

    def __init__(self, specs: list[ToolSpec], read_only: bool = False):
        self._specs: dict[str, ToolSpec] = {}
        for spec in specs:
            if not read_only or spec.read_only:
                self._specs[spec.tool.name] = spec

    def list_tools(self) -> list[types.Tool]:
        """Return list of types.Tool for all registered specs."""
        return [spec.tool for spec in self._specs.values()]

    def tool_count(self) -> int:
        """Return number of registered tools."""
        return len(self._specs)

    async def call_tool(
        self,
        name: str,
        arguments: dict | None,
        controller: BidirectionalSyncController,
    ) -> types.CallToolResult:
        """Dispatch tool call to registered handler.

        Translates core errors and unexpected exceptions into structured
        CallToolResult responses with corrective actions.

        Args:
            name: Tool name to invoke.
            arguments: Tool arguments (may be None).
            controller: Sync controller instance.

        Returns:
            CallToolResult from the handler.

        Raises:
            ValueError: If tool name is not registered (unknown or filtered out).
        """
        from .errors import translate_sync_error

        spec = self._specs.get(name)
        if spec is None:
            raise ValueError(f"Unknown tool: {name}")
        args = arguments or {}
        try:
            return await spec.handler(controller, args)
        except (HivemindError, ValueError) as e:
            logger.warning("%s failed: %s", name, e)
            return translate_sync_error(e)
        except Exception as e:
            logger.exception("Unexpected error in tool %s", name)
            return translate_sync_error(e)
