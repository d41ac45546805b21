"""MCP Server for shared document sync using stdio transport.

This module implements the Model Context Protocol server that lets an
editor integration or an AI agent share vault files, join shared
documents, relay local file events and trigger reconciliation.

Transport: stdio
Protocol: JSON-RPC 2.0 over MCP
"""

import argparse
import asyncio
import logging
import sys

from dotenv import load_dotenv
import mcp.server.stdio
import mcp.types as types
from mcp.server import NotificationOptions, Server
from mcp.server.models import InitializationOptions

from .. import __version__
from ..config_loader import (
    discover_config_files,
    ensure_config,
    load_hierarchical_config,
)
from ..config_schema import LoggingConfig, build_config
from ..logger import setup_logging
from ..sync.controller import BidirectionalSyncController
from .lifespan import server_lifespan
from .tools import ALL_SPECS, ToolRegistry, build_error_response

logger = logging.getLogger(__name__)

# Initialize server instance
server = Server("hivemind-sync")

# Global controller instance (initialized in main)
_controller: BidirectionalSyncController | None = None

# Global registry instance (initialized in main)
_registry: ToolRegistry | None = None


# ---------------------------------------------------------------------------
# Global accessors
# ---------------------------------------------------------------------------


def get_controller() -> BidirectionalSyncController:
    """Get the global controller instance.

    Raises:
        RuntimeError: If controller is not initialized
    """
    if _controller is None:
        raise RuntimeError(
            "Sync controller not initialized. Server lifespan not started."
        )
    return _controller


def set_controller(controller: BidirectionalSyncController | None) -> None:
    global _controller
    _controller = controller


def get_registry() -> ToolRegistry:
    """Get the global ToolRegistry instance.

    Raises:
        RuntimeError: If registry is not initialized
    """
    if _registry is None:
        raise RuntimeError("ToolRegistry not initialized.")
    return _registry


def set_registry(registry: ToolRegistry | None) -> None:
    global _registry
    _registry = registry


# ---------------------------------------------------------------------------
# MCP protocol handlers
# ---------------------------------------------------------------------------


@server.list_tools()
async def handle_list_tools() -> list[types.Tool]:
    """List available document tools."""
    return get_registry().list_tools()


@server.call_tool()
async def handle_call_tool(
    name: str, arguments: dict | None
) -> types.CallToolResult:
    """Handle tool execution via ToolRegistry dispatch.

    Args:
        name: The name of the tool to execute.
        arguments: Tool arguments (optional).

    Returns:
        CallToolResult with tool output content and optional isError flag.
    """
    controller = get_controller()
    try:
        return await get_registry().call_tool(name, arguments, controller)
    except ValueError as e:
        # Unknown or filtered-out tool name
        return build_error_response(
            "unknown_tool",
            str(e),
            "Use list_tools to see available tools.",
        )


# ---------------------------------------------------------------------------
# Server lifecycle
# ---------------------------------------------------------------------------


def _load_logging_config(vault_root: str | None = None) -> LoggingConfig | None:
    """Return the ``logging`` section of the config files, if there are any."""
    load_dotenv()
    if not discover_config_files(vault_root):
        return None
    try:
        return build_config(load_hierarchical_config(vault_root)).logging
    except (OSError, ValueError) as e:
        # The lifespan reports config errors once logging is up
        print(f"Warning: could not read logging config: {e}", file=sys.stderr)
        return None


async def main(config_overrides: dict | None = None):
    """Run the MCP server with stdio transport.

    Sets up logging for MCP mode (file only, never stdout), starts the
    sync controller via the lifespan manager, and serves JSON-RPC over
    stdio.

    Args:
        config_overrides: Optional dict with config values to override
            (user_id, vault_root, store_root, debug, log_file, read_only)
    """
    overrides = config_overrides or {}
    logging_config = _load_logging_config(overrides.get("vault_root"))

    # Must run before stdio_server so nothing reaches stdout
    setup_logging(
        mode="mcp",
        debug=overrides.get("debug", False),
        log_file=overrides.get("log_file")
        or (logging_config.file if logging_config else None),
        level=logging_config.level if logging_config else None,
    )

    read_only = overrides.get("read_only", False)
    registry = ToolRegistry(ALL_SPECS, read_only=read_only)
    logger.info(
        "Registered %d tools (of %d total)",
        registry.tool_count(),
        len(ALL_SPECS),
    )
    if read_only:
        print(
            f"Read-only mode ({registry.tool_count()} of {len(ALL_SPECS)} tools enabled)",
            file=sys.stderr,
        )
    set_registry(registry)

    async with server_lifespan(config_overrides=overrides) as ctx:
        set_controller(ctx["controller"])
        try:
            async with mcp.server.stdio.stdio_server() as (
                read_stream,
                write_stream,
            ):
                init_options = InitializationOptions(
                    server_name="hivemind-sync",
                    server_version=__version__,
                    capabilities=server.get_capabilities(
                        notification_options=NotificationOptions(),
                        experimental_capabilities={},
                    ),
                )
                await server.run(read_stream, write_stream, init_options)
        finally:
            set_controller(None)
            set_registry(None)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Hivemind Sync - share vault files with a team over MCP",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Run with default config (from .env or .hivemind/config.yml)
  hivemind-sync

  # Override vault and store locations
  hivemind-sync --vault ~/notes --store ~/Dropbox/hivemind-store

  # Expose only read-only tools
  hivemind-sync --read-only

Note: This server uses stdio transport for JSON-RPC communication with MCP clients.
All user-facing messages are written to stderr.
        """,
    )
    parser.add_argument(
        "--user-id",
        help="Override user id (takes precedence over HIVEMIND_USER_ID and config files)",
    )
    parser.add_argument(
        "--vault",
        help="Override vault root (takes precedence over HIVEMIND_VAULT_ROOT and config files)",
    )
    parser.add_argument(
        "--store",
        help="Override content store directory (takes precedence over HIVEMIND_STORE_ROOT)",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging",
    )
    parser.add_argument(
        "--log-file",
        default=None,
        help="Log file path (default: LOG_FILE, logging.file, or /tmp/hivemind-sync.log)",
    )
    parser.add_argument(
        "--read-only",
        action="store_true",
        help="Only expose tools that do not modify the vault or the store",
    )
    parser.add_argument(
        "--init-config",
        action="store_true",
        help="Write a starter .hivemind/config.yml in the vault (if no config exists) and exit",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"hivemind-sync version {__version__}",
    )
    return parser


def run() -> None:
    """Entry point that handles errors gracefully and parses CLI arguments."""
    args = build_parser().parse_args()

    if args.init_config:
        print(f"Config file: {ensure_config(args.vault)}", file=sys.stderr)
        return

    config_overrides = {}
    if args.user_id:
        config_overrides["user_id"] = args.user_id
    if args.vault:
        config_overrides["vault_root"] = args.vault
    if args.store:
        config_overrides["store_root"] = args.store
    if args.debug:
        config_overrides["debug"] = True
    if args.log_file:
        config_overrides["log_file"] = args.log_file
    if args.read_only:
        config_overrides["read_only"] = True

    try:
        asyncio.run(main(config_overrides=config_overrides or None))
    except RuntimeError:
        # Error already printed to stderr by lifespan manager
        sys.exit(1)
    except KeyboardInterrupt:
        print("\nInterrupted.", file=sys.stderr)
        sys.exit(0)


if __name__ == "__main__":
    run()
