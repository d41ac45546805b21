"""Lifespan management for MCP server startup and shutdown."""

import logging
import sys
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from dotenv import load_dotenv

from ..config import load_config
from ..config_loader import discover_config_files, load_hierarchical_config
from ..config_schema import UnifiedConfig, build_config
from ..sync.controller import BidirectionalSyncController
from ..sync.reporter import format_recovery_report

logger = logging.getLogger(__name__)


def _stderr_print(msg: str) -> None:
    """Print message to stderr for user feedback (safe in MCP mode)."""
    print(msg, file=sys.stderr, flush=True)


@asynccontextmanager
async def server_lifespan(
    config_overrides: dict[str, Any] | None = None,
) -> AsyncIterator[dict[str, Any]]:
    """
    Manage server startup and shutdown lifecycle.

    On startup:
    - Load .env file (so values are available for env var lookups and YAML interpolation)
    - Load YAML config file if present (as fallback values)
    - Merge all sources via load_config(): CLI > env vars > .env > YAML > defaults
    - Build the sync controller, reconcile mappings, restore subscriptions

    On shutdown:
    - Cancel pending flushes and release every subscription

    Args:
        config_overrides: Optional dict with config values from CLI (user_id, vault_root, store_root, debug)

    Yields:
        Dict with 'controller' key containing the started controller

    Raises:
        RuntimeError: If configuration is invalid or startup fails.
    """
    logger.info("MCP server starting...")
    _stderr_print("Hivemind Sync starting...")

    try:
        # 1. Load .env early (before YAML, so ${VAR} interpolation can use .env values)
        load_dotenv()

        # 2. Load YAML config if present (the vault file sits under the vault root)
        overrides = config_overrides or {}
        vault_root = overrides.get("vault_root")
        unified: UnifiedConfig | None = None
        sources = []
        config_files = discover_config_files(vault_root)
        if config_files:
            unified = build_config(load_hierarchical_config(vault_root))
            sources.append(f"config file: {config_files[0]}")

        # 3. Single call to load_config with all sources merged
        config = load_config(
            user_id=overrides.get("user_id"),
            vault_root=overrides.get("vault_root"),
            store_root=overrides.get("store_root"),
            debug=overrides.get("debug", False),
            unified=unified,
        )

        if overrides:
            sources.append("CLI arguments")
        sources.append("environment variables")
        source_desc = ", ".join(sources)
        logger.info("Configuration loaded from: %s", source_desc)
        _stderr_print(f"  Configuration loaded from: {source_desc}")
        logger.info("Vault: %s, store: %s", config.vault_root, config.store_root)
        _stderr_print(f"  Vault: {config.vault_root}")
        _stderr_print(f"  Store: {config.store_root}")
    except ValueError as e:
        logger.error("Configuration error: %s", e)
        _stderr_print(f"ERROR: Configuration error: {e}")
        _stderr_print(
            "  Ensure HIVEMIND_USER_ID, HIVEMIND_VAULT_ROOT, HIVEMIND_STORE_ROOT are set."
        )
        raise RuntimeError(f"Configuration error: {e}") from e

    try:
        controller = BidirectionalSyncController.from_config(config)
        report = await controller.startup()
    except (OSError, ValueError) as e:
        logger.error("Startup failed: %s", e)
        _stderr_print(f"ERROR: Startup failed: {e}")
        raise RuntimeError(f"Startup failed: {e}") from e

    logger.info("%s", format_recovery_report(report))
    _stderr_print(
        f"  {len(controller.mappings)} shared document(s), "
        f"{len(report.relinked)} relinked at startup"
    )
    _stderr_print("Server ready. Waiting for MCP client connection...")

    try:
        yield {"controller": controller}
    finally:
        await controller.cleanup()
        logger.info("MCP server shutting down")
        _stderr_print("Hivemind Sync shutting down.")
