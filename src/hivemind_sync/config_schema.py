"""Unified configuration schema for hivemind_sync.

Defines Pydantic models for the unified config structure with dedicated
sections for the local vault, the shared content store, sync timing,
recovery behaviour and logging.

Usage:
    from hivemind_sync.config_schema import UnifiedConfig, build_config

    raw = load_hierarchical_config()
    unified = build_config(raw)
"""

from __future__ import annotations

import logging
from typing import Literal

from pydantic import BaseModel, Field, field_validator

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Section models
# ---------------------------------------------------------------------------


class VaultConfig(BaseModel):
    """Local vault settings.

    All fields are optional to support zero-config: env vars and CLI args
    can supply them at runtime instead.
    """

    root: str | None = Field(default=None, description="Vault root directory")
    state_dir: str = Field(
        default=".hivemind",
        description="Directory (relative to vault root) holding settings.json",
    )
    extensions: list[str] = Field(
        default_factory=lambda: [".md"],
        description="File extensions considered shareable",
    )
    team_sync_folder: str = Field(
        default="Shared",
        description="Folder that receives documents joined from a team",
    )
    organize_sync_by_team: bool = Field(
        default=True,
        description="Nest joined documents under a per-team subfolder",
    )

    model_config = {"frozen": True}

    @field_validator("extensions")
    @classmethod
    def _dotted(cls, value: list[str]) -> list[str]:
        return [ext if ext.startswith(".") else f".{ext}" for ext in value]


class StoreConfig(BaseModel):
    """Shared content store settings."""

    root: str | None = Field(
        default=None, description="Shared directory backing the content store"
    )
    poll_interval: float = Field(
        default=2.0,
        gt=0,
        le=3600,
        description="Seconds between checks for changes made by other vaults",
    )

    model_config = {"frozen": True}


class SyncConfig(BaseModel):
    """Local edit debounce settings."""

    user_id: str | None = Field(default=None, description="Local user id")
    debounce_ms: int = Field(
        default=500,
        ge=0,
        le=60000,
        description="Quiet period before a local edit is pushed (0-60000 ms)",
    )

    model_config = {"frozen": True}


class RecoveryConfig(BaseModel):
    """Reconciliation settings."""

    similarity_threshold: float = Field(
        default=0.9,
        ge=0.0,
        le=1.0,
        description="Score a candidate must exceed to relink by similarity",
    )
    unresolved_strategy: Literal["abandon", "recreate"] = Field(
        default="abandon",
        description="Outcome for orphans no automatic strategy matched",
    )

    model_config = {"frozen": True}


class LoggingConfig(BaseModel):
    """Logging configuration.

    Attributes:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        file: Optional log file path.
    """

    level: str = Field(default="INFO", description="Log level")
    file: str | None = Field(default=None, description="Log file path")

    model_config = {"frozen": True}


# ---------------------------------------------------------------------------
# Top-level unified config
# ---------------------------------------------------------------------------


class UnifiedConfig(BaseModel):
    """Top-level unified configuration.

    Aggregates all config sections. Every section has sensible defaults,
    so ``UnifiedConfig()`` (zero-config) is always valid.
    """

    vault: VaultConfig = Field(default_factory=VaultConfig)
    store: StoreConfig = Field(default_factory=StoreConfig)
    sync: SyncConfig = Field(default_factory=SyncConfig)
    recovery: RecoveryConfig = Field(default_factory=RecoveryConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = {"frozen": True}


# ---------------------------------------------------------------------------
# Factory function
# ---------------------------------------------------------------------------


def build_config(raw_data: dict) -> UnifiedConfig:
    """Construct a ``UnifiedConfig`` from the raw dict returned by
    ``load_hierarchical_config()``.

    Handles missing sections gracefully; anything absent gets defaults.

    Args:
        raw_data: Merged configuration dictionary.

    Returns:
        Validated ``UnifiedConfig`` instance.
    """
    if not raw_data:
        return UnifiedConfig()

    return UnifiedConfig(**raw_data)
