"""Runtime configuration for the hivemind sync service.

Reads vault and store settings from CLI args, environment variables,
.env files, and the YAML config file.

Precedence (highest to lowest):
    CLI args > Environment variables > .env file > YAML config > Built-in defaults

Environment variables:
    HIVEMIND_USER_ID: Local user id recorded as ``shared_by`` (required)
    HIVEMIND_VAULT_ROOT: Vault root directory (required)
    HIVEMIND_STORE_ROOT: Shared content store directory (required)
    HIVEMIND_DEBOUNCE_MS: Quiet period before pushing an edit (optional, default: 500)
    HIVEMIND_DEBUG: Enable debug logging (optional, default: false)
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

from .config_schema import UnifiedConfig

logger = logging.getLogger(__name__)


@dataclass
class Config:
    user_id: str
    vault_root: Path
    store_root: Path
    state_dir: str = ".hivemind"
    debounce_ms: int = 500
    similarity_threshold: float = 0.9
    unresolved_strategy: str = "abandon"
    extensions: list[str] = field(default_factory=lambda: [".md"])
    team_sync_folder: str = "Shared"
    organize_sync_by_team: bool = True
    poll_interval: float = 2.0
    debug: bool = False

    @property
    def state_path(self) -> Path:
        """Absolute directory holding ``settings.json``."""
        return self.vault_root / self.state_dir


def validate_config(config: Config) -> None:
    """Validate configuration values and raise ValueError if invalid.

    Args:
        config: Config instance to validate.

    Raises:
        ValueError: If the user id is empty or a directory is missing.
    """
    config.user_id = config.user_id.strip()
    if not config.user_id:
        raise ValueError(
            "User id cannot be empty. Set HIVEMIND_USER_ID environment variable."
        )

    config.vault_root = config.vault_root.expanduser().resolve()
    if not config.vault_root.is_dir():
        raise ValueError(f"Vault root is not a directory: {config.vault_root}")

    config.store_root = config.store_root.expanduser().resolve()
    if config.store_root.is_relative_to(config.vault_root):
        raise ValueError(
            f"Store root {config.store_root} must not live inside the vault"
        )

    if config.debounce_ms < 0:
        raise ValueError(
            f"Invalid debounce_ms {config.debounce_ms}: must not be negative"
        )

    if config.unresolved_strategy not in ("abandon", "recreate"):
        raise ValueError(
            f"Invalid unresolved_strategy '{config.unresolved_strategy}': "
            "must be 'abandon' or 'recreate'"
        )


def _get_bool_env(key: str) -> bool | None:
    """Return True/False from env var, or None if unset."""
    val = os.getenv(key)
    if val is None:
        return None
    return val.lower() in ("true", "1", "yes", "on")


def load_config(
    user_id: str | None = None,
    vault_root: str | None = None,
    store_root: str | None = None,
    debug: bool = False,
    unified: UnifiedConfig | None = None,
) -> Config:
    """Load configuration with unified precedence.

    Resolution order for each field (highest to lowest):
        CLI arg > env var / .env > YAML config > built-in default

    The caller is responsible for calling ``load_dotenv()`` before this
    function so that .env values are available via ``os.getenv()``.

    Args:
        user_id: Override user id.
        vault_root: Override vault root directory.
        store_root: Override content store directory.
        debug: Enable debug logging (CLI flag).
        unified: Parsed YAML configuration used as fallback.

    Returns:
        Validated Config instance.

    Raises:
        ValueError: If a required value is missing after checking all
            sources, or a value fails validation.
    """
    fb = unified or UnifiedConfig()

    final_user = user_id or os.getenv("HIVEMIND_USER_ID") or fb.sync.user_id
    if not final_user:
        raise ValueError(
            "User id not found. Set HIVEMIND_USER_ID environment variable, "
            "pass --user-id, or add 'sync.user_id' to config.yml."
        )

    final_vault = vault_root or os.getenv("HIVEMIND_VAULT_ROOT") or fb.vault.root
    if not final_vault:
        raise ValueError(
            "Vault root not found. Set HIVEMIND_VAULT_ROOT environment variable, "
            "pass --vault, or add 'vault.root' to config.yml."
        )

    final_store = store_root or os.getenv("HIVEMIND_STORE_ROOT") or fb.store.root
    if not final_store:
        raise ValueError(
            "Store root not found. Set HIVEMIND_STORE_ROOT environment variable, "
            "pass --store, or add 'store.root' to config.yml."
        )

    debounce_raw = os.getenv("HIVEMIND_DEBOUNCE_MS")
    if debounce_raw is not None:
        try:
            final_debounce = int(debounce_raw)
        except ValueError:
            raise ValueError(
                f"Invalid HIVEMIND_DEBOUNCE_MS '{debounce_raw}': must be a number"
            ) from None
    else:
        final_debounce = fb.sync.debounce_ms

    if debug:
        final_debug = True
    else:
        env_debug = _get_bool_env("HIVEMIND_DEBUG")
        final_debug = env_debug if env_debug is not None else False

    config = Config(
        user_id=final_user,
        vault_root=Path(final_vault),
        store_root=Path(final_store),
        state_dir=fb.vault.state_dir,
        debounce_ms=final_debounce,
        similarity_threshold=fb.recovery.similarity_threshold,
        unresolved_strategy=fb.recovery.unresolved_strategy,
        extensions=list(fb.vault.extensions),
        team_sync_folder=fb.vault.team_sync_folder,
        organize_sync_by_team=fb.vault.organize_sync_by_team,
        poll_interval=fb.store.poll_interval,
        debug=final_debug,
    )

    validate_config(config)

    return config
