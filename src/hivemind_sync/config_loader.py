"""YAML configuration files for hivemind-sync.

A vault keeps its own settings in ``<vault>/.hivemind/config.yml``, next to
the mapping table.  A user-wide file at ``~/.config/hivemind/config.yml``
holds what every vault shares (user id, store location, logging).

Sections are merged key by key with the vault file winning, so a vault
that only sets ``sync.debounce_ms`` still picks up ``sync.user_id`` from
the user-wide file.  String values may reference the environment as
``${VAR}`` or ``${VAR:-default}``.
"""

import logging
import os
import re
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger(__name__)

CONFIG_ENV = "HIVEMIND_CONFIG"
VAULT_ENV = "HIVEMIND_VAULT_ROOT"
STATE_DIR = ".hivemind"
CONFIG_NAME = "config.yml"

_ENV_REF = re.compile(r"\$\{(\w+)(?::-([^}]*))?\}")

_STARTER_CONFIG = """\
# hivemind-sync settings for this vault.
#
# Anything left commented out falls back to ~/.config/hivemind/config.yml,
# then to the HIVEMIND_* environment variables, then to built-in defaults.
# Values may use ${VAR} or ${VAR:-default}.
#
# sync:
#   user_id: ${USER}
#   debounce_ms: 500
#
# store:
#   root: ~/Dropbox/hivemind-store
#   poll_interval: 2.0
#
# vault:
#   extensions: [".md"]
#   team_sync_folder: Shared
#   organize_sync_by_team: true
#
# recovery:
#   similarity_threshold: 0.9
#   unresolved_strategy: abandon   # or: recreate
#
# logging:
#   level: INFO
"""


# ---------------------------------------------------------------------------
# Environment references
# ---------------------------------------------------------------------------


def expand_env(value: str) -> str:
    """Substitute ``${VAR}`` / ``${VAR:-default}`` references in *value*.

    An unset or empty variable yields its default, or ``""`` without one.
    """

    def _lookup(match: re.Match) -> str:
        return os.environ.get(match.group(1)) or match.group(2) or ""

    return _ENV_REF.sub(_lookup, value)


def _expand_all(data: Any) -> Any:
    if isinstance(data, str):
        return expand_env(data)
    if isinstance(data, list):
        return [_expand_all(item) for item in data]
    if isinstance(data, dict):
        return {key: _expand_all(item) for key, item in data.items()}
    return data


# ---------------------------------------------------------------------------
# Locations
# ---------------------------------------------------------------------------


def vault_config_path(vault_root: str | Path | None = None) -> Path:
    """Where the vault's own config file lives (it may not exist yet).

    The vault is *vault_root*, else ``$HIVEMIND_VAULT_ROOT``, else the
    current directory.
    """
    root = vault_root or os.environ.get(VAULT_ENV) or Path.cwd()
    return Path(root).expanduser() / STATE_DIR / CONFIG_NAME


def global_config_path() -> Path:
    return Path.home() / ".config" / "hivemind" / CONFIG_NAME


def discover_config_files(vault_root: str | Path | None = None) -> list[Path]:
    """Existing config files, highest precedence first.

    ``$HIVEMIND_CONFIG`` comes first when set, then the vault file, then
    the user-wide file.
    """
    candidates = [vault_config_path(vault_root), global_config_path()]
    explicit = os.environ.get(CONFIG_ENV)
    if explicit:
        candidates.insert(0, Path(explicit).expanduser().resolve())

    found: list[Path] = []
    for path in candidates:
        if path.is_file() and path not in found:
            found.append(path)
    return found


# ---------------------------------------------------------------------------
# Loading
# ---------------------------------------------------------------------------


def _read_sections(path: Path) -> dict[str, Any]:
    try:
        with open(path, encoding="utf-8") as fh:
            data = yaml.safe_load(fh)
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid YAML in {path}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(
            f"{path} must contain a mapping of sections, "
            f"not a {type(data).__name__}"
        )
    return data


def merge_sections(
    base: dict[str, Any], override: dict[str, Any]
) -> dict[str, Any]:
    """Merge two configs section by section, *override* winning per key."""
    merged = dict(base)
    for section, values in override.items():
        current = merged.get(section)
        if isinstance(current, dict) and isinstance(values, dict):
            merged[section] = {**current, **values}
        else:
            merged[section] = values
    return merged


def load_hierarchical_config(
    vault_root: str | Path | None = None,
) -> dict[str, Any]:
    """Read and merge every discovered config file.

    Returns:
        The merged raw sections with environment references expanded, or
        an empty dict when there are no files.

    Raises:
        ValueError: If a file is not valid YAML or not a mapping.
    """
    merged: dict[str, Any] = {}
    for path in reversed(discover_config_files(vault_root)):
        logger.debug("Loading config: %s", path)
        merged = merge_sections(merged, _read_sections(path))
    return _expand_all(merged)


def ensure_config(vault_root: str | Path | None = None) -> Path:
    """Write a commented starter file for the vault unless a config exists.

    Returns:
        The config file in effect (existing or newly written).
    """
    existing = discover_config_files(vault_root)
    if existing:
        logger.debug("Config file already exists: %s", existing[0])
        return existing[0]

    path = vault_config_path(vault_root)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(_STARTER_CONFIG, encoding="utf-8")
    logger.info("Created starter config: %s", path)
    return path
