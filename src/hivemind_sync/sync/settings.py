"""Settings persistence layer.

Manages the JSON settings file that durably stores the mapping table in
the vault's ``.hivemind/`` directory (``settings.json``).

Key design choices:

* **Atomic writes** -- ``save()`` writes to a temp file then calls
  ``os.replace()`` so readers never see partial data.
* **Content hashing** -- ``content_hash()`` normalises content (BOM,
  line-endings, trailing whitespace) before SHA-256 so hashes are stable
  across platforms and editors.
* **Dict-based state** -- state is a plain ``dict``; the mapping store
  owns the typed records and hands back a serialised table to persist.
"""

from __future__ import annotations

import hashlib
import json
import logging
from datetime import datetime, timezone
from pathlib import Path

from hivemind_sync.core.async_utils import run_sync
from hivemind_sync.file_handler import write_file_atomic

logger = logging.getLogger(__name__)

SETTINGS_FILENAME = "settings.json"


def content_hash(content: str) -> str:
    """Compute a normalised SHA-256 hex digest of *content*.

    Normalisation steps (applied in order):

    1. Strip BOM (``\\ufeff``).
    2. Replace ``\\r\\n`` with ``\\n``.
    3. Right-strip each line.
    4. Strip trailing empty lines.

    The result is encoded as UTF-8 before hashing.
    """
    text = content.lstrip("\ufeff")
    text = text.replace("\r\n", "\n")
    lines = [line.rstrip() for line in text.split("\n")]
    while lines and lines[-1] == "":
        lines.pop()
    normalised = "\n".join(lines)
    return hashlib.sha256(normalised.encode("utf-8")).hexdigest()


class SettingsStore:
    """Load and save the settings file holding the mapping table.

    Args:
        state_dir: Directory where ``settings.json`` is stored
            (typically ``<vault>/.hivemind/``).
        user_id: Local user id recorded alongside the mappings.
    """

    def __init__(self, state_dir: Path, user_id: str = "") -> None:
        self._state_dir = state_dir
        self._user_id = user_id
        self._state: dict | None = None

    @property
    def path(self) -> Path:
        """Path to the settings file."""
        return self._state_dir / SETTINGS_FILENAME

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def load(self) -> dict:
        """Load settings from disk.

        Returns:
            The state dict.  If the file does not exist an empty state
            with ``version=1`` is returned.
        """
        if not self.path.exists():
            state = {
                "version": 1,
                "user_id": self._user_id,
                "last_saved": None,
                "document_mappings": {},
            }
        else:
            with open(self.path, encoding="utf-8") as fh:
                state = json.load(fh)
            state.setdefault("document_mappings", {})
        self._state = state
        return state

    def save(self, state: dict) -> None:
        """Persist settings to disk atomically.

        The ``last_saved`` field is set to the current UTC ISO 8601
        timestamp before writing.  Creates ``state_dir`` if needed.
        """
        state["last_saved"] = datetime.now(timezone.utc).isoformat()
        if self._user_id:
            state["user_id"] = self._user_id
        write_file_atomic(self.path, json.dumps(state, indent=2))
        self._state = state

    # ------------------------------------------------------------------
    # Mapping table helpers
    # ------------------------------------------------------------------

    def load_mappings(self) -> dict[str, dict]:
        """Return the persisted ``document_mappings`` table."""
        state = self._state if self._state is not None else self.load()
        return dict(state.get("document_mappings", {}))

    async def save_mappings(self, mappings: dict[str, dict]) -> None:
        """Save hook for ``MappingStore``: persist the full table.

        Raises:
            OSError: If the settings file cannot be written.
        """
        state = self._state if self._state is not None else await run_sync(
            self.load
        )
        state = dict(state)
        state["document_mappings"] = mappings
        await run_sync(self.save, state)
        logger.debug("Persisted %d mapping(s) to %s", len(mappings), self.path)
