"""Document sharing core.

Keeps team-shared documents synchronised with files in a local vault
whose paths differ from user to user.

Architecture
------------
A shared document has a stable id.  Each user maps that id to a local
file; the mapping survives renames, and when the file goes missing the
recovery pass finds it again by name, content, or the ``hivemind-id`` tag
embedded in the file.

Modules:

- ``mapping_store`` -- ``MappingStore``: owner of the id -> path table.
- ``orchestrator``  -- ``SyncOrchestrator``: debounced pushes, echo
  suppression, rename/delete handling.
- ``recovery``      -- ``RecoveryEngine``: layered repair of orphaned
  mappings, similarity scorers and resolution handlers.
- ``controller``    -- ``BidirectionalSyncController``: share, unshare,
  join, subscriptions, startup.
- ``store``         -- content store protocol, typed payloads, and the
  shared-directory ``FileContentStore``.
- ``settings``      -- ``SettingsStore``: durable mapping table.
- ``frontmatter``   -- read/insert/remove the identifier tag.
- ``models``        -- pydantic data contracts.
- ``reporter``      -- human-readable and JSON report formatting.

Usage example
-------------
::

    from hivemind_sync.config import load_config
    from hivemind_sync.sync import BidirectionalSyncController

    controller = BidirectionalSyncController.from_config(load_config())
    report = await controller.startup()
    doc_id = await controller.share("Notes/Todo.md", "t1")
"""

from .controller import BidirectionalSyncController
from .mapping_store import MappingStore
from .models import (
    DocumentMapping,
    ManualDecision,
    RecoveryAction,
    RecoveryReport,
    RecoveryResult,
    RecoveryStrategy,
    SharedDocumentMetadata,
)
from .orchestrator import SyncOrchestrator
from .recovery import RecoveryEngine, create_resolution_handler
from .reporter import format_mapping_table, format_recovery_report, report_to_json
from .settings import SettingsStore, content_hash

__all__ = [
    "BidirectionalSyncController",
    "DocumentMapping",
    "ManualDecision",
    "MappingStore",
    "RecoveryAction",
    "RecoveryEngine",
    "RecoveryReport",
    "RecoveryResult",
    "RecoveryStrategy",
    "SettingsStore",
    "SharedDocumentMetadata",
    "SyncOrchestrator",
    "content_hash",
    "create_resolution_handler",
    "format_mapping_table",
    "format_recovery_report",
    "report_to_json",
]
