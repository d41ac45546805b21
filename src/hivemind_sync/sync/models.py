"""Pydantic models for the document sharing core.

Defines the data contracts used across all sync modules:

- ``DocumentMapping``: Per-user link between a document id and a file.
- ``SharedDocumentMetadata``: Read-only description of a shared document.
- ``RecoveryStrategy`` / ``RecoveryAction``: How an orphan was handled.
- ``ManualDecision``: Outcome chosen for an orphan by the outer layer.
- ``RecoveryResult``: Outcome of reconciling one orphaned mapping.
- ``RecoveryReport``: Aggregate results for a reconciliation pass.

All models are frozen (immutable); the mapping store replaces records
with ``model_copy(update=...)`` instead of mutating them.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, model_validator


class DocumentMapping(BaseModel):
    """Link between a shared document and this user's local file.

    Attributes:
        document_id: Stable, globally unique identifier.
        local_path: Current vault-relative path of the file.
        team_id: Team the document is shared under.
        last_synced_hash: Content hash at the last successful sync
            (empty for a joined mapping that has not synced yet).
        last_known_path: Path before the most recent rename.
        shared_at: Creation time, epoch milliseconds.
        shared_by: Originating user; ``None`` for joined mappings.
    """

    document_id: str
    local_path: str
    team_id: str
    last_synced_hash: str = ""
    last_known_path: str
    shared_at: int
    shared_by: str | None = None

    model_config = {"frozen": True}


class SharedDocumentMetadata(BaseModel):
    """Externally owned description of a shared document.

    Attributes:
        document_id: Document identifier.
        original_name: Basename of the file it was shared from.
        created_by: User id of the creator.
        created_at: Creation time, epoch milliseconds.
        description: Optional free text.
    """

    document_id: str
    original_name: str
    created_by: str
    created_at: int
    description: str | None = None

    model_config = {"frozen": True}


class RecoveryStrategy(str, Enum):
    """Layer of the recovery pass that produced a result."""

    BASENAME = "basename"
    CONTENT = "content"
    IDENTIFIER = "identifier"
    MANUAL = "manual"


class RecoveryAction(str, Enum):
    """What happened to an orphaned mapping."""

    RELINK = "relink"
    RECREATE = "recreate"
    ABANDON = "abandon"


class ManualDecision(BaseModel):
    """Outcome picked by a resolution handler for an unmatched orphan.

    Attributes:
        action: One of relink, recreate, abandon.
        target_path: Existing file to relink to (``RELINK`` only).
    """

    action: RecoveryAction
    target_path: str | None = None

    model_config = {"frozen": True}

    @model_validator(mode="after")
    def _check_target(self) -> ManualDecision:
        if self.action == RecoveryAction.RELINK and not self.target_path:
            raise ValueError("relink decision requires target_path")
        return self

    @classmethod
    def relink(cls, target_path: str) -> ManualDecision:
        return cls(action=RecoveryAction.RELINK, target_path=target_path)

    @classmethod
    def recreate(cls) -> ManualDecision:
        return cls(action=RecoveryAction.RECREATE)

    @classmethod
    def abandon(cls) -> ManualDecision:
        return cls(action=RecoveryAction.ABANDON)


class RecoveryResult(BaseModel):
    """Result of reconciling one orphaned mapping.

    Attributes:
        document_id: Identifier of the orphaned mapping.
        old_path: Path that no longer resolved.
        new_path: Path the mapping now points to (``None`` if removed).
        strategy: Layer that handled the orphan.
        action: What was done.
        success: Whether the action completed.
        error: Error message if the action failed.
    """

    document_id: str
    old_path: str
    new_path: str | None = None
    strategy: RecoveryStrategy
    action: RecoveryAction
    success: bool = True
    error: str | None = None

    model_config = {"frozen": True}


class RecoveryReport(BaseModel):
    """Aggregate report for a reconciliation pass.

    Attributes:
        checked: Number of mappings examined.
        results: One entry per orphaned mapping.
        started_at: ISO 8601 timestamp when the pass started.
        completed_at: ISO 8601 timestamp when the pass completed.
    """

    checked: int = 0
    results: list[RecoveryResult] = []
    started_at: str
    completed_at: str | None = None

    model_config = {"frozen": True}

    @property
    def relinked(self) -> list[RecoveryResult]:
        """Successful results where the mapping now points at a file."""
        return [
            r
            for r in self.results
            if r.success
            and r.action in (RecoveryAction.RELINK, RecoveryAction.RECREATE)
        ]

    @property
    def recreated(self) -> list[RecoveryResult]:
        """Results where the file was recreated from remote content."""
        return [
            r for r in self.results if r.action == RecoveryAction.RECREATE
        ]

    @property
    def abandoned(self) -> list[RecoveryResult]:
        """Results where the mapping was removed."""
        return [
            r for r in self.results if r.action == RecoveryAction.ABANDON
        ]

    @property
    def manual(self) -> list[RecoveryResult]:
        """Results that needed the manual-resolution handler."""
        return [
            r for r in self.results if r.strategy == RecoveryStrategy.MANUAL
        ]

    @property
    def errors(self) -> list[RecoveryResult]:
        """Results where success is False."""
        return [r for r in self.results if not r.success]
