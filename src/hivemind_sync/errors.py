"""Exception hierarchy for hivemind-sync.

All errors raised by the core derive from ``HivemindError`` so the tool
surface can translate them into structured responses.  Each class also
subclasses the closest builtin so callers that only know the standard
library still catch them sensibly.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .sync.models import DocumentMapping


class HivemindError(Exception):
    """Base class for all hivemind-sync errors."""


class NotFoundError(HivemindError, LookupError):
    """Operation referenced an unknown document identifier or path."""


class ConflictError(HivemindError):
    """Join requested for a document identifier that is already mapped."""


class InvalidArgumentError(HivemindError, ValueError):
    """A required argument was empty or malformed."""


class SyncIOError(HivemindError, OSError):
    """Local file, content store, or settings read/write failed."""


class RecoveryUnresolved(HivemindError):
    """No automatic recovery strategy matched an orphaned mapping.

    Carried to the manual-resolution handler, never swallowed.

    Args:
        mapping: The orphaned mapping record.
        candidates: Vault paths that were considered (for pickers).
    """

    def __init__(
        self,
        mapping: DocumentMapping,
        candidates: list[str] | None = None,
    ) -> None:
        super().__init__(
            f"No automatic match for document {mapping.document_id} "
            f"(last known at {mapping.local_path})"
        )
        self.mapping = mapping
        self.candidates = candidates or []

    @property
    def document_id(self) -> str:
        return self.mapping.document_id
