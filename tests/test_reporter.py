"""Tests for recovery report and mapping table formatting.

Covers:
- format_recovery_report with various result combinations
- Clean report (no orphans) produces concise output
- format_mapping_table ordering
- report_to_json structure and counts
"""

from __future__ import annotations

from hivemind_sync.sync.models import (
    DocumentMapping,
    RecoveryAction,
    RecoveryReport,
    RecoveryResult,
    RecoveryStrategy,
)
from hivemind_sync.sync.reporter import (
    format_mapping_table,
    format_recovery_report,
    report_to_json,
)

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _make_report(
    results: list[RecoveryResult] | None = None, checked: int = 3
) -> RecoveryReport:
    """Build a RecoveryReport with sensible defaults."""
    return RecoveryReport(
        checked=checked,
        results=results or [],
        started_at="2026-02-07T10:00:00Z",
        completed_at="2026-02-07T10:00:01Z",
    )


def _result(
    strategy: RecoveryStrategy,
    action: RecoveryAction,
    new_path: str | None = None,
    success: bool = True,
    error: str | None = None,
) -> RecoveryResult:
    return RecoveryResult(
        document_id="doc_1",
        old_path="Notes/Todo.md",
        new_path=new_path,
        strategy=strategy,
        action=action,
        success=success,
        error=error,
    )


_RELINKED = _result(
    RecoveryStrategy.BASENAME, RecoveryAction.RELINK, "Archive/Todo.md"
)
_ABANDONED = _result(RecoveryStrategy.MANUAL, RecoveryAction.ABANDON)
_FAILED = _result(
    RecoveryStrategy.MANUAL,
    RecoveryAction.RECREATE,
    success=False,
    error="No remote content for document doc_1",
)


# ---------------------------------------------------------------------------
# format_recovery_report
# ---------------------------------------------------------------------------


class TestFormatRecoveryReport:
    """Tests for format_recovery_report()."""

    def test_clean_report(self):
        text = format_recovery_report(_make_report())
        assert "Checked 3 mappings: 0 orphaned" in text
        assert text.endswith("All mappings resolve to existing files.")

    def test_relinked_section(self):
        text = format_recovery_report(_make_report([_RELINKED]))
        assert "Relinked:" in text
        assert "Notes/Todo.md -> Archive/Todo.md [basename/relink]" in text
        assert "Abandoned:" not in text
        assert "Errors:" not in text

    def test_abandoned_and_errors(self):
        text = format_recovery_report(_make_report([_ABANDONED, _FAILED]))
        assert "Abandoned:\n  Notes/Todo.md (doc_1)" in text
        assert "Errors:\n  Notes/Todo.md (doc_1): No remote content" in text
        assert "2 orphaned, 0 relinked, 1 abandoned, 1 errors" in text

    def test_timestamps(self):
        text = format_recovery_report(_make_report())
        assert "Started: 2026-02-07T10:00:00Z" in text
        assert "Completed: 2026-02-07T10:00:01Z" in text

    def test_no_trailing_whitespace(self):
        text = format_recovery_report(_make_report([_RELINKED]))
        assert text == text.rstrip()


# ---------------------------------------------------------------------------
# format_mapping_table
# ---------------------------------------------------------------------------


def _mapping(document_id: str, path: str, team: str = "t1") -> DocumentMapping:
    return DocumentMapping(
        document_id=document_id,
        local_path=path,
        team_id=team,
        last_known_path=path,
        shared_at=0,
    )


class TestFormatMappingTable:
    """Tests for format_mapping_table()."""

    def test_empty(self):
        assert format_mapping_table([]) == "No shared documents."

    def test_sorted_by_path(self):
        text = format_mapping_table(
            [_mapping("doc_b", "z.md", "t2"), _mapping("doc_a", "a.md")]
        )
        assert text.splitlines() == [
            "2 shared document(s):",
            "  a.md -> doc_a (team t1)",
            "  z.md -> doc_b (team t2)",
        ]


# ---------------------------------------------------------------------------
# report_to_json
# ---------------------------------------------------------------------------


class TestReportToJson:
    """Tests for report_to_json()."""

    def test_counts(self):
        recreated = _result(
            RecoveryStrategy.MANUAL, RecoveryAction.RECREATE, "Notes/Todo.md"
        )
        data = report_to_json(
            _make_report([_RELINKED, _ABANDONED, _FAILED, recreated], checked=5)
        )
        assert data["counts"] == {
            "checked": 5,
            "orphaned": 4,
            "relinked": 2,
            "recreated": 2,
            "abandoned": 1,
            "manual": 3,
            "errors": 1,
        }

    def test_result_entries(self):
        data = report_to_json(_make_report([_RELINKED, _FAILED]))
        first, second = data["results"]
        assert first == {
            "document_id": "doc_1",
            "old_path": "Notes/Todo.md",
            "new_path": "Archive/Todo.md",
            "strategy": "basename",
            "action": "relink",
            "success": True,
        }
        assert second["error"] == "No remote content for document doc_1"
        assert data["started_at"] == "2026-02-07T10:00:00Z"
