"""Recovery report and mapping table formatting.

Provides human-readable and machine-readable output:

- ``format_recovery_report`` -- post-reconciliation summary.
- ``format_mapping_table`` -- one line per shared document.
- ``report_to_json`` -- structured dict for MCP tool output.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .models import DocumentMapping, RecoveryReport

# ------------------------------------------------------------------
# Human-readable report
# ------------------------------------------------------------------


def format_recovery_report(report: RecoveryReport) -> str:
    """Format a reconciliation report as human-readable text.

    Sections are only included when they contain at least one result.

    Args:
        report: The completed recovery report.

    Returns:
        Multi-line formatted string.
    """
    lines: list[str] = []

    lines.append("Recovery report")
    lines.append(f"Started: {report.started_at}")
    if report.completed_at:
        lines.append(f"Completed: {report.completed_at}")
    lines.append("")

    lines.append(
        f"Checked {report.checked} mappings: "
        f"{len(report.results)} orphaned, "
        f"{len(report.relinked)} relinked, "
        f"{len(report.abandoned)} abandoned, "
        f"{len(report.errors)} errors"
    )
    lines.append("")

    if not report.results:
        lines.append("All mappings resolve to existing files.")
        return "\n".join(lines).rstrip()

    if report.relinked:
        lines.append("Relinked:")
        for r in report.relinked:
            lines.append(
                f"  {r.old_path} -> {r.new_path} "
                f"[{r.strategy.value}/{r.action.value}]"
            )
        lines.append("")

    if report.abandoned:
        lines.append("Abandoned:")
        for r in report.abandoned:
            lines.append(f"  {r.old_path} ({r.document_id})")
        lines.append("")

    if report.errors:
        lines.append("Errors:")
        for r in report.errors:
            lines.append(f"  {r.old_path} ({r.document_id}): {r.error}")
        lines.append("")

    return "\n".join(lines).rstrip()


def format_mapping_table(mappings: list[DocumentMapping]) -> str:
    """Format mappings as ``local_path -> document_id (team)`` lines."""
    if not mappings:
        return "No shared documents."
    lines = [f"{len(mappings)} shared document(s):"]
    for m in sorted(mappings, key=lambda m: m.local_path):
        lines.append(f"  {m.local_path} -> {m.document_id} (team {m.team_id})")
    return "\n".join(lines)


# ------------------------------------------------------------------
# JSON output
# ------------------------------------------------------------------


def report_to_json(report: RecoveryReport) -> dict:
    """Convert a recovery report to a dict for JSON serialisation.

    Suitable for MCP ``structuredContent`` output.

    Args:
        report: The recovery report.

    Returns:
        Dict with timestamps, counts, and per-result details.
    """
    results_list = []
    for r in report.results:
        entry: dict = {
            "document_id": r.document_id,
            "old_path": r.old_path,
            "new_path": r.new_path,
            "strategy": r.strategy.value,
            "action": r.action.value,
            "success": r.success,
        }
        if r.error:
            entry["error"] = r.error
        results_list.append(entry)

    return {
        "started_at": report.started_at,
        "completed_at": report.completed_at,
        "counts": {
            "checked": report.checked,
            "orphaned": len(report.results),
            "relinked": len(report.relinked),
            "recreated": len(report.recreated),
            "abandoned": len(report.abandoned),
            "manual": len(report.manual),
            "errors": len(report.errors),
        },
        "results": results_list,
    }
