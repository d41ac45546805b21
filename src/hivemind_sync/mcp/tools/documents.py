"""MCP tool handlers for shared documents.

Defines six tools:

- ``doc_share`` -- share a vault file with a team.
- ``doc_unshare`` -- stop sharing a file.
- ``doc_join`` -- create a local copy of an existing shared document.
- ``doc_mappings`` -- list shared documents and their local paths.
- ``doc_reconcile`` -- repair mappings whose files moved or vanished.
- ``doc_local_event`` -- relay a modify/edit/rename/delete notification
  from an editor integration.
"""

from __future__ import annotations

import logging
from typing import Any

import mcp.types as types

from ...sync.controller import BidirectionalSyncController
from ...sync.reporter import (
    format_mapping_table,
    format_recovery_report,
    report_to_json,
)
from .errors import build_error_response
from .registry import ToolSpec

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Tool definitions
# ---------------------------------------------------------------------------


DOCUMENT_TOOLS: list[types.Tool] = [
    types.Tool(
        name="doc_share",
        description=(
            "Share a vault file with a team. Tags the file with a stable "
            "document id and starts two-way sync."
        ),
        annotations=types.ToolAnnotations(
            readOnlyHint=False,
            destructiveHint=False,
            idempotentHint=False,
            openWorldHint=True,
        ),
        inputSchema={
            "type": "object",
            "properties": {
                "path": {
                    "type": "string",
                    "description": "Vault-relative path, e.g. Notes/Todo.md",
                },
                "team_id": {
                    "type": "string",
                    "description": "Team to share the document with",
                },
            },
            "required": ["path", "team_id"],
        },
    ),
    types.Tool(
        name="doc_unshare",
        description=(
            "Stop sharing a vault file. Removes the document id tag and the "
            "mapping; the file itself is kept."
        ),
        annotations=types.ToolAnnotations(
            readOnlyHint=False,
            destructiveHint=True,
            idempotentHint=False,
            openWorldHint=False,
        ),
        inputSchema={
            "type": "object",
            "properties": {
                "path": {
                    "type": "string",
                    "description": "Vault-relative path of the shared file",
                },
            },
            "required": ["path"],
        },
    ),
    types.Tool(
        name="doc_join",
        description=(
            "Create a local copy of a document shared by a team member "
            "and keep it in sync."
        ),
        annotations=types.ToolAnnotations(
            readOnlyHint=False,
            destructiveHint=False,
            idempotentHint=False,
            openWorldHint=True,
        ),
        inputSchema={
            "type": "object",
            "properties": {
                "document_id": {
                    "type": "string",
                    "description": "Id of the shared document",
                },
                "team_id": {
                    "type": "string",
                    "description": "Team the document is shared under",
                },
                "local_path": {
                    "type": "string",
                    "description": (
                        "Where to create the file. Defaults to the team "
                        "sync folder and the document's original name."
                    ),
                },
            },
            "required": ["document_id", "team_id"],
        },
    ),
    types.Tool(
        name="doc_mappings",
        description="List shared documents and the local file each maps to.",
        annotations=types.ToolAnnotations(
            readOnlyHint=True,
            destructiveHint=False,
            idempotentHint=True,
            openWorldHint=False,
        ),
        inputSchema={
            "type": "object",
            "properties": {
                "team_id": {
                    "type": "string",
                    "description": "Only list documents of this team",
                },
            },
            "required": [],
        },
    ),
    types.Tool(
        name="doc_reconcile",
        description=(
            "Find shared files that were moved, renamed or deleted outside "
            "the editor and repair their mappings."
        ),
        annotations=types.ToolAnnotations(
            readOnlyHint=False,
            destructiveHint=False,
            idempotentHint=True,
            openWorldHint=False,
        ),
        inputSchema={"type": "object", "properties": {}, "required": []},
    ),
    types.Tool(
        name="doc_local_event",
        description=(
            "Report a local file event (modify, edit, rename, delete) so "
            "the change is synced to the team."
        ),
        annotations=types.ToolAnnotations(
            readOnlyHint=False,
            destructiveHint=False,
            idempotentHint=False,
            openWorldHint=True,
        ),
        inputSchema={
            "type": "object",
            "properties": {
                "event": {
                    "type": "string",
                    "enum": ["modify", "edit", "rename", "delete"],
                },
                "path": {
                    "type": "string",
                    "description": "Vault-relative path (old path for rename)",
                },
                "new_path": {
                    "type": "string",
                    "description": "New path (rename only)",
                },
                "content": {
                    "type": "string",
                    "description": "Current editor text (edit only)",
                },
            },
            "required": ["event", "path"],
        },
    ),
]


def _text_result(
    text: str, structured: dict[str, Any] | None = None
) -> types.CallToolResult:
    return types.CallToolResult(
        content=[types.TextContent(type="text", text=text)],
        structuredContent=structured,
    )


def _require(args: dict[str, Any], *names: str) -> types.CallToolResult | None:
    missing = [n for n in names if not args.get(n)]
    if not missing:
        return None
    return build_error_response(
        "validation_error",
        f"{', '.join(missing)} is required",
        f"Provide the {', '.join(repr(m) for m in missing)} parameter(s).",
    )


# ---------------------------------------------------------------------------
# Individual handlers
# ---------------------------------------------------------------------------


async def _handle_share(
    controller: BidirectionalSyncController, args: dict[str, Any]
) -> types.CallToolResult:
    """Handle the ``doc_share`` tool."""
    if (error := _require(args, "path", "team_id")) is not None:
        return error
    document_id = await controller.share(args["path"], args["team_id"])
    return _text_result(
        f"Shared {args['path']} with team {args['team_id']} as {document_id}",
        {"document_id": document_id, "path": args["path"]},
    )


async def _handle_unshare(
    controller: BidirectionalSyncController, args: dict[str, Any]
) -> types.CallToolResult:
    """Handle the ``doc_unshare`` tool."""
    if (error := _require(args, "path")) is not None:
        return error
    document_id = await controller.unshare(args["path"])
    return _text_result(
        f"Unshared {args['path']} ({document_id})",
        {"document_id": document_id, "path": args["path"]},
    )


async def _handle_join(
    controller: BidirectionalSyncController, args: dict[str, Any]
) -> types.CallToolResult:
    """Handle the ``doc_join`` tool."""
    if (error := _require(args, "document_id", "team_id")) is not None:
        return error
    path = await controller.join_remote(
        args["document_id"], args["team_id"], args.get("local_path")
    )
    return _text_result(
        f"Joined {args['document_id']} at {path}",
        {"document_id": args["document_id"], "path": path},
    )


async def _handle_mappings(
    controller: BidirectionalSyncController, args: dict[str, Any]
) -> types.CallToolResult:
    """Handle the ``doc_mappings`` tool."""
    mappings = controller.mappings.all()
    team_id = args.get("team_id")
    if team_id:
        mappings = [m for m in mappings if m.team_id == team_id]
    return _text_result(
        format_mapping_table(mappings),
        {"mappings": [m.model_dump() for m in mappings]},
    )


async def _handle_reconcile(
    controller: BidirectionalSyncController, args: dict[str, Any]
) -> types.CallToolResult:
    """Handle the ``doc_reconcile`` tool."""
    report = await controller.reconcile()
    return _text_result(format_recovery_report(report), report_to_json(report))


async def _handle_local_event(
    controller: BidirectionalSyncController, args: dict[str, Any]
) -> types.CallToolResult:
    """Handle the ``doc_local_event`` tool."""
    if (error := _require(args, "event", "path")) is not None:
        return error

    orchestrator = controller.orchestrator
    path = args["path"]
    event = args["event"]

    match event:
        case "modify":
            accepted = await orchestrator.on_modify(path)
        case "edit":
            if "content" not in args:
                return build_error_response(
                    "validation_error",
                    "content is required for edit events",
                    "Pass the editor text in 'content'.",
                )
            accepted = await orchestrator.on_edit(path, args["content"])
        case "rename":
            if (error := _require(args, "new_path")) is not None:
                return error
            accepted = await orchestrator.on_rename(path, args["new_path"])
        case "delete":
            accepted = await orchestrator.on_delete(path)
        case _:
            return build_error_response(
                "validation_error",
                f"Unknown event '{event}'",
                "Use one of: modify, edit, rename, delete.",
            )

    status = "accepted" if accepted else "ignored"
    logger.debug("Local %s event for %s %s", event, path, status)
    return _text_result(
        f"{event} {path}: {status}",
        {"event": event, "path": path, "accepted": accepted},
    )


# ToolSpec list for registry-based dispatch
DOCUMENT_SPECS: list[ToolSpec] = [
    ToolSpec(tool=DOCUMENT_TOOLS[0], read_only=False, handler=_handle_share),
    ToolSpec(tool=DOCUMENT_TOOLS[1], read_only=False, handler=_handle_unshare),
    ToolSpec(tool=DOCUMENT_TOOLS[2], read_only=False, handler=_handle_join),
    ToolSpec(tool=DOCUMENT_TOOLS[3], read_only=True, handler=_handle_mappings),
    ToolSpec(tool=DOCUMENT_TOOLS[4], read_only=False, handler=_handle_reconcile),
    ToolSpec(
        tool=DOCUMENT_TOOLS[5], read_only=False, handler=_handle_local_event
    ),
]
