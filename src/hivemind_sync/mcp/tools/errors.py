"""Error response builders for MCP tool handlers.

Structured error responses carry a corrective action so an agent can
recover without human intervention.
"""

import mcp.types as types

from ...errors import (
    ConflictError,
    InvalidArgumentError,
    NotFoundError,
    SyncIOError,
)


def build_error_response(
    error_type: str, message: str, corrective_action: str
) -> types.CallToolResult:
    """Build a structured error response with corrective action.

    Args:
        error_type: Error category (not_found, conflict, validation_error,
            io_error, unresolved, server_error)
        message: Human-readable error description
        corrective_action: Specific action the agent can take to resolve the error

    Returns:
        CallToolResult with isError=True

    Examples:
        >>> build_error_response("not_found", "Notes/a.md is not shared", "Use doc_mappings to list shared files.")
        CallToolResult(content=[TextContent(...)], isError=True)
    """
    error_text = f"Error ({error_type}): {message}\n\nAction: {corrective_action}"

    return types.CallToolResult(
        content=[types.TextContent(type="text", text=error_text)],
        isError=True,
    )


def translate_sync_error(error: Exception) -> types.CallToolResult:
    """Translate a core exception into a structured error response.

    Args:
        error: Exception raised by the sync core.

    Returns:
        CallToolResult with isError=True and corrective action
    """
    match error:
        case NotFoundError():
            return build_error_response(
                "not_found",
                str(error),
                "Use doc_mappings to list shared documents and their paths.",
            )
        case ConflictError():
            return build_error_response(
                "conflict",
                str(error),
                "The document is already mapped in this vault. "
                "Use doc_mappings to find its local path.",
            )
        case InvalidArgumentError() | ValueError():
            return build_error_response(
                "validation_error",
                str(error),
                "Check parameter values and retry.",
            )
        case SyncIOError():
            return build_error_response(
                "io_error",
                str(error),
                "Check that the file exists and the content store is "
                "reachable, then retry.",
            )
        case _:
            return build_error_response(
                "server_error",
                str(error),
                "Check the server log and retry.",
            )
