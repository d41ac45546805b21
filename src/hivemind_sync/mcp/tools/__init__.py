"""MCP tool handlers for shared documents.

This package wraps the sync controller with async handlers and
structured error responses.
"""

from .documents import DOCUMENT_SPECS, DOCUMENT_TOOLS
from .errors import build_error_response, translate_sync_error
from .registry import ToolRegistry, ToolSpec

ALL_SPECS: list[ToolSpec] = list(DOCUMENT_SPECS)

__all__ = [
    "ALL_SPECS",
    "DOCUMENT_SPECS",
    "DOCUMENT_TOOLS",
    "ToolRegistry",
    "ToolSpec",
    "build_error_response",
    "translate_sync_error",
]
