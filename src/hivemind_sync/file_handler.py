"""File handler module: path validation and encoding-aware read/write.

Provides the low-level file I/O used by the local vault adapter and the
file-backed content store.  All functions here are synchronous; callers
on the event loop go through ``run_sync()``.
"""

import os
import tempfile
from pathlib import Path, PurePosixPath

from charset_normalizer import from_bytes

# =============================================================================
# Path Validation
# =============================================================================


def validate_relative_path(path_str: str) -> str:
    """Validate a vault-relative path and normalise it to POSIX form.

    Args:
        path_str: Path relative to the vault root (``/`` or ``\\``
            separators).

    Returns:
        Normalised POSIX-style relative path.

    Raises:
        ValueError: If the path is empty, absolute, or escapes the root.
    """
    if not path_str or not path_str.strip():
        raise ValueError("Path cannot be empty")
    normalised = path_str.replace("\\", "/")
    posix = PurePosixPath(normalised)
    if posix.is_absolute():
        raise ValueError(f"Path must be relative to the vault: {path_str}")
    if ".." in posix.parts:
        raise ValueError(f"Path cannot contain '..': {path_str}")
    return str(posix)


def resolve_under(root: Path, rel_path: str) -> Path:
    """Join *rel_path* onto *root* after validation.

    Raises:
        ValueError: If *rel_path* is invalid or resolves outside *root*.
    """
    rel = validate_relative_path(rel_path)
    resolved = (root / rel).resolve()
    if not resolved.is_relative_to(root.resolve()):
        raise ValueError(
            f"Path is outside base directory: {resolved} not under {root}"
        )
    return resolved


# =============================================================================
# File Read/Write
# =============================================================================


def read_file_with_encoding(path: Path) -> tuple[str, str]:
    """Read a file with automatic encoding detection.

    Reads raw bytes first, then uses charset-normalizer to detect encoding.
    Defaults to UTF-8 for empty files or when detection fails.

    Args:
        path: Path to the file to read.

    Returns:
        Tuple of (content_string, detected_encoding).
    """
    raw = path.read_bytes()
    if not raw:
        return ("", "utf-8")

    result = from_bytes(raw).best()
    if result is None:
        encoding = "utf-8"
        content = raw.decode(encoding, errors="replace")
    else:
        encoding = result.encoding
        # ascii is a strict subset of utf-8
        if encoding == "ascii":
            encoding = "utf-8"
        content = str(result)
    return (content, encoding)


def write_file(
    path: Path, content: str, encoding: str = "utf-8"
) -> int:
    """Write content to a file, creating parent directories as needed.

    Args:
        path: Path to the output file.
        content: String content to write.
        encoding: Encoding to use (default: utf-8).

    Returns:
        Number of bytes written.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    encoded = content.encode(encoding)
    path.write_bytes(encoded)
    return len(encoded)


def write_file_atomic(path: Path, content: str | bytes) -> int:
    """Write *content* (UTF-8 if text) via a temp file and ``os.replace()``.

    Readers never observe a partially written file.

    Returns:
        Number of bytes written.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    encoded = content.encode("utf-8") if isinstance(content, str) else content
    fd, tmp_path = tempfile.mkstemp(dir=str(path.parent), suffix=".tmp")
    try:
        with os.fdopen(fd, "wb") as fh:
            fh.write(encoded)
        os.replace(tmp_path, path)
    except BaseException:
        try:
            os.unlink(tmp_path)
        except OSError:
            pass
        raise
    return len(encoded)
