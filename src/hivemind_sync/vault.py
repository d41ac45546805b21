"""Local vault adapter.

Wraps a directory tree of notes behind an async, root-relative API.
Paths handed in and out are POSIX-style and relative to the vault root
(``"Notes/Todo.md"``), matching the ``local_path`` stored in mappings.

Every blocking call is offloaded with ``run_sync()``; any ``OSError`` is
re-raised as ``SyncIOError`` so callers only deal with one I/O error type.
"""

from __future__ import annotations

import logging
from pathlib import Path, PurePosixPath

from .core.async_utils import run_sync
from .errors import SyncIOError
from .file_handler import read_file_with_encoding, resolve_under, write_file

logger = logging.getLogger(__name__)


def path_stem(path: str) -> str:
    """Return the filename of *path* with its last extension removed."""
    return PurePosixPath(path).stem


class LocalVault:
    """Async access to the files under *root*.

    Args:
        root: Vault root directory.
        extensions: File suffixes returned by ``list()``.
        state_dir: Directory (relative to root) excluded from listings.
    """

    def __init__(
        self,
        root: Path,
        extensions: list[str] | None = None,
        state_dir: str = ".hivemind",
    ) -> None:
        self.root = root.resolve()
        self.extensions = tuple(extensions or [".md"])
        self._state_dir = state_dir

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def exists(self, path: str) -> bool:
        """Return ``True`` if *path* is an existing regular file."""
        try:
            abs_path = resolve_under(self.root, path)
        except ValueError:
            return False
        return await run_sync(abs_path.is_file)

    async def list(self) -> list[str]:
        """Return every shareable file as a sorted list of relative paths."""
        return await run_sync(self._scan)

    def _scan(self) -> list[str]:
        found: list[str] = []
        for path in self.root.rglob("*"):
            if not path.is_file() or path.suffix not in self.extensions:
                continue
            rel = path.relative_to(self.root).as_posix()
            if rel.split("/", 1)[0] == self._state_dir:
                continue
            found.append(rel)
        return sorted(found)

    # ------------------------------------------------------------------
    # Read / write
    # ------------------------------------------------------------------

    async def read(self, path: str) -> str:
        """Read *path* as text.

        Raises:
            SyncIOError: If the file is missing or unreadable.
        """
        try:
            abs_path = resolve_under(self.root, path)
            content, _ = await run_sync(read_file_with_encoding, abs_path)
        except (OSError, ValueError) as exc:
            raise SyncIOError(f"Cannot read {path}: {exc}") from exc
        return content

    async def write(self, path: str, content: str) -> None:
        """Overwrite (or create) *path* with *content*."""
        try:
            abs_path = resolve_under(self.root, path)
            await run_sync(write_file, abs_path, content)
        except (OSError, ValueError) as exc:
            raise SyncIOError(f"Cannot write {path}: {exc}") from exc

    async def create(self, path: str, content: str) -> None:
        """Create a new file, creating parent folders as needed.

        Raises:
            SyncIOError: If *path* already exists or cannot be written.
        """
        if await self.exists(path):
            raise SyncIOError(f"Cannot create {path}: file already exists")
        await self.write(path, content)
        logger.debug("Created %s", path)

    async def delete(self, path: str) -> None:
        """Delete *path*; missing files are ignored."""
        try:
            abs_path = resolve_under(self.root, path)
            await run_sync(abs_path.unlink, True)
        except (OSError, ValueError) as exc:
            raise SyncIOError(f"Cannot delete {path}: {exc}") from exc

    async def rename(self, old_path: str, new_path: str) -> None:
        """Move *old_path* to *new_path*, creating parent folders."""
        try:
            src = resolve_under(self.root, old_path)
            dst = resolve_under(self.root, new_path)
            await run_sync(dst.parent.mkdir, parents=True, exist_ok=True)
            await run_sync(src.rename, dst)
        except (OSError, ValueError) as exc:
            raise SyncIOError(
                f"Cannot rename {old_path} to {new_path}: {exc}"
            ) from exc

    # ------------------------------------------------------------------
    # Naming
    # ------------------------------------------------------------------

    async def unique_path(self, path: str) -> str:
        """Return *path*, or ``"<stem> (n)<suffix>"`` if it is taken."""
        candidate = path
        p = PurePosixPath(path)
        counter = 1
        while await self.exists(candidate):
            candidate = str(p.with_name(f"{p.stem} ({counter}){p.suffix}"))
            counter += 1
        return candidate
