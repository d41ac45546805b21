"""Embedded document identifier tag.

A shared file carries its document id as a single ``hivemind-id`` key in
the leading ``---`` metadata block, so the id survives moves and renames
and can be found again by the recovery pass.

Edits are line based so the rest of the user's block is preserved
byte-for-byte; only reading goes through PyYAML.
"""

from __future__ import annotations

import logging

import yaml

logger = logging.getLogger(__name__)

IDENTIFIER_KEY = "hivemind-id"
_DELIMITER = "---"


def _block_end(lines: list[str]) -> int | None:
    """Index of the closing delimiter of a leading block, or ``None``."""
    if not lines or lines[0].rstrip("\r") != _DELIMITER:
        return None
    for i in range(1, len(lines)):
        if lines[i].rstrip("\r") == _DELIMITER:
            return i
    return None


def _is_identifier_line(line: str) -> bool:
    return line.lstrip().startswith(f"{IDENTIFIER_KEY}:")


def read_identifier(content: str) -> str | None:
    """Return the ``hivemind-id`` value of *content*, if any."""
    lines = content.split("\n")
    end = _block_end(lines)
    if end is None:
        return None

    block = "\n".join(lines[1:end])
    try:
        data = yaml.safe_load(block)
    except yaml.YAMLError as exc:
        # A malformed block elsewhere must not hide a well-formed tag line
        logger.debug("Unparseable metadata block, scanning lines: %s", exc)
        for line in lines[1:end]:
            if _is_identifier_line(line):
                value = line.split(":", 1)[1].strip().strip("'\"")
                return value or None
        return None

    if not isinstance(data, dict):
        return None
    value = data.get(IDENTIFIER_KEY)
    if value is None or value == "":
        return None
    return str(value)


def insert_identifier(content: str, document_id: str) -> str:
    """Return *content* tagged with *document_id*.

    Creates the metadata block when absent.  An existing tag is replaced
    so a file is never tagged twice.
    """
    tag = f"{IDENTIFIER_KEY}: {document_id}"
    lines = content.split("\n")
    end = _block_end(lines)

    if end is None:
        return "\n".join([_DELIMITER, tag, _DELIMITER, ""] + lines)

    for i in range(1, end):
        if _is_identifier_line(lines[i]):
            lines[i] = tag
            return "\n".join(lines)

    lines.insert(end, tag)
    return "\n".join(lines)


def remove_identifier(content: str) -> str:
    """Return *content* without its ``hivemind-id`` tag.

    If the tag was the block's only entry, the whole block and the blank
    line that followed it are removed.  Untagged content is returned
    unchanged.
    """
    lines = content.split("\n")
    end = _block_end(lines)
    if end is None:
        return content

    index = next(
        (i for i in range(1, end) if _is_identifier_line(lines[i])), None
    )
    if index is None:
        return content

    del lines[index]
    end -= 1

    if end == 1:
        drop = 2
        if len(lines) > 2 and lines[2].strip() == "":
            drop = 3
        del lines[:drop]

    return "\n".join(lines)
