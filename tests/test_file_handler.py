"""Tests for file_handler module: path validation, encoding-aware read/write, atomic writes."""

from pathlib import Path

import pytest

from hivemind_sync.file_handler import (
    read_file_with_encoding,
    resolve_under,
    validate_relative_path,
    write_file,
    write_file_atomic,
)

# =============================================================================
# validate_relative_path
# =============================================================================


class TestValidateRelativePath:
    """Tests for validate_relative_path(path_str)."""

    def test_simple_path(self):
        assert validate_relative_path("Notes/Todo.md") == "Notes/Todo.md"

    def test_backslashes_normalised(self):
        """Windows separators become POSIX separators."""
        assert validate_relative_path("Notes\\Todo.md") == "Notes/Todo.md"

    def test_redundant_segments_collapsed(self):
        assert validate_relative_path("Notes//./Todo.md") == "Notes/Todo.md"

    def test_empty_raises(self):
        with pytest.raises(ValueError, match="cannot be empty"):
            validate_relative_path("  ")

    def test_absolute_raises(self):
        with pytest.raises(ValueError, match="must be relative"):
            validate_relative_path("/etc/passwd")

    def test_parent_segment_raises(self):
        with pytest.raises(ValueError, match="'..'"):
            validate_relative_path("Notes/../../secret.md")


# =============================================================================
# resolve_under
# =============================================================================


class TestResolveUnder:
    """Tests for resolve_under(root, rel_path)."""

    def test_joins_under_root(self, tmp_path):
        result = resolve_under(tmp_path, "a/b.md")
        assert result == (tmp_path / "a" / "b.md").resolve()

    def test_symlink_escape_rejected(self, tmp_path):
        """A symlink pointing outside the root is refused."""
        outside = tmp_path / "outside"
        outside.mkdir()
        root = tmp_path / "root"
        root.mkdir()
        (root / "link").symlink_to(outside)

        with pytest.raises(ValueError, match="outside base directory"):
            resolve_under(root, "link/file.md")


# =============================================================================
# read_file_with_encoding
# =============================================================================


class TestReadFileWithEncoding:
    """Tests for read_file_with_encoding(path)."""

    def test_utf8_file(self, tmp_path):
        f = tmp_path / "note.md"
        f.write_text("# Überschrift\n\nNotiz mit Umlauten: äöü\n", encoding="utf-8")
        content, _ = read_file_with_encoding(f)
        assert "Überschrift" in content

    def test_ascii_reported_as_utf8(self, tmp_path):
        """Pure ASCII content is reported as utf-8."""
        f = tmp_path / "plain.md"
        f.write_text("just ascii text here\n", encoding="ascii")
        content, encoding = read_file_with_encoding(f)
        assert content == "just ascii text here\n"
        assert encoding == "utf-8"

    def test_empty_file(self, tmp_path):
        f = tmp_path / "empty.md"
        f.write_bytes(b"")
        assert read_file_with_encoding(f) == ("", "utf-8")

    def test_missing_file_raises(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            read_file_with_encoding(tmp_path / "missing.md")


# =============================================================================
# write_file / write_file_atomic
# =============================================================================


class TestWriteFile:
    """Tests for write_file(path, content, encoding)."""

    def test_creates_parents(self, tmp_path):
        target = tmp_path / "a" / "b" / "note.md"
        written = write_file(target, "hello")
        assert target.read_text(encoding="utf-8") == "hello"
        assert written == 5

    def test_byte_count_for_multibyte(self, tmp_path):
        target = tmp_path / "note.md"
        assert write_file(target, "ä") == 2


class TestWriteFileAtomic:
    """Tests for write_file_atomic(path, content)."""

    def test_text_content(self, tmp_path: Path):
        target = tmp_path / "state" / "settings.json"
        write_file_atomic(target, '{"version": 1}')
        assert target.read_text(encoding="utf-8") == '{"version": 1}'

    def test_bytes_content(self, tmp_path: Path):
        target = tmp_path / "payload.json"
        write_file_atomic(target, b"\x00\x01")
        assert target.read_bytes() == b"\x00\x01"

    def test_replaces_existing(self, tmp_path: Path):
        target = tmp_path / "settings.json"
        target.write_text("old")
        write_file_atomic(target, "new")
        assert target.read_text() == "new"

    def test_no_temp_files_left(self, tmp_path: Path):
        target = tmp_path / "settings.json"
        write_file_atomic(target, "x")
        assert [p.name for p in tmp_path.iterdir()] == ["settings.json"]
