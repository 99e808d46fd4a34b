"""Unit tests for the path sandbox."""

import os

import pytest

from mcp_server_folder.errors import PathTraversal, ValidationFailure
from mcp_server_folder.sandbox import PathSandbox, safe_name


class TestPathSandboxResolve:
    """Containment checks on resolved paths."""

    def test_empty_path_is_root(self, sandbox, base_dir):
        """Test that '' resolves to the root itself."""
        assert sandbox.resolve("") == base_dir
        assert sandbox.resolve(".") == base_dir

    def test_nested_path(self, sandbox, base_dir):
        """Test that plain relative paths stay below the root."""
        assert sandbox.resolve("docs/a.docx") == base_dir / "docs" / "a.docx"

    def test_inner_dotdot_is_normalized(self, sandbox, base_dir):
        """Test that '..' segments which stay inside are allowed."""
        assert sandbox.resolve("docs/../excel/x.xlsx") == base_dir / "excel" / "x.xlsx"

    @pytest.mark.parametrize(
        "path",
        [
            "..",
            "../outside.txt",
            "docs/../../outside.txt",
            "a/b/../../../c",
            "/etc/passwd",
        ],
    )
    def test_escapes_are_rejected(self, sandbox, path):
        """Test that any path resolving outside the root raises PathTraversal."""
        with pytest.raises(PathTraversal):
            sandbox.resolve(path)

    def test_sibling_with_common_prefix_is_rejected(self, sandbox, base_dir):
        """Test that 'data2' is not accepted as being inside 'data'."""
        sibling = base_dir.parent / (base_dir.name + "2")
        sibling.mkdir()
        with pytest.raises(PathTraversal):
            sandbox.resolve(f"../{sibling.name}/x.txt")

    def test_absolute_path_inside_root_is_allowed(self, sandbox, base_dir):
        """Test that an absolute path already inside the sandbox is accepted."""
        inside = base_dir / "uploads" / "f.bin"
        assert sandbox.resolve(str(inside)) == inside

    def test_symlink_pointing_outside_is_rejected(self, sandbox, base_dir, tmp_path):
        """Test that a link inside the root cannot be used to reach outside it."""
        outside = tmp_path / "outside"
        outside.mkdir()
        (outside / "secret.txt").write_text("secret")
        os.symlink(outside, base_dir / "link")

        with pytest.raises(PathTraversal):
            sandbox.resolve("link/secret.txt")

    def test_symlink_pointing_inside_is_allowed(self, sandbox, base_dir):
        """Test that links resolving within the root are followed."""
        (base_dir / "docs" / "real.txt").write_text("x")
        os.symlink(base_dir / "docs", base_dir / "alias")

        assert sandbox.resolve("alias/real.txt") == base_dir / "docs" / "real.txt"

    def test_root_is_resolved_at_construction(self, base_dir):
        """Test that a root given through a link is resolved to its real path."""
        link = base_dir.parent / "root-link"
        os.symlink(base_dir, link)
        sb = PathSandbox(link)
        assert sb.root == base_dir
        assert sb.resolve("docs") == base_dir / "docs"


class TestPathSandboxHelpers:
    """relative(), ensure_dirs() and safe_name()."""

    def test_relative_uses_forward_slashes(self, sandbox, base_dir):
        assert sandbox.relative(base_dir / "docs" / "a.docx") == "docs/a.docx"
        assert sandbox.relative(base_dir) == ""

    def test_ensure_dirs_creates_subdirectories(self, tmp_path):
        sb = PathSandbox(tmp_path / "fresh")
        sb.ensure_dirs("docs", "excel")
        assert (tmp_path / "fresh" / "docs").is_dir()
        assert (tmp_path / "fresh" / "excel").is_dir()

    @pytest.mark.parametrize(
        "name,expected",
        [
            ("report.xlsx", "report.xlsx"),
            ("excel/report.xlsx", "report.xlsx"),
            ("../../etc/passwd", "passwd"),
            ("..\\..\\evil.txt", "evil.txt"),
            ("/abs/path/file.txt", "file.txt"),
            ("  spaced.txt ", "spaced.txt"),
        ],
    )
    def test_safe_name_strips_directories(self, name, expected):
        """Test that only the final name component survives."""
        assert safe_name(name) == expected

    @pytest.mark.parametrize("name", ["", "..", ".", "dir/..", "   "])
    def test_safe_name_rejects_empty_results(self, name):
        with pytest.raises(ValidationFailure):
            safe_name(name)
