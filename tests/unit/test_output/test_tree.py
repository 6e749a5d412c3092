"""
test_tree.py - template tree loading tests
"""

import os
from pathlib import Path

import pytest

from scaffoldkit.domain.errors import ErrorCodes, OutputError
from scaffoldkit.output.tree import load_template_tree


class TestLoadTemplateTree:
    """load_template_tree() tests."""

    def test_loads_relative_posix_paths(self, template_dir: Path, template_files: dict[str, bytes]):
        """Every file is read; VCS metadata is skipped."""
        files = load_template_tree(template_dir)

        assert files == dict(sorted(template_files.items()))
        assert ".git/HEAD" not in files

    def test_sorted(self, template_dir: Path):
        paths = list(load_template_tree(template_dir))
        assert paths == sorted(paths)

    def test_missing_directory(self, tmp_path: Path):
        with pytest.raises(OutputError) as exc_info:
            load_template_tree(tmp_path / "nope")

        assert exc_info.value.code == ErrorCodes.TEMPLATE_TREE_MISSING

    def test_file_instead_of_directory(self, tmp_path: Path):
        target = tmp_path / "template.toml"
        target.write_text("")

        with pytest.raises(OutputError):
            load_template_tree(target)

    @pytest.mark.skipif(not hasattr(os, "symlink"), reason="symlinks unsupported")
    def test_symlinks_skipped(self, tmp_path: Path):
        """A symlink can never pull in content from outside the template."""
        outside = tmp_path / "secret.txt"
        outside.write_text("secret")
        root = tmp_path / "template"
        root.mkdir()
        (root / "ok.txt").write_text("ok")
        (root / "link.txt").symlink_to(outside)

        assert load_template_tree(root) == {"ok.txt": b"ok"}
