"""
test_file_filter.py - include/exclude selection tests

DoD:
- exclude wins over include
- no include globs → every file not excluded
- manifest file and VCS directories never selected
- unsafe paths rejected, never included
- binary detection by extension, NUL byte and UTF-8 validity
"""

import pytest

from scaffoldkit.config import EngineConfig
from scaffoldkit.domain.errors import ErrorCodes, FileFilterError
from scaffoldkit.domain.schemas import FileRules
from scaffoldkit.templates.file_filter import (
    is_binary,
    is_implicitly_excluded,
    normalize_path,
    select_files,
)


class TestNormalizePath:
    """normalize_path() tests."""

    @pytest.mark.parametrize("raw, expected", [
        ("src/main.rs", "src/main.rs"),
        ("./src/main.rs", "src/main.rs"),
        ("src\\bin\\tool.rs", "src/bin/tool.rs"),
        ("src//lib.rs", "src/lib.rs"),
        ("docs/./a.md", "docs/a.md"),
    ])
    def test_normalized(self, raw, expected):
        assert normalize_path(raw) == expected

    @pytest.mark.parametrize("raw", ["/etc/passwd", "C:/x.txt", "c:\\x.txt", "../x", "a/../../b", "", "./"])
    def test_unsafe(self, raw):
        with pytest.raises(FileFilterError) as exc_info:
            normalize_path(raw)

        assert exc_info.value.code == ErrorCodes.UNSAFE_PATH
        assert exc_info.value.context["path"] == raw


class TestIsBinary:
    """Binary classification."""

    def test_extension_denylist(self):
        assert is_binary("assets/logo.PNG")

    def test_nul_byte(self):
        assert is_binary("data.txt", b"abc\x00def")

    def test_invalid_utf8(self):
        assert is_binary("data.txt", b"\xff\xfe\xfa")

    def test_text(self):
        assert not is_binary("README.md", "héllo".encode())

    def test_unknown_content_is_text(self):
        assert not is_binary("README.md")

    def test_nul_after_sniff_window_ignored(self):
        config = EngineConfig(sniff_bytes=4)
        assert not is_binary("data.txt", b"abcd\x00", config)

    def test_custom_extensions(self):
        config = EngineConfig(binary_extensions=frozenset({".psd"}))

        assert is_binary("art.psd", b"text", config)
        assert not is_binary("logo.png", b"text", config)


class TestImplicitExclusion:
    """Manifest and VCS metadata."""

    @pytest.mark.parametrize("path", ["template.toml", ".git/HEAD", "sub/.svn/entries", ".hg/store"])
    def test_excluded(self, path):
        assert is_implicitly_excluded(path)

    @pytest.mark.parametrize("path", ["docs/template.toml", ".github/workflows/ci.yml", ".gitignore"])
    def test_kept(self, path):
        assert not is_implicitly_excluded(path)


class TestSelectFiles:
    """select_files() tests."""

    def test_exclude_wins_over_include(self):
        rules = FileRules(include=("src/**",), exclude=("src/secret.rs",))
        selection = select_files(rules, ["src/main.rs", "src/secret.rs", "README.md"])

        assert selection.paths == ["src/main.rs"]
        assert selection.excluded == ["README.md", "src/secret.rs"]

    def test_exclude_wins_regardless_of_specificity(self):
        rules = FileRules(include=("src/secret.rs",), exclude=("src/**",))
        assert select_files(rules, ["src/secret.rs"]).paths == []

    def test_no_include_means_everything(self):
        rules = FileRules(exclude=("*.log",))
        selection = select_files(rules, ["b.txt", "a.txt", "debug.log"])

        assert selection.paths == ["a.txt", "b.txt"]

    def test_manifest_and_vcs_never_selected(self):
        selection = select_files(FileRules(), ["template.toml", ".git/config", "src/lib.rs"])
        assert selection.paths == ["src/lib.rs"]

    def test_manifest_selected_when_nested(self):
        selection = select_files(FileRules(), ["examples/template.toml"])
        assert selection.paths == ["examples/template.toml"]

    def test_sorted_and_deduplicated(self):
        selection = select_files(FileRules(), ["z.md", "a.md", "./a.md", "a.md"])
        assert selection.paths == ["a.md", "z.md"]

    def test_unsafe_paths_rejected(self):
        selection = select_files(FileRules(), ["../escape.txt", "/abs.txt", "ok.txt"])

        assert selection.paths == ["ok.txt"]
        assert [e.context["path"] for e in selection.rejected] == ["../escape.txt", "/abs.txt"]

    def test_backslash_paths(self):
        rules = FileRules(include=("src/**",))
        assert select_files(rules, ["src\\main.rs"]).paths == ["src/main.rs"]

    def test_binary_flag_from_contents(self):
        contents = {"logo.svg": b"<svg/>", "blob.dat": b"\x00\x01", "icon.ico": b""}
        selection = select_files(FileRules(), contents, contents=contents)

        flags = {entry.path: entry.is_binary for entry in selection.included}
        assert flags == {"blob.dat": True, "icon.ico": True, "logo.svg": False}

    def test_directory_include(self):
        rules = FileRules(include=("docs",))
        selection = select_files(rules, ["docs/a.md", "docs/sub/b.md", "docsx/c.md"])

        assert selection.paths == ["docs/a.md", "docs/sub/b.md"]

    def test_invalid_rules_raise(self):
        with pytest.raises(FileFilterError):
            select_files(FileRules(include=("src/**.rs",)), ["src/a.rs"])
