"""
Pytest fixtures shared by unit, integration and e2e tests.

Layout:
- valid manifest text + parsed Manifest
- manifest factory for field-level failure cases
- an in-memory template tree (text, excluded and binary files)
"""

from collections.abc import Callable
from datetime import UTC, datetime
from pathlib import Path

import pytest

from scaffoldkit.config import EngineConfig
from scaffoldkit.domain.schemas import Manifest
from scaffoldkit.templates.manifest import parse_manifest

# =============================================================================
# Manifest Fixtures
# =============================================================================

BASE_TEMPLATE_FIELDS = {
    "name": '"rust-cli"',
    "description": '"A Rust command-line application starter"',
    "version": '"1.2.0"',
    "authors": '["Jane Doe"]',
    "repository": '"https://github.com/example/rust-cli"',
}

VALID_MANIFEST = """
[template]
name = "rust-cli"
description = "A Rust command-line application starter"
version = "1.2.0"
authors = ["Jane Doe", "John Roe"]
repository = "https://github.com/example/rust-cli"
tags = ["rust", "cli"]

[parameters.project_name]
type = "string"
default = "my-project"
pattern = "^[a-z0-9-]+$"

[parameters.use_docker]
type = "boolean"
default = false
description = "Include a Dockerfile"

[parameters.license]
type = "enum"
choices = ["MIT", "Apache-2.0"]
default = "MIT"

[files]
include = ["src/**", "README.md", "Cargo.toml", "assets/**"]
exclude = ["src/secret.rs"]
"""


def make_manifest(drop: tuple[str, ...] = (), body: str = "", **fields: str) -> str:
    """
    Build manifest text from the minimal valid [template] section.

    Args:
        drop: [template] keys to leave out
        body: extra TOML appended after [template] (parameters, files, ...)
        fields: [template] keys to override, values as TOML literals
    """
    values = {**BASE_TEMPLATE_FIELDS, **fields}
    lines = ["[template]"] + [f"{k} = {v}" for k, v in values.items() if k not in drop]
    return "\n".join(lines) + "\n" + body


@pytest.fixture
def manifest_factory() -> Callable[..., str]:
    """make_manifest() as a fixture."""
    return make_manifest


@pytest.fixture
def manifest_text() -> str:
    """Valid manifest with one parameter of each type."""
    return VALID_MANIFEST


@pytest.fixture
def manifest(manifest_text: str) -> Manifest:
    """Parsed VALID_MANIFEST."""
    return parse_manifest(manifest_text)


@pytest.fixture
def minimal_manifest() -> Manifest:
    """Manifest without parameters or file rules."""
    return parse_manifest(make_manifest())


# =============================================================================
# Template Tree Fixtures
# =============================================================================

@pytest.fixture
def template_files(manifest_text: str) -> dict[str, bytes]:
    """
    In-memory template tree.

    Contains:
    - rendered text files (README.md, Cargo.toml, src/main.rs)
    - an excluded file (src/secret.rs) and one outside include (notes.txt)
    - a binary asset containing template syntax (assets/logo.png)
    """
    return {
        "template.toml": manifest_text.encode(),
        "README.md": (
            b"# {{ project_name | upcase }}\n"
            b"License: {{ license }}\n"
            b"{% if use_docker %}Docker: enabled\n{% endif %}"
        ),
        "Cargo.toml": b'[package]\nname = "{{ project_name }}"\nversion = "{{ version }}"\n',
        "src/main.rs": b'fn main() {\n    println!("{{ project_name | snake_case }}");\n}\n',
        "src/secret.rs": b"const TOKEN: &str = \"{{ secret }}\";\n",
        "notes.txt": b"not part of the template output\n",
        "assets/logo.png": b"\x89PNG\r\n\x1a\n\x00{{ project_name }}",
    }


@pytest.fixture
def template_dir(tmp_path: Path, template_files: dict[str, bytes]) -> Path:
    """template_files written to disk (plus VCS metadata that must be skipped)."""
    root = tmp_path / "template"
    for relative, content in template_files.items():
        path = root / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(content)
    (root / ".git").mkdir()
    (root / ".git" / "HEAD").write_bytes(b"ref: refs/heads/main\n")
    return root


# =============================================================================
# Misc Fixtures
# =============================================================================

@pytest.fixture
def fixed_now() -> datetime:
    """Deterministic clock for date/timestamp built-ins."""
    return datetime(2025, 1, 2, 3, 4, 5, tzinfo=UTC)


@pytest.fixture
def config() -> EngineConfig:
    """Built-in default configuration."""
    return EngineConfig()


@pytest.fixture
def project_root() -> Path:
    """Repository root."""
    return Path(__file__).parent.parent


@pytest.fixture
def default_config_path(project_root: Path) -> Path:
    """default.yaml path."""
    return project_root / "default.yaml"
