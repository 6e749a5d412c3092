"""
Engine configuration.

Loaded from default.yaml (section `engine:`). Missing file → built-in defaults.
Unknown keys or wrong types → ConfigError naming the key.
"""

from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any

import yaml

from scaffoldkit import __version__
from scaffoldkit.domain.constants import (
    BINARY_EXTENSIONS,
    MANIFEST_FILENAME,
    MAX_LOOP_ITERATIONS,
    MAX_NESTING_DEPTH,
    MAX_OUTPUT_BYTES,
    SNIFF_BYTES,
    TRUSTED_HOST,
)
from scaffoldkit.domain.errors import ConfigError, ErrorCodes

DEFAULT_CONFIG_PATH = Path(__file__).parent.parent / "default.yaml"


@dataclass(frozen=True)
class EngineConfig:
    """Tunables of the core. Immutable; use `with_overrides()` for variants."""
    manifest_filename: str = MANIFEST_FILENAME
    trusted_host: str = TRUSTED_HOST

    # Render policy
    strict_undefined: bool = False
    abort_on_error: bool = False

    # Budgets
    max_output_bytes: int = MAX_OUTPUT_BYTES
    max_loop_iterations: int = MAX_LOOP_ITERATIONS
    max_nesting_depth: int = MAX_NESTING_DEPTH

    # File classification
    sniff_bytes: int = SNIFF_BYTES
    binary_extensions: frozenset[str] = field(default=BINARY_EXTENSIONS)

    # Compatibility checks (min_tool_version / min_runtime_version)
    tool_version: str | None = __version__
    runtime_version: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "EngineConfig":
        """
        Build from the `engine:` section of a config document.

        Args:
            data: mapping of field name → value (None → defaults)

        Returns:
            EngineConfig

        Raises:
            ConfigError: CONFIG_INVALID
        """
        if not data:
            return cls()
        if not isinstance(data, dict):
            raise ConfigError(
                ErrorCodes.CONFIG_INVALID,
                "engine section must be a mapping",
                suggestion="Write `engine:` followed by indented key: value pairs",
            )

        known = {f.name: f for f in fields(cls)}
        kwargs: dict[str, Any] = {}
        for key, value in data.items():
            if key not in known:
                raise ConfigError(
                    ErrorCodes.CONFIG_INVALID,
                    f"unknown engine option '{key}'",
                    suggestion=f"Valid options: {', '.join(sorted(known))}",
                    key=key,
                )
            kwargs[key] = _coerce_option(key, value, cls.__dataclass_fields__[key].default)

        return cls(**kwargs)

    def with_overrides(self, **changes: Any) -> "EngineConfig":
        return replace(self, **changes)


def _coerce_option(key: str, value: Any, default: Any) -> Any:
    """Type-check one option against its default's type."""
    if key == "binary_extensions":
        if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
            raise ConfigError(
                ErrorCodes.CONFIG_INVALID,
                "binary_extensions must be a list of strings",
                suggestion='Use e.g. [".png", ".zip"]',
                key=key,
            )
        return frozenset(v.lower() if v.startswith(".") else f".{v.lower()}" for v in value)

    if key in ("tool_version", "runtime_version"):
        if value is not None and not isinstance(value, str):
            raise ConfigError(
                ErrorCodes.CONFIG_INVALID,
                f"{key} must be a version string",
                suggestion='Quote the value, e.g. "1.2.0"',
                key=key,
            )
        return value

    # bool is a subclass of int; check it first
    if isinstance(default, bool):
        if not isinstance(value, bool):
            raise ConfigError(
                ErrorCodes.CONFIG_INVALID,
                f"{key} must be true or false",
                suggestion=f"Set {key}: true or {key}: false",
                key=key,
            )
        return value

    if isinstance(default, int):
        if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
            raise ConfigError(
                ErrorCodes.CONFIG_INVALID,
                f"{key} must be a positive integer",
                suggestion=f"Set {key} to a whole number greater than zero",
                key=key,
            )
        return value

    if not isinstance(value, str) or not value:
        raise ConfigError(
            ErrorCodes.CONFIG_INVALID,
            f"{key} must be a non-empty string",
            suggestion=f"Set {key} to a quoted string",
            key=key,
        )
    return value


def load_config(config_path: Path | None = None) -> EngineConfig:
    """
    Load engine configuration.

    Args:
        config_path: YAML file (None → default.yaml at the project root)

    Returns:
        EngineConfig (defaults if the file does not exist)

    Raises:
        ConfigError: CONFIG_INVALID (unparsable YAML, bad option)
    """
    if config_path is None:
        config_path = DEFAULT_CONFIG_PATH

    if not config_path.exists():
        return EngineConfig()

    try:
        with open(config_path, encoding="utf-8") as f:
            data: dict[str, Any] = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigError(
            ErrorCodes.CONFIG_INVALID,
            f"cannot parse {config_path.name}: {e}",
            suggestion="Check the YAML indentation and quoting",
            path=str(config_path),
        ) from e

    if not isinstance(data, dict):
        raise ConfigError(
            ErrorCodes.CONFIG_INVALID,
            f"{config_path.name} must contain a mapping",
            suggestion="Start the file with `engine:`",
            path=str(config_path),
        )

    return EngineConfig.from_dict(data.get("engine"))
