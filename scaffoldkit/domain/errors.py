"""
Error definitions for the scaffolding engine.

Rules:
- No silent failure: every rejected input raises a ScaffoldError subclass
- Every error carries the offending field/path/line and a corrective suggestion
- Field-level problems are accumulated and raised once as a batch
"""

from dataclasses import dataclass
from typing import Any


class ScaffoldError(Exception):
    """
    Base error for manifest, parameter, filter and render failures.

    Usage:
        raise ScaffoldError("UNSAFE_PATH", "path escapes the template root", path="../x")
    """

    def __init__(
        self,
        code: str,
        message: str,
        *,
        suggestion: str | None = None,
        **context: Any,
    ) -> None:
        self.code = code
        self.message = message
        self.suggestion = suggestion
        self.context = context
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        return f"[{self.code}] {self.message}"

    def to_dict(self) -> dict[str, Any]:
        """For logs and JSON responses."""
        data: dict[str, Any] = {
            "code": self.code,
            "message": self.message,
            "suggestion": self.suggestion,
        }
        data.update(self.context)
        return data


# =============================================================================
# Issue Records
# =============================================================================

@dataclass(frozen=True)
class FieldIssue:
    """A single manifest field problem."""
    field: str  # dotted path, e.g. "template.version", "parameters.db.default"
    message: str
    suggestion: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "field": self.field,
            "message": self.message,
            "suggestion": self.suggestion,
        }


@dataclass(frozen=True)
class ParameterIssue:
    """A single user-value problem."""
    name: str
    code: str
    message: str
    suggestion: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "code": self.code,
            "message": self.message,
            "suggestion": self.suggestion,
        }


# =============================================================================
# Error Taxonomy
# =============================================================================

class ManifestValidationError(ScaffoldError):
    """Malformed manifest or missing/invalid fields. Blocks any rendering."""

    def __init__(self, issues: list[FieldIssue], *, code: str | None = None) -> None:
        self.issues = list(issues)
        fields = ", ".join(issue.field for issue in self.issues)
        super().__init__(
            code or ErrorCodes.MANIFEST_INVALID,
            f"manifest has {len(self.issues)} problem(s): {fields}",
            suggestion="Fix every listed field and validate the manifest again",
        )

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["issues"] = [issue.to_dict() for issue in self.issues]
        return data


class ParameterError(ScaffoldError):
    """User values failed type/pattern/choice checks. All parameters are checked first."""

    def __init__(self, issues: list[ParameterIssue]) -> None:
        self.issues = list(issues)
        names = ", ".join(issue.name for issue in self.issues)
        super().__init__(
            ErrorCodes.PARAMETER_INVALID,
            f"{len(self.issues)} parameter problem(s): {names}",
            suggestion="Correct the listed values or omit them to use the declared defaults",
        )

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["issues"] = [issue.to_dict() for issue in self.issues]
        return data


class FileFilterError(ScaffoldError):
    """Invalid glob pattern or unsafe template path."""


class RenderError(ScaffoldError):
    """Template syntax error or budget violation, attributable to one file."""

    def __init__(
        self,
        code: str,
        message: str,
        *,
        filename: str = "<template>",
        line: int = 0,
        column: int = 0,
        suggestion: str | None = None,
    ) -> None:
        self.filename = filename
        self.line = line
        self.column = column
        super().__init__(
            code,
            message,
            suggestion=suggestion,
            filename=filename,
            line=line,
            column=column,
        )

    def _format_message(self) -> str:
        return f"[{self.code}] {self.filename}:{self.line}:{self.column}: {self.message}"


class ConfigError(ScaffoldError):
    """Invalid engine configuration."""


class OutputError(ScaffoldError):
    """Reading a template tree or writing rendered output failed."""


# =============================================================================
# Error Codes
# =============================================================================

class ErrorCodes:
    """Error code constants."""

    # === Manifest ===
    MANIFEST_SYNTAX = "MANIFEST_SYNTAX"
    MANIFEST_INVALID = "MANIFEST_INVALID"
    INCOMPATIBLE_VERSION = "INCOMPATIBLE_VERSION"

    # === Parameters ===
    PARAMETER_INVALID = "PARAMETER_INVALID"
    PATTERN_MISMATCH = "PATTERN_MISMATCH"
    PATTERN_TIMEOUT = "PATTERN_TIMEOUT"
    INVALID_BOOLEAN = "INVALID_BOOLEAN"
    INVALID_CHOICE = "INVALID_CHOICE"
    UNKNOWN_PARAMETER = "UNKNOWN_PARAMETER"
    RESERVED_PARAMETER = "RESERVED_PARAMETER"
    BUILTIN_CONFLICT = "BUILTIN_CONFLICT"
    INVALID_PROJECT_NAME = "INVALID_PROJECT_NAME"

    # === File filter ===
    INVALID_GLOB = "INVALID_GLOB"
    UNSAFE_PATH = "UNSAFE_PATH"
    DUPLICATE_PATH = "DUPLICATE_PATH"  # two template paths normalise to the same file

    # === Render ===
    TEMPLATE_SYNTAX = "TEMPLATE_SYNTAX"
    TEMPLATE_TYPE = "TEMPLATE_TYPE"  # ordering or loop option on mismatched types
    UNKNOWN_TAG = "UNKNOWN_TAG"
    UNKNOWN_FILTER = "UNKNOWN_FILTER"
    UNBALANCED_BLOCK = "UNBALANCED_BLOCK"
    UNDEFINED_VARIABLE = "UNDEFINED_VARIABLE"  # warning unless strict
    FILTER_FAILED = "FILTER_FAILED"
    OUTPUT_LIMIT = "OUTPUT_LIMIT"
    ITERATION_LIMIT = "ITERATION_LIMIT"
    NESTING_LIMIT = "NESTING_LIMIT"

    # === Config / Output ===
    CONFIG_INVALID = "CONFIG_INVALID"
    DESTINATION_EXISTS = "DESTINATION_EXISTS"
    OUTPUT_LOCK_TIMEOUT = "OUTPUT_LOCK_TIMEOUT"
    TEMPLATE_TREE_MISSING = "TEMPLATE_TREE_MISSING"
