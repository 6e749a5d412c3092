"""
Data schemas for the scaffolding engine.

Rules:
- Manifest is parsed once per instantiation and immutable afterwards
- ResolvedParameters is built once and never mutated during rendering
- RenderedFile paths are normalized: relative, "/"-separated, no ".." segments
"""

from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, ClassVar

from .errors import ScaffoldError

# Value types a template can see
ParamValue = str | bool | int


# =============================================================================
# Parameter Specs (closed tagged variant)
# =============================================================================

class ParameterType(str, Enum):
    """Parameter discriminant (`type` key in the manifest)."""
    STRING = "string"
    BOOLEAN = "boolean"
    ENUM = "enum"


@dataclass(frozen=True)
class StringParameter:
    """Free-form string, optionally constrained by a regex."""
    kind: ClassVar[ParameterType] = ParameterType.STRING

    name: str
    default: str
    pattern: str | None = None
    description: str | None = None


@dataclass(frozen=True)
class BooleanParameter:
    """true/false switch."""
    kind: ClassVar[ParameterType] = ParameterType.BOOLEAN

    name: str
    default: bool
    description: str | None = None


@dataclass(frozen=True)
class EnumParameter:
    """One of a fixed, ordered list of choices (case-sensitive)."""
    kind: ClassVar[ParameterType] = ParameterType.ENUM

    name: str
    choices: tuple[str, ...]
    default: str
    description: str | None = None


ParameterSpec = StringParameter | BooleanParameter | EnumParameter


def parameter_to_dict(spec: ParameterSpec) -> dict[str, Any]:
    """JSON-friendly view of a parameter spec."""
    data: dict[str, Any] = {
        "name": spec.name,
        "type": spec.kind.value,
        "default": spec.default,
        "description": spec.description,
    }
    if isinstance(spec, StringParameter):
        data["pattern"] = spec.pattern
    elif isinstance(spec, EnumParameter):
        data["choices"] = list(spec.choices)
    return data


# =============================================================================
# Manifest
# =============================================================================

@dataclass(frozen=True)
class TemplateMetadata:
    """[template] section."""
    name: str
    description: str
    version: str
    authors: tuple[str, ...]
    repository: str
    tags: tuple[str, ...] = ()
    min_tool_version: str | None = None
    min_runtime_version: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "version": self.version,
            "authors": list(self.authors),
            "repository": self.repository,
            "tags": list(self.tags),
            "min_tool_version": self.min_tool_version,
            "min_runtime_version": self.min_runtime_version,
        }


@dataclass(frozen=True)
class FileRules:
    """
    [files] section.

    No include patterns means "every file not excluded".
    Exclude always wins over include.
    """
    include: tuple[str, ...] = ()
    exclude: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {"include": list(self.include), "exclude": list(self.exclude)}


@dataclass(frozen=True, eq=False)
class Manifest:
    """Validated template manifest."""
    metadata: TemplateMetadata
    parameters: Mapping[str, ParameterSpec] = field(
        default_factory=lambda: MappingProxyType({})
    )
    file_rules: FileRules = field(default_factory=FileRules)

    def __post_init__(self) -> None:
        if not isinstance(self.parameters, MappingProxyType):
            object.__setattr__(self, "parameters", MappingProxyType(dict(self.parameters)))

    @property
    def name(self) -> str:
        return self.metadata.name

    @property
    def version(self) -> str:
        return self.metadata.version

    def to_dict(self) -> dict[str, Any]:
        return {
            "template": self.metadata.to_dict(),
            "parameters": {
                name: parameter_to_dict(spec) for name, spec in self.parameters.items()
            },
            "files": self.file_rules.to_dict(),
        }


@dataclass(frozen=True)
class ParameterDescriptor:
    """What an external prompter needs to ask for one parameter."""
    name: str
    label: str
    kind: ParameterType
    default: ParamValue
    description: str | None = None
    pattern: str | None = None
    choices: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "label": self.label,
            "type": self.kind.value,
            "default": self.default,
            "description": self.description,
            "pattern": self.pattern,
            "choices": list(self.choices),
        }


# =============================================================================
# Resolved Parameters
# =============================================================================

class ResolvedParameters(Mapping[str, ParamValue]):
    """
    Immutable name → value map handed to the renderer.

    Holds declared parameters plus built-ins (project_name, author, version,
    date, timestamp).
    """

    def __init__(self, values: Mapping[str, ParamValue], builtins: frozenset[str]) -> None:
        self._values = MappingProxyType(dict(values))
        self._builtins = frozenset(builtins)

    def __getitem__(self, name: str) -> ParamValue:
        return self._values[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __repr__(self) -> str:
        return f"ResolvedParameters({dict(self._values)!r})"

    @property
    def builtins(self) -> frozenset[str]:
        return self._builtins

    def declared(self) -> dict[str, ParamValue]:
        """Values of non-built-in parameters."""
        return {k: v for k, v in self._values.items() if k not in self._builtins}

    def as_strings(self) -> dict[str, str]:
        """String form of every value (booleans as true/false)."""
        return {k: format_value(v) for k, v in self._values.items()}


def format_value(value: Any) -> str:
    """Template string form of a value."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (list, tuple, range)):
        return "".join(format_value(v) for v in value)
    return str(value)


# =============================================================================
# File Selection / Output
# =============================================================================

@dataclass(frozen=True)
class FileEntry:
    """A path selected by the file filter."""
    path: str
    is_binary: bool


@dataclass
class FileSelection:
    """File filter result."""
    included: list[FileEntry] = field(default_factory=list)
    excluded: list[str] = field(default_factory=list)
    rejected: list[ScaffoldError] = field(default_factory=list)

    @property
    def paths(self) -> list[str]:
        return [entry.path for entry in self.included]


@dataclass(frozen=True)
class RenderedFile:
    """One output file: rendered text or binary passthrough."""
    path: str
    content: bytes
    is_binary: bool
    rendered: bool

    @property
    def text(self) -> str:
        if self.is_binary:
            raise ValueError(f"{self.path} is binary")
        return self.content.decode("utf-8")

    def to_dict(self) -> dict[str, Any]:
        return {
            "path": self.path,
            "size": len(self.content),
            "is_binary": self.is_binary,
            "rendered": self.rendered,
        }


@dataclass(frozen=True)
class RenderWarning:
    """Non-fatal render diagnostic (e.g. undefined variable)."""
    code: str
    message: str
    filename: str
    line: int
    column: int
    subject: str = ""  # variable name, filter name, ...

    def to_dict(self) -> dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "filename": self.filename,
            "line": self.line,
            "column": self.column,
            "subject": self.subject,
        }


# =============================================================================
# Run Log Schemas
# =============================================================================

@dataclass
class WarningLog:
    """
    Warning log entry.

    Required context: level, code, path, subject, message
    """
    level: str = "warning"
    code: str = ""
    path: str = ""
    subject: str = ""
    message: str = ""
    line: int | None = None
    column: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "level": self.level,
            "code": self.code,
            "path": self.path,
            "subject": self.subject,
            "message": self.message,
            "line": self.line,
            "column": self.column,
        }


@dataclass
class RunLog:
    """
    Pipeline run record.

    One per RenderPipeline.run() call.
    """
    run_id: str
    template_name: str
    started_at: str  # ISO 8601
    template_version: str | None = None
    finished_at: str | None = None
    result: str = "pending"  # pending, complete, partial, aborted, rejected

    # Hashes
    parameters_hash: str | None = None
    output_hash: str | None = None

    file_count: int = 0
    failed_files: list[str] = field(default_factory=list)

    # Events
    warnings: list[WarningLog] = field(default_factory=list)

    # Error (if rejected/aborted)
    error_code: str | None = None
    error_context: dict[str, Any] | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "run_id": self.run_id,
            "template_name": self.template_name,
            "template_version": self.template_version,
            "started_at": self.started_at,
            "finished_at": self.finished_at,
            "result": self.result,
            "parameters_hash": self.parameters_hash,
            "output_hash": self.output_hash,
            "file_count": self.file_count,
            "failed_files": list(self.failed_files),
            "warnings": [w.to_dict() for w in self.warnings],
            "error_code": self.error_code,
            "error_context": self.error_context,
        }


# =============================================================================
# Pipeline Result
# =============================================================================

class PipelineStatus(str, Enum):
    """How far a pipeline run got."""
    COMPLETE = "complete"  # every selected file rendered
    PARTIAL = "partial"    # some files failed, siblings rendered
    ABORTED = "aborted"    # stopped at the first file failure (abort_on_error)
    REJECTED = "rejected"  # manifest/parameter errors, nothing rendered


@dataclass
class PipelineResult:
    """Everything a caller needs to decide whether to write output."""
    status: PipelineStatus
    files: list[RenderedFile] = field(default_factory=list)
    errors: list[ScaffoldError] = field(default_factory=list)
    warnings: list[RenderWarning] = field(default_factory=list)
    manifest: Manifest | None = None
    parameters: ResolvedParameters | None = None
    run_log: RunLog | None = None

    @property
    def is_complete(self) -> bool:
        return self.status == PipelineStatus.COMPLETE

    @property
    def failure_count(self) -> int:
        return len(self.errors)

    def file(self, path: str) -> RenderedFile:
        for rendered in self.files:
            if rendered.path == path:
                return rendered
        raise KeyError(path)

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status.value,
            "files": [f.to_dict() for f in self.files],
            "errors": [e.to_dict() for e in self.errors],
            "warnings": [w.to_dict() for w in self.warnings],
            "run_id": self.run_log.run_id if self.run_log else None,
        }
