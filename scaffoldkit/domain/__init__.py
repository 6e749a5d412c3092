"""Domain layer: errors and schemas."""

from .errors import (
    ConfigError,
    ErrorCodes,
    FieldIssue,
    FileFilterError,
    ManifestValidationError,
    OutputError,
    ParameterError,
    ParameterIssue,
    RenderError,
    ScaffoldError,
)
from .schemas import (
    BooleanParameter,
    EnumParameter,
    FileRules,
    Manifest,
    ParameterType,
    PipelineResult,
    PipelineStatus,
    RenderedFile,
    ResolvedParameters,
    StringParameter,
    TemplateMetadata,
)

__all__ = [
    "ScaffoldError",
    "ManifestValidationError",
    "ParameterError",
    "FileFilterError",
    "RenderError",
    "ConfigError",
    "OutputError",
    "ErrorCodes",
    "FieldIssue",
    "ParameterIssue",
    "Manifest",
    "TemplateMetadata",
    "FileRules",
    "ParameterType",
    "StringParameter",
    "BooleanParameter",
    "EnumParameter",
    "ResolvedParameters",
    "RenderedFile",
    "PipelineResult",
    "PipelineStatus",
]
