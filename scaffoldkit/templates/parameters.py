"""
Parameter resolution.

Rules:
- Every declared parameter resolves to a type-checked value (user value or default)
- Built-ins (project_name, author, version, date, timestamp) are always present
- A built-in is never overridden silently: conflicting sources are an error
- All parameters are checked before ParameterError is raised
"""

import difflib
import logging
import re
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

import regex

from scaffoldkit.domain.constants import (
    COMPUTED_BUILTINS,
    CONTEXT_BUILTINS,
    DEFAULT_PROJECT_VERSION,
    FALSY_LITERALS,
    PATTERN_TIMEOUT_SECONDS,
    TRUTHY_LITERALS,
)
from scaffoldkit.domain.errors import ErrorCodes, ParameterError, ParameterIssue
from scaffoldkit.domain.schemas import (
    BooleanParameter,
    EnumParameter,
    Manifest,
    ParameterDescriptor,
    ParamValue,
    ResolvedParameters,
    StringParameter,
)

logger = logging.getLogger(__name__)

PROJECT_NAME_PATTERN = re.compile(r"^[\w-]+$")

_BUILTIN_NAMES = frozenset(CONTEXT_BUILTINS + COMPUTED_BUILTINS)


@dataclass(frozen=True)
class BuildContext:
    """Caller-supplied values for the context built-ins."""
    project_name: str | None = None
    author: str | None = None
    version: str | None = None


# =============================================================================
# Coercion
# =============================================================================

def coerce_boolean(raw: Any) -> bool | None:
    """
    Convert a boolean literal.

    Accepts true/false/yes/no/y/n/1/0 (case-insensitive) and real bools.

    Returns:
        bool, or None if the value is not a recognised literal
    """
    if isinstance(raw, bool):
        return raw
    if not isinstance(raw, str):
        return None
    literal = raw.strip().lower()
    if literal in TRUTHY_LITERALS:
        return True
    if literal in FALSY_LITERALS:
        return False
    return None


def is_valid_project_name(name: str) -> bool:
    """Letters, digits, '-' and '_' only; never empty."""
    return bool(name) and PROJECT_NAME_PATTERN.match(name) is not None


def default_project_name(template_name: str) -> str:
    """Derive a project name from the template name ("My_Template" → "my-template")."""
    slug = re.sub(r"[^\w-]+", "-", template_name.replace("_", "-").lower())
    return slug.strip("-")


# =============================================================================
# Resolution
# =============================================================================

def resolve_parameters(
    manifest: Manifest,
    user_values: Mapping[str, Any] | None = None,
    context: BuildContext | None = None,
    now: datetime | None = None,
) -> ResolvedParameters:
    """
    Build the immutable parameter map for one instantiation.

    Args:
        manifest: validated manifest
        user_values: name → raw value (usually strings); may be partial or empty
        context: project_name/author/version supplied by the caller
        now: clock for date/timestamp (default: current UTC time)

    Returns:
        ResolvedParameters

    Raises:
        ParameterError: every problem found, one issue per parameter/constraint
    """
    values, issues = _resolve(manifest, user_values or {}, context or BuildContext(), now)
    if issues:
        logger.info("Parameter resolution failed: %s", ", ".join(i.name for i in issues))
        raise ParameterError(issues)
    return ResolvedParameters(values, builtins=_BUILTIN_NAMES)


def collect_parameter_issues(
    manifest: Manifest,
    user_values: Mapping[str, Any] | None = None,
    context: BuildContext | None = None,
) -> list[ParameterIssue]:
    """Same checks as resolve_parameters(), returning the issues instead of raising."""
    _, issues = _resolve(manifest, user_values or {}, context or BuildContext(), None)
    return issues


def _resolve(
    manifest: Manifest,
    user_values: Mapping[str, Any],
    context: BuildContext,
    now: datetime | None,
) -> tuple[dict[str, ParamValue], list[ParameterIssue]]:
    issues: list[ParameterIssue] = []
    values: dict[str, ParamValue] = {}
    declared = manifest.parameters

    # 1. Keys nobody declared
    for key in user_values:
        if key in COMPUTED_BUILTINS:
            issues.append(ParameterIssue(
                key,
                ErrorCodes.RESERVED_PARAMETER,
                f"'{key}' is computed by the engine and cannot be supplied",
                f"Remove '{key}' from the supplied values",
            ))
        elif key not in declared and key not in CONTEXT_BUILTINS:
            issues.append(_unknown_parameter(key, declared))

    # 2. Declared parameters
    for name, spec in declared.items():
        if name in CONTEXT_BUILTINS:
            continue
        raw = user_values.get(name)
        if raw is None:
            values[name] = spec.default
            continue
        value, issue = _coerce(spec, raw)
        if issue is not None:
            issues.append(issue)
        else:
            values[name] = value

    # 3. Context built-ins (may be refined by a declared string parameter)
    for name in CONTEXT_BUILTINS:
        value, found = _resolve_context_builtin(name, manifest, user_values, context)
        issues.extend(found)
        if not found:
            values[name] = value

    # 4. Computed built-ins
    moment = now or datetime.now(UTC)
    values["date"] = moment.date().isoformat()
    values["timestamp"] = int(moment.timestamp())

    return values, issues


def _unknown_parameter(key: str, declared: Mapping[str, Any]) -> ParameterIssue:
    candidates = list(declared) + [n for n in CONTEXT_BUILTINS if n not in declared]
    close = difflib.get_close_matches(key, candidates, n=1)
    if close:
        suggestion = f"Did you mean '{close[0]}'?"
    elif declared:
        suggestion = f"Declared parameters: {', '.join(declared)}"
    else:
        suggestion = "This template declares no parameters"
    return ParameterIssue(
        key,
        ErrorCodes.UNKNOWN_PARAMETER,
        f"'{key}' is not a parameter of this template",
        suggestion,
    )


def _coerce(spec: Any, raw: Any) -> tuple[ParamValue | None, ParameterIssue | None]:
    """Type-check one user value against its spec."""
    if isinstance(spec, BooleanParameter):
        value = coerce_boolean(raw)
        if value is None:
            return None, ParameterIssue(
                spec.name,
                ErrorCodes.INVALID_BOOLEAN,
                f"'{raw}' is not a boolean",
                "Use one of: true, false, yes, no, y, n, 1, 0",
            )
        return value, None

    if not isinstance(raw, str):
        return None, ParameterIssue(
            spec.name,
            ErrorCodes.PARAMETER_INVALID,
            f"expected a string, got {type(raw).__name__}",
            "Pass the value as text",
        )

    if isinstance(spec, EnumParameter):
        if raw not in spec.choices:
            close = difflib.get_close_matches(raw, spec.choices, n=1)
            hint = f"Did you mean '{close[0]}'? " if close else ""
            return None, ParameterIssue(
                spec.name,
                ErrorCodes.INVALID_CHOICE,
                f"'{raw}' is not one of the choices (case-sensitive)",
                f"{hint}Choose one of: {', '.join(spec.choices)}",
            )
        return raw, None

    issue = _check_pattern(spec, raw)
    if issue is not None:
        return None, issue
    return raw, None


def _check_pattern(spec: StringParameter, value: str) -> ParameterIssue | None:
    if spec.pattern is None:
        return None
    try:
        if regex.search(spec.pattern, value, timeout=PATTERN_TIMEOUT_SECONDS):
            return None
    except TimeoutError:
        return ParameterIssue(
            spec.name,
            ErrorCodes.PATTERN_TIMEOUT,
            f"pattern '{spec.pattern}' took longer than {PATTERN_TIMEOUT_SECONDS}s on '{value}'",
            "Provide a shorter value or ask the template author to simplify the pattern",
        )
    return ParameterIssue(
        spec.name,
        ErrorCodes.PATTERN_MISMATCH,
        f"'{value}' does not match pattern '{spec.pattern}'",
        f"Provide a value matching {spec.pattern}, e.g. the default '{spec.default}'",
    )


def _resolve_context_builtin(
    name: str,
    manifest: Manifest,
    user_values: Mapping[str, Any],
    context: BuildContext,
) -> tuple[str, list[ParameterIssue]]:
    spec = manifest.parameters.get(name)
    supplied = user_values.get(name)
    from_context = getattr(context, name)

    if supplied is not None and not isinstance(supplied, str):
        return "", [ParameterIssue(
            name,
            ErrorCodes.PARAMETER_INVALID,
            f"expected a string, got {type(supplied).__name__}",
            "Pass the value as text",
        )]
    if supplied is not None and from_context is not None and supplied != from_context:
        return "", [ParameterIssue(
            name,
            ErrorCodes.BUILTIN_CONFLICT,
            f"'{name}' supplied as '{supplied}' but the build context says '{from_context}'",
            f"Supply '{name}' in one place only",
        )]

    if supplied is not None:
        value = supplied
    elif from_context is not None:
        value = from_context
    elif isinstance(spec, StringParameter):
        value = spec.default
    elif name == "version":
        value = DEFAULT_PROJECT_VERSION
    elif name == "project_name":
        value = default_project_name(manifest.name)
    else:
        value = ""

    if isinstance(spec, StringParameter):
        issue = _check_pattern(spec, value)
        if issue is not None:
            return "", [issue]

    if name == "project_name" and not is_valid_project_name(value):
        return "", [ParameterIssue(
            name,
            ErrorCodes.INVALID_PROJECT_NAME,
            f"project name '{value}' must be non-empty and contain only letters, digits, '-' and '_'",
            "Use a name such as 'my-project' or 'my_project'",
        )]

    return value, []


# =============================================================================
# Prompt Descriptors
# =============================================================================

def describe_parameters(manifest: Manifest) -> list[ParameterDescriptor]:
    """
    Describe declared parameters for an external prompter.

    Returns:
        one descriptor per declared parameter, in declaration order
    """
    descriptors = []
    for name, spec in manifest.parameters.items():
        descriptors.append(ParameterDescriptor(
            name=name,
            label=title_case(name),
            kind=spec.kind,
            default=spec.default,
            description=spec.description,
            pattern=getattr(spec, "pattern", None),
            choices=getattr(spec, "choices", ()),
        ))
    return descriptors


def title_case(name: str) -> str:
    """'my_project_name' → 'My Project Name'."""
    words = re.split(r"[_\-\s]+", name)
    return " ".join(w[:1].upper() + w[1:] for w in words if w)
