"""
Manifest parsing and validation (template.toml).

Validation order:
1. TOML syntax (fail fast, single issue)
2. Presence of required [template] fields
3. Per-field type/format checks
4. Cross-field checks (enum default in choices, default matches pattern, ...)

Steps 2-4 accumulate every issue before raising, so a template author sees the
complete report in one pass.
"""

import logging
import re
import tomllib
from typing import Any
from urllib.parse import urlsplit

import regex
from packaging.version import InvalidVersion, Version

from scaffoldkit.config import EngineConfig
from scaffoldkit.domain.constants import (
    COMPUTED_BUILTINS,
    CONTEXT_BUILTINS,
    DESCRIPTION_MAX_LENGTH,
    DESCRIPTION_MIN_LENGTH,
    ENUM_CHOICE_KEYS,
    FILES_SECTION,
    NAME_MAX_LENGTH,
    OPTIONAL_TEMPLATE_FIELDS,
    PARAMETERS_SECTION,
    PATTERN_TIMEOUT_SECONDS,
    REQUIRED_TEMPLATE_FIELDS,
    TAG_MAX_LENGTH,
    TAGS_MAX_COUNT,
    TEMPLATE_SECTION,
)
from scaffoldkit.domain.errors import ErrorCodes, FieldIssue, ManifestValidationError
from scaffoldkit.domain.schemas import (
    BooleanParameter,
    EnumParameter,
    FileRules,
    Manifest,
    ParameterSpec,
    ParameterType,
    StringParameter,
    TemplateMetadata,
)
from scaffoldkit.templates.globs import glob_problem

logger = logging.getLogger(__name__)

# semver.org reference grammar
SEMVER_PATTERN = re.compile(
    r"^(0|[1-9]\d*)\.(0|[1-9]\d*)\.(0|[1-9]\d*)"
    r"(?:-((?:0|[1-9]\d*|\d*[a-zA-Z-][0-9a-zA-Z-]*)"
    r"(?:\.(?:0|[1-9]\d*|\d*[a-zA-Z-][0-9a-zA-Z-]*))*))?"
    r"(?:\+([0-9a-zA-Z-]+(?:\.[0-9a-zA-Z-]+)*))?$"
)

PARAMETER_NAME_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

_TOP_LEVEL_SECTIONS = (TEMPLATE_SECTION, PARAMETERS_SECTION, FILES_SECTION)
_COMMON_PARAMETER_KEYS = ("type", "default", "description")
_EXTRA_PARAMETER_KEYS: dict[ParameterType, tuple[str, ...]] = {
    ParameterType.STRING: ("pattern",),
    ParameterType.BOOLEAN: (),
    ParameterType.ENUM: ENUM_CHOICE_KEYS,
}

_SEMVER_HINT = "Use MAJOR.MINOR.PATCH, e.g. 1.0.0"


def is_semver(value: Any) -> bool:
    """True if value is a semantic version string."""
    return isinstance(value, str) and SEMVER_PATTERN.match(value) is not None


# =============================================================================
# Public API
# =============================================================================

def parse_manifest(text: str | bytes, config: EngineConfig | None = None) -> Manifest:
    """
    Parse and validate manifest text.

    Args:
        text: raw template.toml content
        config: engine config (trusted host)

    Returns:
        validated Manifest

    Raises:
        ManifestValidationError: MANIFEST_SYNTAX (fail fast) or
            MANIFEST_INVALID (every field-level issue)
    """
    data = load_manifest_document(text)
    issues = collect_manifest_issues(data, config)
    if issues:
        logger.info("Manifest rejected with %d issue(s)", len(issues))
        raise ManifestValidationError(issues)
    return build_manifest(data)


def load_manifest_document(text: str | bytes) -> dict[str, Any]:
    """
    Syntactic parse only.

    Raises:
        ManifestValidationError: MANIFEST_SYNTAX
    """
    if isinstance(text, bytes):
        try:
            text = text.decode("utf-8")
        except UnicodeDecodeError as e:
            raise ManifestValidationError(
                [FieldIssue(
                    "<document>",
                    f"manifest is not valid UTF-8 (byte {e.start})",
                    "Save the manifest as UTF-8",
                )],
                code=ErrorCodes.MANIFEST_SYNTAX,
            ) from e

    try:
        return tomllib.loads(text)
    except tomllib.TOMLDecodeError as e:
        raise ManifestValidationError(
            [FieldIssue(
                "<document>",
                f"invalid TOML: {e}",
                "Fix the TOML syntax at the reported line and column",
            )],
            code=ErrorCodes.MANIFEST_SYNTAX,
        ) from e


def collect_manifest_issues(
    data: dict[str, Any],
    config: EngineConfig | None = None,
) -> list[FieldIssue]:
    """
    Validate a parsed manifest document.

    Args:
        data: output of load_manifest_document()
        config: engine config (trusted host)

    Returns:
        every issue found (empty list → valid)
    """
    config = config or EngineConfig()
    issues: list[FieldIssue] = []

    for key in data:
        if key not in _TOP_LEVEL_SECTIONS:
            issues.append(FieldIssue(
                key,
                f"unknown section [{key}]",
                f"Allowed sections: {', '.join(_TOP_LEVEL_SECTIONS)}",
            ))

    template = data.get(TEMPLATE_SECTION)
    if template is None:
        for name in REQUIRED_TEMPLATE_FIELDS:
            issues.append(_missing(name))
    elif not isinstance(template, dict):
        issues.append(FieldIssue(
            TEMPLATE_SECTION,
            "[template] must be a table",
            "Declare it as a [template] section with key = value lines",
        ))
    else:
        _validate_template(template, config, issues)

    parameters = data.get(PARAMETERS_SECTION, {})
    if not isinstance(parameters, dict):
        issues.append(FieldIssue(
            PARAMETERS_SECTION,
            "[parameters] must be a table of parameter tables",
            "Declare each parameter as [parameters.<name>]",
        ))
    else:
        for name, table in parameters.items():
            _validate_parameter(name, table, issues)

    files = data.get(FILES_SECTION)
    if files is not None:
        _validate_files(files, issues)

    return issues


def build_manifest(data: dict[str, Any]) -> Manifest:
    """Convert an already-validated document into a Manifest."""
    template = data[TEMPLATE_SECTION]
    metadata = TemplateMetadata(
        name=template["name"],
        description=template["description"],
        version=template["version"],
        authors=tuple(template["authors"]),
        repository=template["repository"],
        tags=tuple(template.get("tags", ())),
        min_tool_version=template.get("min_tool_version"),
        min_runtime_version=template.get("min_runtime_version"),
    )

    parameters = {
        name: _build_parameter(name, table)
        for name, table in data.get(PARAMETERS_SECTION, {}).items()
    }

    files = data.get(FILES_SECTION) or {}
    rules = FileRules(
        include=tuple(files.get("include", ())),
        exclude=tuple(files.get("exclude", ())),
    )

    return Manifest(metadata=metadata, parameters=parameters, file_rules=rules)


def check_compatibility(
    manifest: Manifest,
    tool_version: str | None,
    runtime_version: str | None = None,
) -> list[FieldIssue]:
    """
    Compare declared minimum versions with the running tool/runtime.

    Args:
        manifest: validated manifest
        tool_version: version of this tool (None → skip)
        runtime_version: version of the target runtime (None → skip)

    Returns:
        issues for every unmet minimum
    """
    issues: list[FieldIssue] = []
    checks = (
        ("template.min_tool_version", manifest.metadata.min_tool_version, tool_version, "tool"),
        ("template.min_runtime_version", manifest.metadata.min_runtime_version, runtime_version, "runtime"),
    )
    for field_name, minimum, current, label in checks:
        if minimum is None or current is None:
            continue
        current_key = _version_key(current)
        if current_key is None:
            issues.append(FieldIssue(
                field_name,
                f"cannot compare against {label} version '{current}'",
                f"Configure the {label} version as MAJOR.MINOR.PATCH",
            ))
        elif current_key < _version_key(minimum):
            issues.append(FieldIssue(
                field_name,
                f"template requires {label} version >= {minimum}, found {current}",
                f"Upgrade the {label} to {minimum} or newer",
            ))
    return issues


# =============================================================================
# Section Validators
# =============================================================================

def _missing(name: str) -> FieldIssue:
    return FieldIssue(
        f"template.{name}",
        f"template.{name} is required",
        f"Add `{name} = ...` to the [template] section",
    )


def _is_blank(value: Any) -> bool:
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, list):
        return len(value) == 0
    return False


def _validate_template(
    template: dict[str, Any],
    config: EngineConfig,
    issues: list[FieldIssue],
) -> None:
    known = REQUIRED_TEMPLATE_FIELDS + OPTIONAL_TEMPLATE_FIELDS
    for key in template:
        if key not in known:
            issues.append(FieldIssue(
                f"template.{key}",
                f"unknown field '{key}'",
                f"Allowed fields: {', '.join(known)}",
            ))

    # Presence first
    present: dict[str, Any] = {}
    for name in REQUIRED_TEMPLATE_FIELDS:
        if name not in template:
            issues.append(_missing(name))
        elif _is_blank(template[name]):
            issues.append(FieldIssue(
                f"template.{name}",
                f"template.{name} must not be empty",
                f"Give `{name}` a non-empty value",
            ))
        else:
            present[name] = template[name]

    if "name" in present:
        name = present["name"]
        if not isinstance(name, str):
            issues.append(FieldIssue("template.name", "name must be a string", 'Quote the value, e.g. name = "my-template"'))
        elif len(name) > NAME_MAX_LENGTH:
            issues.append(FieldIssue(
                "template.name",
                f"name must be {NAME_MAX_LENGTH} characters or less (got {len(name)})",
                "Shorten the template name",
            ))

    if "description" in present:
        description = present["description"]
        if not isinstance(description, str):
            issues.append(FieldIssue("template.description", "description must be a string", "Quote the description"))
        elif not DESCRIPTION_MIN_LENGTH <= len(description) <= DESCRIPTION_MAX_LENGTH:
            issues.append(FieldIssue(
                "template.description",
                f"description must be {DESCRIPTION_MIN_LENGTH}-{DESCRIPTION_MAX_LENGTH} characters (got {len(description)})",
                "Write a one-line summary of what the template generates",
            ))

    if "version" in present and not is_semver(present["version"]):
        issues.append(FieldIssue(
            "template.version",
            "version must be MAJOR.MINOR.PATCH",
            _SEMVER_HINT,
        ))

    if "authors" in present:
        authors = present["authors"]
        if not isinstance(authors, list):
            issues.append(FieldIssue("template.authors", "authors must be an array of strings", 'Use authors = ["Jane Doe"]'))
        else:
            for i, author in enumerate(authors):
                if not isinstance(author, str) or not author.strip():
                    issues.append(FieldIssue(
                        f"template.authors[{i}]",
                        "author must be a non-empty string",
                        "Remove the entry or fill in the author's name",
                    ))

    if "repository" in present:
        problem = _repository_problem(present["repository"], config.trusted_host)
        if problem:
            issues.append(FieldIssue(
                "template.repository",
                problem,
                f"Use https://{config.trusted_host}/<owner>/<repo>",
            ))

    if "tags" in template:
        _validate_tags(template["tags"], issues)

    for name in ("min_tool_version", "min_runtime_version"):
        if name in template and not is_semver(template[name]):
            issues.append(FieldIssue(
                f"template.{name}",
                f"{name} must be MAJOR.MINOR.PATCH",
                _SEMVER_HINT,
            ))


def _repository_problem(value: Any, host: str) -> str | None:
    message = "repository must be an HTTPS URL under the trusted host"
    if not isinstance(value, str):
        return message
    try:
        parts = urlsplit(value.strip())
        hostname = parts.hostname
    except ValueError:
        return message

    if parts.scheme != "https" or (hostname or "").lower() != host.lower():
        return message
    if parts.username or parts.password or parts.port is not None:
        return "repository URL must not carry credentials or a port"
    if parts.query or parts.fragment:
        return "repository URL must not carry a query string or fragment"
    if len([s for s in parts.path.split("/") if s]) < 2:
        return "repository URL must point to <owner>/<repo>"
    return None


def _validate_tags(tags: Any, issues: list[FieldIssue]) -> None:
    if not isinstance(tags, list):
        issues.append(FieldIssue("template.tags", "tags must be an array of strings", 'Use tags = ["web", "api"]'))
        return
    if len(tags) > TAGS_MAX_COUNT:
        issues.append(FieldIssue(
            "template.tags",
            f"at most {TAGS_MAX_COUNT} tags are allowed (got {len(tags)})",
            "Keep the most descriptive tags",
        ))

    seen: set[str] = set()
    for i, tag in enumerate(tags):
        if (
            not isinstance(tag, str)
            or not 1 <= len(tag) <= TAG_MAX_LENGTH
            or any(ch.isspace() for ch in tag)
        ):
            issues.append(FieldIssue(
                f"template.tags[{i}]",
                f"tag must be 1-{TAG_MAX_LENGTH} characters without whitespace",
                "Use short keywords such as 'web' or 'cli'",
            ))
            continue
        if tag in seen:
            issues.append(FieldIssue(f"template.tags[{i}]", f"duplicate tag '{tag}'", "Remove the duplicate"))
        seen.add(tag)


def _validate_parameter(name: str, table: Any, issues: list[FieldIssue]) -> None:
    prefix = f"parameters.{name}"

    if not PARAMETER_NAME_PATTERN.match(name):
        issues.append(FieldIssue(
            prefix,
            "parameter name must start with a letter or '_' and contain only letters, digits and '_'",
            "Rename the parameter, e.g. 'db_engine'",
        ))
    if not isinstance(table, dict):
        issues.append(FieldIssue(prefix, "parameter must be a table", f"Declare it as [{prefix}] with a `type` key"))
        return

    raw_type = table.get("type")
    if raw_type is None:
        issues.append(FieldIssue(f"{prefix}.type", "parameter type is required", 'Add type = "string", "boolean" or "enum"'))
        return
    try:
        kind = ParameterType(raw_type)
    except ValueError:
        issues.append(FieldIssue(
            f"{prefix}.type",
            f"unknown parameter type '{raw_type}'",
            'Use type = "string", "boolean" or "enum"',
        ))
        return

    if name in COMPUTED_BUILTINS:
        issues.append(FieldIssue(
            prefix,
            f"'{name}' is a built-in variable computed by the engine",
            "Rename the parameter; built-ins are always available in templates",
        ))
    elif name in CONTEXT_BUILTINS and kind != ParameterType.STRING:
        issues.append(FieldIssue(
            f"{prefix}.type",
            f"built-in '{name}' can only be refined as a string parameter",
            'Use type = "string" or rename the parameter',
        ))

    allowed = _COMMON_PARAMETER_KEYS + _EXTRA_PARAMETER_KEYS[kind]
    for key in table:
        if key not in allowed:
            issues.append(FieldIssue(
                f"{prefix}.{key}",
                f"unknown key '{key}' for {kind.value} parameter",
                f"Allowed keys: {', '.join(allowed)}",
            ))

    description = table.get("description")
    if description is not None and not isinstance(description, str):
        issues.append(FieldIssue(f"{prefix}.description", "description must be a string", "Quote the description"))

    if "default" not in table:
        issues.append(FieldIssue(
            f"{prefix}.default",
            "parameter must declare a default",
            "Add `default = ...` so the template renders without user input",
        ))
        default: Any = None
    else:
        default = table["default"]

    if kind == ParameterType.STRING:
        _validate_string_parameter(prefix, table, default, issues)
    elif kind == ParameterType.BOOLEAN:
        if "default" in table and not isinstance(default, bool):
            issues.append(FieldIssue(f"{prefix}.default", "boolean default must be true or false", "Use default = true or default = false (unquoted)"))
    else:
        _validate_enum_parameter(prefix, table, default, issues)


def _validate_string_parameter(
    prefix: str,
    table: dict[str, Any],
    default: Any,
    issues: list[FieldIssue],
) -> None:
    if "default" in table and not isinstance(default, str):
        issues.append(FieldIssue(f"{prefix}.default", "string default must be a string", "Quote the default value"))
        default = None

    if "pattern" not in table:
        return
    pattern = table["pattern"]
    if not isinstance(pattern, str):
        issues.append(FieldIssue(f"{prefix}.pattern", "pattern must be a string", "Quote the regex, e.g. '^[a-z]+$'"))
        return
    try:
        compiled = regex.compile(pattern)
    except regex.error as e:
        issues.append(FieldIssue(f"{prefix}.pattern", f"invalid regex: {e}", "Fix the regular expression"))
        return
    if default is None:
        return
    try:
        matched = compiled.search(default, timeout=PATTERN_TIMEOUT_SECONDS)
    except TimeoutError:
        issues.append(FieldIssue(
            f"{prefix}.pattern",
            f"pattern took longer than {PATTERN_TIMEOUT_SECONDS}s on the default '{default}'",
            "Simplify the pattern; nested repeats like (a+)+ backtrack exponentially",
        ))
        return
    if not matched:
        issues.append(FieldIssue(
            f"{prefix}.default",
            f"default '{default}' does not match pattern '{pattern}'",
            "Change the default so it satisfies the pattern",
        ))


def _validate_enum_parameter(
    prefix: str,
    table: dict[str, Any],
    default: Any,
    issues: list[FieldIssue],
) -> None:
    given = [key for key in ENUM_CHOICE_KEYS if key in table]
    if not given:
        issues.append(FieldIssue(f"{prefix}.choices", "enum parameter requires choices", 'Add choices = ["a", "b"]'))
        return
    if len(given) > 1:
        issues.append(FieldIssue(
            f"{prefix}.{given[1]}",
            f"choices declared more than once ({', '.join(given)})",
            "Keep only `choices`",
        ))
        return

    key = given[0]
    choices = table[key]
    if not isinstance(choices, list) or not all(isinstance(c, str) and c for c in choices):
        issues.append(FieldIssue(f"{prefix}.{key}", "choices must be an array of non-empty strings", 'Use choices = ["a", "b"]'))
        return
    if len(choices) < 2:
        issues.append(FieldIssue(f"{prefix}.{key}", "enum needs at least 2 choices", "Add another choice or use a boolean/string parameter"))
    duplicates = sorted({c for c in choices if choices.count(c) > 1})
    if duplicates:
        issues.append(FieldIssue(f"{prefix}.{key}", f"duplicate choices: {', '.join(duplicates)}", "List each choice once"))

    if "default" in table:
        if not isinstance(default, str):
            issues.append(FieldIssue(f"{prefix}.default", "enum default must be a string", "Quote the default choice"))
        elif default not in choices:
            issues.append(FieldIssue(
                f"{prefix}.default",
                f"default '{default}' is not one of the choices",
                f"Use one of: {', '.join(choices)}",
            ))


def _validate_files(files: Any, issues: list[FieldIssue]) -> None:
    if not isinstance(files, dict):
        issues.append(FieldIssue(FILES_SECTION, "[files] must be a table", "Declare include/exclude arrays under [files]"))
        return

    for key, value in files.items():
        if key not in ("include", "exclude"):
            issues.append(FieldIssue(f"files.{key}", f"unknown key '{key}'", "Allowed keys: include, exclude"))
            continue
        if not isinstance(value, list):
            issues.append(FieldIssue(f"files.{key}", f"{key} must be an array of glob patterns", f'Use {key} = ["src/**"]'))
            continue
        for i, pattern in enumerate(value):
            problem = glob_problem(pattern)
            if problem:
                issues.append(FieldIssue(
                    f"files.{key}[{i}]",
                    problem,
                    "Use relative '/'-separated globs such as 'src/**' or '*.md'",
                ))


# =============================================================================
# Builders
# =============================================================================

def _build_parameter(name: str, table: dict[str, Any]) -> ParameterSpec:
    kind = ParameterType(table["type"])
    description = table.get("description")

    if kind == ParameterType.STRING:
        return StringParameter(
            name=name,
            default=table["default"],
            pattern=table.get("pattern"),
            description=description,
        )
    if kind == ParameterType.BOOLEAN:
        return BooleanParameter(name=name, default=table["default"], description=description)

    choices = next(table[key] for key in ENUM_CHOICE_KEYS if key in table)
    return EnumParameter(
        name=name,
        choices=tuple(choices),
        default=table["default"],
        description=description,
    )


def _version_key(text: str) -> Version | None:
    try:
        return Version(text)
    except InvalidVersion:
        match = SEMVER_PATTERN.match(text)
        if match is None:
            return None
        return Version(".".join(match.group(1, 2, 3)))
