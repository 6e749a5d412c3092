"""
Glob patterns for [files] include/exclude rules.

Dialect:
- `*`  any run of characters inside one path segment
- `?`  one character inside one path segment
- `[abc]`, `[!abc]`, `[a-z]`  character classes inside one segment
- `**` zero or more whole segments (must be a segment on its own)

Patterns are anchored to the template root and "/"-separated. A literal pattern
(no wildcards) or one ending in "/" names a directory and also matches everything
beneath it; `src/*` matches only the direct children of src.
"""

import re
from collections.abc import Iterable

from scaffoldkit.domain.errors import ErrorCodes, FileFilterError

_CLASS_ESCAPE = set("\\[]&~|")


def glob_problem(pattern: str) -> str | None:
    """
    Check a glob pattern without compiling it.

    Args:
        pattern: glob from the manifest

    Returns:
        human-readable reason if the pattern is invalid, else None
    """
    if not isinstance(pattern, str):
        return "glob pattern must be a string"
    if not pattern.strip():
        return "glob pattern cannot be empty"
    if pattern.startswith("/"):
        return "glob pattern must be relative to the template root"
    if "\\" in pattern:
        return "glob pattern must use '/' as the path separator"

    for segment in _segments(pattern):
        if segment == "":
            return "glob pattern contains an empty path segment ('//')"
        if segment in (".", ".."):
            return f"glob pattern cannot contain '{segment}' segments"
        if "**" in segment and segment != "**":
            return "'**' must be a path segment of its own (e.g. 'src/**/*.rs')"
        if _unclosed_class(segment):
            return "glob pattern has an unclosed '[' character class"

    return None


def compile_glob(pattern: str) -> re.Pattern[str]:
    """
    Compile a glob pattern to an anchored regex.

    Args:
        pattern: glob from the manifest

    Returns:
        compiled regex (use fullmatch)

    Raises:
        FileFilterError: INVALID_GLOB
    """
    problem = glob_problem(pattern)
    if problem is not None:
        raise FileFilterError(
            ErrorCodes.INVALID_GLOB,
            problem,
            suggestion="Use relative '/'-separated globs such as 'src/**' or '*.md'",
            pattern=pattern,
        )

    segments = _segments(pattern)
    parts: list[str] = []
    last = len(segments) - 1
    for i, segment in enumerate(segments):
        if segment == "**":
            parts.append(".*" if i == last else "(?:[^/]+/)*")
        else:
            parts.append(_translate_segment(segment) + ("/" if i < last else ""))

    try:
        return re.compile("".join(parts))
    except re.error as e:
        raise FileFilterError(
            ErrorCodes.INVALID_GLOB,
            f"glob pattern cannot be compiled: {e}",
            suggestion="Check character classes such as '[a-z]'",
            pattern=pattern,
        ) from e


class GlobSet:
    """
    A compiled list of globs; a path matches if any glob matches it.

    Directory patterns (literal, or ending in "/") also match every path beneath
    the directory. Wildcard patterns never match across "/".
    """

    def __init__(self, patterns: Iterable[str]) -> None:
        self.patterns = tuple(patterns)
        self._compiled = [(compile_glob(p), _names_directory(p)) for p in self.patterns]

    def __bool__(self) -> bool:
        return bool(self._compiled)

    def matches(self, path: str) -> bool:
        parents = _self_and_parents(path)[:-1]
        for compiled, covers_descendants in self._compiled:
            if compiled.fullmatch(path):
                return True
            if covers_descendants and any(compiled.fullmatch(parent) for parent in parents):
                return True
        return False


# =============================================================================
# Internal Helpers
# =============================================================================

def _segments(pattern: str) -> list[str]:
    # "docs/" means the directory "docs"
    return pattern.rstrip("/").split("/")


def _names_directory(pattern: str) -> bool:
    return pattern.endswith("/") or not any(c in pattern for c in "*?[")


def _self_and_parents(path: str) -> list[str]:
    segments = path.split("/")
    return ["/".join(segments[: i + 1]) for i in range(len(segments))]


def _class_end(segment: str, start: int) -> int:
    """Index of the ']' closing the class opened at `start`, or -1."""
    j = start + 1
    if j < len(segment) and segment[j] in "!^":
        j += 1
    if j < len(segment) and segment[j] == "]":
        j += 1  # leading ']' is literal
    while j < len(segment) and segment[j] != "]":
        j += 1
    return j if j < len(segment) else -1


def _unclosed_class(segment: str) -> bool:
    i = 0
    while i < len(segment):
        if segment[i] == "[":
            end = _class_end(segment, i)
            if end == -1:
                return True
            i = end
        i += 1
    return False


def _translate_segment(segment: str) -> str:
    out: list[str] = []
    i = 0
    while i < len(segment):
        c = segment[i]
        if c == "*":
            out.append("[^/]*")
        elif c == "?":
            out.append("[^/]")
        elif c == "[":
            end = _class_end(segment, i)
            body = segment[i + 1:end]
            negate = body[:1] in ("!", "^")
            if negate:
                body = body[1:]
            escaped = "".join("\\" + ch if ch in _CLASS_ESCAPE else ch for ch in body)
            out.append(f"[^/{escaped}]" if negate else f"[{escaped}]")
            i = end
        else:
            out.append(re.escape(c))
        i += 1
    return "".join(out)
