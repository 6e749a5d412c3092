"""
File filter: include/exclude evaluation over a template tree listing.

Rules:
- A path is included iff (no include globs, or one matches) and no exclude glob matches
- Exclude always wins over include, regardless of declaration order
- The manifest file and VCS metadata directories are always excluded
- Unsafe paths (absolute, "..") are rejected, never included
- Output is sorted by path
"""

import logging
import re
from collections.abc import Iterable, Mapping
from pathlib import PurePosixPath

from scaffoldkit.config import EngineConfig
from scaffoldkit.domain.constants import VCS_DIRECTORIES
from scaffoldkit.domain.errors import ErrorCodes, FileFilterError
from scaffoldkit.domain.schemas import FileEntry, FileRules, FileSelection
from scaffoldkit.templates.globs import GlobSet

logger = logging.getLogger(__name__)

_DRIVE_PATTERN = re.compile(r"^[A-Za-z]:")


def normalize_path(path: str) -> str:
    """
    Normalize a template-relative path.

    "./src\\main.rs" → "src/main.rs"

    Raises:
        FileFilterError: UNSAFE_PATH (absolute, drive-qualified, "..", empty)
    """
    candidate = path.replace("\\", "/")
    if candidate.startswith("/") or _DRIVE_PATTERN.match(candidate):
        raise _unsafe(path, "absolute paths are not allowed in a template")

    segments = [s for s in candidate.split("/") if s not in ("", ".")]
    if ".." in segments:
        raise _unsafe(path, "path escapes the template root")
    if not segments:
        raise _unsafe(path, "path is empty")
    return "/".join(segments)


def _unsafe(path: str, message: str) -> FileFilterError:
    return FileFilterError(
        ErrorCodes.UNSAFE_PATH,
        message,
        suggestion="Template files must live below the template root",
        path=path,
    )


def is_binary(path: str, content: bytes | None = None, config: EngineConfig | None = None) -> bool:
    """
    Classify a file as binary (passthrough) or text (rendered).

    Binary if the extension is on the denylist, or the first `sniff_bytes`
    contain a NUL byte, or the content is not valid UTF-8.
    """
    config = config or EngineConfig()
    suffix = PurePosixPath(path).suffix.lower()
    if suffix in config.binary_extensions:
        return True
    if content is None:
        return False
    if b"\x00" in content[: config.sniff_bytes]:
        return True
    try:
        content.decode("utf-8")
    except UnicodeDecodeError:
        return True
    return False


def is_implicitly_excluded(path: str, config: EngineConfig | None = None) -> bool:
    """Manifest file at the root, or anything inside a VCS metadata directory."""
    config = config or EngineConfig()
    if path == config.manifest_filename:
        return True
    return any(segment in VCS_DIRECTORIES for segment in path.split("/"))


def select_files(
    rules: FileRules,
    paths: Iterable[str],
    *,
    contents: Mapping[str, bytes] | None = None,
    config: EngineConfig | None = None,
) -> FileSelection:
    """
    Apply the manifest's file rules to a directory listing.

    Args:
        rules: validated [files] rules
        paths: template-relative paths (any separator)
        contents: optional path → bytes, enables content sniffing
        config: engine config (manifest filename, binary denylist)

    Returns:
        FileSelection(included sorted by path, excluded, rejected)

    Raises:
        FileFilterError: INVALID_GLOB (only for rules that skipped manifest validation)
    """
    config = config or EngineConfig()
    include = GlobSet(rules.include)
    exclude = GlobSet(rules.exclude)
    contents = contents or {}

    selection = FileSelection()
    seen: set[str] = set()

    for raw in paths:
        try:
            path = normalize_path(raw)
        except FileFilterError as e:
            logger.warning("Rejected template path %r: %s", raw, e.message)
            selection.rejected.append(e)
            continue
        if path in seen:
            continue
        seen.add(path)

        if (
            is_implicitly_excluded(path, config)
            or exclude.matches(path)
            or (include and not include.matches(path))
        ):
            selection.excluded.append(path)
            continue

        content = contents.get(raw, contents.get(path))
        selection.included.append(FileEntry(path=path, is_binary=is_binary(path, content, config)))

    selection.included.sort(key=lambda entry: entry.path)
    selection.excluded.sort()
    logger.debug(
        "File filter: %d included, %d excluded, %d rejected",
        len(selection.included), len(selection.excluded), len(selection.rejected),
    )
    return selection
