"""
Project writer: rendered files → new directory on disk.

Rules:
- Never overwrite: an existing destination is refused
- Every path is re-checked before anything is created
- Each file is written atomically
- Concurrent writers to the same destination are serialised with a file lock
- On failure the partially written destination is removed
"""

import hashlib
import logging
import shutil
import tempfile
from collections.abc import Iterable
from pathlib import Path

from filelock import FileLock, Timeout

from scaffoldkit.core.fsio import atomic_write_bytes
from scaffoldkit.domain.errors import ErrorCodes, FileFilterError, OutputError
from scaffoldkit.domain.schemas import RenderedFile
from scaffoldkit.templates.file_filter import normalize_path

logger = logging.getLogger(__name__)

# Lock timeout (seconds)
LOCK_TIMEOUT = 10.0


def _lock_path(dest: Path, lock_dir: Path | None) -> Path:
    lock_dir = lock_dir or Path(tempfile.gettempdir())
    key = hashlib.sha256(str(dest.resolve()).encode()).hexdigest()[:16]
    return lock_dir / f"scaffoldkit-{key}.lock"


def _checked_targets(dest: Path, files: Iterable[RenderedFile]) -> list[tuple[Path, RenderedFile]]:
    root = dest.resolve()
    targets = []
    for rendered in files:
        try:
            relative = normalize_path(rendered.path)
        except FileFilterError as e:
            raise OutputError(
                ErrorCodes.UNSAFE_PATH,
                f"refusing to write '{rendered.path}': {e.message}",
                suggestion="Rendered paths must stay inside the destination",
                path=rendered.path,
            ) from e
        target = root / relative
        if not target.resolve().is_relative_to(root):
            raise OutputError(
                ErrorCodes.UNSAFE_PATH,
                f"refusing to write '{rendered.path}' outside the destination",
                suggestion="Rendered paths must stay inside the destination",
                path=rendered.path,
            )
        targets.append((target, rendered))
    return targets


def write_project(
    dest: Path,
    files: Iterable[RenderedFile],
    lock_dir: Path | None = None,
) -> list[Path]:
    """
    Write rendered files into a new directory.

    Args:
        dest: project directory to create (must not exist)
        files: pipeline output
        lock_dir: where to keep the lock file (default: system temp dir)

    Returns:
        written file paths, in input order

    Raises:
        OutputError: DESTINATION_EXISTS, UNSAFE_PATH, OUTPUT_LOCK_TIMEOUT
    """
    lock = FileLock(_lock_path(dest, lock_dir), timeout=LOCK_TIMEOUT)
    try:
        lock.acquire()
    except Timeout as e:
        raise OutputError(
            ErrorCodes.OUTPUT_LOCK_TIMEOUT,
            f"another process is writing to {dest}",
            suggestion="Wait for the other run to finish and try again",
            path=str(dest),
            timeout=LOCK_TIMEOUT,
        ) from e

    try:
        if dest.exists():
            raise OutputError(
                ErrorCodes.DESTINATION_EXISTS,
                f"directory '{dest}' already exists",
                suggestion="Choose a different project name or remove the existing directory",
                path=str(dest),
            )

        targets = _checked_targets(dest, files)
        dest.mkdir(parents=True)
        written: list[Path] = []
        try:
            for target, rendered in targets:
                atomic_write_bytes(target, rendered.content)
                written.append(target)
        except Exception:
            shutil.rmtree(dest, ignore_errors=True)
            raise

        logger.info("Wrote %d file(s) to %s", len(written), dest)
        return written
    finally:
        lock.release()
