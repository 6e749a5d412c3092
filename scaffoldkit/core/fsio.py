"""
Atomic file writes.

Behaviour:
- No intermediate state: temp file in the same directory → rename
- Durability where the platform allows it: file fsync + directory fsync
- fsync failures are logged and the write continues
- On failure the temp file is removed and any existing file is left untouched
"""

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)


def _fsync_dir(dir_path: Path) -> None:
    """
    fsync a directory so a rename inside it survives power loss.

    Not supported on every OS/filesystem; failures only log a warning.
    """
    try:
        dir_fd = os.open(str(dir_path), os.O_RDONLY | os.O_DIRECTORY)
        try:
            os.fsync(dir_fd)
        finally:
            os.close(dir_fd)
    except (OSError, AttributeError) as e:
        # O_DIRECTORY missing (Windows), permission problems
        logger.warning(
            f"Directory fsync failed for {dir_path}: {e}. "
            f"Rename durability may not be guaranteed."
        )


def atomic_write_bytes(path: Path, content: bytes) -> None:
    """
    Write bytes atomically.

    Args:
        path: destination file
        content: file content
    """
    dir_path = path.parent
    dir_path.mkdir(parents=True, exist_ok=True)

    temp_path = None
    try:
        with tempfile.NamedTemporaryFile(
            mode="wb",
            dir=dir_path,
            prefix=f".{path.name}.",
            suffix=".tmp",
            delete=False,
        ) as f:
            temp_path = Path(f.name)
            f.write(content)
            f.flush()
            try:
                os.fsync(f.fileno())
            except OSError as e:
                logger.warning(
                    f"File fsync failed for {path}: {e}. "
                    f"Data may not be durable on power loss."
                )

        os.replace(temp_path, path)
        _fsync_dir(dir_path)

    except Exception:
        if temp_path and temp_path.exists():
            try:
                temp_path.unlink()
            except OSError as cleanup_error:
                logger.warning(f"Could not remove temp file {temp_path}: {cleanup_error}")
        raise


def atomic_write_json(path: Path, data: dict[str, Any]) -> None:
    """
    Write a JSON document atomically (UTF-8, indented, keys in insertion order).

    Args:
        path: destination file
        data: JSON-serialisable mapping
    """
    text = json.dumps(data, indent=2, ensure_ascii=False)
    atomic_write_bytes(path, text.encode("utf-8"))
