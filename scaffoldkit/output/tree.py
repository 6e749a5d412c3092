"""
Template tree loading: extracted directory → {relative_path: bytes}.

Rules:
- Paths are template-relative and "/"-separated
- VCS metadata directories are skipped entirely
- Symlinks are never followed (a template cannot point outside its root)
"""

import logging
import os
from pathlib import Path

from scaffoldkit.domain.constants import VCS_DIRECTORIES
from scaffoldkit.domain.errors import ErrorCodes, OutputError

logger = logging.getLogger(__name__)


def load_template_tree(root: Path) -> dict[str, bytes]:
    """
    Read every regular file below `root`.

    Args:
        root: extracted template directory

    Returns:
        relative path → content, sorted by path

    Raises:
        OutputError: TEMPLATE_TREE_MISSING
    """
    if not root.is_dir():
        raise OutputError(
            ErrorCodes.TEMPLATE_TREE_MISSING,
            f"template directory not found: {root}",
            suggestion="Point to the directory that contains template.toml",
            path=str(root),
        )

    files: dict[str, bytes] = {}
    for dirpath, dirnames, filenames in os.walk(root, followlinks=False):
        # prune in place so os.walk never descends into them
        dirnames[:] = sorted(d for d in dirnames if d not in VCS_DIRECTORIES)
        current = Path(dirpath)
        for filename in sorted(filenames):
            path = current / filename
            if path.is_symlink():
                logger.warning("Skipping symlink in template tree: %s", path)
                continue
            relative = path.relative_to(root).as_posix()
            files[relative] = path.read_bytes()

    logger.debug("Loaded %d file(s) from %s", len(files), root)
    return dict(sorted(files.items()))
