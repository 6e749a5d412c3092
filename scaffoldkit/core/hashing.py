"""
Hashing: parameters_hash, output_hash

Rules:
- parameters_hash: instantiation identity (date/timestamp excluded, so two runs
  with the same inputs on different days hash equal)
- output_hash: change detection over every rendered file (path + content)
- Sorted keys / sorted paths
- SHA-256
"""

import hashlib
import json
from collections.abc import Iterable, Mapping
from typing import Any

from scaffoldkit.domain.constants import COMPUTED_BUILTINS
from scaffoldkit.domain.schemas import RenderedFile


def compute_parameters_hash(
    parameters: Mapping[str, Any],
    exclude: Iterable[str] = COMPUTED_BUILTINS,
) -> str:
    """
    Hash of the resolved parameter values.

    Args:
        parameters: resolved name → value
        exclude: names left out (default: clock-derived built-ins)

    Returns:
        SHA-256 hex digest
    """
    excluded = set(exclude)
    filtered = {k: v for k, v in parameters.items() if k not in excluded}
    serialized = json.dumps(filtered, sort_keys=True, ensure_ascii=False)
    return hashlib.sha256(serialized.encode()).hexdigest()


def compute_content_hash(content: bytes) -> str:
    """SHA-256 of raw bytes."""
    return hashlib.sha256(content).hexdigest()


def compute_output_hash(files: Iterable[RenderedFile]) -> str:
    """
    Hash of a rendered tree.

    Each entry contributes "path\\0content_sha256\\n"; entries are sorted by path.

    Args:
        files: rendered files

    Returns:
        SHA-256 hex digest
    """
    h = hashlib.sha256()
    for rendered in sorted(files, key=lambda f: f.path):
        h.update(rendered.path.encode("utf-8"))
        h.update(b"\0")
        h.update(compute_content_hash(rendered.content).encode())
        h.update(b"\n")
    return h.hexdigest()
