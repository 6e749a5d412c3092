"""Template manifests, parameters and file rules."""

from .file_filter import is_binary, normalize_path, select_files
from .globs import GlobSet, compile_glob
from .manifest import check_compatibility, collect_manifest_issues, parse_manifest
from .parameters import BuildContext, describe_parameters, resolve_parameters

__all__ = [
    "parse_manifest",
    "collect_manifest_issues",
    "check_compatibility",
    "BuildContext",
    "resolve_parameters",
    "describe_parameters",
    "GlobSet",
    "compile_glob",
    "normalize_path",
    "is_binary",
    "select_files",
]
