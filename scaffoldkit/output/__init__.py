"""
Output layer: thin disk I/O around the in-memory core.

- tree.py: extracted template directory → file map
- writer.py: rendered files → new project directory
"""

from .tree import load_template_tree
from .writer import write_project

__all__ = [
    "load_template_tree",
    "write_project",
]
