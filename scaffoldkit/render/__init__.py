"""Restricted template language on python-liquid: environment, filters and renderer."""

from .engine import RenderOutput, TemplateRenderer
from .environment import ScaffoldEnvironment
from .filters import FILTERS

__all__ = [
    "TemplateRenderer",
    "RenderOutput",
    "ScaffoldEnvironment",
    "FILTERS",
]
