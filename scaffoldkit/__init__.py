"""
scaffoldkit: manifest validation and rendering engine for project templates.

Layers:
- domain/     errors, schemas, constants
- templates/  manifest, parameters, globs, file filter
- render/     restricted template language
- core/       run logs, ids, hashing, atomic writes
- output/     template tree loading, project writing
- app/        FastAPI preview/validation service
"""

__version__ = "0.1.0"

from .config import EngineConfig, load_config  # noqa: E402
from .pipeline import RenderPipeline  # noqa: E402
from .templates.parameters import BuildContext  # noqa: E402

__all__ = [
    "__version__",
    "EngineConfig",
    "load_config",
    "RenderPipeline",
    "BuildContext",
]
