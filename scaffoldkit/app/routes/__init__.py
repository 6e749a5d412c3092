"""
FastAPI Routes.

API routes only; the service never writes to disk.
"""

from . import templates

__all__ = ["templates"]
