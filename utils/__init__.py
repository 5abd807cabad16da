# utils/__init__.py
"""General utility functions for the FORGE system."""

from __future__ import annotations

from .artifact_names import resolve_artifact_name, resolve_artifact_names
from .logging import setup_logging_forge

__all__ = [
    "resolve_artifact_name",
    "resolve_artifact_names",
    "setup_logging_forge",
]
