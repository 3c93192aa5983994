"""Model registry: families, versions and preference rules."""

from __future__ import annotations

from .catalog import ModelCatalog
from .discovery import merge_models
from .fallback import fallback_models
from .types import ModelFamily, ModelVersion, TaskKind

__all__ = [
    "ModelCatalog",
    "ModelFamily",
    "ModelVersion",
    "TaskKind",
    "fallback_models",
    "merge_models",
]
