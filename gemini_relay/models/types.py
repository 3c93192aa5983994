"""Model family and version records."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import List, Optional


class TaskKind(Enum):
    THINKING = "thinking"
    CACHING = "caching"
    SEARCH = "search"


@dataclass
class ModelVersion:
    """A concrete, API-callable model id."""

    id: str
    name: str
    supports_caching: bool = False
    is_preferred: bool = False


@dataclass
class ModelFamily:
    """A logical model line holding an ordered list of versions.

    ``resolved_version`` is set only on lookups made through a version id;
    version-level attributes such as caching support are then read from it.
    """

    family_id: str
    name: str
    description: str = ""
    context_window_size: int = 32768
    supports_thinking: bool = False
    preferred_for_thinking: bool = False
    preferred_for_caching: bool = False
    preferred_for_search: bool = False
    versions: List[ModelVersion] = field(default_factory=list)
    resolved_version: Optional[ModelVersion] = None

    @property
    def supports_caching(self) -> bool:
        if self.resolved_version is not None:
            return self.resolved_version.supports_caching
        return any(v.supports_caching for v in self.versions)

    def preferred_for(self, task: TaskKind) -> bool:
        if task is TaskKind.THINKING:
            return self.preferred_for_thinking
        if task is TaskKind.CACHING:
            return self.preferred_for_caching
        return self.preferred_for_search

    def find_version(self, version_id: str) -> Optional[ModelVersion]:
        for version in self.versions:
            if version.id == version_id:
                return version
        return None

    def default_version_id(self) -> str:
        """Preferred version, else first version, else the family id itself."""
        for version in self.versions:
            if version.is_preferred:
                return version.id
        if self.versions:
            return self.versions[0].id
        return self.family_id

    def first_caching_version(self) -> Optional[ModelVersion]:
        for version in self.versions:
            if version.supports_caching:
                return version
        return None

    def copy(self) -> "ModelFamily":
        return replace(
            self,
            versions=[replace(v) for v in self.versions],
            resolved_version=replace(self.resolved_version) if self.resolved_version else None,
        )
