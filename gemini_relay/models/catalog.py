"""In-memory registry of model families and versions."""

from __future__ import annotations

import logging
import threading
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Callable, List, Optional, Union

from ..retry import RetryPolicy, execute_with_retry
from .discovery import merge_models
from .fallback import fallback_models
from .types import ModelFamily, ModelVersion, TaskKind

if TYPE_CHECKING:
    from ..providers.base import GeminiBackend

logger = logging.getLogger(__name__)

_PREVIEW_MARKERS = ("preview", "exp")


class ModelCatalog:
    """
    Registry of model families, refreshed at most once per process start.

    One instance is created by the service and passed to every component that
    resolves model ids. Until ``refresh`` succeeds the curated fallback list is
    served, so model resolution works without network access.
    """

    def __init__(
        self,
        families: Optional[List[ModelFamily]] = None,
        fallback: Callable[[], List[ModelFamily]] = fallback_models,
    ) -> None:
        self._lock = threading.Lock()
        self._families: Optional[List[ModelFamily]] = [f.copy() for f in families] if families else None
        self._fallback = fallback
        self.refreshed_at: Optional[datetime] = None

    def _snapshot(self) -> List[ModelFamily]:
        # The registry list is replaced wholesale, never mutated in place
        with self._lock:
            families = self._families
        return families if families else self._fallback()

    def list_available(self) -> List[ModelFamily]:
        return [family.copy() for family in self._snapshot()]

    def resolve_family_or_version(self, model_id: str) -> Optional[ModelFamily]:
        """Return the owning family for a family id or a nested version id.

        When a version id is given, the returned family carries that version
        as ``resolved_version``.
        """
        for family in self._snapshot():
            if family.family_id == model_id:
                return family.copy()
            version = family.find_version(model_id)
            if version is not None:
                resolved = family.copy()
                resolved.resolved_version = resolved.find_version(model_id)
                return resolved
        return None

    def get_version(self, model_id: str) -> Optional[ModelVersion]:
        for family in self._snapshot():
            version = family.find_version(model_id)
            if version is not None:
                return ModelVersion(**vars(version))
        return None

    def resolve_to_callable_version(self, model_id: str) -> str:
        """
        Convert a family id or version id to an API-usable version id.

        Version ids come back unchanged. Family ids resolve to the preferred
        version, else the first version, else the family id itself (which only
        works where the backend accepts bare family ids). Unknown ids come back
        unchanged.
        """
        if self.get_version(model_id) is not None:
            return model_id
        family = self.resolve_family_or_version(model_id)
        if family is None:
            return model_id
        return family.default_version_id()

    def resolve_caching_model(self, model_id: str) -> str:
        """Pick the model a cache should be bound to.

        For a family id this prefers a caching-capable version (the preferred
        one first) and degrades to the family id when none exists.
        """
        if self.get_version(model_id) is not None:
            return model_id
        family = self.resolve_family_or_version(model_id)
        if family is None:
            return model_id

        for version in family.versions:
            if version.is_preferred and version.supports_caching:
                return version.id
        version = family.first_caching_version()
        if version is not None:
            return version.id

        logger.warning("Model family %s has no version with caching support; using the family id", model_id)
        return model_id

    def validate(self, model_id: str) -> Optional[str]:
        """Return ``None`` when the id is acceptable, else a warning message.

        Unknown ids that look like preview or experimental builds are accepted
        silently. A warning does not block use of the model.
        """
        if self.resolve_family_or_version(model_id) is not None:
            return None
        if any(marker in model_id for marker in _PREVIEW_MARKERS) or model_id.endswith("-dev"):
            return None

        lines = [f"Unknown model ID: {model_id}. Known models are:"]
        for family in self._snapshot():
            lines.append(f"- {family.family_id}: {family.name}")
            for version in family.versions:
                lines.append(f"  - {version.id}: {version.name}")
        lines.append("")
        lines.append("However, we will attempt to use this model anyway. It may be a new or preview model.")
        return "\n".join(lines)

    def select_preferred_for(self, task: Union[TaskKind, str]) -> Optional[ModelFamily]:
        """First family flagged as preferred for ``task``.

        For caching, ``resolved_version`` is the first caching-capable version
        of that family, or ``None`` when it has none.
        """
        task = TaskKind(task)
        for family in self._snapshot():
            if not family.preferred_for(task):
                continue
            selected = family.copy()
            if task is TaskKind.CACHING:
                selected.resolved_version = selected.first_caching_version()
            return selected
        return None

    def preferred_version_for(self, task: Union[TaskKind, str]) -> Optional[str]:
        family = self.select_preferred_for(task)
        if family is None:
            return None
        if family.resolved_version is not None:
            return family.resolved_version.id
        return family.default_version_id()

    async def refresh(self, backend: "GeminiBackend", policy: Optional[RetryPolicy] = None) -> bool:
        """
        Fetch the remote model list and merge it with the curated list.

        Best effort: on failure the current registry stays in effect.

        Returns:
            True if the registry was rebuilt from remote data
        """
        logger.info("Fetching available Gemini models from API...")
        try:
            remote = await execute_with_retry(
                backend.list_models,
                policy or RetryPolicy(),
                op_name="models.list",
            )
        except Exception as e:
            logger.warning("Failed to fetch models, keeping current model list: %s", e)
            return False

        names = [m.name for m in remote if "gemini" in m.name.lower()]
        if not names:
            logger.warning("No Gemini models found via API (from %d total models), using fallback models", len(remote))
            return False

        merged = merge_models(names, self._fallback())
        with self._lock:
            self._families = merged
            self.refreshed_at = datetime.now(timezone.utc)

        logger.info("Fetched and merged %d Gemini model families", len(merged))
        for family in merged:
            logger.debug("Model family %s (%s): %s", family.family_id, family.name, [v.id for v in family.versions])
        return True
