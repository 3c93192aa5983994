"""Merge remotely listed model ids with the curated model list.

The backend lists flat model ids; this module groups them into families,
infers capabilities from naming conventions, and overlays the curated
descriptions and preferences so they survive a refresh.
"""

from __future__ import annotations

import logging
import re
from typing import Dict, Iterable, List

from .types import ModelFamily, ModelVersion

logger = logging.getLogger(__name__)

PRO_CONTEXT_WINDOW = 1048576
DEFAULT_CONTEXT_WINDOW = 32768

_SKIPPED_MARKERS = ("embedding", "vision", "visual", "image")
_SPECIALIZED_MARKERS = ("audio", "dialog", "tts", "vision", "visual", "image")

PREFERRED_VERSIONS = frozenset(
    {
        "gemini-2.5-pro-preview-06-05",
        "gemini-2.5-flash-preview-05-20",
        "gemini-2.0-flash-001",
        "gemini-2.0-flash-lite-001",
        "gemini-2.0-pro-exp-02-05",
        "gemini-2.0-flash-thinking-exp-01-21",
        "gemini-2.0-flash-thinking-exp-1219",
        "gemini-2.0-flash-thinking-exp",
        "gemini-2.0-flash-live-001",
        "gemini-2.0-flash-exp",
        "gemini-2.0-flash-lite-preview",
        "gemini-1.5-flash-8b-001",
        "gemini-exp-1206",
    }
)

_VERSION_SUFFIX = re.compile(r"-(?:preview|exp|stable)(?:-.*)?$")
_NUMBERED_SUFFIX = re.compile(r"-\d{3}$")


def strip_model_prefix(name: str) -> str:
    return name[len("models/"):] if name.startswith("models/") else name


def is_version_id(model_id: str) -> bool:
    return (
        model_id.endswith("-001")
        or "preview" in model_id
        or "exp" in model_id
        or "stable" in model_id
    )


def base_family_id(model_id: str) -> str:
    """Strip the version suffix: ``gemini-2.5-pro-preview-06-05`` -> ``gemini-2.5-pro``."""
    base = _VERSION_SUFFIX.sub("", model_id)
    base = _NUMBERED_SUFFIX.sub("", base)
    if not base or base == "gemini":
        return model_id
    return base


def display_name(model_id: str) -> str:
    words = model_id[len("gemini-"):] if model_id.startswith("gemini-") else model_id
    return "Gemini " + words.replace("-", " ").title()


def _describe(model_id: str) -> tuple:
    """Return (description, supports_thinking, context_window) from naming conventions."""
    lowered = model_id.lower()
    description = "Google Gemini model"
    supports_thinking = False
    context_window = DEFAULT_CONTEXT_WINDOW
    experimental = "preview" in lowered or "exp" in lowered

    if "pro" in lowered:
        description = "Pro model with strong reasoning capabilities and long context support"
        # Only 2.5 Pro preview/experimental builds reliably accept thinking config
        supports_thinking = "2.5-pro" in lowered and experimental
        context_window = PRO_CONTEXT_WINDOW
    elif "flash" in lowered:
        description = "Flash model optimized for efficiency and speed"

    if experimental:
        if "Pro" in description or "Flash" in description:
            description = "Preview/Experimental " + description
        else:
            description = "Preview/Experimental Gemini model"

    return description, supports_thinking, context_window


def _is_preferred(model_id: str) -> bool:
    if model_id in PREFERRED_VERSIONS:
        return True
    lowered = model_id.lower()
    if "exp" in model_id and "preview" not in lowered:
        return not any(marker in lowered for marker in _SPECIALIZED_MARKERS)
    return False


def group_models(model_names: Iterable[str]) -> Dict[str, ModelFamily]:
    """Group remote model names into families, keyed by family id, in listing order."""
    families: Dict[str, ModelFamily] = {}

    for raw_name in model_names:
        if "gemini" not in raw_name.lower():
            continue
        model_id = strip_model_prefix(raw_name)
        lowered = model_id.lower()
        if any(marker in lowered for marker in _SKIPPED_MARKERS):
            logger.debug("Skipping embedding/visual model: %s", model_id)
            continue

        description, supports_thinking, context_window = _describe(model_id)
        supports_caching = model_id.endswith("-001") or "stable" in model_id

        if not is_version_id(model_id):
            if model_id not in families:
                families[model_id] = ModelFamily(
                    family_id=model_id,
                    name=display_name(model_id),
                    description=description,
                    context_window_size=context_window,
                    supports_thinking=supports_thinking,
                )
            continue

        name = display_name(model_id)
        if supports_caching:
            name += " (Stable)"
        version = ModelVersion(
            id=model_id,
            name=name,
            supports_caching=supports_caching,
            is_preferred=_is_preferred(model_id),
        )

        family_id = base_family_id(model_id)
        family = families.get(family_id)
        if family is None:
            families[family_id] = ModelFamily(
                family_id=family_id,
                name=display_name(family_id),
                description=description,
                context_window_size=context_window,
                supports_thinking=supports_thinking,
                versions=[version],
            )
        elif family.find_version(model_id) is None:
            family.versions.append(version)

    return families


def _overlay_curated(family: ModelFamily, curated: ModelFamily) -> None:
    family.description = curated.description
    family.supports_thinking = curated.supports_thinking
    family.context_window_size = curated.context_window_size
    family.preferred_for_thinking = curated.preferred_for_thinking
    family.preferred_for_caching = curated.preferred_for_caching
    family.preferred_for_search = curated.preferred_for_search

    for curated_version in curated.versions:
        existing = family.find_version(curated_version.id)
        if existing is None:
            family.versions.append(ModelVersion(**vars(curated_version)))
            logger.debug("Added curated version %s to family %s", curated_version.id, family.family_id)
            continue
        existing.is_preferred = curated_version.is_preferred
        # Naming heuristics only detect stable builds; curated flags know better
        existing.supports_caching = existing.supports_caching or curated_version.supports_caching

    curated_preferred = {v.id for v in curated.versions if v.is_preferred}
    if curated_preferred:
        for version in family.versions:
            if version.id not in curated_preferred:
                version.is_preferred = False


def _apply_heuristic_preferences(family: ModelFamily) -> None:
    lowered = family.family_id.lower()
    if "2.5-pro" in lowered:
        family.preferred_for_thinking = True
    elif "2.0-flash" in lowered:
        family.preferred_for_caching = True
    elif "2.5-flash" in lowered:
        family.preferred_for_search = True


def _ensure_preferred_version(family: ModelFamily) -> None:
    if family.versions and not any(v.is_preferred for v in family.versions):
        family.versions[0].is_preferred = True
        logger.debug("Marking version %s as preferred for family %s", family.versions[0].id, family.family_id)


def merge_models(model_names: Iterable[str], curated: List[ModelFamily]) -> List[ModelFamily]:
    """
    Build the registry from remote model names and the curated list.

    Curated families come first in curated order (whether or not the API listed
    them), followed by newly discovered families in listing order.

    Args:
        model_names: Remote model names, with or without the ``models/`` prefix
        curated: Curated families (not mutated)

    Returns:
        Merged list of model families
    """
    discovered = group_models(model_names)
    merged: List[ModelFamily] = []

    for curated_family in curated:
        family = discovered.pop(curated_family.family_id, None)
        if family is None:
            logger.debug("Adding curated family not listed by the API: %s", curated_family.family_id)
            family = curated_family.copy()
        else:
            _overlay_curated(family, curated_family)
        _ensure_preferred_version(family)
        merged.append(family)

    for family in discovered.values():
        _apply_heuristic_preferences(family)
        _ensure_preferred_version(family)
        merged.append(family)

    return merged
