"""Hand-curated model list used before (or instead of) a remote refresh."""

from __future__ import annotations

from typing import List

from .types import ModelFamily, ModelVersion


def fallback_models() -> List[ModelFamily]:
    """Return fresh copies of the curated Gemini 2.5 families."""
    return [
        ModelFamily(
            family_id="gemini-2.5-pro",
            name="Gemini 2.5 Pro",
            description="Pro model with advanced reasoning capabilities and thinking mode support",
            context_window_size=1048576,
            supports_thinking=True,
            preferred_for_thinking=True,
            preferred_for_caching=True,
            preferred_for_search=False,
            versions=[
                ModelVersion(
                    id="gemini-2.5-pro-preview-06-05",
                    name="Gemini 2.5 Pro Preview 06 05",
                    supports_caching=True,
                    is_preferred=True,
                ),
                ModelVersion(
                    id="gemini-2.5-pro-exp-03-25",
                    name="Gemini 2.5 Pro Exp 03 25",
                    supports_caching=True,
                ),
            ],
        ),
        ModelFamily(
            family_id="gemini-2.5-flash",
            name="Gemini 2.5 Flash",
            description="Flash model optimized for efficiency and speed with thinking mode support",
            context_window_size=32768,
            supports_thinking=True,
            preferred_for_thinking=True,
            preferred_for_caching=True,
            preferred_for_search=False,
            versions=[
                ModelVersion(
                    id="gemini-2.5-flash-preview-05-20",
                    name="Gemini 2.5 Flash Preview 05 20",
                    supports_caching=True,
                    is_preferred=True,
                ),
                ModelVersion(
                    id="gemini-2.5-flash-preview-04-17",
                    name="Gemini 2.5 Flash Preview 04 17",
                    supports_caching=True,
                ),
            ],
        ),
        ModelFamily(
            family_id="gemini-2.5-flash-lite",
            name="Gemini 2.5 Flash Lite",
            description="Flash lite model optimized for low-cost, low-latency with optional thinking mode",
            context_window_size=32768,
            supports_thinking=True,
            preferred_for_thinking=True,
            # Flash Lite has no caching support yet
            preferred_for_caching=False,
            preferred_for_search=True,
            versions=[
                ModelVersion(
                    id="gemini-2.5-flash-lite-preview-06-17",
                    name="Gemini 2.5 Flash Lite Preview 06 17",
                    supports_caching=False,
                    is_preferred=True,
                ),
            ],
        ),
    ]
