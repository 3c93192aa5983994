"""Backend factory."""

from __future__ import annotations

from .base import GeminiBackend
from .gemini import GenAIBackend
from .types import FileReference, RemoteCache, RemoteFile, RemoteModel


def create_backend(api_key: str, http_timeout: float = 90.0) -> GeminiBackend:
    if not api_key:
        raise ValueError("GEMINI_API_KEY not set. Please set the env var or add api_key to config/config.local.yaml")
    return GenAIBackend(api_key=api_key, http_timeout=http_timeout)


__all__ = [
    "FileReference",
    "GeminiBackend",
    "GenAIBackend",
    "RemoteCache",
    "RemoteFile",
    "RemoteModel",
    "create_backend",
]
