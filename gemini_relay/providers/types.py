"""Backend-agnostic records for remote files, caches and models."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional


@dataclass
class RemoteFile:
    """An uploaded blob as reported by the backend."""

    name: str  # "files/abc123"
    uri: str = ""
    display_name: str = ""
    mime_type: str = ""
    size_bytes: Optional[int] = None
    create_time: Optional[datetime] = None
    expiration_time: Optional[datetime] = None


@dataclass
class RemoteCache:
    """A cached-context bundle as reported by the backend."""

    name: str  # "cachedContents/abc123"
    display_name: str = ""
    model: str = ""
    create_time: Optional[datetime] = None
    expire_time: Optional[datetime] = None


@dataclass
class RemoteModel:
    """A model listed by the backend."""

    name: str  # "models/gemini-2.5-pro"
    display_name: str = ""
    description: str = ""
    input_token_limit: Optional[int] = None


@dataclass
class FileReference:
    """A file embedded in a cache by URI."""

    uri: str
    mime_type: str = ""
