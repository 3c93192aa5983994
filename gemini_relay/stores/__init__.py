"""Local mirrors of remote files and cached contexts."""

from __future__ import annotations

from .caches import CacheInfo, CacheRequest, CacheStore
from .files import FileInfo, FileStore, FileUploadRequest

__all__ = [
    "CacheInfo",
    "CacheRequest",
    "CacheStore",
    "FileInfo",
    "FileStore",
    "FileUploadRequest",
]
