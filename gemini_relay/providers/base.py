"""Backend protocol definition."""

from __future__ import annotations

from datetime import timedelta
from typing import List, Optional, Protocol

from .types import FileReference, RemoteCache, RemoteFile, RemoteModel


class GeminiBackend(Protocol):
    """Protocol for the remote generative-AI backend.

    Implementations raise ``ResourceNotFoundError`` when a named resource does
    not exist and let every other failure propagate unchanged so the retry
    layer can classify it.
    """

    async def upload_file(self, content: bytes, mime_type: str, display_name: str) -> RemoteFile: ...

    async def get_file(self, name: str) -> RemoteFile: ...

    async def delete_file(self, name: str) -> None: ...

    async def list_files(self) -> List[RemoteFile]: ...

    async def create_cache(
        self,
        model: str,
        ttl: timedelta,
        files: List[FileReference],
        text: str = "",
        system_prompt: str = "",
        display_name: str = "",
    ) -> RemoteCache: ...

    async def get_cache(self, name: str) -> RemoteCache: ...

    async def delete_cache(self, name: str) -> None: ...

    async def list_caches(self) -> List[RemoteCache]: ...

    async def list_models(self) -> List[RemoteModel]: ...

    async def generate_content(
        self,
        model: str,
        query: str,
        cached_content: Optional[str] = None,
        system_prompt: str = "",
        temperature: Optional[float] = None,
        files: Optional[List[FileReference]] = None,
        inline_texts: Optional[List[str]] = None,
    ) -> str: ...
