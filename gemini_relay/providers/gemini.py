"""Gemini backend implementation."""

from __future__ import annotations

import io
from datetime import timedelta
from typing import Any, Awaitable, List, Optional, TypeVar

from google import genai
from google.genai import errors as genai_errors
from google.genai import types

from ..errors import ResourceNotFoundError
from .types import FileReference, RemoteCache, RemoteFile, RemoteModel

T = TypeVar("T")


class GenAIBackend:
    """Google Gemini backend using the async surface of the google-genai SDK.

    Calls go through ``client.aio`` so that cancelling the awaiting task also
    aborts the in-flight HTTP request.
    """

    def __init__(self, api_key: str, http_timeout: float = 90.0, client: Optional[genai.Client] = None) -> None:
        if client is None:
            client = genai.Client(
                api_key=api_key,
                http_options=types.HttpOptions(timeout=int(http_timeout * 1000)),
            )
        self.client = client

    @property
    def _aio(self):
        return self.client.aio

    # ------------------------------------------------------------------
    # Files
    # ------------------------------------------------------------------
    async def upload_file(self, content: bytes, mime_type: str, display_name: str) -> RemoteFile:
        file = await self._aio.files.upload(
            file=io.BytesIO(content),
            config=types.UploadFileConfig(mime_type=mime_type, display_name=display_name or None),
        )
        return self._to_remote_file(file)

    async def get_file(self, name: str) -> RemoteFile:
        file = await self._lookup(name, self._aio.files.get(name=name))
        return self._to_remote_file(file)

    async def delete_file(self, name: str) -> None:
        await self._lookup(name, self._aio.files.delete(name=name))

    async def list_files(self) -> List[RemoteFile]:
        pager = await self._aio.files.list()
        return [self._to_remote_file(f) async for f in pager]

    # ------------------------------------------------------------------
    # Cached contents
    # ------------------------------------------------------------------
    async def create_cache(
        self,
        model: str,
        ttl: timedelta,
        files: List[FileReference],
        text: str = "",
        system_prompt: str = "",
        display_name: str = "",
    ) -> RemoteCache:
        contents: List[types.Content] = []
        for ref in files:
            contents.append(
                types.Content(
                    role="user",
                    parts=[types.Part.from_uri(file_uri=ref.uri, mime_type=ref.mime_type or None)],
                )
            )
        if text:
            contents.append(types.Content(role="user", parts=[types.Part.from_text(text=text)]))

        ttl_seconds = max(1, int(ttl.total_seconds()))
        cached = await self._aio.caches.create(
            model=model,
            config=types.CreateCachedContentConfig(
                contents=contents or None,
                system_instruction=system_prompt or None,
                display_name=display_name or None,
                ttl=f"{ttl_seconds}s",
            ),
        )
        return self._to_remote_cache(cached)

    async def get_cache(self, name: str) -> RemoteCache:
        cached = await self._lookup(name, self._aio.caches.get(name=name))
        return self._to_remote_cache(cached)

    async def delete_cache(self, name: str) -> None:
        await self._lookup(name, self._aio.caches.delete(name=name))

    async def list_caches(self) -> List[RemoteCache]:
        pager = await self._aio.caches.list()
        return [self._to_remote_cache(c) async for c in pager]

    # ------------------------------------------------------------------
    # Models
    # ------------------------------------------------------------------
    async def list_models(self) -> List[RemoteModel]:
        pager = await self._aio.models.list()
        models: List[RemoteModel] = []
        async for model in pager:
            models.append(
                RemoteModel(
                    name=model.name or "",
                    display_name=model.display_name or "",
                    description=model.description or "",
                    input_token_limit=model.input_token_limit,
                )
            )
        return models

    async def generate_content(
        self,
        model: str,
        query: str,
        cached_content: Optional[str] = None,
        system_prompt: str = "",
        temperature: Optional[float] = None,
        files: Optional[List[FileReference]] = None,
        inline_texts: Optional[List[str]] = None,
    ) -> str:
        # The API rejects a system instruction alongside cached content
        config = types.GenerateContentConfig(
            cached_content=cached_content or None,
            system_instruction=None if cached_content else (system_prompt or None),
            temperature=temperature,
        )
        parts = [types.Part.from_uri(file_uri=ref.uri, mime_type=ref.mime_type or None) for ref in files or []]
        parts.extend(types.Part.from_text(text=text) for text in inline_texts or [])
        parts.append(types.Part.from_text(text=query))
        contents = [types.Content(role="user", parts=parts)]
        response = await self._aio.models.generate_content(model=model, contents=contents, config=config)
        return (response.text or "").strip()

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    async def _lookup(self, name: str, call: Awaitable[T]) -> T:
        try:
            return await call
        except genai_errors.ClientError as e:
            if e.code == 404:
                raise ResourceNotFoundError(name, f"{name} not found: {e.message or e}") from e
            raise

    @staticmethod
    def _to_remote_file(file: Any) -> RemoteFile:
        return RemoteFile(
            name=file.name or "",
            uri=file.uri or "",
            display_name=file.display_name or "",
            mime_type=file.mime_type or "",
            size_bytes=file.size_bytes,
            create_time=file.create_time,
            expiration_time=file.expiration_time,
        )

    @staticmethod
    def _to_remote_cache(cached: Any) -> RemoteCache:
        return RemoteCache(
            name=cached.name or "",
            display_name=cached.display_name or "",
            model=cached.model or "",
            create_time=cached.create_time,
            expire_time=cached.expire_time,
        )
