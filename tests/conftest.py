"""Global pytest fixtures for deterministic test environment."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional

import pytest

from gemini_relay.config import RelayConfig
from gemini_relay.errors import ResourceNotFoundError
from gemini_relay.providers.types import FileReference, RemoteCache, RemoteFile, RemoteModel

CREATED = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture(autouse=True)
def _isolate_runtime_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Clear local runtime env that can leak into tests on developer machines."""
    for key in (
        "GEMINI_API_KEY",
        "GEMINI_MODEL",
        "GEMINI_SYSTEM_PROMPT",
        "GEMINI_TEMPERATURE",
        "GEMINI_TIMEOUT",
        "GEMINI_MAX_RETRIES",
        "GEMINI_INITIAL_BACKOFF",
        "GEMINI_MAX_BACKOFF",
        "GEMINI_MAX_FILE_SIZE",
        "GEMINI_ALLOWED_FILE_TYPES",
        "GEMINI_ENABLE_CACHING",
        "GEMINI_DEFAULT_CACHE_TTL",
    ):
        monkeypatch.delenv(key, raising=False)


class FakeBackend:
    """In-memory stand-in for the Gemini API.

    ``fail`` maps a method name to a list of exceptions raised by successive
    calls before the real behaviour resumes.
    """

    def __init__(self) -> None:
        self.files: Dict[str, RemoteFile] = {}
        self.caches: Dict[str, RemoteCache] = {}
        self.models: List[RemoteModel] = []
        self.calls: List[tuple] = []
        self.fail: Dict[str, List[BaseException]] = {}
        self.cache_requests: List[dict] = []
        self.generate_requests: List[dict] = []
        self.answer = "fake answer"
        self._counter = 0

    def _maybe_fail(self, method: str) -> None:
        pending = self.fail.get(method)
        if pending:
            raise pending.pop(0)

    def _next_id(self) -> str:
        self._counter += 1
        return f"id{self._counter}"

    def count(self, method: str) -> int:
        return sum(1 for call in self.calls if call[0] == method)

    async def upload_file(self, content: bytes, mime_type: str, display_name: str) -> RemoteFile:
        self.calls.append(("upload_file", display_name))
        self._maybe_fail("upload_file")
        name = f"files/{self._next_id()}"
        remote = RemoteFile(
            name=name,
            uri=f"https://generativelanguage.googleapis.com/v1beta/{name}",
            display_name=display_name,
            mime_type=mime_type,
            size_bytes=len(content),
            create_time=CREATED,
            expiration_time=CREATED + timedelta(hours=48),
        )
        self.files[name] = remote
        return remote

    async def get_file(self, name: str) -> RemoteFile:
        self.calls.append(("get_file", name))
        self._maybe_fail("get_file")
        if name not in self.files:
            raise ResourceNotFoundError(name)
        return self.files[name]

    async def delete_file(self, name: str) -> None:
        self.calls.append(("delete_file", name))
        self._maybe_fail("delete_file")
        if name not in self.files:
            raise ResourceNotFoundError(name)
        del self.files[name]

    async def list_files(self) -> List[RemoteFile]:
        self.calls.append(("list_files",))
        self._maybe_fail("list_files")
        return list(self.files.values())

    async def create_cache(
        self,
        model: str,
        ttl: timedelta,
        files: List[FileReference],
        text: str = "",
        system_prompt: str = "",
        display_name: str = "",
    ) -> RemoteCache:
        self.calls.append(("create_cache", model))
        self.cache_requests.append(
            {"model": model, "ttl": ttl, "files": files, "text": text, "system_prompt": system_prompt}
        )
        self._maybe_fail("create_cache")
        name = f"cachedContents/{self._next_id()}"
        remote = RemoteCache(
            name=name,
            display_name=display_name,
            model=f"models/{model}",
            create_time=CREATED,
            expire_time=CREATED + ttl,
        )
        self.caches[name] = remote
        return remote

    async def get_cache(self, name: str) -> RemoteCache:
        self.calls.append(("get_cache", name))
        self._maybe_fail("get_cache")
        if name not in self.caches:
            raise ResourceNotFoundError(name)
        return self.caches[name]

    async def delete_cache(self, name: str) -> None:
        self.calls.append(("delete_cache", name))
        self._maybe_fail("delete_cache")
        if name not in self.caches:
            raise ResourceNotFoundError(name)
        del self.caches[name]

    async def list_caches(self) -> List[RemoteCache]:
        self.calls.append(("list_caches",))
        self._maybe_fail("list_caches")
        return list(self.caches.values())

    async def list_models(self) -> List[RemoteModel]:
        self.calls.append(("list_models",))
        self._maybe_fail("list_models")
        return list(self.models)

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
        self.calls.append(("generate_content", model))
        self.generate_requests.append(
            {
                "model": model,
                "query": query,
                "cached_content": cached_content,
                "system_prompt": system_prompt,
                "files": list(files or []),
                "inline_texts": list(inline_texts or []),
            }
        )
        self._maybe_fail("generate_content")
        return self.answer


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def relay_config() -> RelayConfig:
    # Tiny backoff so retry paths finish quickly
    return RelayConfig(api_key="test-key", initial_backoff=0.001, max_backoff=0.002)
