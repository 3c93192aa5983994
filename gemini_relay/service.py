"""Relay service wiring the backend, model catalog and resource stores."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from time import perf_counter
from typing import Any, Awaitable, Callable, List, Optional, TypeVar

from .config import RelayConfig
from .errors import CachingDisabledError, RelayError, ValidationError
from .models import ModelCatalog, ModelFamily
from .observability import ResourceObserver
from .providers import GeminiBackend, create_backend
from .providers.types import FileReference
from .retry import RetryPolicy
from .stores import CacheInfo, CacheRequest, CacheStore, FileInfo, FileStore, FileUploadRequest
from .stores.base import remote_call

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class AskResult:
    """Outcome of an ask-with-files request."""

    text: str
    model: str
    cache_id: Optional[str] = None
    file_ids: List[str] = field(default_factory=list)
    cache_error: Optional[str] = None
    # Files sent inline because their upload failed
    failed_uploads: List[str] = field(default_factory=list)


class GeminiRelay:
    """
    Operations exposed to the tool-handling layer.

    The catalog is created once here and shared with the cache store; callers
    that need a different registry (tests, multi-tenant setups) inject their own.
    """

    def __init__(
        self,
        config: RelayConfig,
        backend: GeminiBackend,
        catalog: Optional[ModelCatalog] = None,
        observer: Optional[ResourceObserver] = None,
    ) -> None:
        self.config = config
        self.backend = backend
        self.policy = RetryPolicy.from_config(config)
        self.catalog = catalog or ModelCatalog()
        self.observer = observer or ResourceObserver()
        self.files = FileStore(backend, config, self.policy)
        self.caches = CacheStore(backend, config, self.files, self.catalog, self.policy)

    @classmethod
    def from_config(cls, config: RelayConfig) -> "GeminiRelay":
        return cls(config, create_backend(config.api_key, config.http_timeout))

    async def start(self) -> bool:
        """Refresh the model catalog once. Failure keeps the fallback list."""
        return await self.refresh_models()

    async def refresh_models(self) -> bool:
        return await self._observe("models.refresh", lambda: self.catalog.refresh(self.backend, self.policy))

    async def _observe(self, operation: str, call: Callable[[], Awaitable[T]], resource_id: Optional[str] = None) -> T:
        start = perf_counter()
        try:
            result = await call()
        except Exception as e:
            self.observer.record(operation, (perf_counter() - start) * 1000, resource_id, error=e)
            raise
        self.observer.record(operation, (perf_counter() - start) * 1000, resource_id or getattr(result, "id", None))
        return result

    # ------------------------------------------------------------------
    # Models
    # ------------------------------------------------------------------
    def list_models(self) -> List[ModelFamily]:
        return self.catalog.list_available()

    def resolve_model(self, model_id: Optional[str] = None) -> str:
        """Resolve a family or version id (default: configured model) to a callable id."""
        model_id = model_id or self.config.model
        warning = self.catalog.validate(model_id)
        if warning:
            logger.warning("%s", warning)
        return self.catalog.resolve_to_callable_version(model_id)

    # ------------------------------------------------------------------
    # Files
    # ------------------------------------------------------------------
    async def upload_file(self, request: FileUploadRequest) -> FileInfo:
        return await self._observe("files.upload", lambda: self.files.upload(request))

    async def get_file(self, file_id: str) -> FileInfo:
        return await self._observe("files.get", lambda: self.files.get(file_id), file_id)

    async def delete_file(self, file_id: str) -> None:
        await self._observe("files.delete", lambda: self.files.delete(file_id), file_id)

    async def list_files(self) -> List[FileInfo]:
        return await self._observe("files.list", self.files.list)

    # ------------------------------------------------------------------
    # Caches
    # ------------------------------------------------------------------
    async def create_cache(self, request: CacheRequest) -> CacheInfo:
        return await self._observe("caches.create", lambda: self.caches.create(request))

    async def get_cache(self, cache_id: str) -> CacheInfo:
        return await self._observe("caches.get", lambda: self.caches.get(cache_id), cache_id)

    async def delete_cache(self, cache_id: str) -> None:
        await self._observe("caches.delete", lambda: self.caches.delete(cache_id), cache_id)

    async def list_caches(self) -> List[CacheInfo]:
        return await self._observe("caches.list", self.caches.list)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------
    async def query_with_cache(self, cache_id: str, query: str) -> str:
        """Answer ``query`` against a cached context, using the cache's bound model."""
        if not self.config.enable_caching:
            raise CachingDisabledError()
        if not cache_id:
            raise ValidationError("cache_id must be a non-empty string")
        if not query:
            raise ValidationError("query must be a non-empty string")

        async def run() -> str:
            info = await self.caches.get(cache_id)
            return await remote_call(
                "models.generate_content",
                lambda: self.backend.generate_content(
                    model=info.model,
                    query=query,
                    cached_content=info.name,
                    temperature=self.config.temperature,
                ),
                self.policy,
            )

        return await self._observe("query_with_cache", run, cache_id)

    def supports_caching(self, model_id: str) -> bool:
        """Whether the catalog knows ``model_id`` and it (or its family) can be cached."""
        family = self.catalog.resolve_family_or_version(model_id)
        return family is not None and family.supports_caching

    async def ask_with_files(
        self,
        query: str,
        uploads: List[FileUploadRequest],
        model: Optional[str] = None,
        use_cache: bool = False,
        cache_ttl: str = "",
        system_prompt: Optional[str] = None,
    ) -> AskResult:
        """
        Upload files and answer ``query`` over them.

        A file whose upload fails is sent inline as text instead and listed in
        ``AskResult.failed_uploads``.

        Caching is opt-in. It is attempted only when caching is enabled, every
        file uploaded, and the model supports caching. A failed cache creation
        is reported in ``AskResult.cache_error`` and the request falls back to
        an uncached call with the files attached.
        """
        if not query:
            raise ValidationError("query must be a non-empty string")

        model_id = model or self.config.model
        prompt = self.config.system_prompt if system_prompt is None else system_prompt

        uploaded: List[FileInfo] = []
        failed: List[FileUploadRequest] = []
        for upload in uploads:
            try:
                uploaded.append(await self.upload_file(upload))
            except RelayError as e:
                logger.error("Failed to upload file %s: %s - falling back to direct content", upload.file_name, e)
                failed.append(upload)

        file_ids = [info.id for info in uploaded]
        failed_names = [upload.file_name for upload in failed]
        cache_error: Optional[str] = None

        if use_cache and self.config.enable_caching:
            if not self.supports_caching(model_id):
                logger.warning("Model %s does not support caching, falling back to regular request", model_id)
            elif uploaded and not failed:
                try:
                    cache = await self.create_cache(
                        CacheRequest(
                            model=model_id,
                            system_prompt=prompt,
                            file_ids=file_ids,
                            content=query,
                            ttl=cache_ttl,
                        )
                    )
                except RelayError as e:
                    cache_error = str(e)
                    logger.warning("Failed to create cache, falling back to regular request: %s", e)
                else:
                    logger.info("Using cache with ID: %s", cache.id)
                    text = await self.query_with_cache(cache.id, query)
                    return AskResult(text=text, model=cache.model, cache_id=cache.id, file_ids=file_ids)

        resolved = self.resolve_model(model_id)
        refs = [FileReference(uri=info.uri, mime_type=info.mime_type) for info in uploaded]
        inline = [upload.content.decode("utf-8", errors="replace") for upload in failed]

        async def run() -> str:
            return await remote_call(
                "models.generate_content",
                lambda: self.backend.generate_content(
                    model=resolved,
                    query=query,
                    system_prompt=prompt,
                    temperature=self.config.temperature,
                    files=refs,
                    inline_texts=inline,
                ),
                self.policy,
            )

        text = await self._observe("ask", run)
        return AskResult(
            text=text,
            model=resolved,
            file_ids=file_ids,
            cache_error=cache_error,
            failed_uploads=failed_names,
        )

    def stats(self) -> Any:
        return self.observer.get_summary()
