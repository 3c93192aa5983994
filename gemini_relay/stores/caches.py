"""Cache store: cached-context bundles mirrored in a local metadata map."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from ..durations import parse_duration
from ..errors import CachingDisabledError, ValidationError
from ..providers.types import FileReference
from ..retry import RetryPolicy
from .base import isoformat, remote_call, strip_prefix, utcnow, with_prefix

if TYPE_CHECKING:
    from ..config import RelayConfig
    from ..models import ModelCatalog
    from ..providers.base import GeminiBackend
    from ..providers.types import RemoteCache
    from .files import FileStore

logger = logging.getLogger(__name__)

CACHE_PREFIX = "cachedContents/"
MODEL_PREFIX = "models/"


@dataclass
class CacheRequest:
    """A request to create a cached context."""

    model: str
    system_prompt: str = ""
    file_ids: List[str] = field(default_factory=list)
    content: str = ""
    ttl: str = ""  # Duration like "1h", "30m", "1h30m"
    display_name: str = ""


@dataclass
class CacheInfo:
    """Local mirror of a cached context.

    ``file_ids`` is only known for caches created through this store; the
    backend does not report it.
    """

    id: str
    name: str
    display_name: str
    model: str
    created_at: datetime
    expires_at: datetime
    file_ids: List[str] = field(default_factory=list)

    @classmethod
    def from_remote(
        cls,
        remote: "RemoteCache",
        fallback_ttl: timedelta,
        file_ids: Optional[List[str]] = None,
        fallback_model: str = "",
    ) -> "CacheInfo":
        created_at = remote.create_time or utcnow()
        return cls(
            id=strip_prefix(remote.name, CACHE_PREFIX),
            name=remote.name,
            display_name=remote.display_name,
            model=strip_prefix(remote.model, MODEL_PREFIX) or fallback_model,
            created_at=created_at,
            expires_at=remote.expire_time or created_at + fallback_ttl,
            file_ids=list(file_ids or []),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "display_name": self.display_name,
            "model": self.model,
            "created_at": isoformat(self.created_at),
            "expires_at": isoformat(self.expires_at),
            "file_ids": list(self.file_ids),
        }


class CacheStore:
    """
    Creates, looks up, deletes and lists cached contexts.

    Depends on the file store to turn file ids into URIs and on the model
    catalog to validate and bind the cache model.
    """

    def __init__(
        self,
        backend: "GeminiBackend",
        config: "RelayConfig",
        file_store: "FileStore",
        catalog: "ModelCatalog",
        policy: Optional[RetryPolicy] = None,
    ):
        self.backend = backend
        self.config = config
        self.file_store = file_store
        self.catalog = catalog
        self.policy = policy or RetryPolicy.from_config(config)
        self._lock = threading.Lock()
        self._caches: Dict[str, CacheInfo] = {}

    def peek(self, cache_id: str) -> Optional[CacheInfo]:
        with self._lock:
            return self._caches.get(strip_prefix(cache_id, CACHE_PREFIX))

    def _remember(self, info: CacheInfo) -> None:
        with self._lock:
            self._caches[info.id] = info

    def _parse_ttl(self, ttl: str) -> timedelta:
        if not ttl:
            return self.config.default_cache_ttl
        try:
            parsed = parse_duration(ttl)
        except ValueError as e:
            raise ValidationError(f"invalid TTL format: {e}") from e
        if parsed <= timedelta(0):
            raise ValidationError(f"TTL must be positive, got {ttl!r}")
        return parsed

    async def create(self, request: CacheRequest) -> CacheInfo:
        """
        Create a cached context on the backend and record it locally.

        Raises:
            CachingDisabledError: if caching is turned off in config
            ValidationError: for a missing model, no content, or a malformed TTL
            ResourceNotFoundError: if a referenced file id is unknown
            BackendError: if the remote create fails after retries
        """
        if not self.config.enable_caching:
            raise CachingDisabledError()
        if not request.model:
            raise ValidationError("model is required")
        if not request.file_ids and not request.content:
            raise ValidationError("cache requires at least one file id or text content")

        warning = self.catalog.validate(request.model)
        if warning:
            logger.warning("%s", warning)

        ttl = self._parse_ttl(request.ttl)
        model = self.catalog.resolve_caching_model(request.model)

        files: List[FileReference] = []
        if request.file_ids:
            logger.info("Adding %d files to cache context", len(request.file_ids))
        for file_id in request.file_ids:
            info = await self.file_store.get(file_id)
            logger.debug("Adding file %s with URI %s to cache context", file_id, info.uri)
            files.append(FileReference(uri=info.uri, mime_type=info.mime_type))

        logger.info("Creating cached content with model %s", model)
        remote = await remote_call(
            "caches.create",
            lambda: self.backend.create_cache(
                model=model,
                ttl=ttl,
                files=files,
                text=request.content,
                system_prompt=request.system_prompt,
                display_name=request.display_name,
            ),
            self.policy,
        )

        info = CacheInfo.from_remote(remote, fallback_ttl=ttl, file_ids=request.file_ids, fallback_model=model)
        self._remember(info)
        logger.info("Cache created successfully with ID: %s", info.id)
        return info

    async def get(self, cache_id: str) -> CacheInfo:
        """
        Return cache metadata, from the local map or else from the backend.

        A remotely fetched entry has empty ``file_ids``.
        """
        info = self.peek(cache_id)
        if info is not None:
            logger.debug("Cache info for %s found in local map", cache_id)
            return info

        name = with_prefix(cache_id, CACHE_PREFIX)
        logger.info("Fetching cache info for %s from API", name)
        remote = await remote_call("caches.get", lambda: self.backend.get_cache(name), self.policy)
        info = CacheInfo.from_remote(remote, fallback_ttl=self.config.default_cache_ttl)
        self._remember(info)
        return info

    async def delete(self, cache_id: str) -> None:
        info = await self.get(cache_id)

        logger.info("Deleting cache %s", info.name)
        await remote_call("caches.delete", lambda: self.backend.delete_cache(info.name), self.policy)

        with self._lock:
            self._caches.pop(info.id, None)
        logger.info("Cache deleted successfully: %s", info.id)

    async def list(self) -> List[CacheInfo]:
        """Enumerate caches remotely and replace the local map with the result.

        File ids recorded at creation time are carried over for caches that
        are still listed. Caches created through this store while the
        enumeration was in flight are kept.
        """
        logger.info("Listing all cached contents")
        with self._lock:
            before = set(self._caches)
        remote = await remote_call("caches.list", self.backend.list_caches, self.policy)

        with self._lock:
            known = {cache_id: info.file_ids for cache_id, info in self._caches.items()}

        caches = []
        for item in remote:
            cache_id = strip_prefix(item.name, CACHE_PREFIX)
            caches.append(
                CacheInfo.from_remote(
                    item,
                    fallback_ttl=self.config.default_cache_ttl,
                    file_ids=known.get(cache_id),
                )
            )

        with self._lock:
            mirror = {info.id: info for info in caches}
            for cache_id, info in self._caches.items():
                if cache_id not in before and cache_id not in mirror:
                    mirror[cache_id] = info
            self._caches = mirror

        logger.info("Found %d cached contents", len(caches))
        return caches
