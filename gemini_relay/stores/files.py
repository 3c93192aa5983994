"""File store: uploaded blobs mirrored in a local metadata map."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from ..errors import RelayError, ValidationError
from ..retry import RetryPolicy
from .base import isoformat, remote_call, strip_prefix, utcnow, with_prefix

if TYPE_CHECKING:
    from ..config import RelayConfig
    from ..providers.base import GeminiBackend
    from ..providers.types import RemoteFile

logger = logging.getLogger(__name__)

FILE_PREFIX = "files/"
# Applied when the backend reports no expiration time
DEFAULT_FILE_RETENTION = timedelta(hours=24)


@dataclass
class FileUploadRequest:
    file_name: str
    mime_type: str
    content: bytes
    display_name: str = ""

    def validate(self) -> None:
        if not self.file_name:
            raise ValidationError("filename is required")
        if not self.mime_type:
            raise ValidationError("mime type is required")
        if not self.content:
            raise ValidationError("content is required")


@dataclass
class FileInfo:
    """Local mirror of an uploaded file."""

    id: str
    name: str
    uri: str
    display_name: str
    mime_type: str
    size: int
    uploaded_at: datetime
    expires_at: datetime

    @classmethod
    def from_remote(cls, remote: "RemoteFile", fallback_size: int = 0, fallback_mime_type: str = "") -> "FileInfo":
        uploaded_at = remote.create_time or utcnow()
        return cls(
            id=strip_prefix(remote.name, FILE_PREFIX),
            name=remote.name,
            uri=remote.uri,
            display_name=remote.display_name,
            mime_type=remote.mime_type or fallback_mime_type,
            size=remote.size_bytes if remote.size_bytes is not None else fallback_size,
            uploaded_at=uploaded_at,
            expires_at=remote.expiration_time or uploaded_at + DEFAULT_FILE_RETENTION,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "uri": self.uri,
            "display_name": self.display_name,
            "mime_type": self.mime_type,
            "size": self.size,
            "uploaded_at": isoformat(self.uploaded_at),
            "expires_at": isoformat(self.expires_at),
        }


class FileStore:
    """
    Uploads, looks up, deletes and lists files.

    The local map is a mirror of the backend: lookups are served locally when
    possible, and a successful remote response always overwrites the mirror.
    Entries are not swept when they expire remotely; a later remote lookup
    reports them as missing.
    """

    def __init__(self, backend: "GeminiBackend", config: "RelayConfig", policy: Optional[RetryPolicy] = None):
        self.backend = backend
        self.config = config
        self.policy = policy or RetryPolicy.from_config(config)
        self._lock = threading.Lock()
        self._files: Dict[str, FileInfo] = {}

    def peek(self, file_id: str) -> Optional[FileInfo]:
        """Local mirror lookup without any remote call."""
        with self._lock:
            return self._files.get(strip_prefix(file_id, FILE_PREFIX))

    def _remember(self, info: FileInfo) -> None:
        with self._lock:
            self._files[info.id] = info

    async def upload(self, request: FileUploadRequest) -> FileInfo:
        """
        Upload a file and record it locally.

        Raises:
            ValidationError: for empty fields, oversize content or a disallowed MIME type
            BackendError: if the upload fails after retries
        """
        request.validate()
        if len(request.content) > self.config.max_file_size:
            raise ValidationError(f"file size exceeds maximum allowed ({self.config.max_file_size} bytes)")
        if request.mime_type not in self.config.allowed_file_types:
            raise ValidationError(f"mime type {request.mime_type} is not allowed")

        display_name = request.display_name or request.file_name
        logger.info("Uploading file %s with MIME type %s", request.file_name, request.mime_type)
        remote = await remote_call(
            "files.upload",
            lambda: self.backend.upload_file(request.content, request.mime_type, display_name),
            self.policy,
        )

        info = FileInfo.from_remote(
            remote, fallback_size=len(request.content), fallback_mime_type=request.mime_type
        )
        if not info.uri:
            logger.error("Invalid URI for uploaded file %s: empty URI", remote.name)
            raise RelayError(f"backend returned an empty URI for uploaded file {remote.name}")

        self._remember(info)
        logger.info("File uploaded successfully with ID: %s", info.id)
        return info

    async def get(self, file_id: str) -> FileInfo:
        """
        Return file metadata, from the local map or else from the backend.

        Raises:
            ResourceNotFoundError: if the backend does not know the file
        """
        info = self.peek(file_id)
        if info is not None:
            logger.debug("File info for %s found in local map", file_id)
            return info

        name = with_prefix(file_id, FILE_PREFIX)
        logger.info("Fetching file info for %s from API", name)
        remote = await remote_call("files.get", lambda: self.backend.get_file(name), self.policy)
        info = FileInfo.from_remote(remote)
        self._remember(info)
        return info

    async def delete(self, file_id: str) -> None:
        """Delete remotely, then locally. A failed remote delete keeps the mirror."""
        info = await self.get(file_id)

        logger.info("Deleting file %s", info.name)
        await remote_call("files.delete", lambda: self.backend.delete_file(info.name), self.policy)

        with self._lock:
            self._files.pop(info.id, None)
        logger.info("File deleted successfully: %s", info.id)

    async def list(self) -> List[FileInfo]:
        """Enumerate files remotely and replace the local map with the result.

        Files uploaded through this store while the enumeration was in flight
        are kept, since the remote listing may predate them.
        """
        logger.info("Listing all files")
        with self._lock:
            before = set(self._files)
        remote = await remote_call("files.list", self.backend.list_files, self.policy)

        files = [FileInfo.from_remote(item) for item in remote]
        with self._lock:
            mirror = {info.id: info for info in files}
            for file_id, info in self._files.items():
                if file_id not in before and file_id not in mirror:
                    mirror[file_id] = info
            self._files = mirror

        logger.info("Found %d files", len(files))
        return files
