"""Content-addressable uploads for media and metadata."""

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Protocol

import httpx

from lossy_mint.domain.content import StoredContent, UploadedMedia
from lossy_mint.domain.errors import ConfigurationError, UploadError
from lossy_mint.domain.sessions import OutputType

_logger = logging.getLogger(__name__)

DEFAULT_MIME_TYPE = "video/webm"
MAX_MEDIA_BYTES = 150 * 1024 * 1024


class ContentStore(Protocol):
    """Interface for a content-addressable upload service."""

    async def upload(
        self, data: bytes, content_type: str, filename: str
    ) -> StoredContent:
        """Upload raw bytes and return their content id and URI."""

    async def upload_json(
        self, document: dict[str, object], name: str
    ) -> StoredContent:
        """Upload a JSON document and return its content id and URI."""


@dataclass
class FailoverContentStore(ContentStore):
    """Tries the primary store, then the fallback store on failure."""

    primary: ContentStore
    fallback: ContentStore | None = None

    async def upload(
        self, data: bytes, content_type: str, filename: str
    ) -> StoredContent:
        """Upload bytes with failover."""
        return await self._with_failover(
            lambda store: store.upload(data, content_type, filename),
            action=f"upload:{filename}",
        )

    async def upload_json(
        self, document: dict[str, object], name: str
    ) -> StoredContent:
        """Upload a JSON document with failover."""
        return await self._with_failover(
            lambda store: store.upload_json(document, name),
            action=f"upload_json:{name}",
        )

    async def _with_failover(
        self,
        func: Callable[[ContentStore], Awaitable[StoredContent]],
        *,
        action: str,
    ) -> StoredContent:
        try:
            return await func(self.primary)
        except (UploadError, ConfigurationError, httpx.HTTPError) as exc:
            if self.fallback is None:
                raise _as_upload_error(exc) from exc
            _logger.warning("Primary content store failed (%s): %s", action, exc)
        try:
            return await func(self.fallback)
        except (UploadError, ConfigurationError, httpx.HTTPError) as exc:
            raise _as_upload_error(exc) from exc


def _as_upload_error(exc: Exception) -> UploadError:
    if isinstance(exc, UploadError):
        return exc
    return UploadError(f"Content upload failed: {exc}")


@dataclass
class MediaUploadService:
    """Validates and stores the visitor's media artifact."""

    content_store: ContentStore
    max_bytes: int = MAX_MEDIA_BYTES

    async def upload(
        self,
        data: bytes,
        filename: str | None,
        mime_type: str | None,
        output_type: OutputType,
    ) -> UploadedMedia:
        """Upload media bytes and return the URI to embed in metadata."""
        if not data:
            raise UploadError("No file provided")
        if len(data) > self.max_bytes:
            raise UploadError(f"File exceeds {self.max_bytes} bytes")
        resolved_type = mime_type or DEFAULT_MIME_TYPE
        stored = await self.content_store.upload(
            data, resolved_type, filename or f"{output_type.value}-artifact"
        )
        return UploadedMedia(
            file_uri=stored.uri,
            content_id=stored.content_id,
            mime_type=resolved_type,
            output_type=output_type,
        )
