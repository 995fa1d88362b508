"""Content-addressable storage models."""

from dataclasses import dataclass

from lossy_mint.domain.sessions import OutputType


@dataclass(frozen=True)
class StoredContent:
    """Identifier and retrieval URI of an uploaded blob."""

    content_id: str
    uri: str


@dataclass(frozen=True)
class UploadedMedia:
    """A media artifact stored ahead of session creation."""

    file_uri: str
    content_id: str
    mime_type: str
    output_type: OutputType
