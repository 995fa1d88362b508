"""NFT.Storage upload client."""

import json
from dataclasses import dataclass

import httpx

from lossy_mint.domain.content import StoredContent
from lossy_mint.domain.errors import ConfigurationError, UploadError
from lossy_mint.services.uploads import ContentStore

UPLOAD_URL = "https://api.nft.storage/upload"
GATEWAY_URL = "https://ipfs.io/ipfs"


@dataclass
class HttpxNftStorageClient(ContentStore):
    """Stores raw bodies on IPFS through NFT.Storage."""

    api_key: str | None
    http_client: httpx.AsyncClient
    timeout: float = 60

    @classmethod
    def create(cls, api_key: str | None) -> "HttpxNftStorageClient":
        """Create an NFT.Storage client with a managed httpx session."""
        return cls(api_key=api_key or None, http_client=httpx.AsyncClient())

    async def upload(
        self, data: bytes, content_type: str, filename: str
    ) -> StoredContent:
        if not self.api_key:
            raise ConfigurationError("NFT_STORAGE_KEY not configured")
        response = await self.http_client.post(
            UPLOAD_URL,
            headers={
                "Authorization": f"Bearer {self.api_key}",
                "Content-Type": content_type,
            },
            content=data,
            timeout=self.timeout,
        )
        if response.is_error:
            raise UploadError(
                f"NFT.Storage upload failed: {response.status_code} {response.text}"
            )
        payload = response.json()
        if not payload.get("ok"):
            raise UploadError(f"NFT.Storage upload failed: {payload.get('error')}")
        cid = payload["value"]["cid"]
        return StoredContent(content_id=cid, uri=f"{GATEWAY_URL}/{cid}")

    async def upload_json(
        self, document: dict[str, object], name: str
    ) -> StoredContent:
        return await self.upload(
            json.dumps(document).encode("utf-8"), "application/json", name
        )

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        await self.http_client.aclose()
