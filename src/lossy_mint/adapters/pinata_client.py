"""Pinata IPFS pinning client."""

import json
from dataclasses import dataclass

import httpx

from lossy_mint.domain.content import StoredContent
from lossy_mint.domain.errors import ConfigurationError, UploadError
from lossy_mint.services.uploads import ContentStore

PIN_FILE_URL = "https://api.pinata.cloud/pinning/pinFileToIPFS"
GATEWAY_URL = "https://gateway.pinata.cloud/ipfs"


@dataclass
class HttpxPinataClient(ContentStore):
    """Pins files to IPFS through the Pinata API."""

    jwt: str | None
    http_client: httpx.AsyncClient
    timeout: float = 60

    @classmethod
    def create(cls, jwt: str | None) -> "HttpxPinataClient":
        """Create a Pinata client with a managed httpx session."""
        return cls(jwt=(jwt or "").strip() or None, http_client=httpx.AsyncClient())

    async def upload(
        self, data: bytes, content_type: str, filename: str
    ) -> StoredContent:
        """Pin raw bytes with CID v1."""
        if not self.jwt:
            raise ConfigurationError("PINATA_JWT not configured")
        response = await self.http_client.post(
            PIN_FILE_URL,
            headers={"Authorization": f"Bearer {self.jwt}"},
            files={"file": (filename, data, content_type)},
            data={
                "pinataMetadata": json.dumps({"name": filename}),
                "pinataOptions": json.dumps({"cidVersion": 1}),
            },
            timeout=self.timeout,
        )
        response.raise_for_status()
        payload = response.json()
        cid = payload.get("IpfsHash")
        if not cid:
            raise UploadError(f"Pinata upload failed: {payload}")
        return StoredContent(content_id=cid, uri=f"{GATEWAY_URL}/{cid}")

    async def upload_json(
        self, document: dict[str, object], name: str
    ) -> StoredContent:
        """Pin a JSON document as a file named ``name``."""
        return await self.upload(
            json.dumps(document).encode("utf-8"), "application/json", name
        )

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        await self.http_client.aclose()
