"""Upstash Redis REST adapter."""

from dataclasses import dataclass

import httpx

from lossy_mint.domain.errors import ConfigurationError, StoreError
from lossy_mint.services.store import KeyValueStore


@dataclass
class UpstashKeyValueStore(KeyValueStore):
    """Key-value store backed by the Upstash Redis REST API."""

    base_url: str | None
    token: str | None
    http_client: httpx.AsyncClient
    timeout: float = 10

    @classmethod
    def create(cls, base_url: str | None, token: str | None) -> "UpstashKeyValueStore":
        """Create a store with a managed httpx session."""
        return cls(base_url=base_url, token=token, http_client=httpx.AsyncClient())

    async def get(self, key: str) -> str | None:
        """Run GET."""
        result = await self._command("GET", key)
        return None if result is None else str(result)

    async def set(self, key: str, value: str, ttl_seconds: int | None = None) -> None:
        """Run SET, with EX when a TTL is given."""
        if ttl_seconds:
            await self._command("SET", key, value, "EX", str(ttl_seconds))
        else:
            await self._command("SET", key, value)

    async def set_if_absent(self, key: str, value: str, ttl_seconds: int) -> bool:
        """Run SET NX EX and report whether the key was written."""
        result = await self._command("SET", key, value, "NX", "EX", str(ttl_seconds))
        return result == "OK"

    async def increment(self, key: str) -> int:
        """Run INCR."""
        return int(await self._command("INCR", key))

    async def delete(self, key: str) -> None:
        """Run DEL."""
        await self._command("DEL", key)

    async def _command(self, *args: str) -> object:
        if not self.base_url or not self.token:
            raise ConfigurationError("KV_REST_API_URL / KV_REST_API_TOKEN not configured")
        try:
            response = await self.http_client.post(
                self.base_url,
                headers={"Authorization": f"Bearer {self.token}"},
                json=list(args),
                timeout=self.timeout,
            )
        except httpx.HTTPError as exc:
            raise StoreError(f"Redis request failed: {exc}") from exc
        if response.is_error:
            raise StoreError(f"Redis error: {response.status_code} {response.text}")
        try:
            payload = response.json()
        except ValueError as exc:
            raise StoreError(f"Redis returned a non-JSON body: {exc}") from exc
        if payload.get("error"):
            raise StoreError(f"Redis error: {payload['error']}")
        return payload.get("result")

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        await self.http_client.aclose()
