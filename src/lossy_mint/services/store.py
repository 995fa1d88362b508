"""Durable session storage on top of a key-value store."""

import json
from collections.abc import Callable
from dataclasses import dataclass
from typing import Protocol

from lossy_mint.domain.errors import SessionNotFoundError
from lossy_mint.domain.sessions import EscrowSession


class KeyValueStore(Protocol):
    """Interface for the durable key-value store."""

    async def get(self, key: str) -> str | None:
        """Return the value stored at key, if present."""

    async def set(self, key: str, value: str, ttl_seconds: int | None = None) -> None:
        """Store a value, optionally expiring after ttl_seconds."""

    async def set_if_absent(self, key: str, value: str, ttl_seconds: int) -> bool:
        """Store a value only if the key is absent; return True if written."""

    async def increment(self, key: str) -> int:
        """Atomically increment an integer counter and return the new value."""

    async def delete(self, key: str) -> None:
        """Remove a key."""


def _session_key(session_id: str) -> str:
    return f"session:{session_id}"


def _address_key(address: str) -> str:
    return f"address:{address}"


def _claim_key(session_id: str) -> str:
    return f"mint-claim:{session_id}"


@dataclass
class SessionStore:
    """Persists sessions and the escrow address index."""

    kv: KeyValueStore

    async def create(self, session: EscrowSession, ttl_seconds: int) -> None:
        """Persist a new session and index it by escrow address."""
        await self._write(session, ttl_seconds)
        await self.kv.set(
            _address_key(session.escrow_address), session.session_id, ttl_seconds
        )

    async def get(self, session_id: str) -> EscrowSession:
        """Return a session or raise SessionNotFoundError."""
        raw = await self.kv.get(_session_key(session_id))
        if raw is None:
            raise SessionNotFoundError(session_id)
        return EscrowSession.from_record(json.loads(raw))

    async def update(
        self,
        session_id: str,
        mutation: Callable[[EscrowSession], EscrowSession],
        ttl_seconds: int,
    ) -> EscrowSession:
        """Apply a mutation to the stored session and extend its TTL."""
        session = mutation(await self.get(session_id))
        await self._write(session, ttl_seconds)
        await self.kv.set(
            _address_key(session.escrow_address), session.session_id, ttl_seconds
        )
        return session

    async def map_address(self, address: str) -> str | None:
        """Return the session id bound to an escrow address."""
        return await self.kv.get(_address_key(address))

    async def find_by_address(self, address: str) -> EscrowSession | None:
        session_id = await self.map_address(address)
        if session_id is None:
            return None
        try:
            return await self.get(session_id)
        except SessionNotFoundError:
            return None

    async def claim_mint(self, session_id: str, ttl_seconds: int) -> bool:
        """Take the per-session mint claim; False if another poll holds it."""
        return await self.kv.set_if_absent(_claim_key(session_id), "1", ttl_seconds)

    async def release_mint_claim(self, session_id: str) -> None:
        await self.kv.delete(_claim_key(session_id))

    async def _write(self, session: EscrowSession, ttl_seconds: int) -> None:
        await self.kv.set(
            _session_key(session.session_id),
            json.dumps(session.to_record()),
            ttl_seconds,
        )
