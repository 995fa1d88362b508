"""Escrow key derivation and session index allocation.

This module is the only place the master mnemonic is read. Keys follow the
Solana BIP44 path ``m/44'/501'/{index}'/0'`` using SLIP-0010 hardened
derivation for ed25519.
"""

import hashlib
import hmac
import struct
from dataclasses import dataclass, field

from mnemonic import Mnemonic
from solders.keypair import Keypair

from lossy_mint.domain.errors import ConfigurationError
from lossy_mint.services.store import KeyValueStore

TREASURY_INDEX = 0
SESSION_INDEX_OFFSET = 1000
_HARDENED = 0x80000000
_SOLANA_COIN_TYPE = 501


def derivation_path(index: int) -> list[int]:
    """Return the hardened path components for a derivation index."""
    return [44, _SOLANA_COIN_TYPE, index, 0]


def derive_ed25519_key(seed: bytes, path: list[int]) -> bytes:
    """Derive a 32-byte ed25519 private key along a hardened path."""
    digest = hmac.new(b"ed25519 seed", seed, hashlib.sha512).digest()
    key, chain_code = digest[:32], digest[32:]
    for index in path:
        data = b"\x00" + key + struct.pack(">I", index | _HARDENED)
        digest = hmac.new(chain_code, data, hashlib.sha512).digest()
        key, chain_code = digest[:32], digest[32:]
    return key


@dataclass
class KeyDerivationService:
    """Derives escrow keypairs and hands out fresh session indices."""

    master_seed_phrase: str | None
    kv: KeyValueStore
    counter_key: str = "day-after-day:session-counter"
    _seed: bytes | None = field(default=None, init=False, repr=False)

    def derive(self, index: int) -> Keypair:
        """Derive the keypair at a derivation index."""
        if index < 0:
            raise ValueError("Derivation index must be non-negative")
        key = derive_ed25519_key(self._master_seed(), derivation_path(index))
        return Keypair.from_seed(key)

    def treasury_keypair(self) -> Keypair:
        return self.derive(TREASURY_INDEX)

    def session_keypair(self, session_index: int) -> Keypair:
        """Derive the escrow keypair owned by a session index."""
        if session_index < 1:
            raise ValueError("Session indices start at 1")
        return self.derive(SESSION_INDEX_OFFSET + session_index)

    async def allocate(self) -> int:
        """Return a session index that has never been issued before."""
        index = await self.kv.increment(self.counter_key)
        if index < 1:
            raise ValueError(f"Session counter returned invalid index {index}")
        return index

    def _master_seed(self) -> bytes:
        if self._seed is None:
            phrase = (self.master_seed_phrase or "").strip()
            if not phrase:
                raise ConfigurationError("MASTER_SEED_PHRASE not configured")
            self._seed = Mnemonic.to_seed(phrase, passphrase="")
        return self._seed
