"""Shared test fixtures."""

import asyncio
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta

import pytest
from solders.keypair import Keypair

from lossy_mint.config import Settings
from lossy_mint.containers import AppContainer
from lossy_mint.domain.content import StoredContent
from lossy_mint.domain.errors import UploadError
from lossy_mint.domain.ledger import (
    MintReceipt,
    NftMintRequest,
    TokenBalance,
    TransactionBalances,
)
from lossy_mint.services.audit import AuditRepository, AuditService
from lossy_mint.services.health import HealthService
from lossy_mint.services.keys import KeyDerivationService
from lossy_mint.services.ledger import Ledger
from lossy_mint.services.minting import MintOrchestrator
from lossy_mint.services.payments import PaymentDetector
from lossy_mint.services.sessions import SessionController
from lossy_mint.services.store import KeyValueStore, SessionStore
from lossy_mint.services.sweeping import SweepAgent
from lossy_mint.services.uploads import ContentStore, MediaUploadService

TEST_MNEMONIC = (
    "abandon abandon abandon abandon abandon abandon "
    "abandon abandon abandon abandon abandon about"
)
USDC_MINT = "EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v"
CREATOR = "FrstHD18pJsFRatk2hnfv4EztP1p87mJ1SL6QyXCcQju"
BUYER = str(Keypair.from_seed(bytes([7] * 32)).pubkey())
REQUIRED = 2_250_000


@dataclass
class InMemoryKeyValueStore(KeyValueStore):
    """In-memory key-value store for tests.

    When a clock is given, keys are evicted once their TTL has passed.
    """

    values: dict[str, str] = field(default_factory=dict)
    ttls: dict[str, int | None] = field(default_factory=dict)
    clock: Callable[[], datetime] | None = None
    deadlines: dict[str, datetime] = field(default_factory=dict)

    async def get(self, key: str) -> str | None:
        self._evict(key)
        return self.values.get(key)

    async def set(self, key: str, value: str, ttl_seconds: int | None = None) -> None:
        self.values[key] = value
        self.ttls[key] = ttl_seconds
        if ttl_seconds and self.clock is not None:
            self.deadlines[key] = self.clock() + timedelta(seconds=ttl_seconds)
        else:
            self.deadlines.pop(key, None)

    async def set_if_absent(self, key: str, value: str, ttl_seconds: int) -> bool:
        self._evict(key)
        if key in self.values:
            return False
        await self.set(key, value, ttl_seconds)
        return True

    async def increment(self, key: str) -> int:
        value = int(self.values.get(key, "0")) + 1
        self.values[key] = str(value)
        return value

    async def delete(self, key: str) -> None:
        self.values.pop(key, None)
        self.ttls.pop(key, None)
        self.deadlines.pop(key, None)

    def _evict(self, key: str) -> None:
        deadline = self.deadlines.get(key)
        if deadline is not None and self.clock is not None and self.clock() >= deadline:
            self.values.pop(key, None)
            self.ttls.pop(key, None)
            self.deadlines.pop(key, None)


@dataclass
class FakeLedger(Ledger):
    """Fake ledger holding balances in memory and recording submissions."""

    token_balances: dict[str, int] = field(default_factory=dict)
    native_balances: dict[str, int] = field(default_factory=dict)
    signatures: dict[str, list[str]] = field(default_factory=dict)
    transactions: dict[str, TransactionBalances] = field(default_factory=dict)
    mint_requests: list[NftMintRequest] = field(default_factory=list)
    token_transfers: list[tuple[str, str, int]] = field(default_factory=list)
    native_transfers: list[tuple[str, str, int]] = field(default_factory=list)
    fundings: list[tuple[str, int]] = field(default_factory=list)
    mint_error: Exception | None = None
    transfer_error: Exception | None = None
    funding_error: Exception | None = None

    async def token_balance(self, owner: str) -> int:
        # Yield so concurrent polls interleave at the balance read.
        await asyncio.sleep(0)
        return self.token_balances.get(owner, 0)

    async def native_balance(self, owner: str) -> int:
        return self.native_balances.get(owner, 0)

    async def recent_transfer_signatures(self, owner: str, limit: int) -> list[str]:
        return self.signatures.get(owner, [])[:limit]

    async def transaction_balances(self, signature: str) -> TransactionBalances | None:
        return self.transactions.get(signature)

    async def transfer_token(self, sender: Keypair, recipient: str, amount: int) -> str:
        if self.transfer_error is not None:
            raise self.transfer_error
        source = str(sender.pubkey())
        self.token_balances[source] = self.token_balances.get(source, 0) - amount
        self.token_transfers.append((source, recipient, amount))
        return f"token-sig-{len(self.token_transfers)}"

    async def transfer_native(
        self, sender: Keypair, recipient: str, lamports: int
    ) -> str:
        source = str(sender.pubkey())
        self.native_balances[source] = self.native_balances.get(source, 0) - lamports
        self.native_transfers.append((source, recipient, lamports))
        return f"native-sig-{len(self.native_transfers)}"

    async def fund_escrow(self, payer: Keypair, escrow: str, lamports: int) -> str:
        if self.funding_error is not None:
            raise self.funding_error
        self.native_balances[escrow] = self.native_balances.get(escrow, 0) + lamports
        self.fundings.append((escrow, lamports))
        return f"fund-sig-{len(self.fundings)}"

    async def create_nft(
        self, authority: Keypair, request: NftMintRequest
    ) -> MintReceipt:
        if self.mint_error is not None:
            raise self.mint_error
        self.mint_requests.append(request)
        number = len(self.mint_requests)
        return MintReceipt(mint_address=f"mint-{number}", signature=f"mint-sig-{number}")

    def record_payment(self, escrow: str, sender: str, amount: int) -> None:
        """Credit escrow and record a transfer whose sender can be detected."""
        signature = f"payment-{len(self.transactions) + 1}"
        self.token_balances[escrow] = self.token_balances.get(escrow, 0) + amount
        self.signatures.setdefault(escrow, []).insert(0, signature)
        self.transactions[signature] = TransactionBalances(
            signature=signature,
            pre=[
                TokenBalance(0, USDC_MINT, sender, amount * 2),
                TokenBalance(1, USDC_MINT, escrow, 0),
            ],
            post=[
                TokenBalance(0, USDC_MINT, sender, amount),
                TokenBalance(1, USDC_MINT, escrow, amount),
            ],
        )


@dataclass
class FakeContentStore(ContentStore):
    """Fake content store returning deterministic identifiers."""

    uploads: list[tuple[str, object]] = field(default_factory=list)
    fail: bool = False

    async def upload(
        self, data: bytes, content_type: str, filename: str
    ) -> StoredContent:
        if self.fail:
            raise UploadError("pinning service unavailable")
        self.uploads.append((filename, data))
        cid = f"cid-{len(self.uploads)}"
        return StoredContent(content_id=cid, uri=f"https://ipfs.test/{cid}")

    async def upload_json(
        self, document: dict[str, object], name: str
    ) -> StoredContent:
        if self.fail:
            raise UploadError("pinning service unavailable")
        self.uploads.append((name, document))
        cid = f"cid-{len(self.uploads)}"
        return StoredContent(content_id=cid, uri=f"https://ipfs.test/{cid}")


@dataclass
class InMemoryAuditRepository(AuditRepository):
    """In-memory audit repository for tests."""

    events: list[dict[str, object]] = field(default_factory=list)

    def create_event(
        self,
        session_id: str,
        event_type: str,
        before: dict[str, object] | None,
        after: dict[str, object] | None,
    ) -> None:
        self.events.append(
            {
                "session_id": session_id,
                "event_type": event_type,
                "before": before,
                "after": after,
            }
        )


@dataclass
class MutableClock:
    """Clock fixture that tests can move forward."""

    now: datetime = field(default_factory=lambda: datetime(2026, 3, 1, tzinfo=UTC))

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture
def settings() -> Settings:
    return Settings(
        master_seed_phrase=TEST_MNEMONIC,
        kv_rest_api_url="https://kv.example.upstash.io",
        kv_rest_api_token="kv-token",
        pinata_jwt="pinata-jwt",
        personal_wallet_public_key=CREATOR,
        admin_token="admin-token",
        usdc_mint=USDC_MINT,
    )


@pytest.fixture
def kv(clock: "MutableClock") -> InMemoryKeyValueStore:
    return InMemoryKeyValueStore(clock=clock)


@pytest.fixture
def ledger() -> FakeLedger:
    return FakeLedger()


@pytest.fixture
def content_store() -> FakeContentStore:
    return FakeContentStore()


@pytest.fixture
def audit_repository() -> InMemoryAuditRepository:
    return InMemoryAuditRepository()


@pytest.fixture
def clock() -> MutableClock:
    return MutableClock()


@pytest.fixture
def keys(kv: InMemoryKeyValueStore) -> KeyDerivationService:
    return KeyDerivationService(master_seed_phrase=TEST_MNEMONIC, kv=kv)


@pytest.fixture
def controller(  # noqa: PLR0913
    keys: KeyDerivationService,
    kv: InMemoryKeyValueStore,
    ledger: FakeLedger,
    content_store: FakeContentStore,
    audit_repository: InMemoryAuditRepository,
    clock: MutableClock,
) -> SessionController:
    return SessionController(
        keys=keys,
        store=SessionStore(kv),
        detector=PaymentDetector(ledger=ledger, asset_mint=USDC_MINT),
        minter=MintOrchestrator(
            ledger=ledger,
            content_store=content_store,
            keys=keys,
            creator_address=CREATOR,
            clock=clock,
        ),
        sweeper=SweepAgent(ledger=ledger, keys=keys),
        ledger=ledger,
        audit=AuditService(audit_repository),
        required_amount=REQUIRED,
        clock=clock,
    )


@pytest.fixture
def container(
    settings: Settings,
    kv: InMemoryKeyValueStore,
    controller: SessionController,
    content_store: FakeContentStore,
) -> AppContainer:
    async def close_resources() -> None:
        return None

    return AppContainer(
        settings=settings,
        session_controller=controller,
        session_store=controller.store,
        upload_service=MediaUploadService(content_store),
        health_service=HealthService(kv=kv, checks=settings.health_checks()),
        close_resources=close_resources,
    )
