"""Escrow session state machine driven by polling."""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta

import httpx

from lossy_mint.domain.errors import (
    InsufficientGasError,
    LedgerError,
    MintTransactionError,
    SweepError,
    UploadError,
)
from lossy_mint.domain.sessions import (
    MINTABLE_STATES,
    ArtifactMetadata,
    EscrowSession,
    Expired,
    Minted,
    Minting,
    NeedsFunding,
    OutputType,
    Paid,
    Pending,
    SessionState,
    SessionStatus,
    Swept,
    to_millis,
)
from lossy_mint.services.audit import AuditService
from lossy_mint.services.keys import KeyDerivationService
from lossy_mint.services.ledger import Ledger
from lossy_mint.services.minting import MintOrchestrator
from lossy_mint.services.payments import PaymentDetector
from lossy_mint.services.store import SessionStore
from lossy_mint.services.sweeping import SweepAgent

_logger = logging.getLogger(__name__)

SESSION_TTL_SECONDS = 60 * 30
MINTING_TTL_SECONDS = 60 * 60
SETTLED_TTL_SECONDS = 60 * 60 * 24
ESCROW_FUNDING_LAMPORTS = 3_000_000


def _utcnow() -> datetime:
    return datetime.now(tz=UTC)


@dataclass(frozen=True)
class PollResult:
    """Outcome of a single poll.

    ``status`` is the session status, except that a poll which loses the
    mint claim to a concurrent poll reports ``minting``.
    """

    session: EscrowSession
    status: SessionStatus
    received_amount: int | None = None


@dataclass
class SessionController:
    """Creates sessions and advances them on each poll."""

    keys: KeyDerivationService
    store: SessionStore
    detector: PaymentDetector
    minter: MintOrchestrator
    sweeper: SweepAgent
    ledger: Ledger
    audit: AuditService
    required_amount: int
    session_ttl_seconds: int = SESSION_TTL_SECONDS
    minting_ttl_seconds: int = MINTING_TTL_SECONDS
    settled_ttl_seconds: int = SETTLED_TTL_SECONDS
    escrow_funding_lamports: int = ESCROW_FUNDING_LAMPORTS
    clock: Callable[[], datetime] = field(default=_utcnow)

    async def create_session(
        self, output_type: OutputType, metadata: ArtifactMetadata
    ) -> EscrowSession:
        """Allocate an escrow address and register a pending session."""
        treasury = self.keys.treasury_keypair()
        index = await self.keys.allocate()
        escrow = self.keys.session_keypair(index)
        now = self.clock()
        session = EscrowSession(
            session_id=f"sess_{index}_{to_millis(now)}",
            session_index=index,
            escrow_address=str(escrow.pubkey()),
            output_type=output_type,
            metadata=metadata,
            created_at=now,
            expires_at=now + timedelta(seconds=self.session_ttl_seconds),
            required_amount=self.required_amount,
            state=Pending(),
        )
        # The record outlives the payment window so a late poll still sees it.
        await self.store.create(
            session, self.session_ttl_seconds + self.settled_ttl_seconds
        )
        self.audit.record_event(
            session.session_id, "created", after=session.to_record()["state"]
        )

        try:
            await self.ledger.fund_escrow(
                treasury, session.escrow_address, self.escrow_funding_lamports
            )
        except (LedgerError, httpx.HTTPError):
            # Payment can still arrive; the escrow only needs gas to sweep.
            _logger.exception(
                "Escrow funding failed",
                extra={"session_id": session.session_id},
            )
        return session

    async def poll(self, session_id: str, *, retry_paid: bool = False) -> PollResult:
        """Advance a session by one step and report its status.

        ``retry_paid`` lets a session whose mint failed generically try
        again; without it a ``paid`` session is only reported.
        """
        session = await self.store.get(session_id)
        if not _can_mint(session, retry_paid):
            return _result(session)

        if session.is_expired(self.clock()):
            expired = await self._transition(
                session, Expired(), self.settled_ttl_seconds, "expired"
            )
            return _result(expired)

        check = await self.detector.check(
            session.escrow_address, session.required_amount
        )
        if not check.confirmed:
            return _result(session, check.received)

        if not await self.store.claim_mint(session_id, self.minting_ttl_seconds):
            return PollResult(session=session, status=SessionStatus.MINTING)
        return await self._mint_and_sweep(session_id, check.received, retry_paid)

    async def retry_sweep(self, session_id: str) -> EscrowSession:
        """Sweep a minted session whose earlier sweep failed."""
        session = await self.store.get(session_id)
        if not isinstance(session.state, Minted):
            return session
        sweep = await self.sweeper.sweep(session)
        return await self._transition(
            session,
            Swept(mint=session.state.mint, sweep=sweep, buyer=session.buyer),
            self.settled_ttl_seconds,
            "swept",
        )

    async def _mint_and_sweep(
        self, session_id: str, received: int, retry_paid: bool
    ) -> PollResult:
        session = await self.store.get(session_id)
        if not _can_mint(session, retry_paid):
            # Another poll moved the session between our read and the claim.
            await self.store.release_mint_claim(session_id)
            return _result(session)

        session = await self._transition(
            session, Minting(buyer=session.buyer), self.settled_ttl_seconds, "minting"
        )
        buyer = (
            await self.detector.find_counterparty(session.escrow_address)
            or session.buyer
        )
        session = await self._transition(
            session, Minting(buyer=buyer), self.settled_ttl_seconds, "buyer_detected"
        )

        failure: SessionState | None = None
        try:
            mint = await self.minter.mint(session, buyer)
        except InsufficientGasError as exc:
            _logger.exception(
                "Mint needs treasury funding", extra={"session_id": session_id}
            )
            failure = NeedsFunding(
                error=_funding_message(exc),
                buyer=buyer,
                needed_lamports=exc.needed_lamports,
            )
        except (MintTransactionError, UploadError) as exc:
            _logger.exception("Mint failed", extra={"session_id": session_id})
            failure = Paid(error=str(exc), buyer=buyer)
        except Exception as exc:
            # Nothing may leave a paid session parked in minting with the claim held.
            _logger.exception(
                "Mint failed unexpectedly", extra={"session_id": session_id}
            )
            failure = Paid(error=f"Mint failed: {exc!r}", buyer=buyer)
        if failure is not None:
            session = await self._transition(
                session, failure, self.settled_ttl_seconds, "mint_failed"
            )
            await self.store.release_mint_claim(session_id)
            return _result(session, received)

        session = await self._transition(
            session, Minted(mint=mint, buyer=buyer), self.settled_ttl_seconds, "minted"
        )
        try:
            sweep = await self.sweeper.sweep(session)
        except SweepError:
            # The buyer already holds the NFT; an operator retries the sweep.
            _logger.exception("Sweep failed", extra={"session_id": session_id})
            self.audit.record_event(session_id, "sweep_failed")
            return _result(session, received)

        session = await self._transition(
            session,
            Swept(mint=mint, sweep=sweep, buyer=buyer),
            self.settled_ttl_seconds,
            "swept",
        )
        return _result(session, received)

    async def _transition(
        self,
        session: EscrowSession,
        state: SessionState,
        ttl_seconds: int,
        event_type: str,
    ) -> EscrowSession:
        before = session.to_record()["state"]
        updated = await self.store.update(
            session.session_id,
            lambda current: current.with_state(state),
            ttl_seconds,
        )
        self.audit.record_event(
            session.session_id,
            event_type,
            before=before,
            after=updated.to_record()["state"],
        )
        return updated


def _result(session: EscrowSession, received: int | None = None) -> PollResult:
    return PollResult(session=session, status=session.status, received_amount=received)


def _funding_message(exc: InsufficientGasError) -> str:
    needed = (
        f"{exc.needed_lamports / 1_000_000_000:.4f} SOL"
        if exc.needed_lamports is not None
        else "unknown SOL"
    )
    return f"Master wallet needs more SOL ({needed} required). Payment is safe."


def _can_mint(session: EscrowSession, retry_paid: bool) -> bool:
    if isinstance(session.state, Paid):
        return retry_paid
    return isinstance(session.state, MINTABLE_STATES)
