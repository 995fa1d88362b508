"""Tests for session domain models."""

from datetime import UTC, datetime, timedelta

from lossy_mint.domain.sessions import (
    ArtifactMetadata,
    EscrowSession,
    Expired,
    Minted,
    MintResult,
    NeedsFunding,
    OutputType,
    Paid,
    SessionStatus,
    Swept,
    SweepResult,
)

CREATED = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)


def _session(**overrides) -> EscrowSession:
    values = {
        "session_id": "sess_4_1772366400000",
        "session_index": 4,
        "escrow_address": "Escrow4444",
        "output_type": OutputType.VIDEO,
        "metadata": ArtifactMetadata(mode="burn", speed=1.5),
        "created_at": CREATED,
        "expires_at": CREATED + timedelta(minutes=30),
        "required_amount": 2_250_000,
    }
    values.update(overrides)
    return EscrowSession(**values)


def test_only_pending_sessions_expire() -> None:
    late = CREATED + timedelta(hours=1)
    mint = MintResult("Mint1", "sig1", "https://ipfs.test/cid-1")

    assert _session().is_expired(late)
    assert not _session().is_expired(CREATED)
    assert not _session(state=Paid(error="boom")).is_expired(late)
    assert not _session(state=Minted(mint=mint)).is_expired(late)


def test_swept_record_round_trip_keeps_signatures() -> None:
    mint = MintResult("Mint1", "sig1", "https://ipfs.test/cid-1")
    session = _session(
        state=Swept(
            mint=mint,
            sweep=SweepResult(asset_signature="sweep-1", gas_signature=None),
            buyer="Buyer1",
        )
    )

    record = session.to_record()
    restored = EscrowSession.from_record(record)

    assert record["state"]["status"] == "swept"
    assert record["state"]["asset_sweep_signature"] == "sweep-1"
    assert restored == session
    assert restored.mint == mint
    assert restored.buyer == "Buyer1"


def test_needs_funding_record_keeps_buyer_and_shortfall() -> None:
    session = _session(
        state=NeedsFunding(error="top up", buyer="Buyer2", needed_lamports=42)
    )

    restored = EscrowSession.from_record(session.to_record())

    assert restored.status is SessionStatus.NEEDS_FUNDING
    assert restored.state == session.state


def test_expired_state_carries_no_buyer() -> None:
    record = _session(state=Expired()).to_record()

    assert record["state"] == {"status": "expired"}
    assert EscrowSession.from_record(record).buyer is None
