"""Tests for metadata assembly and mint submission."""

import asyncio
from dataclasses import replace
from datetime import UTC, datetime, timedelta

import pytest

from lossy_mint.domain.errors import (
    InsufficientFundsError,
    InsufficientGasError,
    LedgerError,
    MetadataUploadError,
    MintTransactionError,
)
from lossy_mint.domain.sessions import ArtifactMetadata, EscrowSession, OutputType
from lossy_mint.services.keys import KeyDerivationService
from lossy_mint.services.minting import (
    MintOrchestrator,
    build_attributes,
    build_display_name,
    build_metadata_document,
)
from tests.conftest import BUYER, CREATOR, FakeContentStore, FakeLedger

NOW = datetime(2026, 3, 1, tzinfo=UTC)


def _session(output_type: OutputType = OutputType.VIDEO) -> EscrowSession:
    return EscrowSession(
        session_id="sess_9_1772323200000",
        session_index=9,
        escrow_address="Escrow9",
        output_type=output_type,
        metadata=ArtifactMetadata(
            answers={"volume": "hollow", "custom": "yes"},
            mode="ember",
            speed=2,
            file_uri="https://ipfs.test/media",
            ghost="faint",
        ),
        created_at=NOW,
        expires_at=NOW + timedelta(minutes=30),
        required_amount=2_250_000,
    )


def _orchestrator(
    ledger: FakeLedger, content_store: FakeContentStore, keys: KeyDerivationService
) -> MintOrchestrator:
    return MintOrchestrator(
        ledger=ledger,
        content_store=content_store,
        keys=keys,
        creator_address=CREATOR,
        clock=lambda: NOW,
    )


def test_display_name_is_clipped_to_limit() -> None:
    session = _session()
    long_mode = replace(session, metadata=ArtifactMetadata(mode="incandescence-forever"))

    assert build_display_name(session, NOW) == "LOSSY -- Ember -- 26-03-01"
    name = build_display_name(long_mode, NOW)
    assert len(name) <= 32
    assert name.startswith("LOSSY -- Incandesce")


def test_attributes_label_known_questions() -> None:
    attributes = build_attributes(_session())

    assert {"trait_type": "HOW IS YOUR FORM?", "value": "hollow"} in attributes
    assert {"trait_type": "custom", "value": "yes"} in attributes
    assert {"trait_type": "Mode", "value": "Ember"} in attributes
    assert {"trait_type": "Speed", "value": "2x"} in attributes
    assert {"trait_type": "Output Type", "value": "video"} in attributes
    assert {"trait_type": "Ghost", "value": "faint"} in attributes


def test_photo_metadata_has_no_animation_url() -> None:
    photo = build_metadata_document(_session(OutputType.PHOTO), "n", CREATOR)
    video = build_metadata_document(_session(OutputType.VIDEO), "n", CREATOR)

    assert "animation_url" not in photo
    assert photo["properties"]["category"] == "image"
    assert video["animation_url"] == "https://ipfs.test/media"
    assert video["properties"]["files"][0]["type"] == "video/webm"


def test_mint_uploads_metadata_and_targets_buyer(
    ledger: FakeLedger, content_store: FakeContentStore, keys: KeyDerivationService
) -> None:
    result = asyncio.run(_orchestrator(ledger, content_store, keys).mint(_session(), BUYER))

    request = ledger.mint_requests[0]
    assert result.mint_address == "mint-1"
    assert result.metadata_uri == "https://ipfs.test/cid-1"
    assert content_store.uploads[0][0] == "lossy-metadata-sess_9_1772323200000.json"
    assert request.owner == BUYER
    assert request.uri == result.metadata_uri
    assert request.seller_fee_basis_points == 1500
    assert request.creators[0].address == CREATOR
    assert request.is_mutable is False


def test_mint_falls_back_to_treasury_without_buyer(
    ledger: FakeLedger, content_store: FakeContentStore, keys: KeyDerivationService
) -> None:
    asyncio.run(_orchestrator(ledger, content_store, keys).mint(_session(), None))

    assert ledger.mint_requests[0].owner == str(keys.treasury_keypair().pubkey())


def test_metadata_upload_failure_is_reported(
    ledger: FakeLedger, keys: KeyDerivationService
) -> None:
    orchestrator = _orchestrator(ledger, FakeContentStore(fail=True), keys)

    with pytest.raises(MetadataUploadError):
        asyncio.run(orchestrator.mint(_session(), BUYER))
    assert ledger.mint_requests == []


def test_insufficient_funds_becomes_insufficient_gas(
    ledger: FakeLedger, content_store: FakeContentStore, keys: KeyDerivationService
) -> None:
    ledger.mint_error = InsufficientFundsError("insufficient lamports", 12_000_000)

    with pytest.raises(InsufficientGasError) as exc_info:
        asyncio.run(_orchestrator(ledger, content_store, keys).mint(_session(), BUYER))
    assert exc_info.value.needed_lamports == 12_000_000


def test_other_ledger_errors_become_mint_errors(
    ledger: FakeLedger, content_store: FakeContentStore, keys: KeyDerivationService
) -> None:
    ledger.mint_error = LedgerError("blockhash not found")

    with pytest.raises(MintTransactionError) as exc_info:
        asyncio.run(_orchestrator(ledger, content_store, keys).mint(_session(), BUYER))
    assert not isinstance(exc_info.value, InsufficientGasError)
