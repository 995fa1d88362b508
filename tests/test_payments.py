"""Tests for payment detection."""

import asyncio

from lossy_mint.domain.errors import LedgerError
from lossy_mint.domain.ledger import TokenBalance, TransactionBalances
from lossy_mint.services.payments import PaymentDetector
from tests.conftest import BUYER, USDC_MINT, FakeLedger


class FailingScanLedger(FakeLedger):
    async def recent_transfer_signatures(self, owner: str, limit: int) -> list[str]:
        raise LedgerError("rpc unavailable")


def test_check_compares_balance_with_required(ledger: FakeLedger) -> None:
    detector = PaymentDetector(ledger=ledger, asset_mint=USDC_MINT)
    ledger.token_balances["Escrow1"] = 1_000_000

    partial = asyncio.run(detector.check("Escrow1", 2_250_000))
    ledger.token_balances["Escrow1"] = 2_250_000
    full = asyncio.run(detector.check("Escrow1", 2_250_000))

    assert (partial.received, partial.confirmed) == (1_000_000, False)
    assert (full.received, full.confirmed) == (2_250_000, True)


def test_force_confirm_skips_balance_read(ledger: FakeLedger) -> None:
    detector = PaymentDetector(ledger=ledger, asset_mint=USDC_MINT, force_confirm=True)

    check = asyncio.run(detector.check("Escrow1", 2_250_000))

    assert check.confirmed
    assert check.received == 2_250_000


def test_find_counterparty_returns_debited_owner(ledger: FakeLedger) -> None:
    ledger.record_payment("Escrow1", BUYER, 2_250_000)
    detector = PaymentDetector(ledger=ledger, asset_mint=USDC_MINT)

    assert asyncio.run(detector.find_counterparty("Escrow1")) == BUYER


def test_find_counterparty_ignores_other_mints(ledger: FakeLedger) -> None:
    ledger.signatures["Escrow1"] = ["sig-other"]
    ledger.transactions["sig-other"] = TransactionBalances(
        signature="sig-other",
        pre=[TokenBalance(0, "OtherMint", BUYER, 10)],
        post=[TokenBalance(0, "OtherMint", BUYER, 0)],
    )
    detector = PaymentDetector(ledger=ledger, asset_mint=USDC_MINT)

    assert asyncio.run(detector.find_counterparty("Escrow1")) is None


def test_find_counterparty_tolerates_ledger_errors() -> None:
    detector = PaymentDetector(ledger=FailingScanLedger(), asset_mint=USDC_MINT)

    assert asyncio.run(detector.find_counterparty("Escrow1")) is None


class MalformedTransactionLedger(FakeLedger):
    async def transaction_balances(self, signature: str) -> TransactionBalances | None:
        raise KeyError("owner")


def test_find_counterparty_tolerates_malformed_transactions() -> None:
    ledger = MalformedTransactionLedger()
    ledger.record_payment("Escrow1", BUYER, 2_250_000)
    detector = PaymentDetector(ledger=ledger, asset_mint=USDC_MINT)

    assert asyncio.run(detector.find_counterparty("Escrow1")) is None
