"""Payment detection for escrow addresses."""

import logging
from dataclasses import dataclass

from lossy_mint.domain.errors import LedgerError
from lossy_mint.services.ledger import Ledger

_logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PaymentCheck:
    """Result of comparing an escrow balance with the required amount."""

    received: int
    confirmed: bool


@dataclass
class PaymentDetector:
    """Reads escrow balances and infers who paid."""

    ledger: Ledger
    asset_mint: str
    scan_limit: int = 10
    force_confirm: bool = False

    async def balance_of(self, address: str) -> int:
        """Return the payment-asset balance of an escrow address."""
        return await self.ledger.token_balance(address)

    async def check(self, address: str, required_amount: int) -> PaymentCheck:
        """Return whether the escrow holds at least the required amount."""
        if self.force_confirm:
            return PaymentCheck(received=required_amount, confirmed=True)
        received = await self.balance_of(address)
        return PaymentCheck(received=received, confirmed=received >= required_amount)

    async def find_counterparty(self, address: str) -> str | None:
        """Return the sender of the latest payment into address, if found.

        Only the most recent ``scan_limit`` transfers are inspected, so a
        valid payment can still come back as None.
        """
        try:
            signatures = await self.ledger.recent_transfer_signatures(
                address, self.scan_limit
            )
            for signature in signatures:
                balances = await self.ledger.transaction_balances(signature)
                if balances is None:
                    continue
                for pre in balances.pre:
                    if pre.mint != self.asset_mint:
                        continue
                    post_amount = balances.post_amount(pre.account_index)
                    if pre.amount > post_amount and pre.owner not in {None, address}:
                        return pre.owner
        except (LedgerError, KeyError, ValueError):
            _logger.exception(
                "Counterparty scan failed", extra={"escrow_address": address}
            )
        return None
