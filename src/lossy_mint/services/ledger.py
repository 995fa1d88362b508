"""Ledger interface consumed by the escrow services."""

from typing import Protocol

from solders.keypair import Keypair

from lossy_mint.domain.ledger import MintReceipt, NftMintRequest, TransactionBalances


class Ledger(Protocol):
    """Balance reads and confirmed transaction submission.

    Amounts are raw integer units: token base units for the payment asset
    and lamports for the native currency. Every submitting method returns
    only after the transaction is confirmed.
    """

    async def token_balance(self, owner: str) -> int:
        """Return the payment-asset balance of owner, 0 if it has no account."""

    async def native_balance(self, owner: str) -> int:
        """Return the native balance of an address."""

    async def recent_transfer_signatures(self, owner: str, limit: int) -> list[str]:
        """Return successful transfer signatures into owner, newest first."""

    async def transaction_balances(self, signature: str) -> TransactionBalances | None:
        """Return token balances around a confirmed transaction."""

    async def transfer_token(self, sender: Keypair, recipient: str, amount: int) -> str:
        """Transfer payment-asset units from sender to recipient."""

    async def transfer_native(
        self, sender: Keypair, recipient: str, lamports: int
    ) -> str:
        """Transfer native currency from sender to recipient."""

    async def fund_escrow(self, payer: Keypair, escrow: str, lamports: int) -> str:
        """Send gas to an escrow address and open its payment-asset account."""

    async def create_nft(
        self, authority: Keypair, request: NftMintRequest
    ) -> MintReceipt:
        """Mint a single NFT paid for and signed by authority."""
