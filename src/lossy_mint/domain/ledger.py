"""Ledger-facing value objects."""

from dataclasses import dataclass, field


@dataclass(frozen=True)
class TokenBalance:
    """Token balance of one account inside a transaction."""

    account_index: int
    mint: str
    owner: str | None
    amount: int


@dataclass(frozen=True)
class TransactionBalances:
    """Token balances before and after a confirmed transaction."""

    signature: str
    pre: list[TokenBalance] = field(default_factory=list)
    post: list[TokenBalance] = field(default_factory=list)

    def post_amount(self, account_index: int) -> int:
        """Return the post-transaction amount for an account, 0 if absent."""
        for entry in self.post:
            if entry.account_index == account_index:
                return entry.amount
        return 0


@dataclass(frozen=True)
class NftCreator:
    address: str
    share: int
    verified: bool = False


@dataclass(frozen=True)
class NftMintRequest:
    """Everything the ledger needs to mint a single NFT."""

    name: str
    symbol: str
    uri: str
    seller_fee_basis_points: int
    creators: list[NftCreator]
    owner: str
    is_mutable: bool = False
    collection: str | None = None


@dataclass(frozen=True)
class MintReceipt:
    mint_address: str
    signature: str
