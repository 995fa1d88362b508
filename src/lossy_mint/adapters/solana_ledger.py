"""Ledger implementation for Solana mainnet."""

import logging
from dataclasses import dataclass

from solders.hash import Hash
from solders.instruction import Instruction
from solders.keypair import Keypair
from solders.message import MessageV0
from solders.pubkey import Pubkey
from solders.system_program import (
    CreateAccountParams,
    TransferParams,
    create_account,
    transfer,
)
from solders.transaction import VersionedTransaction

from lossy_mint.adapters.solana_instructions import (
    MINT_ACCOUNT_SIZE,
    TOKEN_PROGRAM_ID,
    associated_token_address,
    create_associated_token_account_idempotent,
    create_master_edition_v3,
    create_metadata_account_v3,
    initialize_mint2,
    mint_to,
    transfer_checked,
)
from lossy_mint.adapters.solana_rpc import HttpxSolanaRpcClient
from lossy_mint.domain.ledger import (
    MintReceipt,
    NftMintRequest,
    TokenBalance,
    TransactionBalances,
)
from lossy_mint.services.ledger import Ledger

_logger = logging.getLogger(__name__)

USDC_DECIMALS = 6


@dataclass
class SolanaLedger(Ledger):
    """Reads balances and submits transactions through a Solana RPC node."""

    rpc: HttpxSolanaRpcClient
    asset_mint: str
    asset_decimals: int = USDC_DECIMALS

    @property
    def _asset_mint(self) -> Pubkey:
        return Pubkey.from_string(self.asset_mint)

    def _asset_account(self, owner: str) -> Pubkey:
        return associated_token_address(Pubkey.from_string(owner), self._asset_mint)

    async def token_balance(self, owner: str) -> int:
        amount = await self.rpc.get_token_account_balance(
            str(self._asset_account(owner))
        )
        return amount or 0

    async def native_balance(self, owner: str) -> int:
        return await self.rpc.get_balance(owner)

    async def recent_transfer_signatures(self, owner: str, limit: int) -> list[str]:
        """Return successful signatures touching owner's payment-asset account."""
        records = await self.rpc.get_signatures_for_address(
            str(self._asset_account(owner)), limit
        )
        return [str(record["signature"]) for record in records if not record.get("err")]

    async def transaction_balances(self, signature: str) -> TransactionBalances | None:
        transaction = await self.rpc.get_transaction(signature)
        if not transaction or not transaction.get("meta"):
            return None
        meta = transaction["meta"]
        return TransactionBalances(
            signature=signature,
            pre=[_token_balance(entry) for entry in meta.get("preTokenBalances") or []],
            post=[
                _token_balance(entry) for entry in meta.get("postTokenBalances") or []
            ],
        )

    async def transfer_token(self, sender: Keypair, recipient: str, amount: int) -> str:
        """Move payment-asset units into recipient's associated account."""
        owner = sender.pubkey()
        recipient_key = Pubkey.from_string(recipient)
        instructions = [
            create_associated_token_account_idempotent(
                owner, recipient_key, self._asset_mint
            ),
            transfer_checked(
                associated_token_address(owner, self._asset_mint),
                self._asset_mint,
                associated_token_address(recipient_key, self._asset_mint),
                owner,
                amount,
                self.asset_decimals,
            ),
        ]
        return await self._submit(sender, instructions, [sender])

    async def transfer_native(
        self, sender: Keypair, recipient: str, lamports: int
    ) -> str:
        instruction = transfer(
            TransferParams(
                from_pubkey=sender.pubkey(),
                to_pubkey=Pubkey.from_string(recipient),
                lamports=lamports,
            )
        )
        return await self._submit(sender, [instruction], [sender])

    async def fund_escrow(self, payer: Keypair, escrow: str, lamports: int) -> str:
        """Send gas to the escrow and open its payment-asset account."""
        escrow_key = Pubkey.from_string(escrow)
        instructions = [
            transfer(
                TransferParams(
                    from_pubkey=payer.pubkey(), to_pubkey=escrow_key, lamports=lamports
                )
            ),
            create_associated_token_account_idempotent(
                payer.pubkey(), escrow_key, self._asset_mint
            ),
        ]
        signature = await self._submit(payer, instructions, [payer])
        _logger.info("Funded escrow %s with %s lamports", escrow, lamports)
        return signature

    async def create_nft(
        self, authority: Keypair, request: NftMintRequest
    ) -> MintReceipt:
        """Create a mint, its metadata and master edition, and deliver one token."""
        mint = Keypair()
        mint_key = mint.pubkey()
        authority_key = authority.pubkey()
        owner = Pubkey.from_string(request.owner)
        rent = await self.rpc.get_minimum_balance_for_rent_exemption(MINT_ACCOUNT_SIZE)
        creators = [
            (Pubkey.from_string(creator.address), creator.verified, creator.share)
            for creator in request.creators
        ]
        collection = (
            Pubkey.from_string(request.collection) if request.collection else None
        )
        instructions = [
            create_account(
                CreateAccountParams(
                    from_pubkey=authority_key,
                    to_pubkey=mint_key,
                    lamports=rent,
                    space=MINT_ACCOUNT_SIZE,
                    owner=TOKEN_PROGRAM_ID,
                )
            ),
            initialize_mint2(mint_key, 0, authority_key, authority_key),
            create_associated_token_account_idempotent(authority_key, owner, mint_key),
            mint_to(
                mint_key, associated_token_address(owner, mint_key), authority_key, 1
            ),
            create_metadata_account_v3(
                mint_key,
                authority_key,
                request.name,
                request.symbol,
                request.uri,
                request.seller_fee_basis_points,
                creators,
                collection,
                request.is_mutable,
            ),
            create_master_edition_v3(mint_key, authority_key),
        ]
        signature = await self._submit(authority, instructions, [authority, mint])
        return MintReceipt(mint_address=str(mint_key), signature=signature)

    async def _submit(
        self, payer: Keypair, instructions: list[Instruction], signers: list[Keypair]
    ) -> str:
        blockhash = await self.rpc.get_latest_blockhash()
        message = MessageV0.try_compile(
            payer.pubkey(), instructions, [], Hash.from_string(blockhash)
        )
        transaction = VersionedTransaction(message, signers)
        signature = str(transaction.signatures[0])
        return await self.rpc.send_transaction(bytes(transaction), signature)


def _token_balance(entry: dict[str, object]) -> TokenBalance:
    return TokenBalance(
        account_index=int(entry["accountIndex"]),
        mint=str(entry["mint"]),
        owner=entry.get("owner"),
        amount=int(entry["uiTokenAmount"]["amount"]),
    )
