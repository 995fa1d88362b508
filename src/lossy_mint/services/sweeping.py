"""Sweeps escrowed funds back to the treasury after a mint."""

import logging
from dataclasses import dataclass

import httpx

from lossy_mint.domain.errors import LedgerError, SweepError
from lossy_mint.domain.sessions import EscrowSession, SweepResult
from lossy_mint.services.keys import KeyDerivationService
from lossy_mint.services.ledger import Ledger

_logger = logging.getLogger(__name__)

FEE_BUFFER_LAMPORTS = 5000


@dataclass
class SweepAgent:
    """Moves the payment asset, then leftover gas, out of an escrow."""

    ledger: Ledger
    keys: KeyDerivationService
    fee_buffer_lamports: int = FEE_BUFFER_LAMPORTS

    async def sweep(self, session: EscrowSession) -> SweepResult:
        """Sweep a session's escrow; safe to repeat once drained."""
        escrow = self.keys.session_keypair(session.session_index)
        treasury_address = str(self.keys.treasury_keypair().pubkey())
        escrow_address = str(escrow.pubkey())
        try:
            asset_signature = None
            balance = await self.ledger.token_balance(escrow_address)
            if balance > 0:
                asset_signature = await self.ledger.transfer_token(
                    escrow, treasury_address, balance
                )

            gas_signature = None
            remainder = (
                await self.ledger.native_balance(escrow_address)
                - self.fee_buffer_lamports
            )
            if remainder > 0:
                gas_signature = await self.ledger.transfer_native(
                    escrow, treasury_address, remainder
                )
        except (LedgerError, httpx.HTTPError) as exc:
            raise SweepError(
                f"Sweep failed for session {session.session_id}: {exc}"
            ) from exc

        _logger.info(
            "Swept session %s: asset=%s gas=%s",
            session.session_id,
            asset_signature,
            gas_signature,
        )
        return SweepResult(asset_signature=asset_signature, gas_signature=gas_signature)
