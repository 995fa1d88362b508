"""Solana JSON-RPC client."""

import asyncio
import base64
import re
from dataclasses import dataclass, field
from itertools import count

import httpx

from lossy_mint.domain.errors import (
    InsufficientFundsError,
    LedgerError,
    TransactionUnconfirmedError,
)

_INSUFFICIENT_FUNDS_MARKERS = (
    "insufficient lamports",
    "insufficient funds",
    "attempt to debit an account but found no record of a prior credit",
)
_NEED_PATTERN = re.compile(r"need (\d+)")
_ACCOUNT_NOT_FOUND = "could not find account"


class SolanaRpcError(LedgerError):
    """JSON-RPC error response from a Solana node."""

    def __init__(self, method: str, error: dict[str, object]) -> None:
        self.code = error.get("code")
        self.rpc_message = str(error.get("message", ""))
        data = error.get("data")
        logs = data.get("logs") if isinstance(data, dict) else None
        self.logs = [str(line) for line in logs or []]
        super().__init__(f"{method} failed: {self.rpc_message}")

    def detail(self) -> str:
        """Return the message and simulation logs as one string."""
        return "\n".join([self.rpc_message, *self.logs])


@dataclass
class HttpxSolanaRpcClient:
    """Minimal Solana JSON-RPC client over httpx."""

    rpc_url: str
    http_client: httpx.AsyncClient
    commitment: str = "confirmed"
    timeout: float = 15
    confirm_attempts: int = 30
    confirm_interval_seconds: float = 1.0
    _ids: count = field(default_factory=lambda: count(1), init=False, repr=False)

    @classmethod
    def create(cls, rpc_url: str) -> "HttpxSolanaRpcClient":
        """Create an RPC client with a managed httpx session."""
        return cls(rpc_url=rpc_url, http_client=httpx.AsyncClient())

    async def call(self, method: str, params: list[object] | None = None) -> object:
        """Send a JSON-RPC request and return its result."""
        payload = {
            "jsonrpc": "2.0",
            "id": next(self._ids),
            "method": method,
            "params": params or [],
        }
        try:
            response = await self.http_client.post(
                self.rpc_url, json=payload, timeout=self.timeout
            )
            response.raise_for_status()
            body = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise LedgerError(f"{method} request failed: {exc}") from exc
        if body.get("error"):
            raise SolanaRpcError(method, body["error"])
        return body.get("result")

    async def get_balance(self, address: str) -> int:
        """Return the lamport balance of an address."""
        result = await self.call("getBalance", [address, {"commitment": self.commitment}])
        return int(result["value"])

    async def get_token_account_balance(self, address: str) -> int | None:
        """Return the raw token amount held by a token account, if it exists."""
        try:
            result = await self.call(
                "getTokenAccountBalance", [address, {"commitment": self.commitment}]
            )
        except SolanaRpcError as exc:
            if _ACCOUNT_NOT_FOUND in exc.rpc_message.lower():
                return None
            raise
        return int(result["value"]["amount"])

    async def get_signatures_for_address(
        self, address: str, limit: int
    ) -> list[dict[str, object]]:
        """Return recent signature records for an address, newest first."""
        result = await self.call(
            "getSignaturesForAddress",
            [address, {"limit": limit, "commitment": self.commitment}],
        )
        return list(result or [])

    async def get_transaction(self, signature: str) -> dict[str, object] | None:
        return await self.call(
            "getTransaction",
            [
                signature,
                {
                    "commitment": self.commitment,
                    "encoding": "json",
                    "maxSupportedTransactionVersion": 0,
                },
            ],
        )

    async def get_latest_blockhash(self) -> str:
        result = await self.call(
            "getLatestBlockhash", [{"commitment": self.commitment}]
        )
        return str(result["value"]["blockhash"])

    async def get_minimum_balance_for_rent_exemption(self, size: int) -> int:
        result = await self.call("getMinimumBalanceForRentExemption", [size])
        return int(result)

    async def send_transaction(self, raw_transaction: bytes, signature: str) -> str:
        """Submit a signed transaction and wait for confirmation.

        Preflight failures raise immediately. A transport failure after
        the request left raises TransactionUnconfirmedError, since the
        transaction may still land.
        """
        encoded = base64.b64encode(raw_transaction).decode("ascii")
        try:
            await self.call(
                "sendTransaction",
                [
                    encoded,
                    {"encoding": "base64", "preflightCommitment": self.commitment},
                ],
            )
        except SolanaRpcError as exc:
            raise _classify_send_error(exc) from exc
        except LedgerError as exc:
            raise TransactionUnconfirmedError(signature) from exc
        await self.confirm_transaction(signature)
        return signature

    async def confirm_transaction(self, signature: str) -> None:
        """Poll signature status until confirmed, failed, or out of attempts."""
        for _ in range(self.confirm_attempts):
            result = await self.call(
                "getSignatureStatuses",
                [[signature], {"searchTransactionHistory": False}],
            )
            status = (result.get("value") or [None])[0]
            if status is not None:
                if status.get("err"):
                    raise LedgerError(
                        f"Transaction {signature} failed: {status['err']}"
                    )
                if status.get("confirmationStatus") in {"confirmed", "finalized"}:
                    return
            await asyncio.sleep(self.confirm_interval_seconds)
        raise TransactionUnconfirmedError(signature)

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        await self.http_client.aclose()


def _classify_send_error(exc: SolanaRpcError) -> LedgerError:
    detail = exc.detail()
    lowered = detail.lower()
    if any(marker in lowered for marker in _INSUFFICIENT_FUNDS_MARKERS):
        match = _NEED_PATTERN.search(detail)
        needed = int(match.group(1)) if match else None
        return InsufficientFundsError(str(exc), needed_lamports=needed)
    tail = "\n".join(exc.logs[-5:])
    return LedgerError(f"{exc}\n{tail}" if tail else str(exc))
