"""Error taxonomy for the escrow mint flow."""


class EscrowError(Exception):
    """Base class for all escrow mint errors."""


class ConfigurationError(EscrowError):
    """A required secret or setting is missing."""


class SessionNotFoundError(EscrowError):
    """The session does not exist or has been evicted."""

    def __init__(self, session_id: str) -> None:
        super().__init__(f"Session not found or expired: {session_id}")
        self.session_id = session_id


class StoreError(EscrowError):
    """The key-value store rejected a command."""


class UploadError(EscrowError):
    """The content store rejected an upload or returned no identifier."""


class MetadataUploadError(UploadError):
    """The NFT metadata document could not be uploaded."""


class LedgerError(EscrowError):
    """The ledger rejected a request or a submitted transaction."""


class InsufficientFundsError(LedgerError):
    """A signer lacks the native balance to pay for a transaction."""

    def __init__(self, message: str, needed_lamports: int | None = None) -> None:
        super().__init__(message)
        self.needed_lamports = needed_lamports


class TransactionUnconfirmedError(LedgerError):
    """A submitted transaction was not confirmed within the polling window."""

    def __init__(self, signature: str) -> None:
        super().__init__(f"Transaction {signature} was not confirmed in time")
        self.signature = signature


class MintTransactionError(EscrowError):
    """The mint transaction failed."""


class InsufficientGasError(MintTransactionError):
    """The treasury cannot pay the mint fees; funding it fixes the mint."""

    def __init__(self, message: str, needed_lamports: int | None = None) -> None:
        super().__init__(message)
        self.needed_lamports = needed_lamports


class SweepError(EscrowError):
    """Moving escrowed funds back to the treasury failed."""
