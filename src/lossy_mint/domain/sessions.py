"""Domain models for escrow mint sessions.

A session's status is a tagged variant: each status is its own frozen
dataclass carrying only the data that status implies, so a minted session
without a mint address cannot be constructed.
"""

from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from enum import Enum
from typing import ClassVar


class OutputType(str, Enum):
    """Kind of media artifact the visitor produced."""

    PHOTO = "photo"
    AUDIO = "audio"
    VIDEO = "video"


class SessionStatus(str, Enum):
    """Status string of a session."""

    PENDING = "pending"
    MINTING = "minting"
    PAID = "paid"
    NEEDS_FUNDING = "needs_funding"
    MINTED = "minted"
    SWEPT = "swept"
    EXPIRED = "expired"


@dataclass(frozen=True)
class ArtifactMetadata:
    """Visitor answers and media pointer captured before payment."""

    answers: dict[str, object] = field(default_factory=dict)
    mode: str | None = None
    speed: float | str | None = None
    file_uri: str | None = None
    ghost: str | None = None
    name: str | None = None
    zones: object | None = None


@dataclass(frozen=True)
class MintResult:
    """Outcome of a successful mint."""

    mint_address: str
    mint_signature: str
    metadata_uri: str


@dataclass(frozen=True)
class SweepResult:
    """Signatures of the sweep transfers; None where nothing was moved."""

    asset_signature: str | None
    gas_signature: str | None


@dataclass(frozen=True)
class Pending:
    status: ClassVar[SessionStatus] = SessionStatus.PENDING


@dataclass(frozen=True)
class Minting:
    status: ClassVar[SessionStatus] = SessionStatus.MINTING
    buyer: str | None = None


@dataclass(frozen=True)
class Paid:
    """Payment confirmed but the mint failed; retried on request."""

    status: ClassVar[SessionStatus] = SessionStatus.PAID
    error: str
    buyer: str | None = None


@dataclass(frozen=True)
class NeedsFunding:
    """Payment confirmed but the treasury could not pay mint fees."""

    status: ClassVar[SessionStatus] = SessionStatus.NEEDS_FUNDING
    error: str
    buyer: str | None = None
    needed_lamports: int | None = None


@dataclass(frozen=True)
class Minted:
    status: ClassVar[SessionStatus] = SessionStatus.MINTED
    mint: MintResult
    buyer: str | None = None


@dataclass(frozen=True)
class Swept:
    status: ClassVar[SessionStatus] = SessionStatus.SWEPT
    mint: MintResult
    sweep: SweepResult
    buyer: str | None = None


@dataclass(frozen=True)
class Expired:
    status: ClassVar[SessionStatus] = SessionStatus.EXPIRED


SessionState = Pending | Minting | Paid | NeedsFunding | Minted | Swept | Expired

# States from which a confirmed payment may start a mint.
MINTABLE_STATES = (Pending, Paid, NeedsFunding)


@dataclass(frozen=True)
class EscrowSession:
    """A single pay-to-mint session bound to one escrow address."""

    session_id: str
    session_index: int
    escrow_address: str
    output_type: OutputType
    metadata: ArtifactMetadata
    created_at: datetime
    expires_at: datetime
    required_amount: int
    state: SessionState = field(default_factory=Pending)

    @property
    def status(self) -> SessionStatus:
        return self.state.status

    @property
    def buyer(self) -> str | None:
        """Buyer identity detected so far, if any."""
        return getattr(self.state, "buyer", None)

    @property
    def mint(self) -> MintResult | None:
        return getattr(self.state, "mint", None)

    def is_expired(self, now: datetime) -> bool:
        """Return True when an unpaid session is past its deadline."""
        return isinstance(self.state, Pending) and now > self.expires_at

    def with_state(self, state: SessionState) -> "EscrowSession":
        return replace(self, state=state)

    def to_record(self) -> dict[str, object]:
        """Serialize to a JSON-compatible record."""
        return {
            "session_id": self.session_id,
            "session_index": self.session_index,
            "escrow_address": self.escrow_address,
            "output_type": self.output_type.value,
            "metadata": {
                "answers": self.metadata.answers,
                "mode": self.metadata.mode,
                "speed": self.metadata.speed,
                "file_uri": self.metadata.file_uri,
                "ghost": self.metadata.ghost,
                "name": self.metadata.name,
                "zones": self.metadata.zones,
            },
            "created_at": to_millis(self.created_at),
            "expires_at": to_millis(self.expires_at),
            "required_amount": self.required_amount,
            "state": _state_to_record(self.state),
        }

    @classmethod
    def from_record(cls, record: dict[str, object]) -> "EscrowSession":
        """Rebuild a session from a stored record."""
        metadata = record.get("metadata") or {}
        return cls(
            session_id=str(record["session_id"]),
            session_index=int(record["session_index"]),
            escrow_address=str(record["escrow_address"]),
            output_type=OutputType(record["output_type"]),
            metadata=ArtifactMetadata(
                answers=dict(metadata.get("answers") or {}),
                mode=metadata.get("mode"),
                speed=metadata.get("speed"),
                file_uri=metadata.get("file_uri"),
                ghost=metadata.get("ghost"),
                name=metadata.get("name"),
                zones=metadata.get("zones"),
            ),
            created_at=from_millis(int(record["created_at"])),
            expires_at=from_millis(int(record["expires_at"])),
            required_amount=int(record["required_amount"]),
            state=_state_from_record(record.get("state") or {}),
        )


def to_millis(value: datetime) -> int:
    return int(value.timestamp() * 1000)


def from_millis(value: int) -> datetime:
    return datetime.fromtimestamp(value / 1000, tz=UTC)


def _state_to_record(state: SessionState) -> dict[str, object]:
    record: dict[str, object] = {"status": state.status.value}
    if isinstance(state, Minting | Paid | NeedsFunding | Minted | Swept):
        record["buyer"] = state.buyer
    if isinstance(state, Paid | NeedsFunding):
        record["error"] = state.error
    if isinstance(state, NeedsFunding):
        record["needed_lamports"] = state.needed_lamports
    if isinstance(state, Minted | Swept):
        record["mint_address"] = state.mint.mint_address
        record["mint_signature"] = state.mint.mint_signature
        record["metadata_uri"] = state.mint.metadata_uri
    if isinstance(state, Swept):
        record["asset_sweep_signature"] = state.sweep.asset_signature
        record["gas_sweep_signature"] = state.sweep.gas_signature
    return record


def _state_from_record(record: dict[str, object]) -> SessionState:  # noqa: PLR0911
    status = SessionStatus(record.get("status", SessionStatus.PENDING.value))
    buyer = record.get("buyer")
    if status is SessionStatus.PENDING:
        return Pending()
    if status is SessionStatus.EXPIRED:
        return Expired()
    if status is SessionStatus.MINTING:
        return Minting(buyer=buyer)
    if status is SessionStatus.PAID:
        return Paid(error=str(record.get("error", "")), buyer=buyer)
    if status is SessionStatus.NEEDS_FUNDING:
        return NeedsFunding(
            error=str(record.get("error", "")),
            buyer=buyer,
            needed_lamports=record.get("needed_lamports"),
        )
    mint = MintResult(
        mint_address=str(record["mint_address"]),
        mint_signature=str(record["mint_signature"]),
        metadata_uri=str(record.get("metadata_uri", "")),
    )
    if status is SessionStatus.MINTED:
        return Minted(mint=mint, buyer=buyer)
    return Swept(
        mint=mint,
        sweep=SweepResult(
            asset_signature=record.get("asset_sweep_signature"),
            gas_signature=record.get("gas_sweep_signature"),
        ),
        buyer=buyer,
    )
