"""NFT metadata assembly and mint submission."""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime

from lossy_mint.domain.errors import (
    InsufficientFundsError,
    InsufficientGasError,
    LedgerError,
    MetadataUploadError,
    MintTransactionError,
    UploadError,
)
from lossy_mint.domain.ledger import NftCreator, NftMintRequest
from lossy_mint.domain.sessions import EscrowSession, MintResult, OutputType
from lossy_mint.services.keys import KeyDerivationService
from lossy_mint.services.ledger import Ledger
from lossy_mint.services.uploads import ContentStore

_logger = logging.getLogger(__name__)

MAX_NAME_LENGTH = 32
NFT_SYMBOL = "LOSSY"
ROYALTY_BASIS_POINTS = 1500
DESCRIPTION = (
    "Lossy. An extension of Day After Day by lampwrecked. "
    "The signal persists in spite of decay."
)
EXTERNAL_URL = "https://exchange.art"
DEFAULT_CREATOR_ADDRESS = "FrstHD18pJsFRatk2hnfv4EztP1p87mJ1SL6QyXCcQju"

QUESTION_LABELS = {
    "volume": "HOW IS YOUR FORM?",
    "distortion": "ARE YOU EXPERIENCING A LOSS OF SENSORY QUALITY?",
    "pitch": "WHAT IS THE LOCATION OF THE SHORT CIRCUIT?",
    "glitch": "WHAT IS YOUR SIGNAL TO NOISE RATIO?",
    "reverb": "IS IT SHARP OR DULL?",
    "crush": "WHAT IS YOUR IDEAL LIGHTING SITUATION?",
    "scale": "WHAT MEDIUM DO YOU FEEL MOST COMFORTABLE IN?",
    "wobble": "HAVE YOU EVER FORGOTTEN WHERE YOU END?",
    "echo": "HAVE YOU EVER FORGOTTEN WHEN YOU END?",
    "speed": "HOW DOES THE CANDLE BURN?",
    "mode": "WHAT IS THE FIRE?",
    "launch": "HOW DO YOU CONSUME IT?",
}

_FILE_TYPES = {
    OutputType.PHOTO: "image/webp",
    OutputType.AUDIO: "audio/webm",
    OutputType.VIDEO: "video/webm",
}


def _utcnow() -> datetime:
    return datetime.now(tz=UTC)


@dataclass
class MintOrchestrator:
    """Uploads metadata and mints the session's NFT.

    Holds no per-session state; the session controller guarantees a
    session is never minted twice.
    """

    ledger: Ledger
    content_store: ContentStore
    keys: KeyDerivationService
    creator_address: str
    collection_mint: str | None = None
    clock: Callable[[], datetime] = field(default=_utcnow)

    async def mint(self, session: EscrowSession, buyer: str | None) -> MintResult:
        """Mint the session's NFT to buyer, or to the treasury if unknown."""
        treasury = self.keys.treasury_keypair()
        treasury_address = str(treasury.pubkey())
        name = build_display_name(session, self.clock())
        document = build_metadata_document(session, name, treasury_address)

        try:
            stored = await self.content_store.upload_json(
                document, f"lossy-metadata-{session.session_id}.json"
            )
        except UploadError as exc:
            raise MetadataUploadError(f"Metadata upload failed: {exc}") from exc
        if not stored.content_id:
            raise MetadataUploadError("Metadata upload returned no content id")

        request = NftMintRequest(
            name=name,
            symbol=NFT_SYMBOL,
            uri=stored.uri,
            seller_fee_basis_points=ROYALTY_BASIS_POINTS,
            creators=[NftCreator(address=self.creator_address, share=100)],
            owner=buyer or treasury_address,
            is_mutable=False,
            collection=self.collection_mint,
        )
        try:
            receipt = await self.ledger.create_nft(treasury, request)
        except InsufficientFundsError as exc:
            raise InsufficientGasError(str(exc), exc.needed_lamports) from exc
        except LedgerError as exc:
            raise MintTransactionError(str(exc)) from exc

        _logger.info(
            "Minted %s for session %s to %s",
            receipt.mint_address,
            session.session_id,
            request.owner,
        )
        return MintResult(
            mint_address=receipt.mint_address,
            mint_signature=receipt.signature,
            metadata_uri=stored.uri,
        )


def build_display_name(session: EscrowSession, now: datetime) -> str:
    """Build the on-chain NFT name, clipped to the platform limit."""
    mode = _mode_name(session.metadata.mode)
    short_date = now.strftime("%y-%m-%d")
    return f"LOSSY -- {mode[:10]} -- {short_date}"[:MAX_NAME_LENGTH]


def build_attributes(session: EscrowSession) -> list[dict[str, str]]:
    """Build NFT attributes from the visitor's answers and settings."""
    metadata = session.metadata
    attributes = [
        {"trait_type": QUESTION_LABELS.get(question, question), "value": str(answer)}
        for question, answer in metadata.answers.items()
    ]
    if metadata.mode:
        attributes.append({"trait_type": "Mode", "value": _mode_name(metadata.mode)})
    if metadata.speed is not None and metadata.speed != "":
        attributes.append({"trait_type": "Speed", "value": f"{metadata.speed}x"})
    attributes.append({"trait_type": "Output Type", "value": session.output_type.value})
    if metadata.ghost:
        attributes.append({"trait_type": "Ghost", "value": str(metadata.ghost)})
    return attributes


def build_metadata_document(
    session: EscrowSession, name: str, creator_address: str
) -> dict[str, object]:
    """Build the off-chain metadata JSON document."""
    file_uri = session.metadata.file_uri or ""
    output_type = session.output_type
    document: dict[str, object] = {
        "name": name,
        "description": DESCRIPTION,
        "image": file_uri,
        "external_url": EXTERNAL_URL,
        "attributes": build_attributes(session),
        "properties": {
            "files": [{"uri": file_uri, "type": _FILE_TYPES[output_type]}],
            "category": "image" if output_type is OutputType.PHOTO else output_type.value,
            "creators": [{"address": creator_address, "share": 100}],
        },
    }
    if output_type is not OutputType.PHOTO:
        document["animation_url"] = file_uri
    return document


def _mode_name(mode: str | None) -> str:
    if not mode:
        return "Unknown"
    return mode[0].upper() + mode[1:]
