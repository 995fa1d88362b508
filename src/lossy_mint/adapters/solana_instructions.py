"""Instruction builders for the SPL Token and Token Metadata programs."""

import struct

from solders.instruction import AccountMeta, Instruction
from solders.pubkey import Pubkey

SYSTEM_PROGRAM_ID = Pubkey.from_string("11111111111111111111111111111111")
TOKEN_PROGRAM_ID = Pubkey.from_string("TokenkegQfeZyiNwAJbNbGKPFXCWuBvf9Ss623VQ5DA")
ASSOCIATED_TOKEN_PROGRAM_ID = Pubkey.from_string(
    "ATokenGPvbdGVxr1b2hvZbsiqW5xWH25efTNsLJA8knL"
)
TOKEN_METADATA_PROGRAM_ID = Pubkey.from_string(
    "metaqbxxUerdq28cj1RbAWkYQm3ybzjb6a8bt518x1s"
)
SYSVAR_RENT_PUBKEY = Pubkey.from_string("SysvarRent111111111111111111111111111111111")

MINT_ACCOUNT_SIZE = 82

_TRANSFER_CHECKED = 12
_MINT_TO = 7
_INITIALIZE_MINT2 = 20
_CREATE_ATA_IDEMPOTENT = 1
_CREATE_METADATA_V3 = 33
_CREATE_MASTER_EDITION_V3 = 17


def associated_token_address(owner: Pubkey, mint: Pubkey) -> Pubkey:
    """Return the associated token account of owner for mint."""
    return Pubkey.find_program_address(
        [bytes(owner), bytes(TOKEN_PROGRAM_ID), bytes(mint)],
        ASSOCIATED_TOKEN_PROGRAM_ID,
    )[0]


def metadata_address(mint: Pubkey) -> Pubkey:
    return Pubkey.find_program_address(
        [b"metadata", bytes(TOKEN_METADATA_PROGRAM_ID), bytes(mint)],
        TOKEN_METADATA_PROGRAM_ID,
    )[0]


def master_edition_address(mint: Pubkey) -> Pubkey:
    return Pubkey.find_program_address(
        [b"metadata", bytes(TOKEN_METADATA_PROGRAM_ID), bytes(mint), b"edition"],
        TOKEN_METADATA_PROGRAM_ID,
    )[0]


def create_associated_token_account_idempotent(
    payer: Pubkey, owner: Pubkey, mint: Pubkey
) -> Instruction:
    """Create owner's token account for mint unless it already exists."""
    accounts = [
        AccountMeta(payer, is_signer=True, is_writable=True),
        AccountMeta(associated_token_address(owner, mint), is_signer=False, is_writable=True),
        AccountMeta(owner, is_signer=False, is_writable=False),
        AccountMeta(mint, is_signer=False, is_writable=False),
        AccountMeta(SYSTEM_PROGRAM_ID, is_signer=False, is_writable=False),
        AccountMeta(TOKEN_PROGRAM_ID, is_signer=False, is_writable=False),
    ]
    return Instruction(
        ASSOCIATED_TOKEN_PROGRAM_ID, bytes([_CREATE_ATA_IDEMPOTENT]), accounts
    )


def transfer_checked(  # noqa: PLR0913
    source: Pubkey,
    mint: Pubkey,
    destination: Pubkey,
    owner: Pubkey,
    amount: int,
    decimals: int,
) -> Instruction:
    data = struct.pack("<BQB", _TRANSFER_CHECKED, amount, decimals)
    accounts = [
        AccountMeta(source, is_signer=False, is_writable=True),
        AccountMeta(mint, is_signer=False, is_writable=False),
        AccountMeta(destination, is_signer=False, is_writable=True),
        AccountMeta(owner, is_signer=True, is_writable=False),
    ]
    return Instruction(TOKEN_PROGRAM_ID, data, accounts)


def initialize_mint2(
    mint: Pubkey, decimals: int, mint_authority: Pubkey, freeze_authority: Pubkey
) -> Instruction:
    data = (
        struct.pack("<BB", _INITIALIZE_MINT2, decimals)
        + bytes(mint_authority)
        + b"\x01"
        + bytes(freeze_authority)
    )
    return Instruction(
        TOKEN_PROGRAM_ID, data, [AccountMeta(mint, is_signer=False, is_writable=True)]
    )


def mint_to(
    mint: Pubkey, destination: Pubkey, authority: Pubkey, amount: int
) -> Instruction:
    data = struct.pack("<BQ", _MINT_TO, amount)
    accounts = [
        AccountMeta(mint, is_signer=False, is_writable=True),
        AccountMeta(destination, is_signer=False, is_writable=True),
        AccountMeta(authority, is_signer=True, is_writable=False),
    ]
    return Instruction(TOKEN_PROGRAM_ID, data, accounts)


def create_metadata_account_v3(  # noqa: PLR0913
    mint: Pubkey,
    authority: Pubkey,
    name: str,
    symbol: str,
    uri: str,
    seller_fee_basis_points: int,
    creators: list[tuple[Pubkey, bool, int]],
    collection: Pubkey | None,
    is_mutable: bool,
) -> Instruction:
    """Build CreateMetadataAccountV3 with authority as payer and updater.

    ``creators`` holds ``(address, verified, share)`` tuples.
    """
    data = bytearray([_CREATE_METADATA_V3])
    data += _borsh_string(name)
    data += _borsh_string(symbol)
    data += _borsh_string(uri)
    data += struct.pack("<H", seller_fee_basis_points)
    if creators:
        data += b"\x01" + struct.pack("<I", len(creators))
        for address, verified, share in creators:
            data += bytes(address) + bytes([int(verified), share])
    else:
        data += b"\x00"
    if collection is not None:
        data += b"\x01" + b"\x00" + bytes(collection)
    else:
        data += b"\x00"
    data += b"\x00"  # uses
    data += bytes([int(is_mutable)])
    data += b"\x00"  # collection details
    accounts = [
        AccountMeta(metadata_address(mint), is_signer=False, is_writable=True),
        AccountMeta(mint, is_signer=False, is_writable=False),
        AccountMeta(authority, is_signer=True, is_writable=False),
        AccountMeta(authority, is_signer=True, is_writable=True),
        AccountMeta(authority, is_signer=True, is_writable=False),
        AccountMeta(SYSTEM_PROGRAM_ID, is_signer=False, is_writable=False),
        AccountMeta(SYSVAR_RENT_PUBKEY, is_signer=False, is_writable=False),
    ]
    return Instruction(TOKEN_METADATA_PROGRAM_ID, bytes(data), accounts)


def create_master_edition_v3(mint: Pubkey, authority: Pubkey) -> Instruction:
    """Build CreateMasterEditionV3 with a max supply of zero prints."""
    data = bytes([_CREATE_MASTER_EDITION_V3]) + b"\x01" + struct.pack("<Q", 0)
    accounts = [
        AccountMeta(master_edition_address(mint), is_signer=False, is_writable=True),
        AccountMeta(mint, is_signer=False, is_writable=True),
        AccountMeta(authority, is_signer=True, is_writable=False),
        AccountMeta(authority, is_signer=True, is_writable=False),
        AccountMeta(authority, is_signer=True, is_writable=True),
        AccountMeta(metadata_address(mint), is_signer=False, is_writable=True),
        AccountMeta(TOKEN_PROGRAM_ID, is_signer=False, is_writable=False),
        AccountMeta(SYSTEM_PROGRAM_ID, is_signer=False, is_writable=False),
        AccountMeta(SYSVAR_RENT_PUBKEY, is_signer=False, is_writable=False),
    ]
    return Instruction(TOKEN_METADATA_PROGRAM_ID, data, accounts)


def _borsh_string(value: str) -> bytes:
    encoded = value.encode("utf-8")
    return struct.pack("<I", len(encoded)) + encoded
