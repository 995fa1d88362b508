"""Dependency container wiring for the application."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from supabase import create_client

from lossy_mint.adapters.nft_storage_client import HttpxNftStorageClient
from lossy_mint.adapters.pinata_client import HttpxPinataClient
from lossy_mint.adapters.solana_ledger import SolanaLedger
from lossy_mint.adapters.solana_rpc import HttpxSolanaRpcClient
from lossy_mint.adapters.supabase_audit_repository import SupabaseAuditRepository
from lossy_mint.adapters.upstash_kv import UpstashKeyValueStore
from lossy_mint.config import Settings
from lossy_mint.services.audit import (
    AuditRepository,
    AuditService,
    LoggingAuditRepository,
)
from lossy_mint.services.health import HealthService
from lossy_mint.services.keys import KeyDerivationService
from lossy_mint.services.minting import DEFAULT_CREATOR_ADDRESS, MintOrchestrator
from lossy_mint.services.payments import PaymentDetector
from lossy_mint.services.sessions import SessionController
from lossy_mint.services.store import SessionStore
from lossy_mint.services.sweeping import SweepAgent
from lossy_mint.services.uploads import FailoverContentStore, MediaUploadService


@dataclass
class AppContainer:
    """Holds application-wide dependencies."""

    settings: Settings
    session_controller: SessionController
    session_store: SessionStore
    upload_service: MediaUploadService
    health_service: HealthService
    close_resources: Callable[[], Awaitable[None]]


def build_audit_repository(settings: Settings) -> AuditRepository:
    """Use Supabase when configured, otherwise log audit events."""
    if settings.supabase_url and settings.supabase_service_key:
        return SupabaseAuditRepository(
            create_client(settings.supabase_url, settings.supabase_service_key)
        )
    return LoggingAuditRepository()


def build_container(settings: Settings | None = None) -> AppContainer:
    """Create the default dependency container."""
    resolved_settings = settings or Settings()
    kv = UpstashKeyValueStore.create(
        resolved_settings.kv_rest_api_url, resolved_settings.kv_rest_api_token
    )
    rpc_client = HttpxSolanaRpcClient.create(resolved_settings.solana_rpc_url)
    ledger = SolanaLedger(rpc=rpc_client, asset_mint=resolved_settings.usdc_mint)
    pinata_client = HttpxPinataClient.create(resolved_settings.pinata_jwt)
    nft_storage_client = HttpxNftStorageClient.create(
        resolved_settings.nft_storage_key
    )
    content_store = FailoverContentStore(
        primary=pinata_client, fallback=nft_storage_client
    )
    keys = KeyDerivationService(
        master_seed_phrase=resolved_settings.master_seed_phrase,
        kv=kv,
        counter_key=resolved_settings.session_counter_key,
    )
    session_store = SessionStore(kv)
    controller = SessionController(
        keys=keys,
        store=session_store,
        detector=PaymentDetector(
            ledger=ledger,
            asset_mint=resolved_settings.usdc_mint,
            force_confirm=resolved_settings.force_payment_confirmation,
        ),
        minter=MintOrchestrator(
            ledger=ledger,
            content_store=content_store,
            keys=keys,
            creator_address=(
                resolved_settings.personal_wallet_public_key
                or DEFAULT_CREATOR_ADDRESS
            ),
            collection_mint=resolved_settings.collection_mint,
        ),
        sweeper=SweepAgent(ledger=ledger, keys=keys),
        ledger=ledger,
        audit=AuditService(build_audit_repository(resolved_settings)),
        required_amount=resolved_settings.required_usdc,
        session_ttl_seconds=resolved_settings.session_ttl_seconds,
        escrow_funding_lamports=resolved_settings.escrow_funding_lamports,
    )
    upload_service = MediaUploadService(content_store)
    health_service = HealthService(kv=kv, checks=resolved_settings.health_checks())

    async def close_resources() -> None:
        await kv.close()
        await rpc_client.close()
        await pinata_client.close()
        await nft_storage_client.close()

    return AppContainer(
        settings=resolved_settings,
        session_controller=controller,
        session_store=session_store,
        upload_service=upload_service,
        health_service=health_service,
        close_resources=close_resources,
    )
