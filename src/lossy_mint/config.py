"""Application configuration."""

import os

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

_ENVIRONMENT = os.getenv("ENVIRONMENT", "local")

USDC_MAINNET_MINT = "EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v"


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Secrets are optional here; the component that needs a missing one
    raises ConfigurationError when it is first used.
    """

    master_seed_phrase: str | None = None
    solana_rpc_url: str = "https://api.mainnet-beta.solana.com"
    kv_rest_api_url: str | None = Field(
        default=None,
        validation_alias=AliasChoices(
            "kv_rest_api_url", "dayafterday_kv_rest_api_url"
        ),
    )
    kv_rest_api_token: str | None = Field(
        default=None,
        validation_alias=AliasChoices(
            "kv_rest_api_token", "dayafterday_kv_rest_api_token"
        ),
    )
    pinata_jwt: str | None = None
    nft_storage_key: str | None = None
    personal_wallet_public_key: str | None = None
    collection_mint: str | None = None
    admin_token: str | None = None
    supabase_url: str | None = None
    supabase_service_key: str | None = None
    required_usdc: int = 2_250_000
    usdc_mint: str = USDC_MAINNET_MINT
    session_ttl_seconds: int = 60 * 30
    escrow_funding_lamports: int = 3_000_000
    force_payment_confirmation: bool = False
    session_counter_key: str = "day-after-day:session-counter"
    cors_allow_origins: str = "*"
    environment: str = _ENVIRONMENT

    model_config = SettingsConfigDict(
        env_file=(f".env.{_ENVIRONMENT}", ".env"),
        extra="ignore",
        populate_by_name=True,
    )

    def health_checks(self) -> dict[str, bool]:
        """Return which deployment secrets are present."""
        return {
            "seedPhrase": bool(self.master_seed_phrase),
            "solanaRpc": bool(self.solana_rpc_url),
            "contentStore": bool(self.pinata_jwt or self.nft_storage_key),
            "personalWallet": bool(self.personal_wallet_public_key),
            "kvUrl": bool(self.kv_rest_api_url),
            "kvToken": bool(self.kv_rest_api_token),
        }


def parse_allowed_origins(raw: str | None) -> list[str]:
    """Parse a comma-separated CORS origin list; empty or ``*`` allows all."""
    if raw is None:
        return ["*"]
    origins = [chunk.strip() for chunk in raw.split(",") if chunk.strip()]
    if not origins or "*" in origins:
        return ["*"]
    return origins
