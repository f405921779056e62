"""Application configuration using pydantic-settings.

Settings are built once at startup and passed explicitly into every
orchestrator and adapter. The instance is frozen.
"""

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
    )

    # ======================
    # Database
    # ======================
    database_url: str = Field(
        default="sqlite+aiosqlite:///./data/venuebridge.db",
        description="Database connection URL",
    )

    # ======================
    # API
    # ======================
    api_host: str = Field(default="0.0.0.0", description="API server host")
    api_port: int = Field(default=8000, description="API server port")

    # ======================
    # Environment
    # ======================
    environment: str = Field(default="development", description="Runtime environment")
    debug: bool = Field(default=True, description="Enable debug mode")

    # ======================
    # Encryption
    # ======================
    encryption_key: Optional[str] = Field(
        default=None, description="Hex-encoded 32-byte AES-256-GCM key for wallet secrets"
    )

    # ======================
    # Exchange gateway (ChangeNOW)
    # ======================
    changenow_api_url: str = Field(
        default="https://api.changenow.io/v2", description="ChangeNOW v2 API base URL"
    )
    changenow_api_key: str = Field(default="", description="ChangeNOW API key")
    deposit_from_currency: str = Field(default="ada", description="Currency paid in on deposit")
    deposit_from_network: str = Field(default="ada", description="Network paid in on deposit")
    deposit_to_currency: str = Field(default="sol", description="Currency received on deposit")
    deposit_to_network: str = Field(default="sol", description="Network received on deposit")
    exchange_flow: str = Field(default="standard", description="Exchange flow (standard/fixed-rate)")
    exchange_type: str = Field(default="direct", description="Exchange type (direct/reverse)")

    # ======================
    # Trading venue (Orderly)
    # ======================
    venue_base_url: str = Field(
        default="https://testnet-api.orderly.org", description="Orderly REST base URL"
    )
    venue_broker_id: str = Field(default="demo", description="Orderly broker id")
    venue_chain_id: int = Field(default=900, description="Orderly chain id for Solana")
    venue_token: str = Field(default="SOL", description="Token deposited into the venue")
    venue_ledger_address: str = Field(
        default="0x1826B75e2ef249173FC735149AE4B8e9ea10abff",
        description="Verifying contract for withdrawal messages",
    )

    # ======================
    # Solana vault program (testnet defaults)
    # ======================
    solana_rpc_url: str = Field(
        default="https://api.devnet.solana.com", description="Solana RPC URL"
    )
    vault_program_id: str = Field(default="9shwxWDUNhtwkHocsUAmrNAQfBH2DHh4njdAEdHZZkF2")
    vault_authority: str = Field(default="CT9AgCVpWQCuPyVMriYKxTdrkH5DFmn2oiYhGKcNwPCm")
    vault_sol_vault: str = Field(default="HL4NkDbY9FgQySWJwpK92W8iXq1b5wovLvL7K3roedCj")
    vault_oapp_config: str = Field(default="5YsvfmqrMY9KWskY1e1uU2haJJZZHK7UAw8V6qpDsYm5")
    vault_peer: str = Field(default="5cX2eHYKTJLSJknNxFP1o79VKkB85qGVcR1Jys78pn9T")
    vault_enforced_options: str = Field(default="BbGKfxuPwDmu58BjPpd7PMG69TqnZjSpKaLDMgf9E9Dr")

    # ======================
    # Cardano
    # ======================
    blockfrost_api_key: str = Field(default="", description="Blockfrost API key for Cardano")
    blockfrost_api_url: str = Field(
        default="https://cardano-preprod.blockfrost.io/api",
        description="Blockfrost API base URL",
    )

    # ======================
    # Scheduler
    # ======================
    exchange_poll_interval: int = Field(
        default=30, description="Seconds between exchange-status sweeps"
    )
    withdrawal_poll_interval: int = Field(
        default=60, description="Seconds between venue-withdrawal sweeps"
    )
    http_timeout: float = Field(default=30.0, description="Timeout for outbound HTTP calls")

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment.lower() == "production"

    def get_safe_dict(self) -> dict:
        """Return settings dict with secrets redacted."""
        return {
            "environment": self.environment,
            "debug": self.debug,
            "api_host": self.api_host,
            "api_port": self.api_port,
            "database_url": self._redact_url(self.database_url),
            "encryption_key": "***" if self.encryption_key else "(not set)",
            "exchange": {
                "url": self.changenow_api_url,
                "api_key": "***" if self.changenow_api_key else "(not set)",
                "pair": f"{self.deposit_from_currency}->{self.deposit_to_currency}",
            },
            "venue": {
                "url": self.venue_base_url,
                "broker_id": self.venue_broker_id,
                "chain_id": self.venue_chain_id,
                "token": self.venue_token,
            },
            "chains": {
                "SOL": {"rpc": self.solana_rpc_url},
                "ADA": {
                    "blockfrost": self.blockfrost_api_url,
                    "api_key": "***" if self.blockfrost_api_key else "(not set)",
                },
            },
            "scheduler": {
                "exchange_poll_interval": self.exchange_poll_interval,
                "withdrawal_poll_interval": self.withdrawal_poll_interval,
            },
        }

    @staticmethod
    def _redact_url(url: str) -> str:
        """Redact sensitive parts of database URL."""
        if "://" in url and "@" in url:
            proto, rest = url.split("://", 1)
            if "@" in rest:
                creds, host = rest.rsplit("@", 1)
                if ":" in creds:
                    user, _ = creds.split(":", 1)
                    return f"{proto}://{user}:***@{host}"
        return url


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance. Call from entry points only."""
    return Settings()
