import os

from pathlib import Path
from typing import Any, Optional

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


BASE_DIR = Path(__file__).resolve().parents[1]


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=BASE_DIR / ".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    def model_post_init(self, __context: Any) -> None:
        """Derive the event stream endpoint from the wallet app URL when unset."""

        super().model_post_init(__context)

        if not self.wallet_ws_url:
            fallback = os.getenv("WALLET_EVENTS_URL")
            if not fallback and self.wallet_app_url.startswith("http"):
                fallback = "ws" + self.wallet_app_url[len("http"):].rstrip("/") + "/events"
            if fallback:
                object.__setattr__(self, "wallet_ws_url", fallback)

    # Logging
    log_level: str = Field(default="INFO", description="Logging level")

    # Authority endpoints
    wallet_app_url: str = Field(
        default="https://sequence.app",
        description="Base URL of the remote wallet (signing authority)",
        validation_alias=AliasChoices("wallet_app_url", "WALLET_APP_URL", "REACT_APP_WALLET_APP_URL"),
    )
    wallet_ws_url: str = Field(
        default="",
        description="WebSocket endpoint streaming wallet events (derived from wallet_app_url when empty)",
    )
    default_network: str = Field(
        default="polygon",
        description="Network name promoted to default when the authority flags none",
    )

    # Timeouts
    connect_timeout_seconds: float = Field(
        default=60.0,
        gt=0,
        description="Max seconds to wait for the authority to answer a connect request",
    )
    confirmation_timeout_seconds: float = Field(
        default=300.0,
        gt=0,
        description="Max seconds to wait for a submitted batch to be confirmed",
    )
    request_timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        description="HTTP timeout for individual JSON-RPC requests",
    )
    receipt_poll_interval_seconds: float = Field(
        default=2.0,
        gt=0,
        description="Polling interval while waiting for a batch receipt",
    )

    # Auth proofs
    proof_clock_skew_seconds: int = Field(
        default=0,
        ge=0,
        description="Tolerated clock skew when checking proof issue/expiry times",
    )
    proof_default_ttl_seconds: int = Field(
        default=3600,
        gt=0,
        description="Lifetime of proofs built without an explicit TTL",
    )
    proof_max_ttl_seconds: int = Field(
        default=365 * 24 * 3600,
        gt=0,
        description="Longest lifetime accepted for a new proof",
    )
    verify_chain_id: Optional[int] = Field(
        default=None,
        description="Chain used to verify connect proofs (defaults to the session chain)",
    )

    # Transactions
    gas_multiplier: float = Field(
        default=1.0,
        ge=1.0,
        description="Safety margin applied to gas estimates filled in before submission",
    )

    # Signature verification
    enable_onchain_verification: bool = Field(
        default=True,
        description="Fall back to EIP-1271 calls against the network RPC for contract wallets",
    )

    @property
    def has_events_endpoint(self) -> bool:
        return bool(self.wallet_ws_url)


# Global settings instance
settings = Settings()
