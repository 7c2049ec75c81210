import os

from pathlib import Path
from typing import Any, Dict

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
        """Ensure we pick up legacy environment variable aliases."""

        super().model_post_init(__context)

        if not self.zerox_api_key:
            fallback = os.getenv("ZEROX_KEY")
            if fallback:
                object.__setattr__(self, "zerox_api_key", fallback)

    log_level: str = Field(default="INFO", description="Logging level")

    # External API Keys
    zerox_api_key: str = Field(
        default="",
        description="0x swap API key",
        validation_alias=AliasChoices("zerox_api_key", "ZEROX_API_KEY", "ZERO_EX_API_KEY"),
    )
    zerox_base_url_override: str = Field(
        default="",
        description="Replace every per-chain 0x API base URL (proxies, test doubles)",
    )
    coingecko_api_key: str = Field(default="", description="Coingecko API key")

    # RPC Transport
    rpc_urls: Dict[int, str] = Field(
        default_factory=dict,
        description="Custom JSON-RPC endpoint per chain id; overrides the public default",
    )
    rpc_retry_count: int = Field(default=3, ge=0, description="Transport retries per RPC call")
    rpc_retry_delay_seconds: float = Field(default=1.0, ge=0, description="Base delay between RPC retries")
    rpc_timeout_seconds: float = Field(default=30.0, gt=0, description="RPC request timeout")
    rpc_failover: bool = Field(
        default=True,
        description="Try the chain's fallback endpoints when its default endpoint is unreachable",
    )

    # Transaction Tracking
    tx_poll_interval_seconds: float = Field(default=3.0, gt=0, description="Receipt polling interval")
    tx_poll_max_attempts: int = Field(default=60, ge=1, description="Receipt polls before giving up")

    # Gas
    default_token_gas_limit: int = Field(
        default=65_000,
        gt=0,
        description="Gas limit used for token transfers when estimation fails",
    )

    # Swap Defaults
    default_slippage_percentage: float = Field(
        default=0.5,
        gt=0,
        description="Slippage tolerance sent to the aggregator when the caller gives none",
    )

    # Cache Settings
    price_cache_ttl_seconds: int = Field(default=60, description="Token USD price cache TTL")
    balance_cache_ttl_seconds: int = Field(default=30, description="Native balance cache TTL")
    max_cache_size: int = Field(default=1000, description="Maximum entries per cache")

    @property
    def has_zerox_key(self) -> bool:
        return bool(self.zerox_api_key)

    @property
    def has_coingecko_key(self) -> bool:
        return bool(self.coingecko_api_key)

    def rpc_url_for(self, chain_id: int) -> str | None:
        """Configured custom endpoint for ``chain_id``, if any."""
        url = self.rpc_urls.get(chain_id)
        return url or None


# Global settings instance
settings = Settings()
