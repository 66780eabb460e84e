"""Application configuration using pydantic-settings.

Covers the Aptos node/indexer endpoints, the backend wallet and catalog
service, the three DEX integrations and the shared routing caches.
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
    # Aptos
    # ======================
    aptos_network: str = Field(
        default="testnet", description="Aptos network (mainnet, testnet, devnet)"
    )
    aptos_node_url: Optional[str] = Field(
        default=None, description="Fullnode REST URL (defaults to Aptos Labs public node)"
    )
    aptos_indexer_url: Optional[str] = Field(
        default=None, description="Indexer GraphQL URL (defaults to Aptos Labs indexer)"
    )
    aptos_max_gas_amount: int = Field(
        default=20000, description="Max gas units attached to built transactions"
    )
    aptos_gas_unit_price: int = Field(
        default=100, description="Gas unit price in octas attached to built transactions"
    )
    aptos_request_timeout: float = Field(
        default=30.0, description="Timeout for fullnode/indexer requests in seconds"
    )
    aptos_tx_expiration_seconds: int = Field(
        default=600, description="Transaction expiration window in seconds"
    )
    aptos_wait_timeout: float = Field(
        default=60.0, description="Max seconds to wait for transaction finality"
    )

    # ======================
    # Backend (wallet + catalogs)
    # ======================
    backend_base_url: str = Field(
        default="http://localhost:3000/api", description="Backend API base URL"
    )
    backend_api_key: str = Field(default="", description="Backend X-API-KEY header value")
    backend_timeout: float = Field(default=10.0, description="Backend request timeout in seconds")

    # ======================
    # DEX Configuration
    # ======================
    pancakeswap_token_list_url: str = Field(
        default="https://tokens.pancakeswap.finance/pancakeswap-aptos.json",
        description="PancakeSwap Aptos token list",
    )
    cellana_router_url: str = Field(
        default="https://api-v2.cellana.finance/api/v1/pool/router",
        description="Cellana route discovery endpoint",
    )
    default_slippage: float = Field(
        default=0.5, description="Default slippage tolerance in percent"
    )
    max_candidate_pools: int = Field(
        default=5, description="Number of ranked pools offered for selection"
    )

    # ======================
    # Routing caches
    # ======================
    pair_cache_ttl_seconds: float = Field(
        default=1800, description="Reserve/pair-existence cache window (30 minutes)"
    )
    token_list_cache_ttl_seconds: float = Field(
        default=300, description="DEX token list cache window (5 minutes)"
    )
    cache_sweep_probability: float = Field(
        default=0.1, description="Chance that a cache read sweeps expired entries"
    )

    # ======================
    # Workflows
    # ======================
    enable_legacy_resume_decoders: bool = Field(
        default=True,
        description="Scan prior conversation messages for selection answers before suspending",
    )

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment.lower() == "production"

    @property
    def node_url(self) -> str:
        """Fullnode REST base URL (ending in /v1)."""
        if self.aptos_node_url:
            return self.aptos_node_url.rstrip("/")
        return f"https://api.{self.aptos_network}.aptoslabs.com/v1"

    @property
    def indexer_url(self) -> str:
        """Indexer GraphQL endpoint."""
        if self.aptos_indexer_url:
            return self.aptos_indexer_url
        return f"https://api.{self.aptos_network}.aptoslabs.com/v1/graphql"

    def explorer_url(self, tx_hash: str) -> str:
        """Aptos explorer link for a transaction."""
        return f"https://explorer.aptoslabs.com/txn/{tx_hash}?network={self.aptos_network}"

    def get_safe_dict(self) -> dict:
        """Return settings dict with secrets redacted."""
        return {
            "environment": self.environment,
            "production": self.is_production,
            "debug": self.debug,
            "api_host": self.api_host,
            "api_port": self.api_port,
            "aptos": {
                "network": self.aptos_network,
                "node_url": self.node_url,
                "indexer_url": self.indexer_url,
                "max_gas_amount": self.aptos_max_gas_amount,
                "gas_unit_price": self.aptos_gas_unit_price,
            },
            "backend": {
                "base_url": self.backend_base_url,
                "api_key": "***" if self.backend_api_key else "(not set)",
            },
            "dex": {
                "slippage": self.default_slippage,
                "max_candidate_pools": self.max_candidate_pools,
                "cellana_router": self.cellana_router_url,
            },
            "cache": {
                "pair_ttl": self.pair_cache_ttl_seconds,
                "token_list_ttl": self.token_list_cache_ttl_seconds,
            },
        }


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
