"""
Configuration types for the order and transfer layer.

Dataclass configs are immutable and validated on construction; the network section
is a pydantic model since it is read straight from user TOML.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from orderflow.errors.errors import ConfigurationError

NetworkName = Literal["testnet", "mainnet", "local"]

# Indexer REST endpoints
INDEXER_ENDPOINTS: dict[str, str] = {
    "testnet": "https://indexer.v4testnet.dydx.exchange/v4",
    "mainnet": "https://indexer.dydx.trade/v4",
    "local": "http://localhost:3002/v4",
}


class NetworkConfig(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)
    name: NetworkName = Field(default="testnet", description="Venue network")
    indexer_url: Optional[str] = Field(default=None, description="Indexer REST base URL")
    timeout_s: float = Field(default=10.0, gt=0, description="HTTP timeout per request")
    retries: int = Field(default=0, ge=0, description="Idempotent GET retries (indexer only)")

    @model_validator(mode="before")
    @classmethod
    def _default_indexer_url(cls, data: Any) -> Any:
        if isinstance(data, dict) and data.get("indexer_url") is None:
            name = data.get("name", "testnet")
            if name in INDEXER_ENDPOINTS:
                data = {**data, "indexer_url": INDEXER_ENDPOINTS[name]}
        return data


@dataclass(frozen=True)
class OrderConfig:
    """Order placement and lifecycle settings."""

    # Validity windows
    short_term_ttl_blocks: int = 10  # goodTilBlock = height + ttl
    long_term_ttl_s: int = 60  # goodTilBlockTime = now + ttl
    max_reference_age_s: float = 6.0  # reject heights observed longer ago than this

    # Allocator
    max_allocation_attempts: int = 16
    seed: Optional[int] = None  # deterministic client ids (tests)

    # Terminal orders older than this may be garbage-collected
    retention_s: float = 3600.0

    def __post_init__(self) -> None:
        if self.short_term_ttl_blocks < 0:
            raise ConfigurationError(
                "short_term_ttl_blocks must be non-negative",
                field="short_term_ttl_blocks",
                value=self.short_term_ttl_blocks,
            )
        if self.long_term_ttl_s <= 0:
            raise ConfigurationError(
                "long_term_ttl_s must be positive",
                field="long_term_ttl_s",
                value=self.long_term_ttl_s,
            )
        if self.max_reference_age_s <= 0:
            raise ConfigurationError(
                "max_reference_age_s must be positive",
                field="max_reference_age_s",
                value=self.max_reference_age_s,
            )
        if self.max_allocation_attempts <= 0:
            raise ConfigurationError(
                "max_allocation_attempts must be positive",
                field="max_allocation_attempts",
                value=self.max_allocation_attempts,
            )
        if self.retention_s < 0:
            raise ConfigurationError(
                "retention_s must be non-negative",
                field="retention_s",
                value=self.retention_s,
            )


@dataclass(frozen=True)
class TransferConfig:
    """Collateral asset used for deposits, withdrawals and transfers."""

    asset_id: int = 0  # USDC
    asset_decimals: int = 6

    def __post_init__(self) -> None:
        if self.asset_id < 0:
            raise ConfigurationError(
                "asset_id must be non-negative", field="asset_id", value=self.asset_id
            )
        if not (0 <= self.asset_decimals <= 18):
            raise ConfigurationError(
                "asset_decimals must be between 0 and 18",
                field="asset_decimals",
                value=self.asset_decimals,
            )


@dataclass(frozen=True)
class AppConfig:
    network: NetworkConfig = field(default_factory=NetworkConfig)
    orders: OrderConfig = field(default_factory=OrderConfig)
    transfers: TransferConfig = field(default_factory=TransferConfig)
