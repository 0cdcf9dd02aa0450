"""
Purpose:
    - Loads a TOML config file
    - Builds the typed AppConfig ([network], [orders], [transfers])

Secrets (wallet mnemonic/address) are never read from this file; see EnvSecretsProvider.
"""

from __future__ import annotations

import logging
import tomllib
from pathlib import Path
from typing import Any, Optional

from pydantic import ValidationError

from orderflow.config.configs import AppConfig, NetworkConfig, OrderConfig, TransferConfig
from orderflow.errors.errors import ConfigurationError

logger = logging.getLogger(__name__)

_ORDER_KEYS = {
    "short_term_ttl_blocks",
    "long_term_ttl_s",
    "max_reference_age_s",
    "max_allocation_attempts",
    "seed",
    "retention_s",
}
_TRANSFER_KEYS = {"asset_id", "asset_decimals"}
_SECRET_KEYS = {"mnemonic", "wallet_mnemonic", "private_key"}


class ConfigLoader:
    """
    Config-loader; loading toml file.
    """

    def __init__(self, base_dir: str = ".") -> None:
        self._base_dir = base_dir

    def load(self, file_name: str) -> dict[str, Any]:
        path = Path(file_name)
        if not path.is_absolute():
            path = Path(self._base_dir) / file_name

        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")

        with path.open("rb") as f:
            return tomllib.load(f)

    def load_app_config(
        self, file_name: Optional[str] = None, network: Optional[str] = None
    ) -> AppConfig:
        """
        Build an AppConfig from a TOML file (or defaults when no file is given).
        `network` overrides [network].name, e.g. from a CLI flag.
        """
        data = self.load(file_name) if file_name else {}
        self._reject_secrets(data)

        network_data = dict(data.get("network", {}))
        if network is not None:
            network_data["name"] = network
            # a URL pinned for another network does not follow the override
            if "name" in data.get("network", {}) and data["network"]["name"] != network:
                network_data.pop("indexer_url", None)
        try:
            network_cfg = NetworkConfig(**network_data)
        except ValidationError as exc:
            raise ConfigurationError(f"Invalid [network] section: {exc}", field="network") from exc

        orders_data = data.get("orders", {})
        self._reject_unknown("orders", orders_data, _ORDER_KEYS)
        orders_cfg = self._build("orders", OrderConfig, orders_data)

        transfers_data = data.get("transfers", {})
        self._reject_unknown("transfers", transfers_data, _TRANSFER_KEYS)
        transfers_cfg = self._build("transfers", TransferConfig, transfers_data)

        logger.debug(
            "config_loaded",
            extra={
                "event": "config_loaded",
                "file": file_name,
                "network": network_cfg.name,
            },
        )
        return AppConfig(network=network_cfg, orders=orders_cfg, transfers=transfers_cfg)

    @staticmethod
    def _build(section: str, cls: Any, data: dict[str, Any]) -> Any:
        # mistyped TOML values fail the comparisons in __post_init__ with TypeError
        try:
            return cls(**data)
        except TypeError as exc:
            raise ConfigurationError(f"Invalid value in [{section}]: {exc}", field=section) from exc

    @staticmethod
    def _reject_unknown(section: str, data: dict[str, Any], allowed: set[str]) -> None:
        unknown = sorted(set(data) - allowed)
        if unknown:
            raise ConfigurationError(
                f"Unknown keys in [{section}]: {', '.join(unknown)}",
                field=section,
            )

    @staticmethod
    def _reject_secrets(data: dict[str, Any]) -> None:
        for section, values in data.items():
            keys = set(values) if isinstance(values, dict) else {section}
            leaked = keys & _SECRET_KEYS
            if leaked:
                raise ConfigurationError(
                    "Secrets must come from the environment, not the config file",
                    field=sorted(leaked)[0],
                )
