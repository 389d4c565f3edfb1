#!/usr/bin/env python3
"""
Settlement Configuration Module

Centralized configuration for the PSBT verification and relay components.
Relay clients take an explicit RelayConfig; only SettlementConfig reads
environment variables.
"""

import os
from dataclasses import dataclass, field
from typing import Optional

from settlement.psbt.network import Network

DEFAULT_TIMEOUT_SECONDS = 10.0
DEFAULT_FEE_TIMEOUT_SECONDS = 5.0


@dataclass(frozen=True)
class RelayConfig:
    """Configuration for relay clients (broadcaster, fee client).

    Attributes:
        base_url: Esplora-compatible API root, e.g. https://mempool.space/api
        network: Network the relay serves
        timeout_seconds: Bound on a single relay request
    """

    base_url: str = Network.MAINNET.relay_base_url
    network: Network = Network.MAINNET
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS

    def __post_init__(self):
        if not self.base_url.startswith(("http://", "https://")):
            raise ValueError(f"relay base_url must be an http(s) URL: {self.base_url}")
        if self.timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be positive")
        object.__setattr__(self, "base_url", self.base_url.rstrip("/"))
        object.__setattr__(self, "network", Network.parse(self.network))

    @classmethod
    def for_network(
        cls,
        network: Network | str,
        base_url: Optional[str] = None,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
    ) -> "RelayConfig":
        """Config for ``network``, defaulting to the public mempool.space relay."""
        network = Network.parse(network)
        return cls(
            base_url=base_url or network.relay_base_url,
            network=network,
            timeout_seconds=timeout_seconds,
        )

    @classmethod
    def from_env(cls) -> "RelayConfig":
        """Create config from environment variables."""
        return get_config().relay_config()


@dataclass
class SettlementConfig:
    """
    Main configuration for the settlement service

    All settings can be overridden via environment variables.
    """

    # ==================== Network ====================
    network: str = field(
        default_factory=lambda: os.getenv("BITCOIN_NETWORK", "mainnet")
    )

    # ==================== Relay ====================
    # Empty means the public mempool.space endpoint for the network
    relay_base_url: str = field(
        default_factory=lambda: os.getenv("RELAY_BASE_URL", "")
    )
    relay_timeout_seconds: float = field(
        default_factory=lambda: float(
            os.getenv("RELAY_TIMEOUT_SECONDS", str(DEFAULT_TIMEOUT_SECONDS))
        )
    )
    fee_timeout_seconds: float = field(
        default_factory=lambda: float(
            os.getenv("FEE_TIMEOUT_SECONDS", str(DEFAULT_FEE_TIMEOUT_SECONDS))
        )
    )

    # ==================== REST API ====================
    api_host: str = field(default_factory=lambda: os.getenv("API_HOST", "localhost"))
    api_port: int = field(default_factory=lambda: int(os.getenv("API_PORT", "8000")))

    # ==================== Logging ====================
    log_level: str = field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO"))
    log_mode: str = field(
        default_factory=lambda: os.getenv("LOG_MODE", "development")
    )  # development or production
    log_dir: str = field(default_factory=lambda: os.getenv("LOG_DIR", ""))

    def __post_init__(self):
        """Validate configuration after initialization"""
        self.network = Network.parse(self.network).value
        if self.relay_timeout_seconds <= 0:
            raise ValueError("relay_timeout_seconds must be positive")
        if self.fee_timeout_seconds <= 0:
            raise ValueError("fee_timeout_seconds must be positive")
        if self.log_mode not in ("development", "production"):
            raise ValueError("log_mode must be 'development' or 'production'")

    def relay_config(self, network: Optional[Network | str] = None) -> RelayConfig:
        """Relay config for broadcasting.

        A custom RELAY_BASE_URL only applies to the configured network;
        other networks fall back to their public relay.
        """
        target = Network.parse(network or self.network)
        base_url = None
        if self.relay_base_url and target.value == self.network:
            base_url = self.relay_base_url
        return RelayConfig.for_network(target, base_url, self.relay_timeout_seconds)

    def fee_config(self, network: Optional[Network | str] = None) -> RelayConfig:
        """Relay config for fee lookups (shorter timeout)."""
        relay = self.relay_config(network)
        return RelayConfig(relay.base_url, relay.network, self.fee_timeout_seconds)

    def to_dict(self) -> dict:
        """Convert configuration to dictionary"""
        return {
            field_name: getattr(self, field_name)
            for field_name in self.__dataclass_fields__
        }


# Singleton instance
_config: Optional[SettlementConfig] = None


def get_config() -> SettlementConfig:
    """
    Get the global configuration instance (singleton)

    Returns:
        SettlementConfig instance
    """
    global _config
    if _config is None:
        _config = SettlementConfig()
    return _config


def reload_config() -> SettlementConfig:
    """
    Reload configuration from environment variables

    Returns:
        New SettlementConfig instance
    """
    global _config
    _config = SettlementConfig()
    return _config
