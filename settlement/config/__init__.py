"""
Settlement centralized configuration package.

Exports:
    RelayConfig: Explicit relay endpoint/timeout configuration
    SettlementConfig: Environment-backed service configuration
    get_config / reload_config: Singleton access
    setup_logging / get_logger / LogContext: Logging helpers
"""

from settlement.config.logging_config import LogContext, get_logger, setup_logging
from settlement.config.relay_config import (
    RelayConfig,
    SettlementConfig,
    get_config,
    reload_config,
)

__all__ = [
    "RelayConfig",
    "SettlementConfig",
    "get_config",
    "reload_config",
    "setup_logging",
    "get_logger",
    "LogContext",
]
