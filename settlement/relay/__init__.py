"""Relay clients: transaction broadcast and fee recommendations.

Public API:
- TransactionBroadcaster / broadcast: submit a signed transaction
- MempoolFeeClient: fee recommendations and mempool health
- assess_mempool_health / estimate_purchase_fee: pure fee helpers
- RelayError, BroadcastError, RelayUnavailableError, BroadcastTimeoutError,
  FeeEstimationError
"""

from settlement.relay.broadcaster import TransactionBroadcaster, broadcast
from settlement.relay.errors import (
    BroadcastError,
    BroadcastTimeoutError,
    FeeEstimationError,
    RelayError,
    RelayUnavailableError,
)
from settlement.relay.fee_client import (
    DUST_LIMIT_SATS,
    BlockFeeStats,
    MempoolFeeClient,
    MempoolHealth,
    RecommendedFees,
    assess_mempool_health,
    change_output_allowed,
    estimate_purchase_fee,
    summarize_blocks,
)

__all__ = [
    # Broadcast
    "TransactionBroadcaster",
    "broadcast",
    # Errors
    "RelayError",
    "BroadcastError",
    "RelayUnavailableError",
    "BroadcastTimeoutError",
    "FeeEstimationError",
    # Fees
    "DUST_LIMIT_SATS",
    "BlockFeeStats",
    "MempoolFeeClient",
    "MempoolHealth",
    "RecommendedFees",
    "assess_mempool_health",
    "change_output_allowed",
    "estimate_purchase_fee",
    "summarize_blocks",
]
