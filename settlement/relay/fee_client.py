"""Mempool fee recommendations and health rating.

Fetches recommended fee rates (the precise endpoint supports sub-1 sat/vB)
and recent block fee stats from mempool.space, and turns them into a
suggested purchase fee rate plus a health rating for the UI.

Also holds the purchase transaction size estimate used when selecting
buyer UTXOs.
"""

from __future__ import annotations

import asyncio
import logging
import math
from dataclasses import asdict, dataclass
from typing import Any, Optional

import httpx

from settlement.config.relay_config import RelayConfig
from settlement.relay.errors import FeeEstimationError
from settlement.utils.retry_decorator import retry_http

logger = logging.getLogger(__name__)

# Outputs at or below this are uneconomical; change this small is left to the miner
DUST_LIMIT_SATS = 546

# vbyte estimates for a taproot / native segwit purchase
BASE_TX_VBYTES = 10
INPUT_VBYTES = 68
OUTPUT_VBYTES = 34

MIN_FEE_RATE = 0.1
SUB1_FEE_FALLBACK = 0.9
SUB1_FEE_BUMP = 0.02
DEFAULT_TOTAL_BLOCKS = 10

HEALTH_MESSAGES = {
    "excellent": "Many recent blocks with sub-1 sat/vB. Economy fee is a good default.",
    "good": "Some recent blocks had sub-1 sat/vB. You can try economy or slightly higher.",
    "fair": "Few recent sub-1 sat blocks. Consider half-hour or hour fee for faster confirm.",
    "high": "No recent sub-1 sat blocks. Use recommended fee for reliable confirmation.",
}


@dataclass(frozen=True)
class RecommendedFees:
    """Fee rates in sat/vB."""

    fastest: float = 1.0
    half_hour: float = 1.0
    hour: float = 1.0
    economy: float = 1.0
    minimum: float = MIN_FEE_RATE

    @classmethod
    def from_api(cls, data: dict) -> "RecommendedFees":
        """Parse ``/v1/fees/precise`` (or ``/recommended``) output.

        Older relays use the short key names (``economy``); missing keys
        fall back to 1 sat/vB.
        """

        def rate(long_key: str, short_key: str, default: float) -> float:
            value = data.get(long_key, data.get(short_key))
            return float(value) if value is not None else default

        return cls(
            fastest=rate("fastestFee", "fastest", 1.0),
            half_hour=rate("halfHourFee", "halfHour", 1.0),
            hour=rate("hourFee", "hour", 1.0),
            economy=rate("economyFee", "economy", 1.0),
            minimum=rate("minimumFee", "minimum", MIN_FEE_RATE),
        )


@dataclass(frozen=True)
class BlockFeeStats:
    blocks_with_sub1_sat: int = 0
    total_blocks: int = DEFAULT_TOTAL_BLOCKS
    last_sub1_sat_fee: Optional[float] = None


@dataclass(frozen=True)
class MempoolHealth:
    suggested_fee_rate: float
    health_rating: str
    health_message: str
    blocks_with_sub1_sat: int
    total_blocks: int
    last_sub1_sat_fee: Optional[float]

    def to_dict(self) -> dict:
        return asdict(self)


def _block_fee_rate(extras: dict) -> Optional[float]:
    """medianFee, else avgFeeRate, else 1. None when the value is not numeric."""
    value = extras.get("medianFee")
    if value is None:
        value = extras.get("avgFeeRate")
    if value is None:
        return 1.0
    if isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def summarize_blocks(blocks: Any) -> BlockFeeStats:
    """Count recent blocks mined with a median fee below 1 sat/vB.

    Args:
        blocks: ``/v1/blocks`` payload (list of blocks with ``extras``)

    Returns:
        BlockFeeStats; an empty or malformed payload gives the defaults
    """
    if not isinstance(blocks, list) or not blocks:
        return BlockFeeStats()

    sub1_count = 0
    lowest: Optional[float] = None
    for block in blocks:
        extras = block.get("extras") if isinstance(block, dict) else None
        if not isinstance(extras, dict) or not extras:
            continue
        median_fee = _block_fee_rate(extras)
        if median_fee is None:
            continue
        if median_fee < 1:
            sub1_count += 1
            if lowest is None or median_fee < lowest:
                lowest = median_fee

    return BlockFeeStats(
        blocks_with_sub1_sat=sub1_count,
        total_blocks=len(blocks),
        last_sub1_sat_fee=lowest,
    )


def assess_mempool_health(fees: RecommendedFees, blocks: BlockFeeStats) -> MempoolHealth:
    """Suggest a fee rate and rate mempool conditions.

    Economy rates of 1 sat/vB or more are used as-is. Sub-1 rates get a
    small bump and are clamped to [0.1, 1].

    Args:
        fees: Current recommended fee rates
        blocks: Recent block fee statistics

    Returns:
        MempoolHealth with the suggestion and a rating
    """
    economy = fees.economy
    if economy < 1:
        suggested = max(MIN_FEE_RATE, min(1.0, economy + SUB1_FEE_BUMP))
    else:
        suggested = economy
    if suggested < MIN_FEE_RATE:
        suggested = SUB1_FEE_FALLBACK

    ratio = (
        blocks.blocks_with_sub1_sat / blocks.total_blocks
        if blocks.total_blocks > 0
        else 0
    )
    if ratio >= 0.5:
        rating = "excellent"
    elif ratio >= 0.2:
        rating = "good"
    elif ratio > 0:
        rating = "fair"
    else:
        rating = "high"

    return MempoolHealth(
        suggested_fee_rate=round(suggested, 4),
        health_rating=rating,
        health_message=HEALTH_MESSAGES[rating],
        blocks_with_sub1_sat=blocks.blocks_with_sub1_sat,
        total_blocks=blocks.total_blocks,
        last_sub1_sat_fee=blocks.last_sub1_sat_fee,
    )


def estimate_purchase_fee(input_count: int, output_count: int, fee_rate: float) -> int:
    """Estimate the miner fee of a purchase transaction in sats.

    Example:
        >>> estimate_purchase_fee(3, 4, 10)  # ordinal + 2 buyer inputs, 4 outputs
        3500
    """
    if input_count < 0 or output_count < 0:
        raise ValueError("input and output counts must be >= 0")
    if fee_rate <= 0:
        raise ValueError("fee_rate must be positive")
    vbytes = BASE_TX_VBYTES + input_count * INPUT_VBYTES + output_count * OUTPUT_VBYTES
    return math.ceil(vbytes * fee_rate)


def change_output_allowed(change_sats: int) -> bool:
    """A change output is only created above the dust limit."""
    return change_sats > DUST_LIMIT_SATS


class MempoolFeeClient:
    """Async client for mempool.space fee endpoints.

    Example:
        async with MempoolFeeClient(RelayConfig.for_network("mainnet")) as fees:
            health = await fees.calculate_optimal_fee_rate()
    """

    def __init__(
        self,
        config: Optional[RelayConfig] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.config = config or RelayConfig()
        self._client = client
        self._owns_client = client is None

    async def __aenter__(self) -> "MempoolFeeClient":
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.config.timeout_seconds)
            )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None

    @retry_http(max_attempts=3, min_wait=0.5, max_wait=5.0)
    async def _get_json(self, path: str) -> Any:
        if self._client is None:
            raise RuntimeError("Client not initialized. Use 'async with' context.")
        response = await self._client.get(
            f"{self.config.base_url}{path}", timeout=self.config.timeout_seconds
        )
        response.raise_for_status()
        return response.json()

    async def get_recommended_fees(self) -> RecommendedFees:
        """Fetch precise fee recommendations.

        Raises:
            FeeEstimationError: If the relay cannot provide recommendations
        """
        try:
            data = await self._get_json("/v1/fees/precise")
        except (httpx.HTTPError, ValueError) as e:
            raise FeeEstimationError(f"Failed to fetch fee recommendations: {e}") from e
        if not isinstance(data, dict):
            raise FeeEstimationError(f"Unexpected fee payload: {data!r}")
        return RecommendedFees.from_api(data)

    async def get_recent_blocks(self) -> BlockFeeStats:
        """Fetch recent block fee stats. Failures degrade to empty stats."""
        try:
            blocks = await self._get_json("/v1/blocks")
            return summarize_blocks(blocks)
        except (httpx.HTTPError, ValueError, TypeError, AttributeError) as e:
            logger.warning(f"Recent block stats unavailable: {e}")
            return BlockFeeStats()

    async def calculate_optimal_fee_rate(self) -> MempoolHealth:
        """Suggested fee rate and mempool health rating."""
        fees, blocks = await asyncio.gather(
            self.get_recommended_fees(), self.get_recent_blocks()
        )
        health = assess_mempool_health(fees, blocks)
        logger.info(
            f"Fee suggestion {health.suggested_fee_rate} sat/vB "
            f"({health.health_rating}, {health.blocks_with_sub1_sat}/"
            f"{health.total_blocks} sub-1 blocks)"
        )
        return health
