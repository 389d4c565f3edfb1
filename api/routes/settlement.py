"""
API routes for marketplace purchase settlement

Endpoints:
- POST /api/v1/psbt/verify - Check a purchase PSBT against the listing terms
- POST /api/v1/tx/broadcast - Relay a signed transaction
- GET /api/v1/fees/recommended - Suggested fee rate and mempool health
"""

from typing import Annotated

from fastapi import APIRouter, HTTPException, Query

from api.logging_config import get_logger
from api.models.settlement_models import (
    BroadcastRequest,
    BroadcastResponse,
    FeeHealthResponse,
    VerificationResponse,
    VerifyRequest,
)
from settlement.config import get_config
from settlement.psbt import Network, verify, verify_psbt
from settlement.relay import (
    BroadcastError,
    BroadcastTimeoutError,
    FeeEstimationError,
    MempoolFeeClient,
    MempoolHealth,
    RelayUnavailableError,
    broadcast,
)

logger = get_logger(__name__)

router = APIRouter(prefix="/api/v1", tags=["settlement"])


def _parse_network(name: str) -> Network:
    try:
        return Network.parse(name)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e)) from e


async def fetch_fee_health(network: Network) -> MempoolHealth:
    """Fee suggestion from the configured relay for ``network``."""
    async with MempoolFeeClient(get_config().fee_config(network)) as client:
        return await client.calculate_optimal_fee_rate()


@router.post("/psbt/verify", response_model=VerificationResponse)
async def verify_purchase(request: VerifyRequest) -> VerificationResponse:
    """Verify a purchase transaction. Reject settlement if ``errors`` is non-empty."""
    network = _parse_network(request.network)
    layout = request.expected.to_domain()

    if request.psbt is not None:
        result = verify_psbt(request.psbt, network, layout)
    else:
        result = verify(request.transaction.to_domain(), network, layout)

    logger.info(
        "psbt_verified",
        network=network.value,
        valid=result.valid,
        errors=result.errors,
        warnings=result.warnings,
    )
    return VerificationResponse(**result.to_dict())


@router.post("/tx/broadcast", response_model=BroadcastResponse)
async def broadcast_transaction(request: BroadcastRequest) -> BroadcastResponse:
    """Broadcast a signed transaction.

    Relay rejections are passed through verbatim so the operator sees the
    node's reason (fee too low, missing inputs, decode failure).
    """
    network = _parse_network(request.network)
    config = get_config().relay_config(network)

    try:
        txid = await broadcast(request.tx_hex, network, config=config)
    except BroadcastTimeoutError as e:
        logger.error("broadcast_timeout", network=network.value, timeout=e.timeout_seconds)
        raise HTTPException(status_code=504, detail=str(e)) from e
    except RelayUnavailableError as e:
        logger.error("relay_unavailable", network=network.value, reason=e.body)
        raise HTTPException(status_code=503, detail=str(e)) from e
    except BroadcastError as e:
        logger.error(
            "broadcast_rejected",
            network=network.value,
            status_code=e.status_code,
            relay_message=e.body,
        )
        raise HTTPException(
            status_code=502,
            detail={"status_code": e.status_code, "relay_message": e.body},
        ) from e

    logger.info("broadcast_accepted", network=network.value, txid=txid)
    return BroadcastResponse(txid=txid, network=network.value)


@router.get("/fees/recommended", response_model=FeeHealthResponse)
async def recommended_fees(
    network: Annotated[str, Query(description="mainnet, testnet or signet")] = "mainnet",
) -> FeeHealthResponse:
    """Suggested fee rate for a purchase and current mempool health."""
    target = _parse_network(network)
    try:
        health = await fetch_fee_health(target)
    except FeeEstimationError as e:
        logger.error("fee_estimation_failed", network=target.value, error=str(e))
        raise HTTPException(status_code=502, detail=str(e)) from e

    return FeeHealthResponse(network=target.value, **health.to_dict())
