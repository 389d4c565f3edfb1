"""Async Transaction Broadcaster.

Submits a fully signed raw transaction to an esplora-compatible relay
(mempool.space by default) and returns its txid.

Relay contract:
- POST {base_url}/tx with the raw hex as a text/plain body
- 2xx: body is the txid as plain text
- non-2xx: body is the relay's error text (e.g. "sendrawtransaction RPC error")

Exactly one outbound request per broadcast; no retries. Retrying a
broadcast is the caller's decision.

Usage:
    async with TransactionBroadcaster(RelayConfig.for_network("testnet")) as relay:
        txid = await relay.broadcast(signed_hex)
"""

from __future__ import annotations

import logging
from typing import Optional

import httpx

from settlement.config.logging_config import LogContext
from settlement.config.relay_config import RelayConfig
from settlement.psbt.network import Network
from settlement.relay.errors import (
    BroadcastError,
    BroadcastTimeoutError,
    RelayUnavailableError,
)

logger = logging.getLogger(__name__)


class TransactionBroadcaster:
    """Async client for the relay's broadcast endpoint.

    Stateless apart from the HTTP connection pool, so concurrent
    ``broadcast`` calls on one instance are safe.
    """

    def __init__(
        self,
        config: Optional[RelayConfig] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        """Initialize broadcaster.

        Args:
            config: Relay configuration. Defaults to the mainnet public relay.
            client: Pre-built httpx client (tests, shared pools). Not closed
                by this class when supplied.
        """
        self.config = config or RelayConfig()
        self._client = client
        self._owns_client = client is None

    async def __aenter__(self) -> "TransactionBroadcaster":
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.config.timeout_seconds)
            )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def close(self) -> None:
        """Close the httpx client if this instance created it."""
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None

    @property
    def endpoint(self) -> str:
        return f"{self.config.base_url}/tx"

    async def broadcast(self, tx_hex: str) -> str:
        """Broadcast a signed raw transaction.

        Surrounding whitespace is trimmed; the hex itself is not validated
        locally, the relay is the authority on whether it is a valid transaction.

        Args:
            tx_hex: Hex-encoded fully signed transaction

        Returns:
            Transaction id reported by the relay

        Raises:
            BroadcastError: Relay rejected the transaction (status + body)
            RelayUnavailableError: Relay could not be reached
            BroadcastTimeoutError: No answer within ``timeout_seconds``
        """
        if self._client is None:
            raise RuntimeError("Broadcaster not initialized. Use 'async with' context.")

        payload = tx_hex.strip()
        logger.info(
            f"Broadcasting {len(payload) // 2} byte transaction to {self.endpoint}"
        )

        try:
            response = await self._client.post(
                self.endpoint,
                content=payload,
                headers={"Content-Type": "text/plain"},
                timeout=self.config.timeout_seconds,
            )
        except httpx.TimeoutException as e:
            logger.error(f"Broadcast timed out after {self.config.timeout_seconds}s")
            raise BroadcastTimeoutError(self.config.timeout_seconds) from e
        except httpx.TransportError as e:
            logger.error(f"Relay unreachable at {self.endpoint}: {e}")
            raise RelayUnavailableError(str(e) or type(e).__name__) from e

        body = response.text.strip()
        if not response.is_success:
            logger.error(f"Relay rejected transaction: HTTP {response.status_code} {body}")
            raise BroadcastError(response.status_code, body)
        if not body:
            raise BroadcastError(response.status_code, "relay returned an empty txid")

        logger.info(f"Transaction broadcast: {body}")
        return body


async def broadcast(
    tx_hex: str,
    network: Network | str = Network.MAINNET,
    config: Optional[RelayConfig] = None,
) -> str:
    """Broadcast a signed transaction (convenience wrapper).

    Creates a temporary client for a one-off broadcast.

    Args:
        tx_hex: Hex-encoded signed transaction
        network: Network to broadcast on (selects the default relay)
        config: Explicit relay config; overrides ``network`` when given

    Returns:
        Transaction id
    """
    config = config or RelayConfig.for_network(network)
    with LogContext(logger, network=config.network.value, relay=config.base_url):
        async with TransactionBroadcaster(config) as relay:
            return await relay.broadcast(tx_hex)
