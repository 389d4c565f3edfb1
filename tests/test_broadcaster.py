#!/usr/bin/env python3
"""
Tests for the async transaction broadcaster

The relay is an httpx.MockTransport, so no network access is needed.

Test Coverage:
    - Request shape (POST {base}/tx, text/plain raw hex body)
    - Success returns the relay's txid
    - Relay rejection carries status code and relay text
    - Timeout / unreachable relay map to distinct errors
    - Exactly one request per broadcast (no retries)
"""

import asyncio
import logging

import httpx
import pytest

from settlement.config import RelayConfig
from settlement.relay import (
    BroadcastError,
    BroadcastTimeoutError,
    RelayError,
    RelayUnavailableError,
    TransactionBroadcaster,
    broadcast,
)
from tests.fixtures.psbt_fixtures import RELAY_TXID, SIGNED_TX_HEX


@pytest.fixture
def testnet_config():
    return RelayConfig.for_network("testnet", timeout_seconds=2.0)


class TestBroadcastSuccess:
    """Relay accepts the transaction."""

    @pytest.mark.asyncio
    async def test_returns_txid(self, relay_factory, testnet_config):
        relay = relay_factory(text=RELAY_TXID + "\n")

        async with TransactionBroadcaster(testnet_config, client=relay.client()) as b:
            txid = await b.broadcast(SIGNED_TX_HEX)

        assert txid == RELAY_TXID

    @pytest.mark.asyncio
    async def test_request_shape(self, relay_factory, testnet_config):
        """POST to {base}/tx with the raw hex as a plain-text body."""
        relay = relay_factory()

        async with TransactionBroadcaster(testnet_config, client=relay.client()) as b:
            await b.broadcast(f"  {SIGNED_TX_HEX}\n")

        assert len(relay.requests) == 1
        request = relay.requests[0]
        assert request.method == "POST"
        assert str(request.url) == "https://mempool.space/testnet/api/tx"
        assert request.headers["content-type"] == "text/plain"
        assert request.content == SIGNED_TX_HEX.encode()

    @pytest.mark.asyncio
    async def test_custom_base_url(self, relay_factory):
        config = RelayConfig(base_url="http://localhost:3002/api/")
        relay = relay_factory()

        async with TransactionBroadcaster(config, client=relay.client()) as b:
            assert b.endpoint == "http://localhost:3002/api/tx"
            await b.broadcast(SIGNED_TX_HEX)

        assert str(relay.requests[0].url) == "http://localhost:3002/api/tx"


class TestBroadcastRejected:
    """Relay answers with a non-success status."""

    @pytest.mark.asyncio
    async def test_rejection_carries_status_and_body(self, relay_factory):
        reason = 'sendrawtransaction RPC error: {"code":-26,"message":"min relay fee not met"}'
        relay = relay_factory(status_code=400, text=reason)

        async with TransactionBroadcaster(client=relay.client()) as b:
            with pytest.raises(BroadcastError) as exc_info:
                await b.broadcast(SIGNED_TX_HEX)

        assert exc_info.value.status_code == 400
        assert exc_info.value.body == reason
        assert exc_info.value.is_client_error
        assert "HTTP 400" in str(exc_info.value)
        assert "min relay fee not met" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_server_error_not_retried(self, relay_factory):
        """A failed broadcast is reported, never silently resubmitted."""
        relay = relay_factory(status_code=503, text="Service Unavailable")

        async with TransactionBroadcaster(client=relay.client()) as b:
            with pytest.raises(BroadcastError) as exc_info:
                await b.broadcast(SIGNED_TX_HEX)

        assert len(relay.requests) == 1
        assert not exc_info.value.is_client_error

    @pytest.mark.asyncio
    async def test_empty_txid_is_error(self, relay_factory):
        relay = relay_factory(text="   ")

        async with TransactionBroadcaster(client=relay.client()) as b:
            with pytest.raises(BroadcastError, match="empty txid"):
                await b.broadcast(SIGNED_TX_HEX)


class TestRelayFailures:
    """No usable answer from the relay."""

    @pytest.mark.asyncio
    async def test_timeout(self, relay_factory, testnet_config):
        relay = relay_factory(exc=httpx.ReadTimeout("timed out"))

        async with TransactionBroadcaster(testnet_config, client=relay.client()) as b:
            with pytest.raises(BroadcastTimeoutError) as exc_info:
                await b.broadcast(SIGNED_TX_HEX)

        assert exc_info.value.timeout_seconds == 2.0
        assert isinstance(exc_info.value, TimeoutError)
        assert len(relay.requests) == 1

    @pytest.mark.asyncio
    async def test_unreachable(self, relay_factory):
        relay = relay_factory(exc=httpx.ConnectError("connection refused"))

        async with TransactionBroadcaster(client=relay.client()) as b:
            with pytest.raises(RelayUnavailableError) as exc_info:
                await b.broadcast(SIGNED_TX_HEX)

        assert exc_info.value.status_code is None
        assert "connection refused" in str(exc_info.value)

    def test_error_hierarchy(self):
        """Unavailable is a broadcast failure; both are relay errors."""
        assert issubclass(RelayUnavailableError, BroadcastError)
        assert issubclass(BroadcastError, RelayError)
        assert issubclass(BroadcastTimeoutError, RelayError)


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_requires_context_manager(self):
        broadcaster = TransactionBroadcaster()

        with pytest.raises(RuntimeError, match="async with"):
            await broadcaster.broadcast(SIGNED_TX_HEX)

    @pytest.mark.asyncio
    async def test_injected_client_not_closed(self, relay_factory):
        client = relay_factory().client()

        async with TransactionBroadcaster(client=client) as b:
            await b.broadcast(SIGNED_TX_HEX)

        assert not client.is_closed
        await client.aclose()

    def test_default_config_is_mainnet(self):
        assert TransactionBroadcaster().endpoint == "https://mempool.space/api/tx"


class TestBroadcastHelper:
    """Module-level broadcast() builds a one-off client for the network."""

    @pytest.mark.asyncio
    async def test_uses_network_relay(self, relay_factory, monkeypatch):
        relay = relay_factory()
        client = relay.client()
        monkeypatch.setattr(
            "settlement.relay.broadcaster.httpx.AsyncClient", lambda **kwargs: client
        )

        txid = await broadcast(SIGNED_TX_HEX, "signet")

        assert txid == RELAY_TXID
        assert str(relay.requests[0].url) == "https://mempool.space/signet/api/tx"
        assert client.is_closed

    @pytest.mark.asyncio
    async def test_concurrent_broadcasts_leave_no_log_fields(self, relay_factory, monkeypatch):
        """Overlapping broadcast() calls do not leave relay tags on later records."""
        relay = relay_factory()
        real_client = httpx.AsyncClient
        monkeypatch.setattr(
            "settlement.relay.broadcaster.httpx.AsyncClient",
            lambda **kwargs: real_client(transport=httpx.MockTransport(relay)),
        )

        txids = await asyncio.gather(
            broadcast(SIGNED_TX_HEX, "mainnet"),
            broadcast(SIGNED_TX_HEX, "testnet"),
        )

        assert txids == [RELAY_TXID, RELAY_TXID]
        assert {str(r.url) for r in relay.requests} == {
            "https://mempool.space/api/tx",
            "https://mempool.space/testnet/api/tx",
        }
        record = logging.getLogRecordFactory()(
            "x", logging.INFO, __file__, 1, "msg", (), None
        )
        assert not hasattr(record, "extra_fields")
