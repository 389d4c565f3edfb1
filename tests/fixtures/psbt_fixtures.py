"""
Test fixtures for marketplace PSBT verification and relay tests

Provides a canonical purchase (ordinal + padding-free buyer funding),
its expected layout, a BIP-174 PSBT vector and an httpx mock relay.
"""

import base64

import httpx
import pytest

from settlement.psbt import ExpectedTradeLayout, Transaction, TxInput, TxOutput

ORDINAL_TXID = "aa" * 32
BUYER_TXID_1 = "bb" * 32
BUYER_TXID_2 = "cc" * 32
STRANGER_TXID = "dd" * 32

BUYER_ADDRESS = "bc1q_buyer"
BUYER_PAYMENT_ADDRESS = "bc1q_buyer_payment"
SELLER_ADDRESS = "bc1q_seller"
PLATFORM_ADDRESS = "bc1p_platform"
ATTACKER_ADDRESS = "bc1q_attacker"

ORDINAL_VALUE = 10_000
PRICE_SATS = 50_000
PLATFORM_FEE_SATS = 1_250
CHANGE_SATS = 36_000

# BIP-174 "valid PSBT" vector: one P2PKH-funded input with a non-witness
# utxo, a P2PKH output and a P2SH output.
BIP174_PSBT_BASE64 = (
    "cHNidP8BAHUCAAAAASaBcTce3/KF6Tet7qSze3gADAVmy7OtZGQXE8pCFxv2AAAAAAD+////"
    "AtPf9QUAAAAAGXapFNDFmQPFusKGh2DpD9UhpGZap2UgiKwA4fUFAAAAABepFDVF5uM7gyxH"
    "BQ8k0+65PJwDlIvHh7MuEwAAAQD9pQEBAAAAAAECiaPHHqtNIOA3G7ukzGmPopXJRjr6Ljl/"
    "hTPMti+VZ+UBAAAAFxYAFL4Y0VKpsBIDna89p95PUzSe7LmF/////4b4qkOnHf8USIk6UwpyN"
    "+9rRgi7st0tAXHmOuxqSJC0AQAAABcWABT+Pp7xp0XpdNkCxDVZQ6vLNL1TU/////8CAMLrCw"
    "AAAAAZdqkUhc/xCX/Z4Ai7NK9wnGIZeziXikiIrHL++E4sAAAAF6kUM5cluiHv1irHU6m80Gf"
    "Wx6ajnQWHAkcwRAIgJxK+IuAnDzlPVoMR3HyppolwuAJf3TskAinwf4pfOiQCIAGLONfc0xTn"
    "NMkna9b7QPZzMlvEuqFEyADS8vAtsnZcASED0uFWdJQbrUqZY3LLh+GFbTZSYG2YVi/jnF6ef"
    "kE/IQUCSDBFAiEA0SuFLYXc2WHS9fSrZgZU327tzHlMDDPOXMMJ/7X85Y0CIGczio4OFyXBl/"
    "saiK9Z9R5E5CVbIBZ8hoQDHAXR8lkqASECI7cr7vCWXRC+B3jv7NYfysb3mk6haTkzgHNEZPh"
    "PKrMAAAAAAAAA"
)
BIP174_INPUT_TXID = "f61b1742ca13176464adb3cb66050c00787bb3a4eead37e985f2df1e37718126"
BIP174_INPUT_VALUE = 200_000_000
BIP174_OUTPUT_VALUES = [99_999_699, 100_000_000]
BIP174_MAINNET_ADDRESSES = [
    "1L2tGENeoh4mSoiUZrSbs1J3jazSdJH9QS",
    "36YhUacEtcnkfhSbxwm11wDCexLGBLgJF6",
]
BIP174_TESTNET_ADDRESSES = [
    "mzYqZHTdciW2DvC6HRQygvWNbab9U6KdQY",
    "2Mx6uYKYGW5J6sV59e5NsdtCTsJYRxednbx",
]


def mangle_psbt(index=None, value=None, truncate=None):
    """BIP-174 vector with one byte overwritten and/or the tail cut off."""
    raw = bytearray(base64.b64decode(BIP174_PSBT_BASE64))
    if index is not None:
        raw[index] = value
    if truncate is not None:
        raw = raw[:truncate]
    return base64.b64encode(bytes(raw)).decode()


# 0xfe at byte 7 turns the unsigned tx value length into an oversized varint
OVERSIZED_VARINT_PSBT = mangle_psbt(index=7, value=0xFE)
TRUNCATED_PSBT = mangle_psbt(truncate=60)

SIGNED_TX_HEX = "02000000000101" + "ab" * 60
RELAY_TXID = "e5" * 32


# =============================================================================
# Trade Fixtures
# =============================================================================


@pytest.fixture
def ordinal_input():
    """The listed inscription UTXO."""
    return TxInput(txid=ORDINAL_TXID, vout=0, value=ORDINAL_VALUE)


@pytest.fixture
def buyer_inputs():
    """Buyer payment UTXOs selected for the purchase."""
    return (
        TxInput(txid=BUYER_TXID_1, vout=1, value=60_000),
        TxInput(txid=BUYER_TXID_2, vout=0, value=30_000),
    )


@pytest.fixture
def full_layout(ordinal_input, buyer_inputs):
    """Expected layout with every slot populated."""
    return ExpectedTradeLayout(
        ordinal_input=ordinal_input,
        buyer_inputs=buyer_inputs,
        ordinal_output=TxOutput(BUYER_ADDRESS, ORDINAL_VALUE),
        seller_payment_output=TxOutput(SELLER_ADDRESS, PRICE_SATS),
        platform_fee_output=TxOutput(PLATFORM_ADDRESS, PLATFORM_FEE_SATS),
        buyer_change_output=TxOutput(BUYER_PAYMENT_ADDRESS, CHANGE_SATS),
    )


def build_purchase(
    ordinal_address=BUYER_ADDRESS,
    ordinal_value=ORDINAL_VALUE,
    seller_value=PRICE_SATS,
    platform_value=PLATFORM_FEE_SATS,
    change_address=BUYER_PAYMENT_ADDRESS,
    change_value=CHANGE_SATS,
    extra_inputs=(),
):
    """Build a purchase transaction, overriding single fields for negative cases."""
    inputs = [
        TxInput(txid=BUYER_TXID_1, vout=1, value=60_000),
        TxInput(txid=ORDINAL_TXID, vout=0, value=ORDINAL_VALUE),
        TxInput(txid=BUYER_TXID_2, vout=0, value=30_000),
        *extra_inputs,
    ]
    outputs = [
        TxOutput(ordinal_address, ordinal_value),
        TxOutput(SELLER_ADDRESS, seller_value),
        TxOutput(PLATFORM_ADDRESS, platform_value),
        TxOutput(change_address, change_value),
    ]
    return Transaction(inputs=tuple(inputs), outputs=tuple(outputs))


@pytest.fixture
def matching_purchase():
    """Purchase transaction that honours the full layout exactly."""
    return build_purchase()


# =============================================================================
# Relay Fixtures
# =============================================================================


class RecordingRelay:
    """httpx MockTransport handler that records requests and replays a response."""

    def __init__(self, status_code=200, text=RELAY_TXID, json=None, exc=None):
        self.status_code = status_code
        self.text = text
        self.json = json
        self.exc = exc
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.exc is not None:
            raise self.exc
        if self.json is not None:
            return httpx.Response(self.status_code, json=self.json)
        return httpx.Response(self.status_code, text=self.text)

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self))


@pytest.fixture
def relay_factory():
    """Factory for mock relays: relay_factory(status_code=400, text='...')."""
    return RecordingRelay
