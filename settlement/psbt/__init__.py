"""Marketplace PSBT Verification Module.

Public API:
- Transaction, TxInput, TxOutput: semantic transaction model
- ExpectedTradeLayout: agreed deal terms (optional slots)
- VerificationResult: errors (reject) and warnings (advisory)
- verify / verify_psbt: check a transaction or PSBT against a layout
- decode_psbt: base64/hex PSBT -> Transaction
- Network: mainnet / testnet / signet selection
"""

from settlement.psbt.models import (
    ExpectedTradeLayout,
    Finding,
    Transaction,
    TransactionSummary,
    TxInput,
    TxOutput,
    VerificationResult,
)
from settlement.psbt.network import Network, is_address_for_network
from settlement.psbt.parser import PsbtDecodeError, decode_psbt
from settlement.psbt.verifier import verify, verify_psbt

__all__ = [
    # Models
    "ExpectedTradeLayout",
    "Finding",
    "Transaction",
    "TransactionSummary",
    "TxInput",
    "TxOutput",
    "VerificationResult",
    # Network
    "Network",
    "is_address_for_network",
    # Decoding
    "PsbtDecodeError",
    "decode_psbt",
    # Verification
    "verify",
    "verify_psbt",
]
