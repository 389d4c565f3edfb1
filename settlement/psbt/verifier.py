"""Marketplace Purchase Verification Module.

Checks a candidate ordinal purchase transaction against the agreed trade
layout before it is signed or broadcast:
1. Ordinal input - the listed inscription UTXO must be spent
2. Buyer inputs - every buyer UTXO must be spent; extra inputs are flagged
3. Ordinal output - the inscription must land at the buyer's address
4. Seller payment / platform fee - paid in full (overpayment allowed)
5. Buyer change - must return to the buyer; value drift is only a warning

Problems are reported in the result, never raised. Any error means the
transaction must be rejected.
"""

from __future__ import annotations

import logging
from typing import Optional

from settlement.psbt.models import (
    ExpectedTradeLayout,
    Transaction,
    TransactionSummary,
    TxOutput,
    VerificationResult,
)
from settlement.psbt.network import Network, is_address_for_network
from settlement.psbt.parser import PsbtDecodeError, decode_psbt

logger = logging.getLogger(__name__)

# Errors
ORDINAL_INPUT_MISMATCH = "ordinal input mismatch"
BUYER_INPUT_MISSING = "buyer input missing"
ORDINAL_NOT_DELIVERED = "ordinal not delivered to buyer"
SELLER_UNDERPAID = "seller underpaid"
PLATFORM_FEE_UNDERPAID = "platform fee underpaid"
CHANGE_ADDRESS_MISMATCH = "buyer change address mismatch"
INVALID_PSBT = "invalid psbt"
VERIFICATION_FAILED = "verification failed"

# Warnings
UNACCOUNTED_INPUT = "unaccounted input"
CHANGE_VALUE_MISMATCH = "buyer change value mismatch"
ADDRESS_NETWORK_MISMATCH = "address format does not match network"


def _check_inputs(
    tx: Transaction, layout: ExpectedTradeLayout, result: VerificationResult
) -> None:
    """Check the ordinal input and buyer inputs slots."""
    spent = {tx_in.outpoint for tx_in in tx.inputs}

    if layout.ordinal_input is not None:
        if layout.ordinal_input.outpoint not in spent:
            result.add_error(
                "ordinal_input",
                ORDINAL_INPUT_MISMATCH,
                f"{layout.ordinal_input} is not spent by the transaction",
            )

    if layout.buyer_inputs is None:
        return

    for expected in layout.buyer_inputs:
        if expected.outpoint not in spent:
            result.add_error(
                "buyer_inputs", BUYER_INPUT_MISSING, f"{expected} is not spent"
            )

    accounted = {i.outpoint for i in layout.buyer_inputs}
    if layout.ordinal_input is not None:
        accounted.add(layout.ordinal_input.outpoint)

    for tx_in in tx.inputs:
        if tx_in.outpoint not in accounted:
            result.add_warning(
                "buyer_inputs",
                UNACCOUNTED_INPUT,
                f"{tx_in} ({tx_in.value} sats) is not part of the trade",
            )


def _best_output_to(
    tx: Transaction, address: str, claimed: set[int]
) -> Optional[int]:
    """Index of the highest-value unclaimed output paying ``address``.

    Args:
        tx: Transaction to search
        address: Destination address
        claimed: Output indices already matched to another slot

    Returns:
        Output index, or None if no unclaimed output pays the address
    """
    candidates = [
        idx
        for idx, out in enumerate(tx.outputs)
        if idx not in claimed and out.address == address
    ]
    if not candidates:
        return None
    return max(candidates, key=lambda idx: tx.outputs[idx].value)


def _check_ordinal_output(
    tx: Transaction,
    expected: TxOutput,
    claimed: set[int],
    result: VerificationResult,
) -> None:
    for idx, out in enumerate(tx.outputs):
        if idx not in claimed and out == expected:
            claimed.add(idx)
            return
    result.add_error(
        "ordinal_output",
        ORDINAL_NOT_DELIVERED,
        f"expected {expected}, no output matches address and value",
    )


def _check_payment_output(
    tx: Transaction,
    slot: str,
    expected: TxOutput,
    underpaid_message: str,
    claimed: set[int],
    result: VerificationResult,
) -> None:
    idx = _best_output_to(tx, expected.address, claimed)
    if idx is None:
        result.add_error(
            slot, underpaid_message, f"no output pays {expected.address}"
        )
        return

    claimed.add(idx)
    actual = tx.outputs[idx].value
    if actual < expected.value:
        result.add_error(
            slot,
            underpaid_message,
            f"output {idx} pays {actual} sats, expected at least {expected.value}",
        )


def _check_change_output(
    tx: Transaction,
    expected: TxOutput,
    claimed: set[int],
    result: VerificationResult,
) -> None:
    idx = _best_output_to(tx, expected.address, claimed)
    if idx is None:
        result.add_error(
            "buyer_change_output",
            CHANGE_ADDRESS_MISMATCH,
            f"no output returns change to {expected.address}",
        )
        return

    claimed.add(idx)
    actual = tx.outputs[idx].value
    if actual != expected.value:
        result.add_warning(
            "buyer_change_output",
            CHANGE_VALUE_MISMATCH,
            f"output {idx} returns {actual} sats, expected {expected.value}",
        )


def _check_address_formats(
    layout: ExpectedTradeLayout, network: Network, result: VerificationResult
) -> None:
    # Runs after the slot checks: a slot that already has an error gets no warning
    failed_slots = {f.slot for f in result.findings if f.severity == "error"}
    for slot, expected in layout.output_slots():
        if expected is None or slot in failed_slots:
            continue
        if not is_address_for_network(expected.address, network):
            result.add_warning(
                slot,
                ADDRESS_NETWORK_MISMATCH,
                f"{expected.address} is not a {network.value} address",
            )


def _run_checks(
    tx: Transaction,
    network: Network,
    layout: ExpectedTradeLayout,
    result: VerificationResult,
) -> None:
    _check_inputs(tx, layout, result)

    # Outputs are claimed in slot order so one output cannot satisfy two slots
    claimed: set[int] = set()
    if layout.ordinal_output is not None:
        _check_ordinal_output(tx, layout.ordinal_output, claimed, result)
    if layout.seller_payment_output is not None:
        _check_payment_output(
            tx,
            "seller_payment_output",
            layout.seller_payment_output,
            SELLER_UNDERPAID,
            claimed,
            result,
        )
    if layout.platform_fee_output is not None:
        _check_payment_output(
            tx,
            "platform_fee_output",
            layout.platform_fee_output,
            PLATFORM_FEE_UNDERPAID,
            claimed,
            result,
        )
    if layout.buyer_change_output is not None:
        _check_change_output(tx, layout.buyer_change_output, claimed, result)

    _check_address_formats(layout, network, result)


def verify(
    transaction: Transaction,
    network: Network | str,
    expected_layout: ExpectedTradeLayout,
) -> VerificationResult:
    """Verify a purchase transaction against the expected trade layout.

    Args:
        transaction: Parsed candidate transaction
        network: Network whose address format rules apply
        expected_layout: Slots the caller wants checked (omitted = unchecked)

    Returns:
        VerificationResult; reject the transaction if ``errors`` is non-empty

    Example:
        >>> layout = ExpectedTradeLayout(
        ...     seller_payment_output=TxOutput("bc1q_seller", 50_000))
        >>> tx = Transaction(outputs=[TxOutput("bc1q_seller", 49_000)])
        >>> verify(tx, "mainnet", layout).errors
        ['seller underpaid']
    """
    result = VerificationResult()
    try:
        network = Network.parse(network)
        result.summary = TransactionSummary.of(transaction)
        _run_checks(transaction, network, expected_layout, result)
    except Exception as e:
        logger.exception(f"Verification aborted: {e}")
        result.add_error("transaction", VERIFICATION_FAILED, str(e))

    for finding in result.findings:
        log = logger.warning if finding.severity == "error" else logger.info
        log(f"PSBT {finding.severity} [{finding.slot}] {finding.message}: {finding.detail}")
    logger.debug(
        f"Verified transaction: inputs={result.summary.input_count}, "
        f"outputs={result.summary.output_count}, fee={result.summary.fee}, "
        f"valid={result.valid}"
    )
    return result


def verify_psbt(
    psbt_text: str,
    network: Network | str,
    expected_layout: ExpectedTradeLayout,
) -> VerificationResult:
    """Decode a PSBT and verify it.

    A PSBT that cannot be decoded yields the single error ``invalid psbt``.
    """
    try:
        transaction = decode_psbt(psbt_text, network)
    except PsbtDecodeError as e:
        logger.warning(f"Rejecting undecodable PSBT: {e}")
        result = VerificationResult()
        result.add_error("transaction", INVALID_PSBT, str(e))
        return result
    except Exception as e:
        # unknown network name, or anything else the decoder did not classify
        logger.exception(f"PSBT verification aborted: {e}")
        result = VerificationResult()
        result.add_error("transaction", VERIFICATION_FAILED, str(e))
        return result
    return verify(transaction, network, expected_layout)
