"""PSBT decoding.

Turns a base64 or hex encoded PSBT into the semantic Transaction model
using btclib. Input values come from the PSBT's utxo fields, so a PSBT
without them yields inputs with value 0.
"""

from __future__ import annotations

import logging

from btclib.psbt import Psbt
from btclib.script.script_pub_key import ScriptPubKey

from settlement.psbt.models import Transaction, TxInput, TxOutput
from settlement.psbt.network import Network

logger = logging.getLogger(__name__)

PSBT_MAGIC_HEX = "70736274ff"


class PsbtDecodeError(ValueError):
    """Raised when PSBT text cannot be decoded."""


def _load_psbt(psbt_text: str) -> Psbt:
    text = psbt_text.strip()
    if not text:
        raise PsbtDecodeError("empty PSBT")
    if text.lower().startswith(PSBT_MAGIC_HEX):
        return Psbt.parse(bytes.fromhex(text))
    return Psbt.b64decode(text)


def _input_value(psbt: Psbt, index: int) -> int:
    psbt_in = psbt.inputs[index]
    if psbt_in.witness_utxo is not None:
        return psbt_in.witness_utxo.value
    if psbt_in.non_witness_utxo is not None:
        prev_vout = psbt.tx.vin[index].prev_out.vout
        return psbt_in.non_witness_utxo.vout[prev_vout].value
    return 0


def _output_address(script: bytes, network: Network) -> str:
    try:
        return ScriptPubKey(script, network.btclib_name).address
    except ValueError:
        # OP_RETURN and other non-address scripts
        return ""


def decode_psbt(psbt_text: str, network: Network | str = Network.MAINNET) -> Transaction:
    """Decode a PSBT into a Transaction.

    Args:
        psbt_text: Base64 or hex (``70736274ff...``) encoded PSBT
        network: Network used to render output addresses

    Returns:
        Transaction with inputs/outputs in PSBT order

    Raises:
        PsbtDecodeError: If the text is not a valid PSBT
    """
    network = Network.parse(network)
    try:
        psbt = _load_psbt(psbt_text)
        inputs = [
            TxInput(
                txid=tx_in.prev_out.tx_id.hex(),
                vout=tx_in.prev_out.vout,
                value=_input_value(psbt, i),
            )
            for i, tx_in in enumerate(psbt.tx.vin)
        ]
        outputs = [
            TxOutput(
                address=_output_address(tx_out.script_pub_key.script, network),
                value=tx_out.value,
            )
            for tx_out in psbt.tx.vout
        ]
    except PsbtDecodeError:
        raise
    except Exception as e:
        # btclib signals malformed input with assorted types
        # (BTClibValueError, BTClibRuntimeError, OverflowError, IndexError)
        raise PsbtDecodeError(f"invalid PSBT: {e}") from e

    logger.debug(
        f"Decoded PSBT: {len(inputs)} inputs, {len(outputs)} outputs ({network.value})"
    )
    return Transaction(inputs=tuple(inputs), outputs=tuple(outputs))
