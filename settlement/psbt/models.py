"""Semantic models for marketplace trade verification.

A Transaction is the spent outpoints plus the value assignments of a
candidate purchase transaction. An ExpectedTradeLayout is what the
marketplace agreed to: each slot is optional and only checked when present.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional

SEVERITY_ERROR = "error"
SEVERITY_WARNING = "warning"


@dataclass(frozen=True)
class TxInput:
    """A spent output, identified by (txid, vout).

    Attributes:
        txid: Transaction id of the output being spent (hex, display order)
        vout: Output index within that transaction
        value: Value of the spent output in satoshis (0 when unknown)
    """

    txid: str
    vout: int
    value: int = 0

    def __post_init__(self):
        if self.vout < 0:
            raise ValueError(f"vout must be >= 0, got {self.vout}")
        if self.value < 0:
            raise ValueError(f"input value must be >= 0, got {self.value}")
        object.__setattr__(self, "txid", self.txid.strip().lower())

    @property
    def outpoint(self) -> tuple[str, int]:
        return (self.txid, self.vout)

    def __str__(self) -> str:
        return f"{self.txid}:{self.vout}"

    @classmethod
    def from_dict(cls, data: dict) -> "TxInput":
        value = data.get("value")
        if value is None:
            value = (data.get("prevout") or {}).get("value", 0)
        return cls(txid=data["txid"], vout=int(data["vout"]), value=int(value or 0))


@dataclass(frozen=True)
class TxOutput:
    """A value assignment to an address (satoshis)."""

    address: str
    value: int

    def __post_init__(self):
        if self.value < 0:
            raise ValueError(f"output value must be >= 0, got {self.value}")

    def __str__(self) -> str:
        return f"{self.value} sats -> {self.address or '<non-address script>'}"

    @classmethod
    def from_dict(cls, data: dict) -> "TxOutput":
        address = data.get("address")
        if address is None:
            address = data.get("scriptpubkey_address", "")
        return cls(address=address or "", value=int(data.get("value", 0)))


@dataclass(frozen=True)
class Transaction:
    """Inputs and outputs of a candidate transaction, in transaction order."""

    inputs: tuple[TxInput, ...] = ()
    outputs: tuple[TxOutput, ...] = ()

    def __post_init__(self):
        object.__setattr__(self, "inputs", tuple(self.inputs))
        object.__setattr__(self, "outputs", tuple(self.outputs))

    @property
    def total_input(self) -> int:
        return sum(tx_in.value for tx_in in self.inputs)

    @property
    def total_output(self) -> int:
        return sum(tx_out.value for tx_out in self.outputs)

    @property
    def fee(self) -> int:
        """Implied miner fee. Only meaningful when every input value is known."""
        return self.total_input - self.total_output

    def has_input(self, txid: str, vout: int) -> bool:
        return (txid.strip().lower(), vout) in {i.outpoint for i in self.inputs}

    @classmethod
    def from_dict(cls, data: dict) -> "Transaction":
        """Build from ``{"inputs", "outputs"}`` or an esplora ``{"vin", "vout"}`` dict.

        Example:
            >>> tx = Transaction.from_dict({
            ...     "vin": [{"txid": "ab" * 32, "vout": 0, "prevout": {"value": 546}}],
            ...     "vout": [{"scriptpubkey_address": "bc1q_buyer", "value": 546}],
            ... })
            >>> tx.total_input
            546
        """
        raw_inputs = data.get("inputs", data.get("vin", []))
        raw_outputs = data.get("outputs", data.get("vout", []))
        return cls(
            inputs=tuple(TxInput.from_dict(i) for i in raw_inputs),
            outputs=tuple(TxOutput.from_dict(o) for o in raw_outputs),
        )


# camelCase keys sent by the web client
_LAYOUT_KEYS = {
    "ordinal_input": "ordinalInput",
    "buyer_inputs": "buyerInputs",
    "ordinal_output": "ordinalOutput",
    "seller_payment_output": "sellerPaymentOutput",
    "platform_fee_output": "platformFeeOutput",
    "buyer_change_output": "buyerChangeOutput",
}


@dataclass(frozen=True)
class ExpectedTradeLayout:
    """Deal terms a purchase transaction must honour.

    Every slot is optional. ``None`` means the caller does not want that
    part of the transaction checked. An empty ``buyer_inputs`` tuple is a
    present slot: every non-ordinal input is then unaccounted for.
    """

    ordinal_input: Optional[TxInput] = None
    buyer_inputs: Optional[tuple[TxInput, ...]] = None
    ordinal_output: Optional[TxOutput] = None
    seller_payment_output: Optional[TxOutput] = None
    platform_fee_output: Optional[TxOutput] = None
    buyer_change_output: Optional[TxOutput] = None

    def __post_init__(self):
        if self.buyer_inputs is not None:
            object.__setattr__(self, "buyer_inputs", tuple(self.buyer_inputs))

    def output_slots(self) -> list[tuple[str, Optional[TxOutput]]]:
        """Output slots in matching order."""
        return [
            ("ordinal_output", self.ordinal_output),
            ("seller_payment_output", self.seller_payment_output),
            ("platform_fee_output", self.platform_fee_output),
            ("buyer_change_output", self.buyer_change_output),
        ]

    @classmethod
    def from_dict(cls, data: dict) -> "ExpectedTradeLayout":
        def pick(name: str) -> Any:
            if name in data:
                return data[name]
            return data.get(_LAYOUT_KEYS[name])

        ordinal_input = pick("ordinal_input")
        buyer_inputs = pick("buyer_inputs")

        def output(name: str) -> Optional[TxOutput]:
            raw = pick(name)
            return TxOutput.from_dict(raw) if raw is not None else None

        return cls(
            ordinal_input=(
                TxInput.from_dict(ordinal_input) if ordinal_input is not None else None
            ),
            buyer_inputs=(
                tuple(TxInput.from_dict(i) for i in buyer_inputs)
                if buyer_inputs is not None
                else None
            ),
            ordinal_output=output("ordinal_output"),
            seller_payment_output=output("seller_payment_output"),
            platform_fee_output=output("platform_fee_output"),
            buyer_change_output=output("buyer_change_output"),
        )


@dataclass(frozen=True)
class Finding:
    """One verification problem, attributed to a layout slot."""

    slot: str
    severity: str
    message: str
    detail: str = ""


@dataclass(frozen=True)
class TransactionSummary:
    input_count: int = 0
    output_count: int = 0
    total_input: int = 0
    total_output: int = 0
    fee: int = 0

    @classmethod
    def of(cls, tx: Transaction) -> "TransactionSummary":
        return cls(
            input_count=len(tx.inputs),
            output_count=len(tx.outputs),
            total_input=tx.total_input,
            total_output=tx.total_output,
            fee=tx.fee,
        )


@dataclass
class VerificationResult:
    """Outcome of a verification call.

    ``errors`` and ``warnings`` hold the bare messages; ``findings`` keeps
    the slot and detail for each. Any error means the transaction must be
    rejected. Warnings never block acceptance.
    """

    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    findings: list[Finding] = field(default_factory=list)
    summary: TransactionSummary = field(default_factory=TransactionSummary)

    @property
    def valid(self) -> bool:
        return not self.errors

    def add_error(self, slot: str, message: str, detail: str = "") -> None:
        self.errors.append(message)
        self.findings.append(Finding(slot, SEVERITY_ERROR, message, detail))

    def add_warning(self, slot: str, message: str, detail: str = "") -> None:
        self.warnings.append(message)
        self.findings.append(Finding(slot, SEVERITY_WARNING, message, detail))

    def to_dict(self) -> dict:
        return {
            "valid": self.valid,
            "errors": list(self.errors),
            "warnings": list(self.warnings),
            "findings": [
                {
                    "slot": f.slot,
                    "severity": f.severity,
                    "message": f.message,
                    "detail": f.detail,
                }
                for f in self.findings
            ],
            "details": {
                "input_count": self.summary.input_count,
                "output_count": self.summary.output_count,
                "total_input": self.summary.total_input,
                "total_output": self.summary.total_output,
                "fee": self.summary.fee,
            },
        }
