"""
Pydantic models for the settlement API.

Request bodies mirror what the marketplace web client sends (camelCase
layout keys are accepted); conversion helpers hand plain dataclasses to
the settlement package.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from settlement.psbt import ExpectedTradeLayout, Transaction, TxInput, TxOutput

# =============================================================================
# Transaction model
# =============================================================================


class TxInputModel(BaseModel):
    """A spent outpoint."""

    txid: str = Field(..., min_length=1, description="Spent transaction id (hex)")
    vout: int = Field(..., ge=0, description="Spent output index")
    value: int = Field(default=0, ge=0, description="Spent value in sats")

    def to_domain(self) -> TxInput:
        return TxInput(txid=self.txid, vout=self.vout, value=self.value)


class TxOutputModel(BaseModel):
    """A value assignment."""

    address: str = Field(..., description="Destination address")
    value: int = Field(..., ge=0, description="Value in sats")

    def to_domain(self) -> TxOutput:
        return TxOutput(address=self.address, value=self.value)


class TransactionModel(BaseModel):
    inputs: list[TxInputModel] = Field(default_factory=list)
    outputs: list[TxOutputModel] = Field(default_factory=list)

    def to_domain(self) -> Transaction:
        return Transaction(
            inputs=tuple(i.to_domain() for i in self.inputs),
            outputs=tuple(o.to_domain() for o in self.outputs),
        )


class ExpectedLayoutModel(BaseModel):
    """Expected trade layout; omitted slots are not checked."""

    model_config = ConfigDict(populate_by_name=True)

    ordinal_input: Optional[TxInputModel] = Field(default=None, alias="ordinalInput")
    buyer_inputs: Optional[list[TxInputModel]] = Field(
        default=None, alias="buyerInputs"
    )
    ordinal_output: Optional[TxOutputModel] = Field(
        default=None, alias="ordinalOutput"
    )
    seller_payment_output: Optional[TxOutputModel] = Field(
        default=None, alias="sellerPaymentOutput"
    )
    platform_fee_output: Optional[TxOutputModel] = Field(
        default=None, alias="platformFeeOutput"
    )
    buyer_change_output: Optional[TxOutputModel] = Field(
        default=None, alias="buyerChangeOutput"
    )

    def to_domain(self) -> ExpectedTradeLayout:
        def out(model: Optional[TxOutputModel]) -> Optional[TxOutput]:
            return model.to_domain() if model is not None else None

        return ExpectedTradeLayout(
            ordinal_input=(
                self.ordinal_input.to_domain() if self.ordinal_input else None
            ),
            buyer_inputs=(
                tuple(i.to_domain() for i in self.buyer_inputs)
                if self.buyer_inputs is not None
                else None
            ),
            ordinal_output=out(self.ordinal_output),
            seller_payment_output=out(self.seller_payment_output),
            platform_fee_output=out(self.platform_fee_output),
            buyer_change_output=out(self.buyer_change_output),
        )


# =============================================================================
# Verification
# =============================================================================


class VerifyRequest(BaseModel):
    """Verify either a PSBT (base64/hex) or an already parsed transaction."""

    network: str = Field(default="mainnet", description="mainnet, testnet or signet")
    psbt: Optional[str] = Field(default=None, description="Base64 or hex PSBT")
    transaction: Optional[TransactionModel] = None
    expected: ExpectedLayoutModel = Field(default_factory=ExpectedLayoutModel)

    @model_validator(mode="after")
    def exactly_one_source(self) -> "VerifyRequest":
        if (self.psbt is None) == (self.transaction is None):
            raise ValueError("provide exactly one of 'psbt' or 'transaction'")
        return self


class FindingModel(BaseModel):
    slot: str
    severity: str
    message: str
    detail: str = ""


class SummaryModel(BaseModel):
    input_count: int
    output_count: int
    total_input: int
    total_output: int
    fee: int


class VerificationResponse(BaseModel):
    valid: bool
    errors: list[str]
    warnings: list[str]
    findings: list[FindingModel]
    details: SummaryModel


# =============================================================================
# Broadcast & fees
# =============================================================================


class BroadcastRequest(BaseModel):
    tx_hex: str = Field(..., min_length=1, description="Signed raw transaction hex")
    network: str = Field(default="mainnet")


class BroadcastResponse(BaseModel):
    txid: str
    network: str


class FeeHealthResponse(BaseModel):
    network: str
    suggested_fee_rate: float = Field(..., description="sat/vB")
    health_rating: str
    health_message: str
    blocks_with_sub1_sat: int
    total_blocks: int
    last_sub1_sat_fee: Optional[float] = None


class HealthStatus(BaseModel):
    status: str
    version: str
    network: str
    uptime_seconds: float
