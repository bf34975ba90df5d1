"""
PhonePe wire schemas.
Field names follow the gateway's camelCase JSON; Python code uses snake_case.
"""

from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field


class PaymentInstrument(BaseModel):
    """Instrument sub-object. PhonePe adds fields over time, keep them."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    type: str
    card_type: Optional[str] = Field(default=None, alias="cardType")
    pg_transaction_id: Optional[str] = Field(default=None, alias="pgTransactionId")
    bank_transaction_id: Optional[str] = Field(default=None, alias="bankTransactionId")

    @property
    def descriptor(self) -> str:
        """Short, non-sensitive description stored on the payment row."""
        return (self.card_type or self.type)[:25]


class GatewayTransaction(BaseModel):
    """Decoded transaction record from a webhook or a status query."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    merchant_id: str = Field(alias="merchantId")
    merchant_transaction_id: str = Field(alias="merchantTransactionId")
    transaction_id: str = Field(alias="transactionId")
    # Paise
    amount: int
    # Kept as a plain string so unknown future states reach the state machine
    state: str
    response_code: str = Field(alias="responseCode")
    payment_instrument: Optional[PaymentInstrument] = Field(
        default=None, alias="paymentInstrument"
    )


class WebhookBody(BaseModel):
    """Outer webhook envelope."""

    response: str = ""
    checksum: Optional[str] = None


class GatewayResponse(BaseModel):
    """Common envelope of PhonePe API replies."""

    model_config = ConfigDict(extra="ignore")

    success: bool = False
    code: Optional[str] = None
    message: Optional[str] = None
    data: Optional[Dict[str, Any]] = None

    @property
    def redirect_info(self) -> Optional[Dict[str, Any]]:
        instrument_response = (self.data or {}).get("instrumentResponse") or {}
        return instrument_response.get("redirectInfo")
