"""API request / response schemas for payments."""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict

from invoicepe.fsm.states import PaymentMethod


class VendorSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    name: str


class InvoiceOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    user_id: uuid.UUID
    vendor_id: uuid.UUID
    amount: Decimal
    currency: str
    status: str
    vendor: Optional[VendorSummary] = None


class PaymentOut(BaseModel):
    """Payment with its invoice (and vendor name) embedded."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    invoice_id: uuid.UUID
    external_txn_id: Optional[str] = None
    method: str
    masked_instrument: Optional[str] = None
    status: str
    created_at: datetime
    updated_at: datetime
    invoice: InvoiceOut


class PaymentStatusResponse(BaseModel):
    success: bool = True
    message: str
    payment: PaymentOut


class PaymentListResponse(BaseModel):
    success: bool = True
    message: str
    payments: List[PaymentOut]


class WebhookResponse(BaseModel):
    success: bool = True
    message: str
    payment_status: str
    invoice_status: str


class PaymentIntentRequest(BaseModel):
    invoice_id: uuid.UUID
    method: PaymentMethod
    return_url: Optional[str] = None
    mobile_number: Optional[str] = None


class PaymentIntentResponse(BaseModel):
    success: bool = True
    message: str
    payment: PaymentOut
    payment_url: Optional[str] = None
    phonepe_txn_id: Optional[str] = None
    redirect_method: Optional[str] = None
