"""
Payment and invoice state definitions.
Values match the Postgres enum labels used by the mobile app.
"""

from enum import Enum


class PaymentStatus(str, Enum):
    """
    Status of a single payment attempt.
    INITIATED is the only non-terminal status.
    """

    INITIATED = "initiated"
    SUCCEEDED = "succeeded"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self is not PaymentStatus.INITIATED


class InvoiceStatus(str, Enum):
    """Invoice status, derived from its authoritative payment."""

    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"


class GatewayState(str, Enum):
    """Transaction states reported by PhonePe."""

    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    PENDING = "PENDING"


class PaymentMethod(str, Enum):
    """Payment methods accepted at intent time."""

    CARD = "card"
    UPI = "upi"
