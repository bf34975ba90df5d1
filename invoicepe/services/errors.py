"""
Payment error taxonomy.
Routers translate these into HTTP responses; see api/webhooks/phonepe.py.
"""

from typing import Optional


class PaymentError(Exception):
    """Base class for payment processing errors."""


class ConfigurationError(PaymentError):
    """Gateway credentials (salt key / index / merchant id) are missing."""


class BadPayloadError(PaymentError):
    """Webhook or status payload could not be decoded or parsed."""


class PaymentNotFoundError(PaymentError):
    """No payment row matches the given id or external transaction id."""


class PaymentForbiddenError(PaymentError):
    """The requesting user does not own the payment's invoice."""


class InvoiceNotFoundError(PaymentError):
    """Invoice does not exist or belongs to another user."""


class InvoiceAlreadyPaidError(PaymentError):
    """A new payment was requested for an invoice that is already paid."""


class ReconciliationInconsistencyError(PaymentError):
    """Payment row was updated but its invoice could not be."""


class GatewayUnavailableError(PaymentError):
    """PhonePe could not be reached, timed out, or replied with garbage."""


class GatewayRejectedError(PaymentError):
    """PhonePe answered a pay request with success=false."""

    def __init__(self, code: Optional[str], message: Optional[str]):
        self.code = code or "PAYMENT_ERROR"
        self.message = message or "Unknown error"
        super().__init__(f"{self.code}: {self.message}")
