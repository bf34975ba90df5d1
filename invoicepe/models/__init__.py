"""Models package for database models."""

from invoicepe.models.user import User
from invoicepe.models.vendor import Vendor
from invoicepe.models.invoice import Invoice
from invoicepe.models.payment import Payment
from invoicepe.models.notification import Notification

__all__ = [
    "User",
    "Vendor",
    "Invoice",
    "Payment",
    "Notification",
]
