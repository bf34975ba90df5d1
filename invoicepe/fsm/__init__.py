"""Payment state machine package."""

from invoicepe.fsm.states import PaymentStatus, InvoiceStatus, GatewayState, PaymentMethod

__all__ = ["PaymentStatus", "InvoiceStatus", "GatewayState", "PaymentMethod"]
