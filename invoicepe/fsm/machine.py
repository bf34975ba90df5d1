"""
Payment state machine - maps gateway states to payment/invoice status pairs.
"""

from dataclasses import dataclass
from typing import Optional

from invoicepe.fsm.states import GatewayState, InvoiceStatus, PaymentStatus


@dataclass(frozen=True)
class StatusPair:
    """Target statuses for a payment and its invoice."""

    payment_status: PaymentStatus
    invoice_status: InvoiceStatus

    @property
    def is_terminal(self) -> bool:
        return self.payment_status.is_terminal


COMPLETED_PAIR = StatusPair(PaymentStatus.SUCCEEDED, InvoiceStatus.PAID)
FAILED_PAIR = StatusPair(PaymentStatus.FAILED, InvoiceStatus.FAILED)
PENDING_PAIR = StatusPair(PaymentStatus.INITIATED, InvoiceStatus.PENDING)

_STATE_MAP = {
    GatewayState.COMPLETED.value: COMPLETED_PAIR,
    GatewayState.FAILED.value: FAILED_PAIR,
    GatewayState.PENDING.value: PENDING_PAIR,
}


def map_gateway_state(state: Optional[str]) -> StatusPair:
    """
    Map a PhonePe transaction state to (payment status, invoice status).

    Total over every input: unknown or empty states fall back to the
    PENDING row, since a state we do not recognise is not known to be final.
    """
    if isinstance(state, GatewayState):
        state = state.value
    return _STATE_MAP.get(state or "", PENDING_PAIR)


def can_transition(current: PaymentStatus, target: PaymentStatus) -> bool:
    """Only initiated -> succeeded / failed is allowed."""
    return current is PaymentStatus.INITIATED and target.is_terminal
