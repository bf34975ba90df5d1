"""
Reconciliation Service - merges PhonePe transaction reports into payment and
invoice state.

Both the webhook and the status poller go through reconcile(), so the
transition guard and the notification-once rule live in one place.
"""

import logging
import uuid
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from invoicepe.fsm.machine import can_transition, map_gateway_state
from invoicepe.fsm.states import InvoiceStatus, PaymentStatus
from invoicepe.models.payment import Payment
from invoicepe.schemas.phonepe import GatewayTransaction
from invoicepe.services.errors import (
    PaymentNotFoundError,
    ReconciliationInconsistencyError,
)
from invoicepe.services.notification_service import NotificationQueue
from invoicepe.services.payment_repository import PaymentRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReconciliationResult:
    """Stored state after a reconciliation call."""

    payment_id: uuid.UUID
    invoice_id: uuid.UUID
    payment_status: PaymentStatus
    invoice_status: InvoiceStatus
    # True only for the call that moved the payment out of 'initiated'
    transitioned: bool = False
    notified: bool = False


class ReconciliationService:
    """Applies gateway transaction reports to payments and invoices."""

    def __init__(
        self,
        repository: PaymentRepository,
        notifications: NotificationQueue,
        log: Optional[logging.Logger] = None,
    ):
        self.repository = repository
        self.notifications = notifications
        self.log = log or logger

    async def reconcile(
        self,
        external_txn_id: str,
        transaction: GatewayTransaction,
    ) -> ReconciliationResult:
        """
        Reconcile one transaction report.

        1. Load the payment by external transaction id
        2. Map the gateway state to (payment, invoice) status
        3. Conditionally move payment out of 'initiated', then update invoice
        4. Enqueue notifications if this call performed initiated -> succeeded
        5. Return the stored state

        Replays of an already-applied terminal state are successful no-ops.
        """
        payment = await self.repository.find_payment_by_external_id(external_txn_id)
        if not payment:
            self.log.error(
                f"Payment not found for PhonePe transaction {external_txn_id}",
                extra={"txn_id": external_txn_id},
            )
            raise PaymentNotFoundError(external_txn_id)

        target = map_gateway_state(transaction.state)
        current = PaymentStatus(payment.status)

        if not can_transition(current, target.payment_status):
            if current.is_terminal and target.is_terminal and current is not target.payment_status:
                self.log.warning(
                    f"Ignoring {transaction.state} for payment {payment.id}: "
                    f"already {current.value}"
                )
            else:
                self.log.info(
                    f"No transition for payment {payment.id}: "
                    f"stored {current.value}, gateway {transaction.state!r}"
                )
            return self._result(payment)

        instrument = (
            transaction.payment_instrument.descriptor
            if transaction.payment_instrument
            else None
        )

        payment_id, invoice_id = payment.id, payment.invoice_id
        try:
            transitioned = await self.repository.update_payment_status(
                payment.id,
                from_status=PaymentStatus.INITIATED,
                to_status=target.payment_status,
                masked_instrument=instrument,
            )
        except IntegrityError as e:
            await self._report_double_capture(payment_id, invoice_id, external_txn_id)
            raise ReconciliationInconsistencyError(
                f"invoice {invoice_id} already has a succeeded payment"
            ) from e
        except SQLAlchemyError as e:
            self.log.critical(f"Status update failed for payment {payment_id}: {e}")
            raise ReconciliationInconsistencyError(
                f"payment {payment_id} could not be updated"
            ) from e

        if not transitioned:
            # A concurrent webhook or poll moved it first
            payment = await self.repository.find_payment_by_id(payment.id)
            self.log.info(f"Payment {payment.id} already reconciled to {payment.status}")
            return self._result(payment)

        await self._apply_invoice_status(payment, target.invoice_status)

        try:
            await self.repository.commit()
        except SQLAlchemyError as e:
            self.log.critical(f"Commit failed while reconciling payment {payment.id}: {e}")
            raise ReconciliationInconsistencyError(
                f"could not persist reconciliation of payment {payment.id}"
            ) from e

        notified = False
        if target.payment_status is PaymentStatus.SUCCEEDED:
            notified = self._enqueue_notifications(payment.id)

        self.log.info(
            f"Payment {payment.id} updated to {target.payment_status.value}, "
            f"invoice {payment.invoice_id} updated to {target.invoice_status.value}",
            extra={"txn_id": external_txn_id},
        )

        payment = await self.repository.find_payment_by_id(payment.id)
        return self._result(payment, transitioned=True, notified=notified)

    async def _apply_invoice_status(self, payment: Payment, status: InvoiceStatus) -> None:
        """Second half of the transition. Failure here is a data inconsistency."""
        try:
            updated = await self.repository.update_invoice_status(payment.invoice_id, status)
        except SQLAlchemyError as e:
            self.log.critical(
                f"INCONSISTENT: payment {payment.id} moved but invoice "
                f"{payment.invoice_id} update failed: {e}"
            )
            raise ReconciliationInconsistencyError(
                f"invoice {payment.invoice_id} not updated for payment {payment.id}"
            ) from e

        if updated:
            return

        if status is InvoiceStatus.PAID:
            self.log.critical(
                f"INCONSISTENT: payment {payment.id} succeeded but invoice "
                f"{payment.invoice_id} could not be marked paid"
            )
            raise ReconciliationInconsistencyError(
                f"invoice {payment.invoice_id} missing for payment {payment.id}"
            )

        # Another attempt already paid this invoice; paid wins
        self.log.info(
            f"Invoice {payment.invoice_id} already paid; keeping it paid after "
            f"payment {payment.id} went {status.value}"
        )

    async def _report_double_capture(
        self,
        payment_id: uuid.UUID,
        invoice_id: uuid.UUID,
        external_txn_id: str,
    ) -> None:
        """A second attempt completed on an invoice another attempt already paid."""
        # The failed statement aborts the transaction and expires loaded rows;
        # only the plain ids passed in are used after this point.
        await self.repository.rollback()
        settled = await self.repository.find_succeeded_payment_for_invoice(invoice_id)
        self.log.critical(
            f"DOUBLE CAPTURE: payment {payment_id} ({external_txn_id}) completed but "
            f"invoice {invoice_id} is already settled by payment "
            f"{settled.id if settled else 'unknown'}; refund required",
            extra={"txn_id": external_txn_id},
        )

    def _enqueue_notifications(self, payment_id: uuid.UUID) -> bool:
        try:
            self.notifications.enqueue(payment_id)
            return True
        except Exception as e:
            self.log.warning(f"Could not enqueue notifications for payment {payment_id}: {e}")
            return False

    @staticmethod
    def _result(
        payment: Payment,
        transitioned: bool = False,
        notified: bool = False,
    ) -> ReconciliationResult:
        return ReconciliationResult(
            payment_id=payment.id,
            invoice_id=payment.invoice_id,
            payment_status=PaymentStatus(payment.status),
            invoice_status=InvoiceStatus(payment.invoice.status),
            transitioned=transitioned,
            notified=notified,
        )
