"""
Notification Service - push + SMS after a payment succeeds.

Reconciliation never calls the dispatcher directly. It hands the payment id
to a NotificationQueue; the production queue is a Celery task that runs the
dispatcher in its own session, so nothing here can affect the webhook result.
"""

import logging
import uuid
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from invoicepe.fsm.states import PaymentStatus
from invoicepe.models.notification import Notification
from invoicepe.services.payment_repository import PaymentRepository
from invoicepe.services.sms_service import SmsService

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PaymentContext:
    payment_id: uuid.UUID
    invoice_id: uuid.UUID
    user_id: uuid.UUID
    amount: Decimal
    vendor_name: str
    phone: str


class NotificationQueue:
    """Boundary between reconciliation and notification delivery."""

    def enqueue(self, payment_id: uuid.UUID) -> None:
        raise NotImplementedError


class CeleryNotificationQueue(NotificationQueue):
    """Sends the payment id to the Celery notification worker."""

    def enqueue(self, payment_id: uuid.UUID) -> None:
        from invoicepe.workers.notifications import dispatch_payment_notifications

        dispatch_payment_notifications.delay(str(payment_id))


class NotificationDispatcher:
    """Sends the payment-success push notification and SMS."""

    def __init__(
        self,
        db: AsyncSession,
        sms: Optional[SmsService] = None,
        log: Optional[logging.Logger] = None,
    ):
        self.db = db
        self.repository = PaymentRepository(db)
        self.sms = sms or SmsService()
        self.log = log or logger

    async def dispatch(self, payment_id: uuid.UUID) -> None:
        """
        Notify the invoice owner that a payment succeeded.

        Push and SMS are independent; a failure in one is logged and does
        not stop the other.
        """
        payment = await self.repository.find_payment_by_id(payment_id)
        if not payment:
            self.log.error(f"Notification requested for unknown payment {payment_id}")
            return

        if payment.status != PaymentStatus.SUCCEEDED.value:
            self.log.warning(
                f"Skipping notifications for payment {payment_id} in status {payment.status}"
            )
            return

        invoice = payment.invoice
        user = await self.repository.get_user(invoice.user_id)
        if not user:
            self.log.error(f"User not found for invoice {invoice.id}")
            return

        # Plain values only from here on: a failed push rolls the session
        # back, which expires every loaded object.
        context = PaymentContext(
            payment_id=payment.id,
            invoice_id=invoice.id,
            user_id=invoice.user_id,
            amount=invoice.amount,
            vendor_name=invoice.vendor.name if invoice.vendor else "vendor",
            phone=user.phone,
        )

        await self._send_push(context)
        await self._send_sms(context)

        self.log.info(f"Dual notifications processed for payment {context.payment_id}")

    async def _send_push(self, context: PaymentContext) -> None:
        try:
            self.db.add(
                Notification(
                    user_id=context.user_id,
                    title="Payment Successful! 🎉",
                    body=f"₹{context.amount} paid to {context.vendor_name}",
                    type="payment_success",
                    data={
                        "payment_id": str(context.payment_id),
                        "invoice_id": str(context.invoice_id),
                        "amount": str(context.amount),
                    },
                )
            )
            await self.db.flush()
        except Exception as e:
            await self.db.rollback()
            self.log.warning(
                f"Push notification failed for payment {context.payment_id}: {e}",
                exc_info=True,
            )

    async def _send_sms(self, context: PaymentContext) -> None:
        reference = str(context.invoice_id)[-6:]
        message = (
            f"Payment received! Invoice #{reference} for ₹{context.amount} "
            f"has been paid successfully. Thank you!"
        )
        try:
            sid = await self.sms.send_sms(phone=context.phone, message=message)
        except Exception as e:
            self.log.warning(
                f"Payment SMS failed for invoice {context.invoice_id}: {e}",
                exc_info=True,
            )
            return

        if not sid:
            self.log.warning(f"Payment SMS not delivered for invoice {context.invoice_id}")
