"""
Payment Intent Service - creates a payment attempt and a PhonePe checkout.
"""

import logging
import time
import uuid
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, Optional

from invoicepe.config import settings
from invoicepe.fsm.states import InvoiceStatus, PaymentMethod, PaymentStatus
from invoicepe.models.invoice import Invoice
from invoicepe.models.payment import Payment
from invoicepe.services.errors import (
    GatewayRejectedError,
    GatewayUnavailableError,
    InvoiceAlreadyPaidError,
    InvoiceNotFoundError,
    PaymentForbiddenError,
)
from invoicepe.services.payment_repository import PaymentRepository
from invoicepe.services.phonepe_service import PhonePeService

logger = logging.getLogger(__name__)

DEFAULT_MOBILE_NUMBER = "9999999999"


@dataclass
class PaymentIntent:
    payment: Payment
    payment_url: Optional[str] = None
    redirect_method: Optional[str] = None
    created: bool = True


def build_transaction_id(invoice_id: uuid.UUID) -> str:
    """merchantTransactionId for a new attempt; PhonePe caps it at 35 chars."""
    return f"INV_{invoice_id.hex[:16]}_{int(time.time() * 1000)}"


def to_paise(amount: Decimal) -> int:
    return int((Decimal(amount) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


class PaymentIntentService:
    """Starts PhonePe payments for invoices."""

    def __init__(
        self,
        repository: PaymentRepository,
        gateway: PhonePeService,
        log: Optional[logging.Logger] = None,
    ):
        self.repository = repository
        self.gateway = gateway
        self.log = log or logger

    async def create_intent(
        self,
        user_id: uuid.UUID,
        invoice_id: uuid.UUID,
        method: PaymentMethod,
        return_url: Optional[str] = None,
        mobile_number: Optional[str] = None,
        idempotency_key: Optional[str] = None,
    ) -> PaymentIntent:
        """
        Create an 'initiated' payment for the invoice and a checkout URL.

        A repeated call with the same idempotency key returns the payment
        created by the first call and no URL.
        """
        if idempotency_key:
            existing = await self.repository.find_payment_by_idempotency_key(idempotency_key)
            if existing:
                if existing.invoice.user_id != user_id:
                    raise PaymentForbiddenError(str(existing.id))
                self.log.info(f"Payment intent replay for key {idempotency_key}")
                return PaymentIntent(payment=existing, created=False)

        self.gateway.ensure_configured()

        invoice = await self.repository.find_invoice_for_user(invoice_id, user_id)
        if not invoice:
            raise InvoiceNotFoundError(str(invoice_id))
        if invoice.status == InvoiceStatus.PAID.value:
            raise InvoiceAlreadyPaidError(str(invoice_id))

        txn_id = build_transaction_id(invoice.id)
        payment = await self.repository.create_payment(
            invoice_id=invoice.id,
            external_txn_id=txn_id,
            method=method.value,
            idempotency_key=idempotency_key,
        )
        # The row must exist before PhonePe can call the webhook for it
        await self.repository.commit()

        if not mobile_number:
            user = await self.repository.get_user(user_id)
            mobile_number = user.phone if user else DEFAULT_MOBILE_NUMBER

        request = self._build_pay_request(
            invoice=invoice,
            user_id=user_id,
            txn_id=txn_id,
            method=method,
            return_url=return_url,
            mobile_number=mobile_number,
        )

        try:
            reply = await self.gateway.initiate_payment(request)
        except GatewayUnavailableError:
            # PhonePe may still have accepted the request; the webhook or a
            # status poll settles the payment, so it stays initiated.
            self.log.warning(f"PhonePe unreachable while starting payment {payment.id} ({txn_id})")
            raise

        redirect = reply.redirect_info if reply.success else None
        if not redirect or not redirect.get("url"):
            await self._mark_failed(payment.id)
            raise GatewayRejectedError(reply.code, reply.message)

        self.log.info(f"Payment {payment.id} initiated with PhonePe as {txn_id}")

        payment = await self.repository.find_payment_by_id(payment.id)
        return PaymentIntent(
            payment=payment,
            payment_url=redirect["url"],
            redirect_method=redirect.get("method") or "GET",
        )

    def _build_pay_request(
        self,
        invoice: Invoice,
        user_id: uuid.UUID,
        txn_id: str,
        method: PaymentMethod,
        return_url: Optional[str],
        mobile_number: str,
    ) -> Dict[str, Any]:
        vendor = invoice.vendor
        if method is PaymentMethod.UPI and vendor and vendor.upi_id:
            # UPI auto-collect against the vendor's VPA
            instrument = {
                "type": "UPI_COLLECT",
                "targetApp": "com.phonepe.app",
                "upiId": vendor.upi_id,
            }
        else:
            instrument = {"type": "PAY_PAGE"}

        redirect_url = return_url or (
            f"{settings.app_deep_link_scheme}://payment-callback?txnId={txn_id}"
        )

        return {
            "merchantTransactionId": txn_id,
            "merchantUserId": str(user_id),
            "amount": to_paise(invoice.amount),
            "redirectUrl": redirect_url,
            "redirectMode": "REDIRECT",
            "callbackUrl": settings.phonepe_callback_url,
            "mobileNumber": "".join(ch for ch in mobile_number if ch.isdigit()),
            "paymentInstrument": instrument,
        }

    async def _mark_failed(self, payment_id: uuid.UUID) -> None:
        await self.repository.update_payment_status(
            payment_id,
            from_status=PaymentStatus.INITIATED,
            to_status=PaymentStatus.FAILED,
        )
        await self.repository.commit()
        self.log.warning(f"Payment {payment_id} marked failed: PhonePe did not start checkout")
