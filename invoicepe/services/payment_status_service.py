"""
Payment Status Service - client-facing status queries.

A payment still 'initiated' is refreshed from PhonePe before answering, so
a missed webhook does not leave the client waiting forever. Gateway trouble
never fails the query; the stored state is returned instead.
"""

import logging
import uuid
from typing import List, Optional

from invoicepe.fsm.machine import map_gateway_state
from invoicepe.fsm.states import PaymentStatus
from invoicepe.models.payment import Payment
from invoicepe.services.errors import (
    ConfigurationError,
    GatewayUnavailableError,
    PaymentForbiddenError,
    PaymentNotFoundError,
)
from invoicepe.services.payment_repository import PaymentRepository
from invoicepe.services.phonepe_service import PhonePeService
from invoicepe.services.reconciliation_service import ReconciliationService

logger = logging.getLogger(__name__)


class PaymentStatusService:
    """Status lookups with lazy refresh of stale payments."""

    def __init__(
        self,
        repository: PaymentRepository,
        reconciliation: ReconciliationService,
        gateway: PhonePeService,
        log: Optional[logging.Logger] = None,
    ):
        self.repository = repository
        self.reconciliation = reconciliation
        self.gateway = gateway
        self.log = log or logger

    async def get_status(self, payment_id: uuid.UUID, requesting_user_id: uuid.UUID) -> Payment:
        """
        Payment (with invoice and vendor) for its owner.

        Raises PaymentNotFoundError or PaymentForbiddenError. Ownership is
        checked before the gateway is contacted.
        """
        payment = await self.repository.find_payment_by_id(payment_id)
        if not payment:
            raise PaymentNotFoundError(str(payment_id))

        if payment.invoice.user_id != requesting_user_id:
            self.log.warning(
                f"User {requesting_user_id} denied access to payment {payment_id}"
            )
            raise PaymentForbiddenError(str(payment_id))

        return await self.refresh(payment)

    async def list_payments(self, user_id: uuid.UUID) -> List[Payment]:
        """Every payment on the user's invoices, newest first. No refresh."""
        return await self.repository.list_payments_for_user(user_id)

    async def refresh_by_external_id(self, external_txn_id: str) -> Payment:
        """Refresh a payment identified by its PhonePe transaction id."""
        payment = await self.repository.find_payment_by_external_id(external_txn_id)
        if not payment:
            raise PaymentNotFoundError(external_txn_id)
        return await self.refresh(payment)

    async def refresh(self, payment: Payment) -> Payment:
        """
        Ask PhonePe about an initiated payment and reconcile terminal answers.

        Returns the payment as stored after the refresh attempt.
        """
        if payment.status != PaymentStatus.INITIATED.value or not payment.external_txn_id:
            return payment

        try:
            transaction = await self.gateway.check_status(payment.external_txn_id)
        except GatewayUnavailableError as e:
            self.log.warning(f"PhonePe status check failed for payment {payment.id}: {e}")
            return payment
        except ConfigurationError as e:
            self.log.critical(f"PhonePe status check not possible: {e}")
            return payment

        if transaction is None or not map_gateway_state(transaction.state).is_terminal:
            return payment

        await self.reconciliation.reconcile(payment.external_txn_id, transaction)

        return await self.repository.find_payment_by_id(payment.id)
