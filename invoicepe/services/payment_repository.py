"""
Payment Repository - the only database access path for payment reconciliation.

Status writes are conditional on the prior status, so two concurrent
reconciliations of the same payment cannot both perform a transition.
"""

import uuid
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from invoicepe.fsm.states import InvoiceStatus, PaymentStatus
from invoicepe.models.invoice import Invoice
from invoicepe.models.payment import Payment
from invoicepe.models.user import User


class PaymentRepository:
    """Typed access to payments, their invoices and owners."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def find_payment_by_external_id(self, external_txn_id: str) -> Optional[Payment]:
        """Payment (with invoice and vendor) for a PhonePe merchantTransactionId."""
        result = await self.db.execute(
            select(Payment)
            .where(Payment.external_txn_id == external_txn_id)
            .execution_options(populate_existing=True)
        )
        return result.unique().scalar_one_or_none()

    async def find_payment_by_id(self, payment_id: uuid.UUID) -> Optional[Payment]:
        result = await self.db.execute(
            select(Payment)
            .where(Payment.id == payment_id)
            .execution_options(populate_existing=True)
        )
        return result.unique().scalar_one_or_none()

    async def find_succeeded_payment_for_invoice(self, invoice_id: uuid.UUID) -> Optional[Payment]:
        result = await self.db.execute(
            select(Payment).where(
                Payment.invoice_id == invoice_id,
                Payment.status == PaymentStatus.SUCCEEDED.value,
            )
        )
        return result.unique().scalars().first()

    async def find_payment_by_idempotency_key(self, key: str) -> Optional[Payment]:
        result = await self.db.execute(
            select(Payment).where(Payment.idempotency_key == key)
        )
        return result.unique().scalar_one_or_none()

    async def list_payments_for_user(self, user_id: uuid.UUID) -> List[Payment]:
        """All payments on invoices owned by the user, newest first."""
        result = await self.db.execute(
            select(Payment)
            .join(Payment.invoice)
            .where(Invoice.user_id == user_id)
            .order_by(Payment.created_at.desc())
            .execution_options(populate_existing=True)
        )
        return list(result.unique().scalars().all())

    async def find_invoice_for_user(
        self,
        invoice_id: uuid.UUID,
        user_id: uuid.UUID,
    ) -> Optional[Invoice]:
        result = await self.db.execute(
            select(Invoice).where(Invoice.id == invoice_id, Invoice.user_id == user_id)
        )
        return result.unique().scalar_one_or_none()

    async def get_user(self, user_id: uuid.UUID) -> Optional[User]:
        result = await self.db.execute(select(User).where(User.id == user_id))
        return result.scalar_one_or_none()

    async def create_payment(
        self,
        invoice_id: uuid.UUID,
        external_txn_id: str,
        method: str,
        idempotency_key: Optional[str] = None,
    ) -> Payment:
        payment = Payment(
            invoice_id=invoice_id,
            external_txn_id=external_txn_id,
            method=method,
            status=PaymentStatus.INITIATED.value,
            idempotency_key=idempotency_key,
        )
        self.db.add(payment)
        await self.db.flush()
        return payment

    async def update_payment_status(
        self,
        payment_id: uuid.UUID,
        from_status: PaymentStatus,
        to_status: PaymentStatus,
        masked_instrument: Optional[str] = None,
    ) -> bool:
        """
        Move a payment from `from_status` to `to_status`.

        Returns False when the stored status no longer equals `from_status`
        (another caller got there first); nothing is written in that case.
        """
        values = {
            "status": to_status.value,
            "updated_at": datetime.now(timezone.utc),
        }
        if masked_instrument:
            values["masked_instrument"] = masked_instrument

        result = await self.db.execute(
            update(Payment)
            .where(Payment.id == payment_id, Payment.status == from_status.value)
            .values(**values)
        )
        return result.rowcount == 1

    async def update_invoice_status(
        self,
        invoice_id: uuid.UUID,
        status: InvoiceStatus,
    ) -> bool:
        """
        Set an invoice's status. A paid invoice is never moved off 'paid'.

        Returns False when no row was updated.
        """
        stmt = (
            update(Invoice)
            .where(Invoice.id == invoice_id)
            .values(status=status.value, updated_at=datetime.now(timezone.utc))
        )
        if status is not InvoiceStatus.PAID:
            stmt = stmt.where(Invoice.status != InvoiceStatus.PAID.value)

        result = await self.db.execute(stmt)
        return result.rowcount == 1

    async def commit(self) -> None:
        await self.db.commit()

    async def rollback(self) -> None:
        await self.db.rollback()
