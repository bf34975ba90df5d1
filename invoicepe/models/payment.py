"""Payment model - one attempt to pay a single invoice through PhonePe."""

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import String, DateTime, ForeignKey, Index, text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from invoicepe.database import Base
from invoicepe.fsm.states import PaymentStatus
from invoicepe.models.invoice import Invoice
from invoicepe.models.user import utcnow


class Payment(Base):
    """
    Payment attempt for an invoice.

    external_txn_id is the merchantTransactionId sent to PhonePe; webhooks
    and status queries are correlated back to the row through it.
    status only ever moves initiated -> succeeded | failed.
    """

    __tablename__ = "payments"
    __table_args__ = (
        # At most one succeeded payment per invoice
        Index(
            "uq_payments_invoice_succeeded",
            "invoice_id",
            unique=True,
            postgresql_where=text("status = 'succeeded'"),
            sqlite_where=text("status = 'succeeded'"),
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )

    invoice_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("invoices.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    # PhonePe merchantTransactionId (unique, immutable once set)
    external_txn_id: Mapped[Optional[str]] = mapped_column(
        String(100),
        unique=True,
        nullable=True,
        index=True,
    )

    method: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
    )

    # Card type / instrument reported by the gateway, never a card number
    masked_instrument: Mapped[Optional[str]] = mapped_column(
        String(25),
        nullable=True,
    )

    status: Mapped[str] = mapped_column(
        String(20),
        default=PaymentStatus.INITIATED.value,
        nullable=False,
    )

    # X-Request-ID of the intent call that created this row
    idempotency_key: Mapped[Optional[str]] = mapped_column(
        String(100),
        unique=True,
        nullable=True,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False,
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False,
    )

    invoice: Mapped[Invoice] = relationship(lazy="joined")

    def __repr__(self) -> str:
        return f"<Payment {self.external_txn_id} {self.status}>"
