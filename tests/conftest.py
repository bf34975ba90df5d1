"""
Pytest configuration and fixtures.
"""

import base64
import json
import uuid
from decimal import Decimal
from typing import AsyncGenerator, List, Optional

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import StaticPool

from invoicepe.config import settings
from invoicepe.database import Base
from invoicepe.models import User, Vendor, Invoice, Payment
from invoicepe.schemas.phonepe import GatewayTransaction
from invoicepe.services.checksum import generate_checksum
from invoicepe.services.notification_service import NotificationQueue
from invoicepe.services.payment_repository import PaymentRepository

# Use in-memory SQLite for tests
TEST_DB_URL = "sqlite+aiosqlite:///:memory:"

SALT_KEY = "099eb0cd-02cf-4e2a-8aca-3e6c6aff0399"
SALT_INDEX = "1"
MERCHANT_ID = "PGTESTPAYUAT"
JWT_SECRET = "test-jwt-secret-with-enough-length-for-hs256"


@pytest.fixture(autouse=True)
def phonepe_settings(monkeypatch):
    """Gateway and auth settings every test runs with."""
    monkeypatch.setattr(settings, "phonepe_salt_key", SALT_KEY)
    monkeypatch.setattr(settings, "phonepe_salt_index", SALT_INDEX)
    monkeypatch.setattr(settings, "phonepe_merchant_id", MERCHANT_ID)
    monkeypatch.setattr(settings, "supabase_jwt_secret", JWT_SECRET)
    monkeypatch.setattr(settings, "phonepe_callback_url", "https://api.test/webhooks/phonepe")
    return settings


@pytest_asyncio.fixture
async def test_engine():
    """Fresh in-memory database per test; services commit, so no sharing."""
    engine = create_async_engine(TEST_DB_URL, echo=False, poolclass=StaticPool)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture
async def db(test_engine) -> AsyncGenerator[AsyncSession, None]:
    """Create a database session for a test."""
    async_session = async_sessionmaker(
        test_engine, class_=AsyncSession, expire_on_commit=False
    )

    async with async_session() as session:
        yield session
        await session.rollback()


class RecordingQueue(NotificationQueue):
    """Notification queue that remembers what was enqueued."""

    def __init__(self):
        self.enqueued: List[uuid.UUID] = []

    def enqueue(self, payment_id: uuid.UUID) -> None:
        self.enqueued.append(payment_id)


@pytest.fixture
def notification_queue() -> RecordingQueue:
    return RecordingQueue()


@pytest.fixture
def make_payment(db):
    """Factory: user -> vendor -> invoice -> payment, committed."""

    async def _make(
        external_txn_id: Optional[str] = "TXN123",
        status: str = "initiated",
        invoice_status: str = "pending",
        amount: str = "1500.00",
        user: Optional[User] = None,
        invoice: Optional[Invoice] = None,
        phone: str = "9876543210",
        upi_id: Optional[str] = None,
    ) -> Payment:
        if invoice is None:
            if user is None:
                user = User(phone=phone, business_name="Sharma Traders")
                db.add(user)
                await db.flush()

            vendor = Vendor(user_id=user.id, name="Gupta Supplies", upi_id=upi_id)
            db.add(vendor)
            await db.flush()

            invoice = Invoice(
                user_id=user.id,
                vendor_id=vendor.id,
                amount=Decimal(amount),
                status=invoice_status,
            )
            db.add(invoice)
            await db.flush()

        payment = Payment(
            invoice_id=invoice.id,
            external_txn_id=external_txn_id,
            method="card",
            status=status,
        )
        db.add(payment)
        await db.commit()
        # Reload so invoice and vendor are eagerly populated
        return await PaymentRepository(db).find_payment_by_id(payment.id)

    return _make


def make_transaction(
    merchant_transaction_id: str = "TXN123",
    state: str = "COMPLETED",
    card_type: Optional[str] = "DEBIT_CARD",
) -> GatewayTransaction:
    return GatewayTransaction.model_validate(transaction_payload(merchant_transaction_id, state, card_type))


def transaction_payload(
    merchant_transaction_id: str = "TXN123",
    state: str = "COMPLETED",
    card_type: Optional[str] = "DEBIT_CARD",
) -> dict:
    payload = {
        "merchantId": MERCHANT_ID,
        "merchantTransactionId": merchant_transaction_id,
        "transactionId": "T2306271234567890",
        "amount": 150000,
        "state": state,
        "responseCode": "SUCCESS" if state == "COMPLETED" else state,
    }
    if card_type:
        payload["paymentInstrument"] = {"type": "CARD", "cardType": card_type}
    return payload


def signed_webhook(payload: dict) -> tuple:
    """(json body, X-VERIFY header) for a webhook carrying `payload`."""
    encoded = base64.b64encode(json.dumps(payload).encode()).decode()
    return {"response": encoded}, generate_checksum(encoded, SALT_KEY, SALT_INDEX)
