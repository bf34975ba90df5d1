"""
Tests for the payments API and bearer-token authentication.
"""

import time
import uuid
from unittest.mock import AsyncMock, MagicMock

import httpx
import jwt
import pytest
import pytest_asyncio
from fastapi import HTTPException

from invoicepe.api.deps import (
    get_current_user_id,
    get_notification_queue,
    get_phonepe_service,
)
from invoicepe.config import settings
from invoicepe.database import get_db
from invoicepe.main import app
from invoicepe.schemas.phonepe import GatewayResponse
from invoicepe.services.errors import GatewayUnavailableError
from invoicepe.services.phonepe_service import PhonePeService

from tests.conftest import JWT_SECRET, make_transaction


def make_token(sub, secret=JWT_SECRET, audience="authenticated", expires_in=3600):
    claims = {"sub": str(sub), "aud": audience, "exp": int(time.time()) + expires_in}
    return jwt.encode(claims, secret, algorithm="HS256")


def auth(user_id) -> dict:
    return {"Authorization": f"Bearer {make_token(user_id)}"}


@pytest.fixture
def gateway():
    gateway = MagicMock(spec=PhonePeService)
    gateway.check_status = AsyncMock(return_value=None)
    gateway.ensure_configured = MagicMock()
    gateway.initiate_payment = AsyncMock(
        return_value=GatewayResponse(
            success=True,
            code="PAYMENT_INITIATED",
            data={
                "instrumentResponse": {
                    "redirectInfo": {"url": "https://pay.test/checkout/abc", "method": "GET"}
                }
            },
        )
    )
    return gateway


@pytest_asyncio.fixture
async def client(db, gateway, notification_queue):
    async def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_phonepe_service] = lambda: gateway
    app.dependency_overrides[get_notification_queue] = lambda: notification_queue

    async with httpx.AsyncClient(
        transport=httpx.ASGITransport(app=app), base_url="http://test"
    ) as client:
        yield client

    app.dependency_overrides.clear()


class TestCurrentUserId:
    """Tests for the Supabase bearer token dependency."""

    @pytest.mark.asyncio
    async def test_valid_token(self):
        user_id = uuid.uuid4()
        assert await get_current_user_id(f"Bearer {make_token(user_id)}") == user_id

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "header",
        [
            None,
            "",
            "Basic abc",
            "Bearer",
            "Bearer not-a-jwt",
        ],
    )
    async def test_rejected_headers(self, header):
        with pytest.raises(HTTPException) as exc_info:
            await get_current_user_id(header)
        assert exc_info.value.status_code == 401

    @pytest.mark.asyncio
    async def test_wrong_secret(self):
        token = make_token(uuid.uuid4(), secret="another-secret-that-is-long-enough-too")
        with pytest.raises(HTTPException) as exc_info:
            await get_current_user_id(f"Bearer {token}")
        assert exc_info.value.status_code == 401

    @pytest.mark.asyncio
    async def test_expired_token(self):
        token = make_token(uuid.uuid4(), expires_in=-60)
        with pytest.raises(HTTPException) as exc_info:
            await get_current_user_id(f"Bearer {token}")
        assert exc_info.value.status_code == 401

    @pytest.mark.asyncio
    async def test_wrong_audience(self):
        token = make_token(uuid.uuid4(), audience="anon")
        with pytest.raises(HTTPException) as exc_info:
            await get_current_user_id(f"Bearer {token}")
        assert exc_info.value.status_code == 401

    @pytest.mark.asyncio
    async def test_non_uuid_subject(self):
        with pytest.raises(HTTPException) as exc_info:
            await get_current_user_id(f"Bearer {make_token('service-role')}")
        assert exc_info.value.status_code == 401

    @pytest.mark.asyncio
    async def test_unconfigured_secret(self, monkeypatch):
        monkeypatch.setattr(settings, "supabase_jwt_secret", "")
        with pytest.raises(HTTPException) as exc_info:
            await get_current_user_id("Bearer whatever")
        assert exc_info.value.status_code == 500


class TestPaymentStatusEndpoint:

    @pytest.mark.asyncio
    async def test_requires_auth(self, client, make_payment):
        payment = await make_payment()

        response = await client.get(f"/payments/status/{payment.id}")

        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_other_users_payment(self, client, gateway, make_payment):
        payment = await make_payment()

        response = await client.get(f"/payments/status/{payment.id}", headers=auth(uuid.uuid4()))

        assert response.status_code == 403
        gateway.check_status.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unknown_payment(self, client):
        response = await client.get(f"/payments/status/{uuid.uuid4()}", headers=auth(uuid.uuid4()))

        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_owner_sees_payment_with_invoice(self, client, make_payment):
        payment = await make_payment()

        response = await client.get(
            f"/payments/status/{payment.id}", headers=auth(payment.invoice.user_id)
        )

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["payment"]["id"] == str(payment.id)
        assert data["payment"]["status"] == "initiated"
        assert data["payment"]["invoice"]["status"] == "pending"
        assert data["payment"]["invoice"]["vendor"]["name"] == "Gupta Supplies"

    @pytest.mark.asyncio
    async def test_stale_payment_refreshed(self, client, gateway, make_payment):
        payment = await make_payment()
        gateway.check_status.return_value = make_transaction("TXN123", "FAILED")

        response = await client.get(
            f"/payments/status/{payment.id}", headers=auth(payment.invoice.user_id)
        )

        assert response.status_code == 200
        assert response.json()["payment"]["status"] == "failed"
        assert response.json()["payment"]["invoice"]["status"] == "failed"

    @pytest.mark.asyncio
    async def test_gateway_timeout_returns_stored_status(self, client, gateway, make_payment):
        payment = await make_payment()
        gateway.check_status.side_effect = GatewayUnavailableError("timed out")

        response = await client.get(
            f"/payments/status/{payment.id}", headers=auth(payment.invoice.user_id)
        )

        assert response.status_code == 200
        assert response.json()["payment"]["status"] == "initiated"

    @pytest.mark.asyncio
    async def test_list(self, client, gateway, make_payment):
        payment = await make_payment()
        await make_payment(external_txn_id="TXN_OTHER", phone="9000000009")

        response = await client.get("/payments/status", headers=auth(payment.invoice.user_id))

        assert response.status_code == 200
        assert [p["id"] for p in response.json()["payments"]] == [str(payment.id)]
        gateway.check_status.assert_not_awaited()


class TestPaymentIntentEndpoint:

    @pytest.mark.asyncio
    async def test_create(self, client, make_payment):
        invoice = (await make_payment(external_txn_id="TXN_SEED")).invoice

        response = await client.post(
            "/payments/intent",
            json={"invoice_id": str(invoice.id), "method": "card"},
            headers={**auth(invoice.user_id), "X-Request-ID": "req-1"},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["message"] == "Payment initiated successfully"
        assert data["payment_url"] == "https://pay.test/checkout/abc"
        assert data["payment"]["status"] == "initiated"
        assert data["phonepe_txn_id"].startswith("INV_")

    @pytest.mark.asyncio
    async def test_replay(self, client, gateway, make_payment):
        invoice = (await make_payment(external_txn_id="TXN_SEED")).invoice
        request = dict(
            json={"invoice_id": str(invoice.id), "method": "card"},
            headers={**auth(invoice.user_id), "X-Request-ID": "req-1"},
        )

        first = await client.post("/payments/intent", **request)
        second = await client.post("/payments/intent", **request)

        assert second.status_code == 200
        assert second.json()["message"] == "Payment already exists"
        assert second.json()["payment"]["id"] == first.json()["payment"]["id"]
        gateway.initiate_payment.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_paid_invoice(self, client, make_payment):
        invoice = (await make_payment(external_txn_id="TXN_SEED", invoice_status="paid")).invoice

        response = await client.post(
            "/payments/intent",
            json={"invoice_id": str(invoice.id), "method": "card"},
            headers=auth(invoice.user_id),
        )

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_unknown_invoice(self, client):
        response = await client.post(
            "/payments/intent",
            json={"invoice_id": str(uuid.uuid4()), "method": "upi"},
            headers=auth(uuid.uuid4()),
        )

        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_gateway_rejection(self, client, gateway, make_payment):
        invoice = (await make_payment(external_txn_id="TXN_SEED")).invoice
        gateway.initiate_payment.return_value = GatewayResponse(
            success=False, code="BAD_REQUEST", message="Invalid amount"
        )

        response = await client.post(
            "/payments/intent",
            json={"invoice_id": str(invoice.id), "method": "card"},
            headers=auth(invoice.user_id),
        )

        assert response.status_code == 500
        assert response.json() == {
            "success": False,
            "error": "Failed to initiate payment",
            "code": "BAD_REQUEST",
            "message": "Invalid amount",
        }

    @pytest.mark.asyncio
    async def test_invalid_method(self, client):
        response = await client.post(
            "/payments/intent",
            json={"invoice_id": str(uuid.uuid4()), "method": "cash"},
            headers=auth(uuid.uuid4()),
        )

        assert response.status_code == 422


class TestPaymentCallback:

    @pytest.mark.asyncio
    async def test_redirects_to_app(self, client, gateway, make_payment):
        payment = await make_payment()
        gateway.check_status.return_value = make_transaction("TXN123", "COMPLETED")

        response = await client.get("/payments/callback", params={"txnId": "TXN123"})

        assert response.status_code == 302
        assert response.headers["location"] == (
            f"invoicepe://payment-status?txnId=TXN123&paymentId={payment.id}"
        )

    @pytest.mark.asyncio
    async def test_missing_txn_id(self, client):
        response = await client.get("/payments/callback")

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_unknown_txn_id(self, client):
        response = await client.get("/payments/callback", params={"txnId": "TXN999"})

        assert response.status_code == 404


class TestHealth:

    @pytest.mark.asyncio
    async def test_health(self, client):
        response = await client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"
