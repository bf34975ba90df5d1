"""
Payments API - intent creation, status queries and the checkout callback.
"""

import logging
import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Query
from fastapi.responses import JSONResponse, RedirectResponse
from sqlalchemy.ext.asyncio import AsyncSession

from invoicepe.api.deps import get_current_user_id, get_notification_queue, get_phonepe_service
from invoicepe.config import settings
from invoicepe.database import get_db
from invoicepe.schemas.payment import (
    PaymentIntentRequest,
    PaymentIntentResponse,
    PaymentListResponse,
    PaymentOut,
    PaymentStatusResponse,
)
from invoicepe.services.errors import (
    ConfigurationError,
    GatewayRejectedError,
    GatewayUnavailableError,
    InvoiceAlreadyPaidError,
    InvoiceNotFoundError,
    PaymentForbiddenError,
    PaymentNotFoundError,
    ReconciliationInconsistencyError,
)
from invoicepe.services.notification_service import NotificationQueue
from invoicepe.services.payment_intent_service import PaymentIntentService
from invoicepe.services.payment_repository import PaymentRepository
from invoicepe.services.payment_status_service import PaymentStatusService
from invoicepe.services.phonepe_service import PhonePeService
from invoicepe.services.reconciliation_service import ReconciliationService

router = APIRouter()
logger = logging.getLogger(__name__)


def build_status_service(
    db: AsyncSession,
    gateway: PhonePeService,
    notifications: NotificationQueue,
) -> PaymentStatusService:
    repository = PaymentRepository(db)
    return PaymentStatusService(
        repository,
        ReconciliationService(repository, notifications),
        gateway,
    )


@router.get("/status", response_model=PaymentListResponse)
async def list_payment_statuses(
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    gateway: PhonePeService = Depends(get_phonepe_service),
    notifications: NotificationQueue = Depends(get_notification_queue),
):
    """All payments on the authenticated user's invoices."""
    service = build_status_service(db, gateway, notifications)
    payments = await service.list_payments(user_id)
    return PaymentListResponse(
        message="Payments retrieved",
        payments=[PaymentOut.model_validate(p) for p in payments],
    )


@router.get("/status/{payment_id}", response_model=PaymentStatusResponse)
async def get_payment_status(
    payment_id: uuid.UUID,
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    gateway: PhonePeService = Depends(get_phonepe_service),
    notifications: NotificationQueue = Depends(get_notification_queue),
):
    """
    Status of one payment. An 'initiated' payment is refreshed from PhonePe
    first; if PhonePe is unreachable the stored status is returned.
    """
    service = build_status_service(db, gateway, notifications)

    try:
        payment = await service.get_status(payment_id, user_id)
    except PaymentNotFoundError:
        raise HTTPException(status_code=404, detail="Payment not found")
    except PaymentForbiddenError:
        raise HTTPException(status_code=403, detail="Unauthorized")
    except ReconciliationInconsistencyError:
        await db.rollback()
        raise HTTPException(status_code=500, detail="Failed to update payment state")

    return PaymentStatusResponse(
        message="Payment status retrieved",
        payment=PaymentOut.model_validate(payment),
    )


@router.post("/intent", response_model=PaymentIntentResponse)
async def create_payment_intent(
    body: PaymentIntentRequest,
    user_id: uuid.UUID = Depends(get_current_user_id),
    x_request_id: Optional[str] = Header(None, alias="X-Request-ID"),
    db: AsyncSession = Depends(get_db),
    gateway: PhonePeService = Depends(get_phonepe_service),
):
    """Start a PhonePe checkout for an invoice."""
    service = PaymentIntentService(PaymentRepository(db), gateway)

    try:
        intent = await service.create_intent(
            user_id=user_id,
            invoice_id=body.invoice_id,
            method=body.method,
            return_url=body.return_url,
            mobile_number=body.mobile_number,
            idempotency_key=x_request_id,
        )
    except ConfigurationError as e:
        logger.critical(f"Payment intent not possible: {e}")
        raise HTTPException(status_code=500, detail="PhonePe configuration missing")
    except InvoiceNotFoundError:
        raise HTTPException(status_code=404, detail="Invoice not found")
    except InvoiceAlreadyPaidError:
        raise HTTPException(status_code=400, detail="Invoice is already paid")
    except PaymentForbiddenError:
        raise HTTPException(status_code=403, detail="Unauthorized")
    except GatewayRejectedError as e:
        return JSONResponse(
            status_code=500,
            content={
                "success": False,
                "error": "Failed to initiate payment",
                "code": e.code,
                "message": e.message,
            },
        )
    except GatewayUnavailableError as e:
        logger.warning(f"PhonePe unavailable during payment intent: {e}")
        return JSONResponse(
            status_code=500,
            content={
                "success": False,
                "error": "Failed to initiate payment",
                "code": "GATEWAY_UNAVAILABLE",
                "message": "Payment gateway unavailable, please retry",
            },
        )

    return PaymentIntentResponse(
        message="Payment initiated successfully" if intent.created else "Payment already exists",
        payment=PaymentOut.model_validate(intent.payment),
        payment_url=intent.payment_url,
        phonepe_txn_id=intent.payment.external_txn_id,
        redirect_method=intent.redirect_method,
    )


@router.get("/callback")
async def payment_callback(
    txn_id: Optional[str] = Query(None, alias="txnId"),
    db: AsyncSession = Depends(get_db),
    gateway: PhonePeService = Depends(get_phonepe_service),
    notifications: NotificationQueue = Depends(get_notification_queue),
):
    """
    Browser return from PhonePe checkout. Refreshes the payment, then hands
    the user back to the app via deep link.
    """
    if not txn_id:
        raise HTTPException(status_code=400, detail="Transaction ID is required")

    service = build_status_service(db, gateway, notifications)

    try:
        payment = await service.refresh_by_external_id(txn_id)
        payment_id = payment.id
    except PaymentNotFoundError:
        raise HTTPException(status_code=404, detail="Payment not found")
    except ReconciliationInconsistencyError:
        # The webhook retry will settle it; the app polls status meanwhile
        await db.rollback()
        payment = await PaymentRepository(db).find_payment_by_external_id(txn_id)
        payment_id = payment.id

    redirect_url = (
        f"{settings.app_deep_link_scheme}://payment-status"
        f"?txnId={txn_id}&paymentId={payment_id}"
    )
    return RedirectResponse(url=redirect_url, status_code=302)
