"""
PhonePe Webhook Handler.
Verifies the X-VERIFY checksum and reconciles payment events.
"""

import logging

from fastapi import APIRouter, Request, HTTPException, Depends
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from invoicepe.api.deps import get_notification_queue
from invoicepe.database import get_db
from invoicepe.schemas.payment import WebhookResponse
from invoicepe.schemas.phonepe import WebhookBody
from invoicepe.services.checksum import verify_checksum
from invoicepe.services.errors import (
    BadPayloadError,
    ConfigurationError,
    PaymentNotFoundError,
    ReconciliationInconsistencyError,
)
from invoicepe.services.notification_service import NotificationQueue
from invoicepe.services.payment_repository import PaymentRepository
from invoicepe.services.phonepe_service import decode_transaction_payload
from invoicepe.services.reconciliation_service import ReconciliationService

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("/phonepe", response_model=WebhookResponse)
async def phonepe_webhook(
    request: Request,
    db: AsyncSession = Depends(get_db),
    notifications: NotificationQueue = Depends(get_notification_queue),
):
    """
    Handle PhonePe server-to-server callbacks.

    Body: {"response": "<base64 transaction JSON>"}, signed via X-VERIFY.
    Nothing touches the database until the checksum has been verified.
    Replays of an already-applied state return 200 with the stored state.
    """
    try:
        envelope = WebhookBody.model_validate(await request.json())
    except (ValueError, ValidationError):
        raise HTTPException(status_code=400, detail="Invalid request body")

    if not envelope.response:
        raise HTTPException(status_code=400, detail="Missing response data")

    signature = request.headers.get("X-VERIFY", "")

    try:
        valid = verify_checksum(envelope.response, signature)
    except ConfigurationError as e:
        logger.critical(f"PhonePe webhook cannot be verified: {e}")
        raise HTTPException(status_code=500, detail="Configuration error")

    if not valid:
        logger.error("Invalid PhonePe webhook checksum")
        raise HTTPException(status_code=400, detail="Invalid checksum")

    try:
        transaction = decode_transaction_payload(envelope.response)
    except BadPayloadError as e:
        logger.error(f"Failed to decode PhonePe webhook response: {e}")
        raise HTTPException(status_code=400, detail="Invalid response format")

    logger.info(
        f"PhonePe webhook received: {transaction.merchant_transaction_id} {transaction.state}"
    )

    reconciliation = ReconciliationService(PaymentRepository(db), notifications)

    try:
        result = await reconciliation.reconcile(
            transaction.merchant_transaction_id,
            transaction,
        )
    except PaymentNotFoundError:
        raise HTTPException(status_code=404, detail="Payment not found")
    except ReconciliationInconsistencyError:
        # Roll back so PhonePe's retry finds the payment still initiated
        await db.rollback()
        raise HTTPException(status_code=500, detail="Failed to update payment state")

    return WebhookResponse(
        message="Webhook processed successfully",
        payment_status=result.payment_status.value,
        invoice_status=result.invoice_status.value,
    )
