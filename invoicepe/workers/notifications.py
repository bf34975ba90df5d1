"""
Payment Notification Worker.

Runs the NotificationDispatcher for a payment that just succeeded.
"""

import logging
import uuid

from invoicepe.workers.celery_app import celery_app
from invoicepe.database import get_db_context

logger = logging.getLogger(__name__)


# Not retried: the SMS may already have gone out when a later step fails.
@celery_app.task(bind=True, max_retries=0)
def dispatch_payment_notifications(self, payment_id: str):
    """Send push + SMS for a succeeded payment."""
    import asyncio

    async def run():
        async with get_db_context() as db:
            from invoicepe.services.notification_service import NotificationDispatcher

            dispatcher = NotificationDispatcher(db)
            await dispatcher.dispatch(uuid.UUID(payment_id))

    try:
        asyncio.run(run())
        return {"success": True, "payment_id": payment_id}
    except Exception as e:
        logger.error(f"Notification dispatch failed for payment {payment_id}: {e}", exc_info=True)
        return {"success": False, "payment_id": payment_id}
