"""Services package."""

from invoicepe.services.payment_repository import PaymentRepository
from invoicepe.services.phonepe_service import PhonePeService
from invoicepe.services.sms_service import SmsService
from invoicepe.services.notification_service import (
    NotificationQueue,
    CeleryNotificationQueue,
    NotificationDispatcher,
)
from invoicepe.services.reconciliation_service import ReconciliationService
from invoicepe.services.payment_status_service import PaymentStatusService
from invoicepe.services.payment_intent_service import PaymentIntentService

__all__ = [
    "PaymentRepository",
    "PhonePeService",
    "SmsService",
    "NotificationQueue",
    "CeleryNotificationQueue",
    "NotificationDispatcher",
    "ReconciliationService",
    "PaymentStatusService",
    "PaymentIntentService",
]
