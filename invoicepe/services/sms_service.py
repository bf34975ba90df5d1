"""
SMS Service - transactional SMS via the Twilio REST API.
"""

import logging
from typing import Optional

import httpx

from invoicepe.config import settings

logger = logging.getLogger(__name__)

TWILIO_API_URL = "https://api.twilio.com/2010-04-01/Accounts/{account_sid}/Messages.json"


def normalize_indian_mobile(phone: str) -> str:
    """E.164 for a 10-digit Indian mobile; other numbers pass through."""
    digits = "".join(ch for ch in phone if ch.isdigit())
    if len(digits) == 10:
        return f"+91{digits}"
    if len(digits) == 12 and digits.startswith("91"):
        return f"+{digits}"
    return phone


class SmsService:
    """Service for sending SMS via Twilio."""

    def __init__(self):
        self.account_sid = settings.twilio_account_sid
        self.auth_token = settings.twilio_auth_token
        self.from_number = settings.twilio_from_number

    async def send_sms(self, phone: str, message: str) -> Optional[str]:
        """
        Send a plain text SMS.

        Returns the Twilio message SID on success, None on failure.
        """
        if not self.account_sid or not self.auth_token or not self.from_number:
            logger.error("Twilio credentials not configured")
            return None

        url = TWILIO_API_URL.format(account_sid=self.account_sid)
        data = {
            "To": normalize_indian_mobile(phone),
            "From": self.from_number,
            "Body": message,
        }

        try:
            async with httpx.AsyncClient() as client:
                response = await client.post(
                    url,
                    data=data,
                    auth=(self.account_sid, self.auth_token),
                    timeout=10.0,
                )

                if response.status_code in [200, 201]:
                    sid = response.json().get("sid")
                    logger.info(f"SMS sent to ...{phone[-4:]}: {sid}")
                    return sid

                logger.error(f"Twilio API Error {response.status_code}: {response.text}")
                return None

        except httpx.HTTPError as e:
            logger.error(f"Twilio API Exception: {e}")
            return None
