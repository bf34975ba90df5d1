"""
Send a signed PhonePe webhook to a running API.

Usage:
    python scripts/simulate_webhook.py INV_abc_123 COMPLETED [--url http://localhost:8000]

Uses PHONEPE_SALT_KEY / PHONEPE_SALT_INDEX / PHONEPE_MERCHANT_ID from .env.
"""

import argparse
import asyncio
import os
import sys

sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import httpx

from invoicepe.config import settings
from invoicepe.services.checksum import generate_checksum
from invoicepe.services.phonepe_service import encode_payload


async def send_webhook(txn_id: str, state: str, base_url: str) -> None:
    payload = {
        "merchantId": settings.phonepe_merchant_id or "MERCHANTUAT",
        "merchantTransactionId": txn_id,
        "transactionId": f"T{txn_id[-12:]}",
        "amount": 10000,
        "state": state,
        "responseCode": "SUCCESS" if state == "COMPLETED" else state,
        "paymentInstrument": {"type": "CARD", "cardType": "DEBIT_CARD"},
    }
    encoded = encode_payload(payload)

    async with httpx.AsyncClient() as client:
        response = await client.post(
            f"{base_url}/webhooks/phonepe",
            json={"response": encoded},
            headers={"X-VERIFY": generate_checksum(encoded)},
            timeout=10.0,
        )

    print(f"{response.status_code}: {response.text}")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("txn_id")
    parser.add_argument("state", choices=["COMPLETED", "FAILED", "PENDING"])
    parser.add_argument("--url", default="http://localhost:8000")
    args = parser.parse_args()

    asyncio.run(send_webhook(args.txn_id, args.state, args.url))
