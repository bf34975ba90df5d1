"""
PhonePe Service - payload decoding and checksum-signed gateway calls.
"""

import base64
import binascii
import json
import logging
from typing import Any, Dict, Optional

import httpx
from pydantic import ValidationError

from invoicepe.config import settings
from invoicepe.schemas.phonepe import GatewayResponse, GatewayTransaction
from invoicepe.services.checksum import generate_checksum
from invoicepe.services.errors import (
    BadPayloadError,
    ConfigurationError,
    GatewayUnavailableError,
)

logger = logging.getLogger(__name__)

PAY_ENDPOINT = "/pg/v1/pay"
STATUS_ENDPOINT = "/pg/v1/status/{merchant_id}/{transaction_id}"


def decode_transaction_payload(encoded: str) -> GatewayTransaction:
    """
    Decode the base64 `response` field of a webhook into a transaction.

    Raises BadPayloadError for malformed base64, non-JSON content or missing
    fields. Call only after the checksum has been verified.
    """
    try:
        raw = base64.b64decode(encoded, validate=True)
        data = json.loads(raw)
    except (binascii.Error, ValueError) as e:
        raise BadPayloadError(f"response is not base64-encoded JSON: {e}") from e

    if not isinstance(data, dict):
        raise BadPayloadError("decoded response is not a JSON object")

    try:
        return GatewayTransaction.model_validate(data)
    except ValidationError as e:
        raise BadPayloadError(f"invalid transaction record: {e.errors()}") from e


def encode_payload(payload: Dict[str, Any]) -> str:
    """Base64-encode a JSON request body the way PhonePe expects it."""
    return base64.b64encode(json.dumps(payload).encode("utf-8")).decode("ascii")


class PhonePeService:
    """Client for the PhonePe PG API."""

    def __init__(
        self,
        http_client: Optional[httpx.AsyncClient] = None,
        merchant_id: Optional[str] = None,
        salt_key: Optional[str] = None,
        salt_index: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        log: Optional[logging.Logger] = None,
    ):
        self.http_client = http_client
        self.merchant_id = settings.phonepe_merchant_id if merchant_id is None else merchant_id
        self.salt_key = salt_key
        self.salt_index = salt_index
        self.base_url = base_url or settings.phonepe_base_url
        self.timeout = timeout or settings.phonepe_timeout_seconds
        self.log = log or logger

    def _require_merchant_id(self) -> str:
        if not self.merchant_id:
            raise ConfigurationError("PhonePe merchant id not configured")
        return self.merchant_id

    def ensure_configured(self) -> None:
        """Raise ConfigurationError unless merchant id and salt are set."""
        self._require_merchant_id()
        generate_checksum("", self.salt_key, self.salt_index)

    async def _request(self, method: str, path: str, **kwargs: Any) -> GatewayResponse:
        """Send a request and parse the PhonePe envelope."""
        url = f"{self.base_url}{path}"
        try:
            if self.http_client is not None:
                response = await self.http_client.request(
                    method, url, timeout=self.timeout, **kwargs
                )
            else:
                async with httpx.AsyncClient() as client:
                    response = await client.request(
                        method, url, timeout=self.timeout, **kwargs
                    )
        except httpx.TimeoutException as e:
            raise GatewayUnavailableError(f"PhonePe timed out on {path}") from e
        except httpx.HTTPError as e:
            raise GatewayUnavailableError(f"PhonePe request failed on {path}: {e}") from e

        # PhonePe answers business failures with 4xx + a JSON envelope,
        # so the body is parsed regardless of status code.
        try:
            return GatewayResponse.model_validate(response.json())
        except ValueError as e:
            raise GatewayUnavailableError(
                f"PhonePe returned {response.status_code} with unreadable body"
            ) from e

    async def check_status(self, merchant_transaction_id: str) -> Optional[GatewayTransaction]:
        """
        Query the status endpoint for a transaction.

        Returns None when PhonePe answers but has no usable record.
        Raises GatewayUnavailableError on timeouts and transport errors.
        """
        merchant_id = self._require_merchant_id()
        path = STATUS_ENDPOINT.format(
            merchant_id=merchant_id,
            transaction_id=merchant_transaction_id,
        )
        headers = {
            "Content-Type": "application/json",
            "X-VERIFY": generate_checksum(path, self.salt_key, self.salt_index),
            "X-MERCHANT-ID": merchant_id,
        }

        reply = await self._request("GET", path, headers=headers)

        if not reply.success or not reply.data:
            self.log.info(
                f"PhonePe status for {merchant_transaction_id} unavailable: "
                f"{reply.code} {reply.message}"
            )
            return None

        try:
            return GatewayTransaction.model_validate(reply.data)
        except ValidationError as e:
            raise GatewayUnavailableError(
                f"PhonePe status payload for {merchant_transaction_id} is invalid"
            ) from e

    async def initiate_payment(self, request: Dict[str, Any]) -> GatewayResponse:
        """
        Create a PhonePe checkout for a pay request.

        `request` is the plain pay request; merchantId is filled in here.
        """
        merchant_id = self._require_merchant_id()
        payload = {"merchantId": merchant_id, **request}
        encoded = encode_payload(payload)
        headers = {
            "Content-Type": "application/json",
            "X-VERIFY": generate_checksum(
                encoded + PAY_ENDPOINT, self.salt_key, self.salt_index
            ),
        }

        reply = await self._request("POST", PAY_ENDPOINT, json={"request": encoded}, headers=headers)

        if not reply.success:
            self.log.warning(
                f"PhonePe rejected pay request {request.get('merchantTransactionId')}: "
                f"{reply.code} {reply.message}"
            )
        return reply
