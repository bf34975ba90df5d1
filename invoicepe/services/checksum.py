"""
PhonePe X-VERIFY checksum.

    checksum = hex(SHA256(payload + salt_key)) + "###" + salt_index

Webhooks sign the base64 response body; outbound calls sign the request
path (status) or base64 body + path (pay).
"""

import hashlib
import hmac
from typing import Optional

from invoicepe.config import settings
from invoicepe.services.errors import ConfigurationError

CHECKSUM_SEPARATOR = "###"


def _resolve_salt(salt_key: Optional[str], salt_index: Optional[str]) -> tuple[str, str]:
    salt_key = settings.phonepe_salt_key if salt_key is None else salt_key
    salt_index = settings.phonepe_salt_index if salt_index is None else salt_index
    if not salt_key or not salt_index:
        raise ConfigurationError("PhonePe salt key / salt index not configured")
    return salt_key, str(salt_index)


def generate_checksum(
    payload: str,
    salt_key: Optional[str] = None,
    salt_index: Optional[str] = None,
) -> str:
    """Compute the X-VERIFY value for a payload."""
    salt_key, salt_index = _resolve_salt(salt_key, salt_index)
    digest = hashlib.sha256((payload + salt_key).encode("utf-8")).hexdigest()
    return f"{digest}{CHECKSUM_SEPARATOR}{salt_index}"


def verify_checksum(
    payload: str,
    received: Optional[str],
    salt_key: Optional[str] = None,
    salt_index: Optional[str] = None,
) -> bool:
    """
    Verify an inbound X-VERIFY header against the payload.

    Raises ConfigurationError when the salt is missing; that is an operator
    problem, not an untrusted request, and must not be reported as one.
    """
    expected = generate_checksum(payload, salt_key, salt_index)
    if not received:
        return False
    return hmac.compare_digest(expected.encode("utf-8"), received.strip().encode("utf-8"))
