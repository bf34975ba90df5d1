"""
Tests for the PhonePe X-VERIFY checksum.
"""

import hashlib

import pytest

from invoicepe.config import settings
from invoicepe.services.checksum import generate_checksum, verify_checksum
from invoicepe.services.errors import ConfigurationError

from tests.conftest import SALT_INDEX, SALT_KEY


ENCODED = "eyJtZXJjaGFudElkIjoiUEdURVNUUEFZVUFUIn0="


class TestGenerateChecksum:

    def test_format(self):
        expected = hashlib.sha256((ENCODED + SALT_KEY).encode()).hexdigest() + "###1"
        assert generate_checksum(ENCODED) == expected

    def test_explicit_salt_overrides_settings(self):
        checksum = generate_checksum("payload", salt_key="other", salt_index="7")
        assert checksum == hashlib.sha256(b"payloadother").hexdigest() + "###7"

    def test_missing_salt_key(self, monkeypatch):
        monkeypatch.setattr(settings, "phonepe_salt_key", "")
        with pytest.raises(ConfigurationError):
            generate_checksum(ENCODED)

    def test_missing_salt_index(self, monkeypatch):
        monkeypatch.setattr(settings, "phonepe_salt_index", "")
        with pytest.raises(ConfigurationError):
            generate_checksum(ENCODED)


class TestVerifyChecksum:

    def test_valid(self):
        assert verify_checksum(ENCODED, generate_checksum(ENCODED, SALT_KEY, SALT_INDEX))

    def test_surrounding_whitespace_ignored(self):
        assert verify_checksum(ENCODED, "  " + generate_checksum(ENCODED) + "\n")

    def test_tampered_payload(self):
        checksum = generate_checksum(ENCODED)
        assert not verify_checksum(ENCODED + "x", checksum)

    def test_wrong_salt_index(self):
        checksum = generate_checksum(ENCODED, SALT_KEY, "2")
        assert not verify_checksum(ENCODED, checksum)

    @pytest.mark.parametrize("received", [None, ""])
    def test_missing_header(self, received):
        assert not verify_checksum(ENCODED, received)

    def test_missing_salt_is_configuration_error_not_invalid(self, monkeypatch):
        """An unconfigured salt must not look like a bad signature."""
        monkeypatch.setattr(settings, "phonepe_salt_key", "")
        with pytest.raises(ConfigurationError):
            verify_checksum(ENCODED, "anything###1")
