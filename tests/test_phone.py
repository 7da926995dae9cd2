"""Tests for phone canonicalization and hashing."""

import hashlib
import hmac

import pytest

from contactsync.core.errors import InvalidFormatError
from contactsync.core.phone import (
    canonicalize,
    canonicalize_or_raise,
    hash_phone,
    is_valid_phone,
    is_well_formed_digest,
    looks_like_phone,
    phone_hash_for,
)


class TestCanonicalize:
    """Test cases for canonical +digits form."""

    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("(415) 555-0100", "+14155550100"),
            ("+415 555 0100", "+4155550100"),
            ("+1 415-555-0100", "+14155550100"),
            ("1.415.555.0100", "+14155550100"),
            ("  +44 20 7946 0958 ", "+442079460958"),
            ("+1+415+555", "+1415555"),
        ],
    )
    def test_canonical_forms(self, raw, expected):
        assert canonicalize(raw) == expected

    def test_formatting_variants_share_canonical_form(self):
        variants = ["+1 (415) 555-0100", "1-415-555-0100", "+1.415.555.0100"]
        assert {canonicalize(v) for v in variants} == {"+14155550100"}

    def test_national_number_gets_default_country_code(self):
        variants = ["+15551234567", "5551234567", "+1-555-123-4567"]
        assert {canonicalize(v) for v in variants} == {"+15551234567"}

    @pytest.mark.parametrize("raw", ["", "   ", "abc", "+0123456", "1", "+1234567890123456"])
    def test_invalid_numbers(self, raw):
        assert is_valid_phone(raw) is False

    def test_canonicalize_or_raise_rejects_garbage(self):
        with pytest.raises(InvalidFormatError):
            canonicalize_or_raise("call me maybe")

    def test_canonicalize_or_raise_returns_canonical(self):
        assert canonicalize_or_raise("+1 (415) 555-0100") == "+14155550100"

    def test_looks_like_phone(self):
        assert looks_like_phone("+1 (415) 555-0100") is True
        assert looks_like_phone("alice") is False
        assert looks_like_phone("al 555") is False


class TestHashPhone:
    """Test cases for identity hashing."""

    def test_plain_sha256_of_canonical_string(self):
        expected = hashlib.sha256(b"+14155550100").hexdigest()
        assert hash_phone("+14155550100", pepper="") == expected

    def test_deterministic(self):
        assert hash_phone("+14155550100", pepper="") == hash_phone("+14155550100", pepper="")

    def test_pepper_uses_hmac(self):
        expected = hmac.new(b"pepper", b"+14155550100", hashlib.sha256).hexdigest()
        assert hash_phone("+14155550100", pepper="pepper") == expected
        assert expected != hash_phone("+14155550100", pepper="")

    def test_variants_hash_identically(self):
        assert phone_hash_for("(415) 555-0100") == phone_hash_for("415.555.0100")

    def test_digest_shape(self):
        digest = phone_hash_for("+14155550100")
        assert len(digest) == 64
        assert is_well_formed_digest(digest) is True

    @pytest.mark.parametrize("value", ["A" * 64, "a" * 63, "g" * 64, None, 42])
    def test_malformed_digests(self, value):
        assert is_well_formed_digest(value) is False
