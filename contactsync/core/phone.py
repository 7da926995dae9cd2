"""Phone number canonicalization and identity hashing.

Canonical form is ``+`` followed by digits only, e.g.::

    (415) 555-0100    → +14155550100
    +1 415-555-0100   → +14155550100
    1.415.555.0100    → +14155550100

Both functions are pure; the same input must produce the same output on
every instance so that hashes computed at different times still match.
"""

import hashlib
import hmac
import re

from contactsync.core.errors import InvalidFormatError
from contactsync.settings import settings

SUPPORTED_HASHING_METHOD = "SHA256"

_NON_PHONE_CHARS = re.compile(r"[^\d+]")
_E164_PATTERN = re.compile(r"^\+[1-9]\d{1,14}$")
_DIGEST_PATTERN = re.compile(r"^[a-f0-9]{64}$")
_PHONE_LIKE_TERM = re.compile(r"^[\d\s+\-()]+$")


def canonicalize(raw: str | None) -> str:
    """Normalize a raw phone string to canonical ``+digits`` form.

    Only a leading ``+`` survives; any other plus signs are dropped. The
    result is not validated, use :func:`is_valid_phone` for that.
    """
    if not raw:
        return "+"
    stripped = _NON_PHONE_CHARS.sub("", raw.strip())
    digits = stripped.replace("+", "")
    if (
        not stripped.startswith("+")
        and settings.default_country_code
        and len(digits) == settings.national_number_length
    ):
        digits = settings.default_country_code + digits
    return f"+{digits}"


def is_valid_phone(raw: str | None) -> bool:
    """Check that the canonical form has the E.164 shape ``+[1-9]\\d{1,14}``."""
    if not isinstance(raw, str) or not raw.strip():
        return False
    return bool(_E164_PATTERN.match(canonicalize(raw)))


def canonicalize_or_raise(raw: str | None) -> str:
    """Canonicalize and validate a phone number.

    Raises:
        InvalidFormatError: If the input does not canonicalize to E.164 shape.
    """
    if not is_valid_phone(raw):
        raise InvalidFormatError(
            "Invalid phone number format",
            details={"field": "phoneNumber"},
        )
    return canonicalize(raw)


def looks_like_phone(term: str) -> bool:
    """True if a search term only contains digits, ``+``, ``-``, parentheses and spaces."""
    return bool(_PHONE_LIKE_TERM.match(term))


def hash_phone(canonical: str, pepper: str | None = None) -> str:
    """Derive the lookup key for a canonical phone number.

    Plain SHA-256 hex digest of the canonical string, or HMAC-SHA256 when a
    server-side pepper is configured. Output is always 64 lowercase hex chars.
    """
    key = settings.phone_hash_pepper if pepper is None else pepper
    data = canonical.encode("utf-8")
    if key:
        return hmac.new(key.encode("utf-8"), data, hashlib.sha256).hexdigest()
    return hashlib.sha256(data).hexdigest()


def phone_hash_for(raw: str) -> str:
    """Canonicalize, validate and hash a raw phone number."""
    return hash_phone(canonicalize_or_raise(raw))


def is_well_formed_digest(value: object) -> bool:
    """Validate an externally supplied phone hash (64 lowercase hex chars)."""
    return isinstance(value, str) and bool(_DIGEST_PATTERN.match(value))
