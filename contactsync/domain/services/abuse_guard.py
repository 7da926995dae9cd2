"""Abuse guard for bulk contact uploads.

Screens run in a fixed order so the same request always fails the same way:
rate limit, then duplicates → format → spam pattern → size.
"""

import logging
import re
from datetime import datetime, timedelta, timezone
from typing import Sequence

from contactsync.core.errors import (
    DuplicateEntriesError,
    InvalidFormatError,
    RateLimitedError,
    ReplayOrClockSkewError,
    SuspiciousInputError,
)
from contactsync.core.phone import SUPPORTED_HASHING_METHOD, canonicalize, is_well_formed_digest
from contactsync.domain.services.batch_planner import check_entry_count
from contactsync.infrastructure.rate_limiter import RateLimitConfig, RedisRateLimiter
from contactsync.settings import settings

logger = logging.getLogger(__name__)

MAX_RAW_ENTRY_LENGTH = 64

SUSPICIOUS_PATTERNS = (
    re.compile(r"^\+1{10,}"),  # long run of leading ones
    re.compile(r"^\+(\d)\1{5,}$"),  # the same digit throughout
    re.compile(r"^\+0{5,}"),  # long run of leading zeros
)

_NON_DIGITS = re.compile(r"\D")


def is_suspicious_number(raw: str) -> bool:
    """True if a submitted number looks like fuzzing rather than a real contact."""
    # Also check the digits as typed, before any default country code is added
    forms = {canonicalize(raw), "+" + _NON_DIGITS.sub("", raw)}
    return any(p.search(form) for p in SUSPICIOUS_PATTERNS for form in forms)


class AbuseGuard:
    """Rate limiting and input screening for sync requests."""

    def __init__(self, rate_limiter: RedisRateLimiter | None = None) -> None:
        self.rate_limiter = rate_limiter or RedisRateLimiter()
        self.sync_limit = RateLimitConfig(
            requests=settings.sync_rate_limit_attempts,
            window_seconds=settings.sync_rate_limit_window_seconds,
            key_prefix="rl:contact-sync",
        )
        self.large_operation_threshold = settings.sync_large_operation_threshold
        self.large_operation_max_recent = settings.sync_large_operation_max_recent
        self.prehashed_max_age = timedelta(seconds=settings.prehashed_max_age_seconds)

    async def check_sync_rate_limit(self, user_id: int, entry_count: int) -> None:
        """Count this sync attempt against the user's rolling window.

        Large uploads are held to a stricter ceiling of recent attempts.

        Raises:
            RateLimitedError: With a retry-after hint in seconds
        """
        is_large = entry_count > self.large_operation_threshold
        decision = await self.rate_limiter.hit(
            str(user_id),
            self.sync_limit,
            max_recent=self.large_operation_max_recent if is_large else None,
        )
        if decision.allowed:
            return

        if decision.recent_attempts >= self.sync_limit.requests:
            message = "Rate limit exceeded. Please try again later."
        else:
            message = "Large sync operations are limited. Please try again later."
        logger.warning(
            "Sync rate limit exceeded",
            extra={
                "sync_user_id": user_id,
                "recent_attempts": decision.recent_attempts,
                "entry_count": entry_count,
                "large_operation": is_large,
            },
        )
        raise RateLimitedError(message, retry_after=decision.reset_seconds)

    def screen_phone_numbers(self, phone_numbers: Sequence[str]) -> None:
        """Reject a whole plaintext upload that looks abusive.

        Exact string duplicates are rejected here; formatting variants of the
        same number are tolerated and collapsed later by the batch planner.

        Raises:
            DuplicateEntriesError, InvalidFormatError, SuspiciousInputError,
            EmptyInputError, TooManyEntriesError
        """
        if len(set(phone_numbers)) != len(phone_numbers):
            raise DuplicateEntriesError(
                "Duplicate phone numbers not allowed",
                details={"field": "phoneNumbers"},
            )

        for raw in phone_numbers:
            if not isinstance(raw, str) or len(raw) > MAX_RAW_ENTRY_LENGTH:
                raise InvalidFormatError(
                    "Phone numbers must be strings of at most "
                    f"{MAX_RAW_ENTRY_LENGTH} characters",
                    details={"field": "phoneNumbers"},
                )

        suspicious = sum(1 for raw in phone_numbers if is_suspicious_number(raw))
        if suspicious:
            logger.warning("Suspicious phone numbers in sync upload", extra={"suspicious_count": suspicious})
            raise SuspiciousInputError(details={"suspicious_count": suspicious})

        check_entry_count(len(phone_numbers))

    def validate_prehashed_submission(
        self,
        phone_hashes: Sequence[str],
        hashing_method: str,
        timestamp: datetime,
        now: datetime | None = None,
    ) -> None:
        """Validate a submission of already-hashed contacts.

        Raises:
            InvalidFormatError: Unsupported hashing method or malformed hashes
            DuplicateEntriesError: The same hash submitted twice
            ReplayOrClockSkewError: Timestamp older than the window or in the future
            EmptyInputError, TooManyEntriesError
        """
        if hashing_method != SUPPORTED_HASHING_METHOD:
            raise InvalidFormatError(
                f"Only {SUPPORTED_HASHING_METHOD} hashing is supported",
                details={"field": "hashingMethod"},
            )

        invalid = sum(1 for h in phone_hashes if not is_well_formed_digest(h))
        if invalid:
            logger.warning("Invalid phone hash formats in submission", extra={"invalid_count": invalid})
            raise InvalidFormatError(
                f"{invalid} invalid hash formats detected",
                details={"field": "contactHashes", "invalid_count": invalid},
            )

        if len(set(phone_hashes)) != len(phone_hashes):
            raise DuplicateEntriesError(
                "Duplicate phone hashes not allowed",
                details={"field": "contactHashes"},
            )

        check_entry_count(len(phone_hashes))

        current = now or datetime.now(timezone.utc)
        if current.tzinfo is None:
            current = current.replace(tzinfo=timezone.utc)
        submitted = timestamp if timestamp.tzinfo is not None else timestamp.replace(tzinfo=timezone.utc)

        if submitted > current:
            raise ReplayOrClockSkewError("Request timestamp is in the future")
        if current - submitted > self.prehashed_max_age:
            raise ReplayOrClockSkewError("Request too old - please retry")
