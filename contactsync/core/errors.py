"""Error taxonomy for contact discovery and sync.

Every error carries a stable machine-readable code and a human-readable
message. The API layer maps these to HTTP responses in
``contactsync.api.errors``.
"""

from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    """Machine-readable error codes included in API error responses."""

    INVALID_FORMAT = "INVALID_FORMAT"
    INVALID_SEARCH_TERM = "INVALID_SEARCH_TERM"
    EMPTY_INPUT = "EMPTY_INPUT"
    TOO_MANY_ENTRIES = "TOO_MANY_ENTRIES"
    DUPLICATE_ENTRIES = "DUPLICATE_ENTRIES"
    SUSPICIOUS_INPUT = "SUSPICIOUS_INPUT"
    REPLAY_OR_CLOCK_SKEW = "REPLAY_OR_CLOCK_SKEW"
    RATE_LIMITED = "RATE_LIMITED"
    NOT_FOUND = "NOT_FOUND"
    SYNC_IN_PROGRESS = "SYNC_IN_PROGRESS"
    HASH_ALREADY_CLAIMED = "HASH_ALREADY_CLAIMED"
    SYNC_TIMEOUT = "SYNC_TIMEOUT"
    STORE_UNAVAILABLE = "STORE_UNAVAILABLE"
    UNKNOWN = "UNKNOWN"


class ContactSyncError(Exception):
    """Base exception for all contact sync errors.

    Attributes:
        message: Human-readable error message.
        code: Machine-readable error code.
        details: Optional additional context about the error.
        cause: Optional original exception that caused this error.
    """

    default_message: str = "An error occurred"
    default_code: ErrorCode = ErrorCode.UNKNOWN
    status_code: int = 500

    def __init__(
        self,
        message: str | None = None,
        *,
        code: ErrorCode | None = None,
        details: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        self.message = message or self.default_message
        self.code = code or self.default_code
        self.details = details or {}
        self.cause = cause

        super().__init__(self.message)

        if cause is not None:
            self.__cause__ = cause

    def __str__(self) -> str:
        return self.message

    def __repr__(self) -> str:
        parts = [f"{self.__class__.__name__}({self.message!r}"]
        if self.code != self.default_code:
            parts.append(f", code={self.code.value!r}")
        if self.details:
            parts.append(f", details={self.details!r}")
        if self.cause:
            parts.append(f", cause={self.cause!r}")
        parts.append(")")
        return "".join(parts)

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for API responses."""
        result: dict[str, Any] = {
            "error": self.__class__.__name__,
            "code": self.code.value,
            "detail": self.message,
        }
        if self.details:
            result["details"] = self.details
        return result


# Validation errors (400)


class InvalidFormatError(ContactSyncError):
    """Malformed phone number or other user-correctable input."""

    default_message = "Invalid phone number format"
    default_code = ErrorCode.INVALID_FORMAT
    status_code = 400


class InvalidSearchTermError(InvalidFormatError):
    """Search term is too short or too long after trimming."""

    default_message = "Invalid search term"
    default_code = ErrorCode.INVALID_SEARCH_TERM


class EmptyInputError(ContactSyncError):
    default_message = "At least one phone number required"
    default_code = ErrorCode.EMPTY_INPUT
    status_code = 400


class TooManyEntriesError(ContactSyncError):
    default_message = "Too many phone numbers in one request"
    default_code = ErrorCode.TOO_MANY_ENTRIES
    status_code = 400


class DuplicateEntriesError(ContactSyncError):
    default_message = "Duplicate entries not allowed"
    default_code = ErrorCode.DUPLICATE_ENTRIES
    status_code = 400


class SuspiciousInputError(ContactSyncError):
    """Submitted numbers match degenerate fuzzing/enumeration patterns."""

    default_message = "Some phone numbers appear to be invalid"
    default_code = ErrorCode.SUSPICIOUS_INPUT
    status_code = 400


class ReplayOrClockSkewError(ContactSyncError):
    """Pre-hashed submission is stale, from the future, or malformed."""

    default_message = "Request timestamp outside the accepted window"
    default_code = ErrorCode.REPLAY_OR_CLOCK_SKEW
    status_code = 400


# Policy / state errors


class RateLimitedError(ContactSyncError):
    """Caller exceeded the sync attempt budget and must back off."""

    default_message = "Rate limit exceeded. Please try again later."
    default_code = ErrorCode.RATE_LIMITED
    status_code = 429

    def __init__(self, message: str | None = None, *, retry_after: int = 60, **kwargs: Any) -> None:
        self.retry_after = max(1, int(retry_after))
        details = kwargs.pop("details", None) or {}
        details.setdefault("retry_after", self.retry_after)
        super().__init__(message, details=details, **kwargs)


class NotFoundError(ContactSyncError):
    default_message = "Contact not found"
    default_code = ErrorCode.NOT_FOUND
    status_code = 404


class SyncAlreadyInProgressError(ContactSyncError):
    """Another sync for the same user holds the in-progress lock."""

    default_message = "A contact sync is already in progress"
    default_code = ErrorCode.SYNC_IN_PROGRESS
    status_code = 409


class HashAlreadyClaimedError(ContactSyncError):
    """Phone number already mapped to a different user."""

    default_message = "Phone number is already registered to another account"
    default_code = ErrorCode.HASH_ALREADY_CLAIMED
    status_code = 409


# Infrastructure errors


class SyncTimeoutError(ContactSyncError):
    default_message = "Contact sync timed out"
    default_code = ErrorCode.SYNC_TIMEOUT
    status_code = 504


class StoreUnavailableError(ContactSyncError):
    """Backing store (database or cache) failed. Not retried by the core."""

    default_message = "Backing store unavailable"
    default_code = ErrorCode.STORE_UNAVAILABLE
    status_code = 500


class CacheUnavailableError(StoreUnavailableError):
    """Shared rate-limit cache unreachable; sync requests are refused."""

    default_message = "Rate limit store unavailable"
    status_code = 503
