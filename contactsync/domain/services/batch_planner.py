"""Batch planning for bulk contact uploads.

Pure functions, no I/O: canonicalize, deduplicate and partition an upload
into ordered, bounded-size batches.
"""

import math
from dataclasses import dataclass, field
from typing import Sequence, TypeVar

from contactsync.core.errors import EmptyInputError, InvalidFormatError, TooManyEntriesError
from contactsync.core.phone import canonicalize, is_valid_phone
from contactsync.domain.limits import (
    DEFAULT_BATCH_SIZE,
    MAX_BATCH_SIZE,
    MAX_PHONE_NUMBERS_PER_SYNC,
    MIN_BATCH_SIZE,
)

T = TypeVar("T")

# Rough per-contact and per-batch costs used for sync estimates
_MS_PER_CONTACT = 2
_MS_PER_BATCH = 50
_MEDIUM_THRESHOLD_MS = 5000
_SLOW_THRESHOLD_MS = 15000
_LARGE_SYNC_THRESHOLD = 5000


@dataclass
class BatchPlan:
    """Result of planning an upload."""

    valid: list[str] = field(default_factory=list)  # canonical, first occurrence order
    invalid: list[str] = field(default_factory=list)  # raw entries that failed validation
    duplicates: list[str] = field(default_factory=list)  # raw entries repeating a canonical value
    batches: list[list[str]] = field(default_factory=list)


@dataclass
class SyncEstimate:
    contact_count: int
    batch_size: int
    number_of_batches: int
    estimated_time_ms: int
    estimated_time_seconds: int
    performance_level: str
    recommended_batch_size: int


def validate_batch_size(batch_size: int | None) -> int:
    """Return the effective batch size.

    Raises:
        InvalidFormatError: If batch_size is outside [100, 1000]
    """
    if batch_size is None:
        return DEFAULT_BATCH_SIZE
    if batch_size < MIN_BATCH_SIZE:
        raise InvalidFormatError(f"Minimum batch size is {MIN_BATCH_SIZE}", details={"field": "batchSize"})
    if batch_size > MAX_BATCH_SIZE:
        raise InvalidFormatError(f"Maximum batch size is {MAX_BATCH_SIZE}", details={"field": "batchSize"})
    return batch_size


def check_entry_count(count: int) -> None:
    """Enforce the per-request size policy.

    Raises:
        EmptyInputError: If count is 0
        TooManyEntriesError: If count exceeds the hard ceiling
    """
    if count <= 0:
        raise EmptyInputError()
    if count > MAX_PHONE_NUMBERS_PER_SYNC:
        raise TooManyEntriesError(
            f"Maximum {MAX_PHONE_NUMBERS_PER_SYNC:,} phone numbers allowed",
            details={"received": count, "max": MAX_PHONE_NUMBERS_PER_SYNC},
        )


def partition(items: Sequence[T], batch_size: int) -> list[list[T]]:
    """Split items into consecutive chunks of at most ``batch_size``."""
    return [list(items[i:i + batch_size]) for i in range(0, len(items), batch_size)]


def plan_batches(phone_numbers: Sequence[str], batch_size: int | None = None) -> BatchPlan:
    """Canonicalize, deduplicate and partition raw phone numbers.

    Args:
        phone_numbers: Raw strings as uploaded (1..10,000)
        batch_size: Entries per batch (100..1000, default 500)

    Returns:
        BatchPlan with valid/invalid/duplicates buckets and ordered batches

    Raises:
        EmptyInputError, TooManyEntriesError, InvalidFormatError
    """
    check_entry_count(len(phone_numbers))
    size = validate_batch_size(batch_size)

    plan = BatchPlan()
    seen: set[str] = set()

    for raw in phone_numbers:
        if not is_valid_phone(raw):
            plan.invalid.append(raw)
            continue
        canonical = canonicalize(raw)
        if canonical in seen:
            plan.duplicates.append(raw)
            continue
        seen.add(canonical)
        plan.valid.append(canonical)

    plan.batches = partition(plan.valid, size)
    return plan


def estimate_sync_performance(contact_count: int, batch_size: int | None = None) -> SyncEstimate:
    """Estimate how long a sync of ``contact_count`` entries will take."""
    check_entry_count(contact_count)
    size = validate_batch_size(batch_size)

    number_of_batches = math.ceil(contact_count / size)
    estimated_ms = contact_count * _MS_PER_CONTACT + number_of_batches * _MS_PER_BATCH

    level = "fast"
    if estimated_ms > _MEDIUM_THRESHOLD_MS:
        level = "medium"
    if estimated_ms > _SLOW_THRESHOLD_MS:
        level = "slow"

    return SyncEstimate(
        contact_count=contact_count,
        batch_size=size,
        number_of_batches=number_of_batches,
        estimated_time_ms=estimated_ms,
        estimated_time_seconds=round(estimated_ms / 1000),
        performance_level=level,
        recommended_batch_size=MAX_BATCH_SIZE if contact_count > _LARGE_SYNC_THRESHOLD else size,
    )
