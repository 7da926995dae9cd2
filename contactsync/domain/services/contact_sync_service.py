"""Contact sync orchestration.

Ties the abuse guard, batch planner, match engine and sync state tracker
together into the two sync entry points: plaintext numbers and pre-hashed
submissions.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Sequence

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from contactsync.core.clock import utcnow
from contactsync.core.errors import ContactSyncError, SyncTimeoutError
from contactsync.core.phone import hash_phone
from contactsync.domain.services.abuse_guard import AbuseGuard
from contactsync.domain.services.batch_planner import (
    SyncEstimate,
    estimate_sync_performance,
    partition,
    plan_batches,
    validate_batch_size,
)
from contactsync.domain.services.match_engine import MatchEngine, MatchResult
from contactsync.domain.services.sync_status_service import SyncStatusService
from contactsync.settings import settings

logger = logging.getLogger(__name__)

# Strong references to shielded sync tasks so they survive caller cancellation
_inflight_syncs: set[asyncio.Task] = set()


def _sync_task_done(task: asyncio.Task) -> None:
    _inflight_syncs.discard(task)
    # Mark the error retrieved when the caller was cancelled and never awaited it
    if not task.cancelled():
        task.exception()


@dataclass
class SyncResult:
    total_processed: int
    matched_contacts: int
    contacts_inserted: int
    contacts_updated: int
    invalid_count: int
    duplicate_count: int
    batch_count: int
    batch_size: int
    processing_time_ms: int
    timestamp: datetime
    performance_estimate: SyncEstimate


class ContactSyncService:
    """Runs a user's contact sync end to end.

    Order of operations for every sync:

    1. rate limit (every attempt counts, even ones rejected later)
    2. input screening
    3. planning and hashing
    4. ``begin_sync`` (rejects a concurrent sync for the same user)
    5. batched match/upsert under an overall timeout
    6. ``complete_sync``, or ``fail_sync`` followed by re-raising the error

    Steps 5 and 6 run in a shielded task: a client that disconnects does not
    abort in-flight batches, and the status row is always finalized.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        abuse_guard: AbuseGuard,
        batch_size: int | None = None,
        concurrency: int | None = None,
        timeout_base_seconds: float | None = None,
        timeout_per_batch_seconds: float | None = None,
    ) -> None:
        self.session_factory = session_factory
        self.abuse_guard = abuse_guard
        self.batch_size = validate_batch_size(batch_size)
        self.engine = MatchEngine(
            session_factory,
            concurrency=settings.sync_batch_concurrency if concurrency is None else concurrency,
        )
        self.timeout_base_seconds = (
            settings.sync_timeout_base_seconds if timeout_base_seconds is None else timeout_base_seconds
        )
        self.timeout_per_batch_seconds = (
            settings.sync_timeout_per_batch_seconds
            if timeout_per_batch_seconds is None
            else timeout_per_batch_seconds
        )

    def timeout_for(self, batch_count: int) -> float:
        return self.timeout_base_seconds + self.timeout_per_batch_seconds * batch_count

    async def sync_phone_numbers(
        self,
        user_id: int,
        phone_numbers: Sequence[str],
        device_contacts_count: int,
        batch_size: int | None = None,
    ) -> SyncResult:
        """Sync a plaintext address book.

        Args:
            user_id: Authenticated caller
            phone_numbers: Raw numbers from the device (1..10,000)
            device_contacts_count: Contacts on the device, for progress reporting
            batch_size: Optional override (100..1000)

        Returns:
            SyncResult with aggregate counts only; unmatched numbers are never returned

        Raises:
            RateLimitedError, DuplicateEntriesError, SuspiciousInputError,
            EmptyInputError, TooManyEntriesError, InvalidFormatError,
            SyncAlreadyInProgressError, SyncTimeoutError, StoreUnavailableError
        """
        started = time.monotonic()

        await self.abuse_guard.check_sync_rate_limit(user_id, len(phone_numbers))
        self.abuse_guard.screen_phone_numbers(phone_numbers)

        size = self.batch_size if batch_size is None else batch_size
        plan = plan_batches(phone_numbers, size)
        batches = [[hash_phone(canonical) for canonical in batch] for batch in plan.batches]

        logger.info(
            "Contact sync started",
            extra={
                "sync_user_id": user_id,
                "submitted": len(phone_numbers),
                "valid": len(plan.valid),
                "invalid": len(plan.invalid),
                "duplicates": len(plan.duplicates),
                "batches": len(batches),
            },
        )

        match = await self._run(user_id, batches, device_contacts_count)
        return self._result(
            match,
            started,
            submitted=len(phone_numbers),
            batch_size=size,
            invalid=len(plan.invalid),
            duplicates=len(plan.duplicates),
        )

    async def sync_prehashed(
        self,
        user_id: int,
        contact_hashes: Sequence[str],
        hashing_method: str,
        timestamp: datetime,
        device_contacts_count: int,
        batch_size: int | None = None,
    ) -> SyncResult:
        """Sync hashes computed on the device.

        Raises:
            RateLimitedError, InvalidFormatError, DuplicateEntriesError,
            ReplayOrClockSkewError, EmptyInputError, TooManyEntriesError,
            SyncAlreadyInProgressError, SyncTimeoutError, StoreUnavailableError
        """
        started = time.monotonic()

        await self.abuse_guard.check_sync_rate_limit(user_id, len(contact_hashes))
        self.abuse_guard.validate_prehashed_submission(contact_hashes, hashing_method, timestamp)

        size = validate_batch_size(self.batch_size if batch_size is None else batch_size)
        batches = partition(list(contact_hashes), size)

        logger.info(
            "Pre-hashed contact sync started",
            extra={"sync_user_id": user_id, "submitted": len(contact_hashes), "batches": len(batches)},
        )

        match = await self._run(user_id, batches, device_contacts_count)
        return self._result(
            match, started, submitted=len(contact_hashes), batch_size=size, invalid=0, duplicates=0
        )

    async def _run(self, user_id: int, batches: list[list[str]], device_contacts_count: int) -> MatchResult:
        async with self.session_factory() as session:
            await SyncStatusService(session).begin_sync(user_id, device_contacts_count)

        task = asyncio.ensure_future(self._process(user_id, batches))
        _inflight_syncs.add(task)
        task.add_done_callback(_sync_task_done)
        return await asyncio.shield(task)

    async def _process(self, user_id: int, batches: list[list[str]]) -> MatchResult:
        timeout = self.timeout_for(len(batches))
        try:
            result = await asyncio.wait_for(self.engine.run(user_id, batches), timeout=timeout)
        except asyncio.TimeoutError as e:
            logger.error(
                "Contact sync timed out",
                extra={"sync_user_id": user_id, "batches": len(batches), "timeout_seconds": timeout},
            )
            await self._record_failure(user_id, "Contact sync timed out")
            raise SyncTimeoutError(details={"timeout_seconds": timeout}) from e
        except Exception as e:
            logger.error(
                "Contact sync failed",
                extra={"sync_user_id": user_id, "error_type": type(e).__name__},
            )
            await self._record_failure(user_id, e)
            raise

        try:
            async with self.session_factory() as session:
                await SyncStatusService(session).complete_sync(user_id, result.matched_contacts)
        except ContactSyncError as e:
            await self._record_failure(user_id, e)
            raise

        return result

    async def _record_failure(self, user_id: int, error: str | BaseException) -> None:
        """Best effort: the original sync error is what the caller sees."""
        try:
            async with self.session_factory() as session:
                await SyncStatusService(session).fail_sync(user_id, error)
        except ContactSyncError:
            logger.exception("Could not record sync failure", extra={"sync_user_id": user_id})

    def _result(
        self,
        match: MatchResult,
        started: float,
        submitted: int,
        batch_size: int,
        invalid: int,
        duplicates: int,
    ) -> SyncResult:
        elapsed_ms = int((time.monotonic() - started) * 1000)
        logger.info(
            "Contact sync completed",
            extra={
                "processed": match.total_processed,
                "matched": match.matched_contacts,
                "inserted": match.contacts_inserted,
                "updated": match.contacts_updated,
                "batches": match.batch_count,
                "processing_time_ms": elapsed_ms,
            },
        )
        return SyncResult(
            total_processed=match.total_processed,
            matched_contacts=match.matched_contacts,
            contacts_inserted=match.contacts_inserted,
            contacts_updated=match.contacts_updated,
            invalid_count=invalid,
            duplicate_count=duplicates,
            batch_count=match.batch_count,
            batch_size=batch_size,
            processing_time_ms=elapsed_ms,
            timestamp=utcnow(),
            performance_estimate=estimate_sync_performance(submitted, batch_size),
        )
