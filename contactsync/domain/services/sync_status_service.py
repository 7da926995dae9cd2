"""Sync state tracker: per-user record of the most recent sync."""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy.ext.asyncio import AsyncSession

from contactsync.core.clock import utcnow
from contactsync.core.errors import SyncAlreadyInProgressError
from contactsync.persistence.database import store_errors
from contactsync.persistence.models.sync_status import SyncState, compute_sync_percentage
from contactsync.persistence.repositories.sync_status_repository import SyncStatusRepository
from contactsync.settings import settings

logger = logging.getLogger(__name__)

MAX_ERROR_MESSAGE_LENGTH = 1000


@dataclass
class SyncStatusView:
    user_id: int
    status: str
    device_contacts_count: int
    synced_contacts_count: int
    sync_percentage: float
    error_message: str | None = None
    last_sync_at: datetime | None = None


class SyncStatusService:
    """Owns the ``contact_sync_status`` rows.

    ``begin_sync`` is an atomic check-and-set: at most one sync per user can
    be ``in_progress``. A lock older than ``stale_after_seconds`` is treated
    as abandoned and may be taken over.
    """

    def __init__(self, session: AsyncSession, stale_after_seconds: int | None = None) -> None:
        self.session = session
        self.repo = SyncStatusRepository(session)
        self.stale_after_seconds = (
            settings.sync_stale_after_seconds if stale_after_seconds is None else stale_after_seconds
        )

    async def begin_sync(self, user_id: int, device_contacts_count: int) -> None:
        """Mark a sync as started.

        Raises:
            SyncAlreadyInProgressError: If another live sync holds the lock
        """
        stale_before = utcnow() - timedelta(seconds=self.stale_after_seconds)
        async with store_errors(self.session):
            acquired = await self.repo.try_acquire(user_id, device_contacts_count, stale_before)

        if not acquired:
            logger.info("Sync rejected: already in progress", extra={"sync_user_id": user_id})
            raise SyncAlreadyInProgressError()

    async def complete_sync(self, user_id: int, synced_contacts_count: int) -> None:
        async with store_errors(self.session):
            await self.repo.mark_completed(user_id, synced_contacts_count)

    async def fail_sync(self, user_id: int, error: str | BaseException) -> None:
        """Mark the sync failed; previous counts are preserved."""
        message = str(error) or type(error).__name__
        async with store_errors(self.session):
            await self.repo.mark_failed(user_id, message[:MAX_ERROR_MESSAGE_LENGTH])

    async def get_status(self, user_id: int) -> SyncStatusView:
        """Current status, or a zeroed ``pending`` view when there is no history."""
        async with store_errors(self.session):
            row = await self.repo.get_for_user(user_id)
        if row is None:
            return SyncStatusView(
                user_id=user_id,
                status=SyncState.PENDING.value,
                device_contacts_count=0,
                synced_contacts_count=0,
                sync_percentage=0.0,
            )
        return SyncStatusView(
            user_id=row.user_id,
            status=row.status,
            device_contacts_count=row.device_contacts_count or 0,
            synced_contacts_count=row.synced_contacts_count or 0,
            sync_percentage=compute_sync_percentage(row.device_contacts_count, row.synced_contacts_count),
            error_message=row.error_message,
            last_sync_at=row.last_sync_at,
        )
