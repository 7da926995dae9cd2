"""Contact sync status repository."""

from datetime import datetime

from sqlalchemy import or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from contactsync.core.clock import utcnow
from contactsync.persistence.models.sync_status import ContactSyncStatus, SyncState
from contactsync.persistence.repositories.base import BaseRepository


class SyncStatusRepository(BaseRepository[ContactSyncStatus]):
    """Repository for per-user sync status rows."""

    def __init__(self, session: AsyncSession):
        super().__init__(ContactSyncStatus, session)

    async def get_for_user(self, user_id: int) -> ContactSyncStatus | None:
        stmt = (
            select(ContactSyncStatus)
            .where(ContactSyncStatus.user_id == user_id)
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def ensure_row(self, user_id: int) -> None:
        """Insert a ``pending`` row for the user if none exists."""
        now = utcnow()
        stmt = (
            self.upsert_statement()
            .values(
                user_id=user_id,
                status=SyncState.PENDING.value,
                device_contacts_count=0,
                synced_contacts_count=0,
                created_at=now,
                updated_at=now,
            )
            .on_conflict_do_nothing(index_elements=["user_id"])
        )
        await self.session.execute(stmt)

    async def try_acquire(
        self,
        user_id: int,
        device_contacts_count: int,
        stale_before: datetime,
    ) -> bool:
        """Atomically move the row to ``in_progress`` unless a live sync holds it.

        The conditional UPDATE is the check-and-set: it only matches when the
        row is not ``in_progress`` or its lock is older than ``stale_before``.

        Returns:
            True if this caller now holds the sync lock
        """
        await self.ensure_row(user_id)
        now = utcnow()
        stmt = (
            update(ContactSyncStatus)
            .where(
                ContactSyncStatus.user_id == user_id,
                or_(
                    ContactSyncStatus.status != SyncState.IN_PROGRESS.value,
                    ContactSyncStatus.sync_started_at.is_(None),
                    ContactSyncStatus.sync_started_at < stale_before,
                ),
            )
            .values(
                status=SyncState.IN_PROGRESS.value,
                device_contacts_count=device_contacts_count,
                error_message=None,
                sync_started_at=now,
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        await self.session.commit()
        return result.rowcount == 1

    async def mark_completed(self, user_id: int, synced_contacts_count: int) -> None:
        now = utcnow()
        stmt = (
            update(ContactSyncStatus)
            .where(ContactSyncStatus.user_id == user_id)
            .values(
                status=SyncState.COMPLETED.value,
                synced_contacts_count=synced_contacts_count,
                error_message=None,
                last_sync_at=now,
                sync_started_at=None,
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        await self.session.execute(stmt)
        await self.session.commit()

    async def mark_failed(self, user_id: int, error_message: str) -> None:
        """Record failure; counts from the previous sync are preserved."""
        await self.ensure_row(user_id)
        now = utcnow()
        stmt = (
            update(ContactSyncStatus)
            .where(ContactSyncStatus.user_id == user_id)
            .values(
                status=SyncState.FAILED.value,
                error_message=error_message,
                sync_started_at=None,
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        await self.session.execute(stmt)
        await self.session.commit()
