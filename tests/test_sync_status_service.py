"""Tests for the per-user sync status tracker."""

from datetime import timedelta
from unittest.mock import AsyncMock, patch

import pytest
from sqlalchemy import update
from sqlalchemy.exc import OperationalError

from contactsync.core.clock import utcnow
from contactsync.core.errors import StoreUnavailableError, SyncAlreadyInProgressError
from contactsync.domain.services.sync_status_service import SyncStatusService
from contactsync.persistence.models.sync_status import ContactSyncStatus, compute_sync_percentage
from contactsync.persistence.repositories.sync_status_repository import SyncStatusRepository


def _db_down():
    return AsyncMock(side_effect=OperationalError("SELECT", {}, Exception("db down")))


class TestSyncStatusService:
    """Test cases for sync lifecycle transitions."""

    @pytest.mark.asyncio
    async def test_default_status_when_never_synced(self, db_session, make_user):
        user = await make_user("Dana")
        view = await SyncStatusService(db_session).get_status(user.id)
        assert view.status == "pending"
        assert view.device_contacts_count == 0
        assert view.synced_contacts_count == 0
        assert view.sync_percentage == 0.0
        assert view.last_sync_at is None

    @pytest.mark.asyncio
    async def test_begin_marks_in_progress(self, db_session, make_user):
        user = await make_user("Dana")
        service = SyncStatusService(db_session)
        await service.begin_sync(user.id, 250)

        view = await service.get_status(user.id)
        assert view.status == "in_progress"
        assert view.device_contacts_count == 250

    @pytest.mark.asyncio
    async def test_concurrent_sync_rejected(self, db_session, make_user):
        user = await make_user("Dana")
        service = SyncStatusService(db_session)
        await service.begin_sync(user.id, 10)

        with pytest.raises(SyncAlreadyInProgressError):
            await service.begin_sync(user.id, 10)

    @pytest.mark.asyncio
    async def test_stale_lock_can_be_taken_over(self, db_session, make_user):
        user = await make_user("Dana")
        service = SyncStatusService(db_session)
        await service.begin_sync(user.id, 10)

        await db_session.execute(
            update(ContactSyncStatus)
            .where(ContactSyncStatus.user_id == user.id)
            .values(sync_started_at=utcnow() - timedelta(hours=1))
        )
        await db_session.commit()

        await service.begin_sync(user.id, 20)
        view = await service.get_status(user.id)
        assert view.status == "in_progress"
        assert view.device_contacts_count == 20

    @pytest.mark.asyncio
    async def test_complete_records_counts(self, db_session, make_user):
        user = await make_user("Dana")
        service = SyncStatusService(db_session)
        await service.begin_sync(user.id, 200)
        await service.complete_sync(user.id, 50)

        view = await service.get_status(user.id)
        assert view.status == "completed"
        assert view.synced_contacts_count == 50
        assert view.sync_percentage == 25.0
        assert view.last_sync_at is not None
        assert view.error_message is None

    @pytest.mark.asyncio
    async def test_new_sync_allowed_after_completion(self, db_session, make_user):
        user = await make_user("Dana")
        service = SyncStatusService(db_session)
        await service.begin_sync(user.id, 10)
        await service.complete_sync(user.id, 1)
        await service.begin_sync(user.id, 10)

    @pytest.mark.asyncio
    async def test_failure_preserves_previous_counts(self, db_session, make_user):
        user = await make_user("Dana")
        service = SyncStatusService(db_session)
        await service.begin_sync(user.id, 100)
        await service.complete_sync(user.id, 40)

        await service.begin_sync(user.id, 100)
        await service.fail_sync(user.id, RuntimeError("database went away"))

        view = await service.get_status(user.id)
        assert view.status == "failed"
        assert view.synced_contacts_count == 40
        assert view.error_message == "database went away"

    @pytest.mark.asyncio
    async def test_failure_message_truncated(self, db_session, make_user):
        user = await make_user("Dana")
        service = SyncStatusService(db_session)
        await service.begin_sync(user.id, 1)
        await service.fail_sync(user.id, "x" * 5000)

        view = await service.get_status(user.id)
        assert len(view.error_message) == 1000

    @pytest.mark.asyncio
    async def test_get_status_store_error(self, db_session, make_user):
        user = await make_user("Dana")
        with patch.object(SyncStatusRepository, "get_for_user", _db_down()):
            with pytest.raises(StoreUnavailableError):
                await SyncStatusService(db_session).get_status(user.id)

    @pytest.mark.asyncio
    async def test_begin_sync_store_error(self, db_session, make_user):
        user = await make_user("Dana")
        with patch.object(SyncStatusRepository, "try_acquire", _db_down()):
            with pytest.raises(StoreUnavailableError):
                await SyncStatusService(db_session).begin_sync(user.id, 10)

        # The session was rolled back and stays usable
        view = await SyncStatusService(db_session).get_status(user.id)
        assert view.status == "pending"


class TestSyncPercentage:
    @pytest.mark.parametrize(
        "device,synced,expected",
        [(0, 5, 0.0), (None, 5, 0.0), (10, 20, 100.0), (3, 1, 33.33), (200, 50, 25.0), (10, -1, 0.0)],
    )
    def test_clamped_percentage(self, device, synced, expected):
        assert compute_sync_percentage(device, synced) == expected
