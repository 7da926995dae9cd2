"""Domain services."""

from contactsync.domain.services.abuse_guard import AbuseGuard
from contactsync.domain.services.contact_service import ContactService
from contactsync.domain.services.contact_sync_service import ContactSyncService, SyncResult
from contactsync.domain.services.match_engine import MatchEngine
from contactsync.domain.services.sync_status_service import SyncStatusService

__all__ = [
    "AbuseGuard",
    "ContactService",
    "ContactSyncService",
    "MatchEngine",
    "SyncResult",
    "SyncStatusService",
]
