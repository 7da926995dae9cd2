"""Contact sync status model (one row per user)."""

from enum import Enum

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text

from contactsync.core.clock import utcnow
from contactsync.persistence.database import Base


class SyncState(str, Enum):
    """Lifecycle of a user's most recent sync."""

    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"


def compute_sync_percentage(device_contacts_count: int | None, synced_contacts_count: int | None) -> float:
    """Synced / device * 100, clamped to [0, 100]; 0 when the device count is 0."""
    if not device_contacts_count or device_contacts_count <= 0:
        return 0.0
    pct = (synced_contacts_count or 0) / device_contacts_count * 100
    return round(min(100.0, max(0.0, pct)), 2)


class ContactSyncStatus(Base):
    """Most recent sync outcome for a user."""

    __tablename__ = "contact_sync_status"

    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    status = Column(String(20), nullable=False, default=SyncState.PENDING.value, index=True)
    device_contacts_count = Column(Integer, nullable=False, default=0)
    synced_contacts_count = Column(Integer, nullable=False, default=0)
    error_message = Column(Text, nullable=True)
    last_sync_at = Column(DateTime, nullable=True)
    sync_started_at = Column(DateTime, nullable=True)  # lock age for stale in_progress expiry
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    @property
    def sync_percentage(self) -> float:
        return compute_sync_percentage(self.device_contacts_count, self.synced_contacts_count)

    def __repr__(self) -> str:
        return f"<ContactSyncStatus(user_id={self.user_id}, status={self.status})>"
