"""Database models."""

from contactsync.persistence.models.contact import Contact
from contactsync.persistence.models.phone_identity import PhoneIdentity
from contactsync.persistence.models.sync_status import ContactSyncStatus, SyncState
from contactsync.persistence.models.user import User

__all__ = [
    "Contact",
    "ContactSyncStatus",
    "PhoneIdentity",
    "SyncState",
    "User",
]
