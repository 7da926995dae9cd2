"""Repository implementations."""

from contactsync.persistence.repositories.base import BaseRepository
from contactsync.persistence.repositories.contact_repository import ContactRepository
from contactsync.persistence.repositories.phone_identity_repository import PhoneIdentityRepository
from contactsync.persistence.repositories.sync_status_repository import SyncStatusRepository
from contactsync.persistence.repositories.user_repository import UserRepository

__all__ = [
    "BaseRepository",
    "ContactRepository",
    "PhoneIdentityRepository",
    "SyncStatusRepository",
    "UserRepository",
]
