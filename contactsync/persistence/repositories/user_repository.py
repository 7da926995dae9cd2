"""User repository."""

from sqlalchemy.ext.asyncio import AsyncSession

from contactsync.persistence.models.user import User
from contactsync.persistence.repositories.base import BaseRepository


class UserRepository(BaseRepository[User]):
    """Repository for User entities."""

    def __init__(self, session: AsyncSession):
        super().__init__(User, session)
