"""Phone identity repository."""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from contactsync.core.clock import utcnow
from contactsync.persistence.models.phone_identity import PhoneIdentity
from contactsync.persistence.repositories.base import BaseRepository


class PhoneIdentityRepository(BaseRepository[PhoneIdentity]):
    """Repository for the hash → owner index."""

    def __init__(self, session: AsyncSession):
        super().__init__(PhoneIdentity, session)

    async def lookup_owners(self, phone_hashes: list[str]) -> dict[str, int]:
        """Resolve hashes to owning user ids with one indexed ``IN`` query.

        Hashes with no owner are simply absent from the result.

        Args:
            phone_hashes: Hashes of one batch

        Returns:
            Mapping of phone hash to user id
        """
        if not phone_hashes:
            return {}
        stmt = select(PhoneIdentity.phone_hash, PhoneIdentity.user_id).where(
            PhoneIdentity.phone_hash.in_(phone_hashes)
        )
        result = await self.session.execute(stmt)
        return {row.phone_hash: row.user_id for row in result}

    async def get_owner(self, phone_hash: str) -> int | None:
        stmt = select(PhoneIdentity.user_id).where(PhoneIdentity.phone_hash == phone_hash)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def claim(self, user_id: int, phone_hash: str) -> int:
        """Register ``user_id`` as owner of ``phone_hash`` unless already owned.

        Insert-or-ignore keyed by the unique hash, then read back the owner so
        two concurrent claims cannot both succeed.

        Returns:
            The user id that owns the hash after the statement
        """
        now = utcnow()
        stmt = (
            self.upsert_statement()
            .values(phone_hash=phone_hash, user_id=user_id, created_at=now, updated_at=now)
            .on_conflict_do_nothing(index_elements=["phone_hash"])
        )
        await self.session.execute(stmt)
        await self.session.commit()
        owner_id = await self.get_owner(phone_hash)
        return owner_id if owner_id is not None else user_id
