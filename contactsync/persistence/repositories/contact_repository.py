"""Contact repository."""

from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import case, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from contactsync.core.clock import utcnow
from contactsync.persistence.models.contact import Contact
from contactsync.persistence.models.user import User
from contactsync.persistence.repositories.base import BaseRepository


@dataclass
class UpsertCounts:
    inserted: int = 0
    updated: int = 0

    @property
    def written(self) -> int:
        return self.inserted + self.updated


def _escape_like(term: str) -> str:
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class ContactRepository(BaseRepository[Contact]):
    """Repository for Contact entities. Every query is scoped to an owner."""

    def __init__(self, session: AsyncSession):
        """Initialize contact repository."""
        super().__init__(Contact, session)

    def _ordered(self, stmt):
        # Most recently interacted first, never-interacted last, newest first
        return stmt.order_by(
            Contact.last_interaction_at.desc().nulls_last(),
            Contact.created_at.desc(),
            Contact.id.desc(),
        ).execution_options(populate_existing=True)

    async def upsert_matches(self, owner_id: int, matches: dict[str, int]) -> UpsertCounts:
        """Insert or relink contacts for matched hashes.

        Keyed by the (owner_id, phone_hash) unique constraint. The owner's
        existing rows for these hashes are read first so new contacts and
        relinks can be counted apart; rows that already point at the right
        user are not written. Favorite and interaction fields are never
        touched. Callers hold the owner's sync lock.

        Args:
            owner_id: Syncing user
            matches: phone hash → matched user id (self-matches already removed)

        Returns:
            UpsertCounts with inserted and relinked row counts
        """
        if not matches:
            return UpsertCounts()

        existing_stmt = select(Contact.phone_hash, Contact.linked_user_id).where(
            Contact.owner_id == owner_id,
            Contact.phone_hash.in_(list(matches)),
        )
        existing = {row.phone_hash: row.linked_user_id for row in await self.session.execute(existing_stmt)}
        pending = {
            phone_hash: linked_user_id
            for phone_hash, linked_user_id in matches.items()
            if phone_hash not in existing or existing[phone_hash] != linked_user_id
        }
        counts = UpsertCounts(
            inserted=sum(1 for phone_hash in pending if phone_hash not in existing),
            updated=sum(1 for phone_hash in pending if phone_hash in existing),
        )
        if not pending:
            return counts

        now = utcnow()
        rows = [
            {
                "owner_id": owner_id,
                "phone_hash": phone_hash,
                "linked_user_id": linked_user_id,
                "is_favorite": False,
                "created_at": now,
                "updated_at": now,
            }
            for phone_hash, linked_user_id in pending.items()
        ]
        stmt = self.upsert_statement().values(rows)
        stmt = stmt.on_conflict_do_update(
            index_elements=["owner_id", "phone_hash"],
            set_={
                "linked_user_id": stmt.excluded.linked_user_id,
                "updated_at": now,
            },
            where=Contact.__table__.c.linked_user_id.is_distinct_from(stmt.excluded.linked_user_id),
        )
        await self.session.execute(stmt)
        return counts
    async def get_owned(self, owner_id: int, contact_id: int) -> Contact | None:
        """Get a contact only if it belongs to ``owner_id``."""
        stmt = (
            select(Contact)
            .where(Contact.id == contact_id, Contact.owner_id == owner_id)
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_by_hash(self, owner_id: int, phone_hash: str) -> Contact | None:
        stmt = (
            select(Contact)
            .options(selectinload(Contact.linked_user))
            .where(Contact.owner_id == owner_id, Contact.phone_hash == phone_hash)
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def list_for_owner(
        self,
        owner_id: int,
        favorites_only: bool = False,
        limit: int = 50,
        offset: int = 0,
    ) -> list[Contact]:
        """List an owner's contacts in display order.

        Args:
            owner_id: Owner user ID
            favorites_only: Restrict to favorites
            limit: Maximum number of records to return
            offset: Number of records to skip

        Returns:
            List of contacts with linked users loaded
        """
        stmt = (
            select(Contact)
            .options(selectinload(Contact.linked_user))
            .where(Contact.owner_id == owner_id)
        )
        if favorites_only:
            stmt = stmt.where(Contact.is_favorite.is_(True))
        stmt = self._ordered(stmt).offset(offset).limit(limit)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def list_favorites(self, owner_id: int) -> list[Contact]:
        stmt = (
            select(Contact)
            .options(selectinload(Contact.linked_user))
            .where(Contact.owner_id == owner_id, Contact.is_favorite.is_(True))
        )
        result = await self.session.execute(self._ordered(stmt))
        return list(result.scalars().all())

    async def search_linked_users(
        self, owner_id: int, term: str, limit: int = 20, offset: int = 0
    ) -> list[Contact]:
        """Case-insensitive partial match on linked user's display name or email."""
        pattern = f"%{_escape_like(term)}%"
        stmt = (
            select(Contact)
            .join(User, Contact.linked_user_id == User.id)
            .options(selectinload(Contact.linked_user))
            .where(
                Contact.owner_id == owner_id,
                or_(
                    User.display_name.ilike(pattern, escape="\\"),
                    User.email.ilike(pattern, escape="\\"),
                ),
            )
        )
        stmt = self._ordered(stmt).offset(offset).limit(limit)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def set_favorite(self, contact: Contact, is_favorite: bool) -> Contact:
        contact.is_favorite = is_favorite
        contact.updated_at = utcnow()
        await self.session.commit()
        await self.session.refresh(contact)
        return contact

    async def touch_interaction(self, owner_id: int, phone_hash: str, at: datetime | None = None) -> bool:
        """Set ``last_interaction_at`` on the owner's contact for this hash.

        Returns:
            True if a contact was updated, False if none exists
        """
        now = at or utcnow()
        stmt = (
            update(Contact)
            .where(Contact.owner_id == owner_id, Contact.phone_hash == phone_hash)
            .values(last_interaction_at=now, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        await self.session.commit()
        return result.rowcount > 0

    async def stats_for_owner(self, owner_id: int, recent_since: datetime) -> dict[str, int]:
        """Aggregate counts for the owner's contacts.

        Returns:
            Dict with total, linked, favorites and recent_interactions
        """
        stmt = select(
            func.count(Contact.id),
            func.sum(case((Contact.linked_user_id.is_not(None), 1), else_=0)),
            func.sum(case((Contact.is_favorite.is_(True), 1), else_=0)),
            func.sum(case((Contact.last_interaction_at >= recent_since, 1), else_=0)),
        ).where(Contact.owner_id == owner_id)
        total, linked, favorites, recent = (await self.session.execute(stmt)).one()
        return {
            "total": int(total or 0),
            "linked": int(linked or 0),
            "favorites": int(favorites or 0),
            "recent_interactions": int(recent or 0),
        }
