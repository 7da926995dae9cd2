"""Batched matching of phone hashes against the phone identity index.

Each batch is an independent unit: its own session, one indexed lookup,
one atomic bulk upsert of matched contacts, one commit. Batches run on a
bounded worker pool so memory and connection use stay flat regardless of
upload size. Unmatched hashes are counted but never stored or returned.
"""

import asyncio
import logging
from dataclasses import dataclass

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from contactsync.core.errors import StoreUnavailableError
from contactsync.persistence.repositories.contact_repository import ContactRepository
from contactsync.persistence.repositories.phone_identity_repository import PhoneIdentityRepository

logger = logging.getLogger(__name__)


@dataclass
class BatchOutcome:
    processed: int
    matched: int
    inserted: int
    updated: int


@dataclass
class MatchResult:
    total_processed: int
    matched_contacts: int
    contacts_inserted: int  # new contact rows
    contacts_updated: int  # existing rows relinked to a different user
    batch_count: int


class MatchEngine:
    """Resolves batches of hashes to users and materializes matched contacts."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        concurrency: int = 4,
    ) -> None:
        self.session_factory = session_factory
        self.concurrency = max(1, concurrency)

    @staticmethod
    async def lookup(session: AsyncSession, phone_hashes: list[str]) -> dict[str, int]:
        """Map each hash with a registered owner to that owner's user id."""
        return await PhoneIdentityRepository(session).lookup_owners(phone_hashes)

    async def process_batch(self, owner_id: int, phone_hashes: list[str]) -> BatchOutcome:
        """Match one batch and upsert its contacts in a single transaction."""
        try:
            async with self.session_factory() as session:
                owners = await self.lookup(session, phone_hashes)
                # A user's own number in their address book is not a contact
                matches = {h: uid for h, uid in owners.items() if uid != owner_id}
                counts = await ContactRepository(session).upsert_matches(owner_id, matches)
                await session.commit()
        except SQLAlchemyError as e:
            logger.error(
                "Contact batch failed",
                extra={"owner_id": owner_id, "batch_size": len(phone_hashes), "error_type": type(e).__name__},
            )
            raise StoreUnavailableError("Contact store unavailable during sync", cause=e) from e

        return BatchOutcome(
            processed=len(phone_hashes),
            matched=len(matches),
            inserted=counts.inserted,
            updated=counts.updated,
        )

    async def run(self, owner_id: int, batches: list[list[str]]) -> MatchResult:
        """Process all batches with bounded parallelism.

        A failing batch raises after the other in-flight batches settle;
        batches that already committed stay committed.
        """
        semaphore = asyncio.Semaphore(self.concurrency)

        async def worker(batch: list[str]) -> BatchOutcome:
            async with semaphore:
                return await self.process_batch(owner_id, batch)

        outcomes = await asyncio.gather(*(worker(b) for b in batches), return_exceptions=True)

        errors = [o for o in outcomes if isinstance(o, BaseException)]
        if errors:
            raise errors[0]

        return MatchResult(
            total_processed=sum(o.processed for o in outcomes),
            matched_contacts=sum(o.matched for o in outcomes),
            contacts_inserted=sum(o.inserted for o in outcomes),
            contacts_updated=sum(o.updated for o in outcomes),
            batch_count=len(batches),
        )
