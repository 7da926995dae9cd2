"""Contact store: private contact relationships and phone mappings."""

import logging
from dataclasses import dataclass
from datetime import timedelta

from sqlalchemy.ext.asyncio import AsyncSession

from contactsync.core.clock import utcnow
from contactsync.core.errors import (
    HashAlreadyClaimedError,
    InvalidFormatError,
    InvalidSearchTermError,
    NotFoundError,
)
from contactsync.core.phone import looks_like_phone, phone_hash_for
from contactsync.domain.limits import (
    DEFAULT_RESULTS_PER_PAGE,
    MAX_RESULTS_PER_PAGE,
    MAX_SEARCH_TERM_LENGTH,
    MIN_RESULTS_PER_PAGE,
    MIN_SEARCH_TERM_LENGTH,
    RECENT_INTERACTION_DAYS,
    SEARCH_DEFAULT_RESULTS,
    SEARCH_MAX_RESULTS,
)
from contactsync.persistence.database import store_errors
from contactsync.persistence.models.contact import Contact
from contactsync.persistence.repositories.contact_repository import ContactRepository
from contactsync.persistence.repositories.phone_identity_repository import PhoneIdentityRepository

logger = logging.getLogger(__name__)


@dataclass
class ContactPage:
    items: list[Contact]
    limit: int
    offset: int
    exact_match: bool = False  # phone search; at most one row can match

    @property
    def has_more(self) -> bool:
        return not self.exact_match and len(self.items) == self.limit


@dataclass
class ToggleFavoriteResult:
    success: bool
    contact_id: int
    is_favorite: bool


@dataclass
class InteractionResult:
    success: bool


@dataclass
class PhoneMappingResult:
    success: bool
    phone_hash: str


@dataclass
class ContactStats:
    total_contacts: int
    linked_contacts: int
    favorites: int
    recent_interactions: int


def _check_page(limit: int, offset: int, max_limit: int) -> None:
    if limit < MIN_RESULTS_PER_PAGE or limit > max_limit:
        raise InvalidFormatError(
            f"limit must be between {MIN_RESULTS_PER_PAGE} and {max_limit}",
            details={"field": "limit"},
        )
    if offset < 0:
        raise InvalidFormatError("offset must be non-negative", details={"field": "offset"})


class ContactService:
    """Service for a user's contacts.

    Every operation is scoped to the calling owner; contacts of other users
    are indistinguishable from contacts that do not exist.
    """

    def __init__(self, session: AsyncSession) -> None:
        """Initialize contact service."""
        self.session = session
        self.contact_repo = ContactRepository(session)
        self.identity_repo = PhoneIdentityRepository(session)

    async def upsert_from_match(self, owner_id: int, phone_hash: str, linked_user_id: int) -> bool:
        """Create or relink a contact for a matched hash.

        A self-match is dropped silently; the owner's own number may be in
        their own address book.

        Returns:
            True if a row was written
        """
        if linked_user_id == owner_id:
            return False
        async with store_errors(self.session):
            counts = await self.contact_repo.upsert_matches(owner_id, {phone_hash: linked_user_id})
            await self.session.commit()
        return counts.written > 0

    async def list_contacts(
        self,
        owner_id: int,
        favorites_only: bool = False,
        limit: int = DEFAULT_RESULTS_PER_PAGE,
        offset: int = 0,
    ) -> ContactPage:
        """List contacts, most recently interacted first.

        Args:
            owner_id: Owner user ID
            favorites_only: Only favorites
            limit: Page size (1-100)
            offset: Records to skip

        Returns:
            ContactPage; ``has_more`` is true when the page is full
        """
        _check_page(limit, offset, MAX_RESULTS_PER_PAGE)
        async with store_errors(self.session):
            items = await self.contact_repo.list_for_owner(
                owner_id, favorites_only=favorites_only, limit=limit, offset=offset
            )
        return ContactPage(items=items, limit=limit, offset=offset)

    async def list_favorites(self, owner_id: int) -> list[Contact]:
        async with store_errors(self.session):
            return await self.contact_repo.list_favorites(owner_id)

    async def toggle_favorite(self, owner_id: int, contact_id: int) -> ToggleFavoriteResult:
        """Flip the favorite flag on one of the owner's contacts.

        Raises:
            NotFoundError: If the contact does not exist or belongs to someone else
        """
        async with store_errors(self.session):
            contact = await self.contact_repo.get_owned(owner_id, contact_id)
            if contact is None:
                raise NotFoundError("Contact not found or does not belong to user")
            contact = await self.contact_repo.set_favorite(contact, not contact.is_favorite)
        return ToggleFavoriteResult(success=True, contact_id=contact.id, is_favorite=contact.is_favorite)

    async def record_interaction(self, owner_id: int, phone_number: str) -> InteractionResult:
        """Stamp ``last_interaction_at`` on the contact for this number.

        No matching contact is a normal outcome and yields ``success=False``.

        Raises:
            InvalidFormatError: If the phone number is malformed
        """
        phone_hash = phone_hash_for(phone_number)
        async with store_errors(self.session):
            updated = await self.contact_repo.touch_interaction(owner_id, phone_hash)
        return InteractionResult(success=updated)

    async def search(
        self,
        owner_id: int,
        term: str | None,
        limit: int = SEARCH_DEFAULT_RESULTS,
        offset: int = 0,
    ) -> ContactPage:
        """Search the owner's contacts.

        Phone-like terms are canonicalized and matched exactly by hash;
        anything else is a case-insensitive partial match on the linked
        user's display name or email.

        Raises:
            InvalidSearchTermError: If the trimmed term is not 2-50 characters
        """
        cleaned = (term or "").strip()
        if len(cleaned) < MIN_SEARCH_TERM_LENGTH:
            raise InvalidSearchTermError(
                f"Search term must be at least {MIN_SEARCH_TERM_LENGTH} characters long"
            )
        if len(cleaned) > MAX_SEARCH_TERM_LENGTH:
            raise InvalidSearchTermError(
                f"Search term cannot exceed {MAX_SEARCH_TERM_LENGTH} characters"
            )
        _check_page(limit, offset, SEARCH_MAX_RESULTS)

        if looks_like_phone(cleaned):
            try:
                phone_hash = phone_hash_for(cleaned)
            except InvalidFormatError:
                return ContactPage(items=[], limit=limit, offset=offset, exact_match=True)
            async with store_errors(self.session):
                contact = await self.contact_repo.get_by_hash(owner_id, phone_hash)
            items = [contact] if contact is not None and offset == 0 else []
            return ContactPage(items=items, limit=limit, offset=offset, exact_match=True)

        async with store_errors(self.session):
            items = await self.contact_repo.search_linked_users(owner_id, cleaned, limit=limit, offset=offset)
        return ContactPage(items=items, limit=limit, offset=offset)

    async def create_phone_mapping(self, user_id: int, phone_number: str) -> PhoneMappingResult:
        """Make ``user_id`` discoverable by this phone number.

        Idempotent for the same user.

        Raises:
            InvalidFormatError: If the phone number is malformed
            HashAlreadyClaimedError: If another user already owns the number
        """
        phone_hash = phone_hash_for(phone_number)
        async with store_errors(self.session):
            owner_id = await self.identity_repo.claim(user_id, phone_hash)

        if owner_id != user_id:
            logger.warning(
                "Phone mapping rejected: hash already claimed",
                extra={"phone_hash": phone_hash},
            )
            raise HashAlreadyClaimedError()

        logger.info("Phone mapping registered", extra={"phone_hash": phone_hash})
        return PhoneMappingResult(success=True, phone_hash=phone_hash)

    async def get_stats(self, owner_id: int) -> ContactStats:
        since = utcnow() - timedelta(days=RECENT_INTERACTION_DAYS)
        async with store_errors(self.session):
            counts = await self.contact_repo.stats_for_owner(owner_id, since)
        return ContactStats(
            total_contacts=counts["total"],
            linked_contacts=counts["linked"],
            favorites=counts["favorites"],
            recent_interactions=counts["recent_interactions"],
        )
