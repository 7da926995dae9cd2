"""Tests for the contact store service."""

from unittest.mock import AsyncMock, patch

import pytest
from sqlalchemy.exc import OperationalError

from contactsync.core.errors import (
    HashAlreadyClaimedError,
    InvalidFormatError,
    InvalidSearchTermError,
    NotFoundError,
    StoreUnavailableError,
)
from contactsync.core.phone import phone_hash_for
from contactsync.domain.services.contact_service import ContactService
from contactsync.persistence.repositories.contact_repository import ContactRepository

FRIENDS = [
    ("Alice Anders", "alice@example.com", "+14155550100"),
    ("Bob Brown", "bob@example.com", "+14155550101"),
    ("Carol Chen", "carol@example.com", "+14155550102"),
    ("Dave Diaz", "dave@example.com", "+14155550103"),
    ("Erin Evans", "erin@example.com", "+14155550104"),
]


@pytest.fixture
async def owner(make_user):
    return await make_user("Olivia Owner", "olivia@example.com")


@pytest.fixture
async def friends(db_session, make_user, owner):
    """Five registered friends, all already in the owner's contacts."""
    service = ContactService(db_session)
    users = []
    for name, email, phone in FRIENDS:
        user = await make_user(name, email, phone)
        await service.upsert_from_match(owner.id, phone_hash_for(phone), user.id)
        users.append(user)
    return users


class TestUpsertFromMatch:
    @pytest.mark.asyncio
    async def test_self_match_is_ignored(self, db_session, owner):
        service = ContactService(db_session)
        written = await service.upsert_from_match(owner.id, phone_hash_for("+14155559999"), owner.id)
        assert written is False
        assert (await service.get_stats(owner.id)).total_contacts == 0

    @pytest.mark.asyncio
    async def test_repeated_match_does_not_duplicate(self, db_session, owner, make_user):
        friend = await make_user("Frank", phone="+14155550200")
        service = ContactService(db_session)
        phone_hash = phone_hash_for("+14155550200")

        assert await service.upsert_from_match(owner.id, phone_hash, friend.id) is True
        await service.upsert_from_match(owner.id, phone_hash, friend.id)

        assert (await service.get_stats(owner.id)).total_contacts == 1


class TestListContacts:
    """Test cases for paginated listing."""

    @pytest.mark.asyncio
    async def test_first_page_has_more(self, db_session, owner, friends):
        page = await ContactService(db_session).list_contacts(owner.id, limit=2, offset=0)
        assert len(page.items) == 2
        assert page.has_more is True

    @pytest.mark.asyncio
    async def test_last_partial_page(self, db_session, owner, friends):
        page = await ContactService(db_session).list_contacts(owner.id, limit=2, offset=4)
        assert len(page.items) == 1
        assert page.has_more is False

    @pytest.mark.asyncio
    async def test_linked_user_loaded(self, db_session, owner, friends):
        page = await ContactService(db_session).list_contacts(owner.id)
        names = {c.linked_user.display_name for c in page.items}
        assert names == {name for name, _, _ in FRIENDS}

    @pytest.mark.asyncio
    async def test_other_owner_sees_nothing(self, db_session, owner, friends, make_user):
        stranger = await make_user("Stranger")
        page = await ContactService(db_session).list_contacts(stranger.id)
        assert page.items == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("limit,offset", [(0, 0), (101, 0), (10, -1)])
    async def test_invalid_paging_rejected(self, db_session, owner, limit, offset):
        with pytest.raises(InvalidFormatError):
            await ContactService(db_session).list_contacts(owner.id, limit=limit, offset=offset)

    @pytest.mark.asyncio
    async def test_favorites_only(self, db_session, owner, friends):
        service = ContactService(db_session)
        first = (await service.list_contacts(owner.id)).items[0]
        await service.toggle_favorite(owner.id, first.id)

        page = await service.list_contacts(owner.id, favorites_only=True)
        assert [c.id for c in page.items] == [first.id]
        assert [c.id for c in await service.list_favorites(owner.id)] == [first.id]


class TestToggleFavorite:
    @pytest.mark.asyncio
    async def test_toggle_flips_flag(self, db_session, owner, friends):
        service = ContactService(db_session)
        contact = (await service.list_contacts(owner.id)).items[0]

        result = await service.toggle_favorite(owner.id, contact.id)
        assert result.success is True
        assert result.is_favorite is True

        result = await service.toggle_favorite(owner.id, contact.id)
        assert result.is_favorite is False

    @pytest.mark.asyncio
    async def test_other_users_contact_not_found(self, db_session, owner, friends, make_user):
        stranger = await make_user("Stranger")
        contact = (await ContactService(db_session).list_contacts(owner.id)).items[0]
        with pytest.raises(NotFoundError):
            await ContactService(db_session).toggle_favorite(stranger.id, contact.id)

    @pytest.mark.asyncio
    async def test_missing_contact_not_found(self, db_session, owner):
        with pytest.raises(NotFoundError):
            await ContactService(db_session).toggle_favorite(owner.id, 999_999)


class TestRecordInteraction:
    @pytest.mark.asyncio
    async def test_interaction_moves_contact_first(self, db_session, owner, friends):
        service = ContactService(db_session)
        result = await service.record_interaction(owner.id, "+1 (415) 555-0199")
        assert result.success is False

        result = await service.record_interaction(owner.id, "(415) 555-0102")
        assert result.success is True

        first = (await service.list_contacts(owner.id)).items[0]
        assert first.linked_user.display_name == "Carol Chen"
        assert first.last_interaction_at is not None

    @pytest.mark.asyncio
    async def test_unknown_number(self, db_session, owner, friends):
        result = await ContactService(db_session).record_interaction(owner.id, "+14155550999")
        assert result.success is False

    @pytest.mark.asyncio
    async def test_malformed_number(self, db_session, owner):
        with pytest.raises(InvalidFormatError):
            await ContactService(db_session).record_interaction(owner.id, "nope")


class TestSearch:
    """Test cases for contact search."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("term", [None, "", "a", "   a   ", "x" * 51])
    async def test_invalid_terms(self, db_session, owner, term):
        with pytest.raises(InvalidSearchTermError):
            await ContactService(db_session).search(owner.id, term)

    @pytest.mark.asyncio
    async def test_two_character_term_accepted(self, db_session, owner, friends):
        page = await ContactService(db_session).search(owner.id, "al")
        assert [c.linked_user.display_name for c in page.items] == ["Alice Anders"]

    @pytest.mark.asyncio
    async def test_case_insensitive_name_and_email(self, db_session, owner, friends):
        service = ContactService(db_session)
        assert len((await service.search(owner.id, "BOB BR")).items) == 1
        assert len((await service.search(owner.id, "dave@exa")).items) == 1

    @pytest.mark.asyncio
    async def test_like_wildcards_are_literal(self, db_session, owner, friends):
        page = await ContactService(db_session).search(owner.id, "%%")
        assert page.items == []

    @pytest.mark.asyncio
    async def test_phone_term_matches_exactly(self, db_session, owner, friends):
        service = ContactService(db_session)
        page = await service.search(owner.id, "+1 (415) 555-0104")
        assert [c.linked_user.display_name for c in page.items] == ["Erin Evans"]

        page = await service.search(owner.id, "+1 (415) 555-0104", offset=1)
        assert page.items == []

    @pytest.mark.asyncio
    async def test_unknown_phone_term(self, db_session, owner, friends):
        page = await ContactService(db_session).search(owner.id, "+14155550999")
        assert page.items == []
        assert page.has_more is False

    @pytest.mark.asyncio
    async def test_phone_hit_on_full_page_has_no_more(self, db_session, owner, friends):
        page = await ContactService(db_session).search(owner.id, "+14155550101", limit=1)
        assert len(page.items) == 1
        assert page.has_more is False


class TestPhoneMapping:
    @pytest.mark.asyncio
    async def test_register_and_idempotent(self, db_session, make_user):
        user = await make_user("Gina")
        service = ContactService(db_session)

        first = await service.create_phone_mapping(user.id, "+1 415 555 0300")
        second = await service.create_phone_mapping(user.id, "(+1) 415-555-0300")

        assert first.success is True
        assert first.phone_hash == second.phone_hash == phone_hash_for("+14155550300")

    @pytest.mark.asyncio
    async def test_claimed_by_other_user(self, db_session, make_user):
        await make_user("Hank", phone="+14155550301")
        ivy = await make_user("Ivy")
        with pytest.raises(HashAlreadyClaimedError):
            await ContactService(db_session).create_phone_mapping(ivy.id, "+14155550301")

    @pytest.mark.asyncio
    async def test_malformed(self, db_session, make_user):
        user = await make_user("Jon")
        with pytest.raises(InvalidFormatError):
            await ContactService(db_session).create_phone_mapping(user.id, "no phone here")


class TestStats:
    @pytest.mark.asyncio
    async def test_stats(self, db_session, owner, friends):
        service = ContactService(db_session)
        contact = (await service.list_contacts(owner.id)).items[0]
        await service.toggle_favorite(owner.id, contact.id)
        await service.record_interaction(owner.id, "+14155550100")

        stats = await service.get_stats(owner.id)
        assert stats.total_contacts == 5
        assert stats.linked_contacts == 5
        assert stats.favorites == 1
        assert stats.recent_interactions == 1


class TestStoreErrors:
    """Database failures surface as StoreUnavailableError."""

    @staticmethod
    def _db_down():
        return AsyncMock(side_effect=OperationalError("SELECT", {}, Exception("db down")))

    @pytest.mark.asyncio
    async def test_list_contacts(self, db_session, owner):
        with patch.object(ContactRepository, "list_for_owner", self._db_down()):
            with pytest.raises(StoreUnavailableError):
                await ContactService(db_session).list_contacts(owner.id)

    @pytest.mark.asyncio
    async def test_toggle_favorite(self, db_session, owner, friends):
        service = ContactService(db_session)
        contact = (await service.list_contacts(owner.id)).items[0]
        with patch.object(ContactRepository, "get_owned", self._db_down()):
            with pytest.raises(StoreUnavailableError):
                await service.toggle_favorite(owner.id, contact.id)

    @pytest.mark.asyncio
    async def test_search_and_stats(self, db_session, owner):
        service = ContactService(db_session)
        with patch.object(ContactRepository, "search_linked_users", self._db_down()):
            with pytest.raises(StoreUnavailableError):
                await service.search(owner.id, "alice")
        with patch.object(ContactRepository, "stats_for_owner", self._db_down()):
            with pytest.raises(StoreUnavailableError):
                await service.get_stats(owner.id)

    @pytest.mark.asyncio
    async def test_session_usable_after_failure(self, db_session, owner, friends):
        service = ContactService(db_session)
        with patch.object(ContactRepository, "list_for_owner", self._db_down()):
            with pytest.raises(StoreUnavailableError):
                await service.list_contacts(owner.id)
        assert len((await service.list_contacts(owner.id)).items) == 5
