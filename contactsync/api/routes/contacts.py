"""Contacts API endpoints."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query

from contactsync.api.deps import (
    CurrentUser,
    get_contact_service,
    get_contact_sync_service,
    get_sync_status_service,
)
from contactsync.api.schemas.contacts import (
    ContactListResponse,
    ContactResponse,
    ContactStatsResponse,
    FavoritesResponse,
    FriendResponse,
    HashedSyncRequest,
    InteractionResponse,
    PaginationResponse,
    PhoneMappingResponse,
    PhoneNumberRequest,
    SyncContactsRequest,
    SyncEstimateRequest,
    SyncEstimateResponse,
    SyncResultResponse,
    SyncStatusResponse,
    ToggleFavoriteResponse,
)
from contactsync.domain.limits import DEFAULT_RESULTS_PER_PAGE, SEARCH_DEFAULT_RESULTS
from contactsync.domain.services.batch_planner import estimate_sync_performance
from contactsync.domain.services.contact_service import ContactPage, ContactService
from contactsync.domain.services.contact_sync_service import ContactSyncService
from contactsync.domain.services.sync_status_service import SyncStatusService
from contactsync.persistence.models.contact import Contact

router = APIRouter()

ContactServiceDep = Annotated[ContactService, Depends(get_contact_service)]
SyncServiceDep = Annotated[ContactSyncService, Depends(get_contact_sync_service)]
SyncStatusDep = Annotated[SyncStatusService, Depends(get_sync_status_service)]


# ============== Helper Functions ==============

def _contact_to_response(contact: Contact) -> ContactResponse:
    friend = None
    if contact.linked_user is not None:
        friend = FriendResponse(
            user_id=contact.linked_user.id,
            display_name=contact.linked_user.display_name,
            avatar_url=contact.linked_user.avatar_url,
        )
    return ContactResponse(
        id=contact.id,
        phone_hash=contact.phone_hash,
        is_favorite=contact.is_favorite,
        last_interaction_at=contact.last_interaction_at,
        created_at=contact.created_at,
        friend=friend,
    )


def _page_to_response(page: ContactPage) -> ContactListResponse:
    return ContactListResponse(
        contacts=[_contact_to_response(c) for c in page.items],
        pagination=PaginationResponse(limit=page.limit, offset=page.offset, has_more=page.has_more),
    )


# ============== Sync ==============

@router.post("/sync", response_model=SyncResultResponse)
async def sync_contacts(
    request: SyncContactsRequest,
    current_user: CurrentUser,
    sync_service: SyncServiceDep,
) -> SyncResultResponse:
    """Sync the caller's address book and link contacts who are registered users.

    Only aggregate counts are returned; unmatched numbers are never echoed.
    """
    result = await sync_service.sync_phone_numbers(
        current_user.id,
        request.phone_numbers,
        request.device_contacts_count,
        batch_size=request.batch_size,
    )
    return SyncResultResponse.model_validate(result)


@router.post("/sync/hashed", response_model=SyncResultResponse)
async def sync_hashed_contacts(
    request: HashedSyncRequest,
    current_user: CurrentUser,
    sync_service: SyncServiceDep,
) -> SyncResultResponse:
    """Sync phone hashes computed on the device."""
    result = await sync_service.sync_prehashed(
        current_user.id,
        request.contact_hashes,
        request.hashing_method,
        request.timestamp,
        request.device_contacts_count,
        batch_size=request.batch_size,
    )
    return SyncResultResponse.model_validate(result)


@router.post("/sync/estimate", response_model=SyncEstimateResponse)
async def estimate_sync(
    request: SyncEstimateRequest,
    current_user: CurrentUser,
) -> SyncEstimateResponse:
    estimate = estimate_sync_performance(request.contact_count, request.batch_size)
    return SyncEstimateResponse.model_validate(estimate)


@router.get("/sync/status", response_model=SyncStatusResponse)
async def get_sync_status(
    current_user: CurrentUser,
    status_service: SyncStatusDep,
) -> SyncStatusResponse:
    view = await status_service.get_status(current_user.id)
    return SyncStatusResponse.model_validate(view)


# ============== Contacts ==============

@router.get("", response_model=ContactListResponse)
async def list_contacts(
    current_user: CurrentUser,
    contact_service: ContactServiceDep,
    favorites: bool = Query(False),
    limit: int = Query(DEFAULT_RESULTS_PER_PAGE),
    offset: int = Query(0),
) -> ContactListResponse:
    """List the caller's contacts, most recently interacted first."""
    page = await contact_service.list_contacts(
        current_user.id, favorites_only=favorites, limit=limit, offset=offset
    )
    return _page_to_response(page)


@router.get("/favorites", response_model=FavoritesResponse)
async def list_favorites(
    current_user: CurrentUser,
    contact_service: ContactServiceDep,
) -> FavoritesResponse:
    contacts = await contact_service.list_favorites(current_user.id)
    return FavoritesResponse(favorites=[_contact_to_response(c) for c in contacts])


@router.get("/search", response_model=ContactListResponse)
async def search_contacts(
    current_user: CurrentUser,
    contact_service: ContactServiceDep,
    q: str | None = Query(None),
    limit: int = Query(SEARCH_DEFAULT_RESULTS),
    offset: int = Query(0),
) -> ContactListResponse:
    """Search contacts by linked user name/email, or exactly by phone number."""
    page = await contact_service.search(current_user.id, q, limit=limit, offset=offset)
    return _page_to_response(page)


@router.get("/stats", response_model=ContactStatsResponse)
async def get_contact_stats(
    current_user: CurrentUser,
    contact_service: ContactServiceDep,
    status_service: SyncStatusDep,
) -> ContactStatsResponse:
    stats = await contact_service.get_stats(current_user.id)
    view = await status_service.get_status(current_user.id)
    return ContactStatsResponse(
        total_contacts=stats.total_contacts,
        linked_contacts=stats.linked_contacts,
        favorites=stats.favorites,
        recent_interactions=stats.recent_interactions,
        sync_status=SyncStatusResponse.model_validate(view),
    )


@router.post("/{contact_id}/favorite/toggle", response_model=ToggleFavoriteResponse)
async def toggle_favorite(
    contact_id: int,
    current_user: CurrentUser,
    contact_service: ContactServiceDep,
) -> ToggleFavoriteResponse:
    result = await contact_service.toggle_favorite(current_user.id, contact_id)
    return ToggleFavoriteResponse.model_validate(result)


@router.post("/interaction", response_model=InteractionResponse)
async def record_interaction(
    request: PhoneNumberRequest,
    current_user: CurrentUser,
    contact_service: ContactServiceDep,
) -> InteractionResponse:
    """Stamp the last interaction time on the contact for a phone number."""
    result = await contact_service.record_interaction(current_user.id, request.phone_number)
    return InteractionResponse(success=result.success)


@router.post("/phone-mapping", response_model=PhoneMappingResponse)
async def create_phone_mapping(
    request: PhoneNumberRequest,
    current_user: CurrentUser,
    contact_service: ContactServiceDep,
) -> PhoneMappingResponse:
    """Register the caller's own phone number so others can discover them."""
    result = await contact_service.create_phone_mapping(current_user.id, request.phone_number)
    return PhoneMappingResponse(success=result.success, phone_hash=result.phone_hash)
