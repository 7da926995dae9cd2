"""Contact sync schemas.

Field names are snake_case in Python and camelCase on the wire.
"""

from datetime import datetime

from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base schema serialized with camelCase keys."""

    class Config:
        alias_generator = to_camel
        populate_by_name = True
        from_attributes = True


# ============== Request Models ==============

class SyncContactsRequest(CamelModel):
    """Plaintext address book upload."""

    phone_numbers: list[str]
    device_contacts_count: int = Field(0, ge=0)
    batch_size: int | None = None


class HashedSyncRequest(CamelModel):
    """Upload of SHA-256 phone hashes computed on the device."""

    contact_hashes: list[str]
    hashing_method: str
    timestamp: datetime  # when the client computed the hashes
    device_contacts_count: int = Field(0, ge=0)
    batch_size: int | None = None


class SyncEstimateRequest(CamelModel):
    contact_count: int
    batch_size: int | None = None


class PhoneNumberRequest(CamelModel):
    phone_number: str


# ============== Response Models ==============

class SyncEstimateResponse(CamelModel):
    contact_count: int
    batch_size: int
    number_of_batches: int
    estimated_time_ms: int
    estimated_time_seconds: int
    performance_level: str
    recommended_batch_size: int


class SyncResultResponse(CamelModel):
    success: bool = True
    total_processed: int
    matched_contacts: int
    contacts_inserted: int
    contacts_updated: int
    invalid_count: int
    duplicate_count: int
    batch_count: int
    batch_size: int
    processing_time_ms: int
    timestamp: datetime
    performance_estimate: SyncEstimateResponse


class SyncStatusResponse(CamelModel):
    status: str
    device_contacts_count: int
    synced_contacts_count: int
    sync_percentage: float
    error_message: str | None = None
    last_sync_at: datetime | None = None


class FriendResponse(CamelModel):
    """Public profile of the registered user a contact resolved to."""

    user_id: int
    display_name: str | None = None
    avatar_url: str | None = None


class ContactResponse(CamelModel):
    id: int
    phone_hash: str
    is_favorite: bool
    last_interaction_at: datetime | None = None
    created_at: datetime
    friend: FriendResponse | None = None


class PaginationResponse(CamelModel):
    limit: int
    offset: int
    has_more: bool


class ContactListResponse(CamelModel):
    contacts: list[ContactResponse]
    pagination: PaginationResponse


class FavoritesResponse(CamelModel):
    favorites: list[ContactResponse]


class ToggleFavoriteResponse(CamelModel):
    success: bool
    contact_id: int
    is_favorite: bool


class InteractionResponse(CamelModel):
    success: bool


class PhoneMappingResponse(CamelModel):
    success: bool
    phone_hash: str


class ContactStatsResponse(CamelModel):
    total_contacts: int
    linked_contacts: int
    favorites: int
    recent_interactions: int
    sync_status: SyncStatusResponse
