"""FastAPI dependencies for auth and service wiring."""

from typing import Annotated

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from contactsync.core.auth import user_id_from_token
from contactsync.core.context import set_user_context
from contactsync.domain.services.abuse_guard import AbuseGuard
from contactsync.domain.services.contact_service import ContactService
from contactsync.domain.services.contact_sync_service import ContactSyncService
from contactsync.domain.services.sync_status_service import SyncStatusService
from contactsync.infrastructure.rate_limiter import RedisRateLimiter
from contactsync.persistence.database import get_db, get_session_factory
from contactsync.persistence.models.user import User
from contactsync.persistence.repositories.user_repository import UserRepository

security = HTTPBearer()


async def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials, Depends(security)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> User:
    """Resolve the bearer token to a user and bind it to the log context.

    Raises:
        HTTPException: 401 for a bad or expired token, or an unknown user
    """
    user_id = user_id_from_token(credentials.credentials)
    if user_id is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authentication credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

    user = await UserRepository(db).get_by_id(user_id)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found",
            headers={"WWW-Authenticate": "Bearer"},
        )

    set_user_context(user.id)
    return user


def get_abuse_guard() -> AbuseGuard:
    return AbuseGuard(RedisRateLimiter())


def get_contact_sync_service(
    session_factory: Annotated[async_sessionmaker[AsyncSession], Depends(get_session_factory)],
    abuse_guard: Annotated[AbuseGuard, Depends(get_abuse_guard)],
) -> ContactSyncService:
    return ContactSyncService(session_factory, abuse_guard)


def get_contact_service(db: Annotated[AsyncSession, Depends(get_db)]) -> ContactService:
    return ContactService(db)


def get_sync_status_service(db: Annotated[AsyncSession, Depends(get_db)]) -> SyncStatusService:
    return SyncStatusService(db)


CurrentUser = Annotated[User, Depends(get_current_user)]
