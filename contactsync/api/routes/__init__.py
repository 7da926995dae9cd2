"""API routes."""

from fastapi import APIRouter

from contactsync.api.routes import contacts

api_router = APIRouter()

# Protected routes (auth required)
api_router.include_router(contacts.router, prefix="/contacts", tags=["contacts"])
