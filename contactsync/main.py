"""ASGI entry point: ``uvicorn contactsync.main:app``."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from contactsync import __version__
from contactsync.api.errors import register_exception_handlers
from contactsync.api.middleware import RequestIdMiddleware
from contactsync.api.routes import api_router
from contactsync.infrastructure.redis import redis_client
from contactsync.logging_config import setup_logging
from contactsync.settings import settings

setup_logging()

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Sync requests fail closed without Redis, so connect before serving
    await redis_client.connect()
    logger.info("Contact sync API started", extra={"environment": settings.environment})
    yield
    await redis_client.disconnect()


app = FastAPI(
    title="Contact Sync API",
    description="Privacy-preserving contact discovery and address book sync",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_allow_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST"],
    allow_headers=["Authorization", "Content-Type", "X-Request-ID"],
    expose_headers=["X-Request-ID", "Retry-After"],
)
app.add_middleware(RequestIdMiddleware)

register_exception_handlers(app)

app.include_router(api_router, prefix=settings.api_v1_prefix)


@app.get("/health")
async def health_check():
    """Liveness probe."""
    return {"status": "healthy"}


@app.get("/health/ready")
async def readiness_check():
    """Readiness probe: syncs cannot be served while the rate-limit store is down."""
    if await redis_client.ping():
        return {"status": "ready", "redis": True}
    return JSONResponse(status_code=503, content={"status": "unavailable", "redis": False})
