"""MeetHalf API — FastAPI application entry point.

Invariants:
    - Routes registered explicitly (no auto-discovery)
    - Global error handlers map MeetHalfError → structured JSON responses
    - CORS configured from settings, with credentials (the auth cookie crosses origins)
    - Database initialized on startup; outbound HTTP clients and the pool closed on shutdown

Design Decisions:
    - Lifespan over @app.on_event: FastAPI recommended pattern, cleaner cleanup
    - Static event paths (/events/my-events) are registered by the events router itself
      before its /{event_id} routes; invitation routes under /events use their own router
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from meethalf.api.error_handlers import register_error_handlers
from meethalf.api.rate_limit import limiter
from meethalf.api.routes import (
    auth, cron, events, friends, health, invitations, invite, maps, members,
    notifications, users,
)
from meethalf.config import get_settings
from meethalf.infrastructure import database
from meethalf.infrastructure.google_oauth import get_google_oauth
from meethalf.infrastructure.maps_client import get_maps_client
from meethalf.infrastructure.observability import setup_logging

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup/shutdown lifecycle."""
    settings = get_settings()
    setup_logging(settings.log_level, settings.log_format)
    database.init_db(
        settings.database_url,
        pool_size=settings.database_pool_size,
        max_overflow=settings.database_max_overflow,
    )
    logger.info("MeetHalf API started")
    yield
    logger.info("MeetHalf API shutting down")
    await get_maps_client().aclose()
    await get_google_oauth().aclose()
    if database.db_manager is not None:
        await database.db_manager.dispose()


app = FastAPI(title="MeetHalf API", version="1.0.0", lifespan=lifespan)
app.state.limiter = limiter

settings = get_settings()
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health.router)
app.include_router(auth.router)
app.include_router(users.router)
app.include_router(events.router)
app.include_router(invitations.event_router)
app.include_router(invitations.router)
app.include_router(members.router)
app.include_router(invite.router)
app.include_router(maps.router)
app.include_router(notifications.router)
app.include_router(friends.router)
app.include_router(cron.router)

register_error_handlers(app)
