"""SwapSync API — FastAPI application entry point.

Invariants:
    - Routes registered explicitly (no auto-discovery)
    - Global error handlers map SwapSyncError → structured JSON responses
    - CORS configured from settings (not hardcoded)
    - Collaborators (db manager, store, controller, engine, reconciler) built in
      the lifespan and stored on app.state; dependencies read them from there

Design Decisions:
    - Lifespan over @app.on_event: FastAPI recommended pattern, cleaner cleanup
    - wire_services split out of the lifespan so tests wire a test database
      without running startup hooks
    - Startup reconciliation audits by default, repairs only when configured
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from swapsync.api.error_handlers import register_error_handlers
from swapsync.api.routes import events, health, legacy, profiles, swap_requests
from swapsync.config import Settings, get_settings
from swapsync.core.clock import Clock, utc_now
from swapsync.core.errors import DatabaseError
from swapsync.infrastructure.database import DatabaseSessionManager
from swapsync.infrastructure.observability import setup_logging
from swapsync.infrastructure.swap_store import SqlSwapStore, SqlUserDirectory
from swapsync.services.event_status import EventStatusController
from swapsync.services.reconciliation import Reconciler
from swapsync.services.retry import RetryPolicy
from swapsync.services.swap_negotiation import SwapNegotiationEngine

logger = logging.getLogger(__name__)


def wire_services(
    app: FastAPI,
    settings: Settings,
    db_manager: DatabaseSessionManager,
    clock: Clock = utc_now,
) -> None:
    """Build the service graph for one database and attach it to app.state."""
    retry_policy = RetryPolicy(
        max_retries=settings.conflict_max_retries,
        base_delay_ms=settings.conflict_base_delay_ms,
        max_delay_ms=settings.conflict_max_delay_ms,
    )
    store = SqlSwapStore(db_manager, clock=clock)
    controller = EventStatusController(store, clock, retry_policy)
    engine = SwapNegotiationEngine(store, controller, clock, retry_policy)

    app.state.settings = settings
    app.state.db_manager = db_manager
    app.state.store = store
    app.state.users = SqlUserDirectory(db_manager)
    app.state.controller = controller
    app.state.engine = engine
    app.state.reconciler = Reconciler(store, controller, engine)


async def reconcile_on_startup(reconciler: Reconciler, repair: bool) -> None:
    try:
        report = await (reconciler.repair() if repair else reconciler.audit())
    except DatabaseError as e:
        logger.error(
            f"Startup reconciliation failed: {e.message}",
            extra={"error_code": e.code, "operation": "reconcile_startup"},
        )
        return
    logger.info(
        f"Startup reconciliation ({'repair' if repair else 'audit'}) done",
        extra={"operation": "reconcile_startup"},
    )
    if not report.is_consistent and not repair:
        logger.warning(
            "Inconsistent swap state left in place "
            "(set RECONCILE_REPAIR_ON_STARTUP=true to repair)",
        )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup/shutdown lifecycle."""
    settings = get_settings()
    setup_logging(settings.log_level, settings.log_format)
    db_manager = DatabaseSessionManager(
        settings.database_url,
        pool_size=settings.database_pool_size,
        max_overflow=settings.database_max_overflow,
    )
    if settings.database_create_schema:
        await db_manager.create_schema()
    wire_services(app, settings, db_manager)
    if settings.reconcile_on_startup:
        await reconcile_on_startup(
            app.state.reconciler, settings.reconcile_repair_on_startup,
        )
    logger.info("SwapSync API started")
    yield
    await db_manager.dispose()
    logger.info("SwapSync API shutting down")


app = FastAPI(
    title="SwapSync API", version="1.0.0", lifespan=lifespan,
)

# CORS: configured from settings, not hardcoded
app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().cors_origins,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_error_handlers(app)

# Routes: explicit registration
app.include_router(health.router)
app.include_router(events.router)
app.include_router(swap_requests.router)
app.include_router(profiles.router)
app.include_router(legacy.router)
