from __future__ import annotations

from fastapi import FastAPI

from app.api.routes_health import router as health_router
from app.api.routes_sessions import router as sessions_router
from app.api.routes_webhooks import router as webhooks_router
from app.db.session import init_db
from app.logging_config import init_logging
from app.services import runtime
from app.services.outbound_service import OutboundService
from app.settings import settings

app = FastAPI(title=settings.app_name)
app.include_router(health_router)
app.include_router(webhooks_router)
app.include_router(sessions_router)

_outbound: OutboundService | None = None


@app.on_event("startup")
def startup() -> None:
    global _outbound
    init_logging(settings.log_level)
    if settings.db_auto_create:
        init_db()

    runtime.get_timers().start()
    _outbound = OutboundService(runtime.get_registry(), runtime.get_evolution_client())
    _outbound.start()


@app.on_event("shutdown")
def shutdown() -> None:
    sender = runtime.get_bulk_sender()
    if sender.running:
        sender.abort()
    if _outbound is not None:
        _outbound.shutdown()
    runtime.get_timers().shutdown()
