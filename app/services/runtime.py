"""Instâncias compartilhadas pelo processo (registro de sessões, timers, envio em massa)."""

from __future__ import annotations

import threading

from app.db.session import get_db
from app.services.bulk_sender import BulkSender
from app.services.catalog_service import CatalogService
from app.services.conversation.registry import SessionRegistry
from app.services.conversation.states import ClientStatus
from app.services.conversation.timers import SchedulerTimers
from app.services.evolution_client import EvolutionClient
from app.services.order_interpreter.service import OrderInterpreterService
from app.services.order_store import OrderStore
from app.settings import settings

_lock = threading.Lock()
_catalog: CatalogService | None = None
_store: OrderStore | None = None
_timers: SchedulerTimers | None = None
_registry: SessionRegistry | None = None
_bulk_sender: BulkSender | None = None


def get_evolution_client() -> EvolutionClient:
    return EvolutionClient(settings.evolution_base_url, settings.evolution_api_key)


def get_catalog() -> CatalogService:
    global _catalog
    with _lock:
        if _catalog is None:
            _catalog = CatalogService(get_db, ttl_seconds=settings.catalog_ttl_seconds)
        return _catalog


def get_store() -> OrderStore:
    global _store
    with _lock:
        if _store is None:
            _store = OrderStore(get_db)
        return _store


def get_timers() -> SchedulerTimers:
    global _timers
    with _lock:
        if _timers is None:
            _timers = SchedulerTimers()
        return _timers


def get_registry() -> SessionRegistry:
    global _registry
    catalog = get_catalog()
    store = get_store()
    timers = get_timers()
    with _lock:
        if _registry is None:

            def on_client_status(identity: str, status: ClientStatus) -> None:
                store.update_client_status(identity, status=status.value)

            def on_bot_active(identity: str, active: bool) -> None:
                store.update_client_status(identity, is_chatbot=active)

            _registry = SessionRegistry(
                catalog_provider=catalog.get_products,
                store=store,
                timers=timers,
                interpreter=OrderInterpreterService(threshold=settings.similarity_threshold),
                inactivity_seconds=settings.inactivity_seconds,
                reminder_seconds=settings.reminder_seconds,
                max_reminders=settings.max_reminders,
                disable_reset_keyword=settings.disable_reset_keyword,
                call_by_name=settings.call_by_name,
                on_client_status=on_client_status,
                on_bot_active=on_bot_active,
            )
        return _registry


def get_bulk_sender() -> BulkSender:
    global _bulk_sender
    registry = get_registry()
    catalog = get_catalog()
    with _lock:
        if _bulk_sender is None:
            _bulk_sender = BulkSender(
                registry,
                get_evolution_client(),
                settings.evolution_instance,
                catalog_provider=catalog.get_products,
                delay_min_seconds=settings.bulk_delay_min_seconds,
                delay_max_seconds=settings.bulk_delay_max_seconds,
                call_by_name=settings.call_by_name,
            )
        return _bulk_sender
