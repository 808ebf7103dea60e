from __future__ import annotations

import logging

import httpx
from apscheduler.schedulers.background import BackgroundScheduler

from app.services.conversation.registry import SessionRegistry
from app.services.evolution_client import EvolutionClient
from app.settings import settings

logger = logging.getLogger(__name__)


class OutboundService:
    """Envia as mensagens geradas pelos timers das sessões (resumo, lembretes)."""

    def __init__(self, registry: SessionRegistry, evolution_client: EvolutionClient, scheduler: BackgroundScheduler | None = None) -> None:
        self.registry = registry
        self.evolution_client = evolution_client
        self.scheduler = scheduler or BackgroundScheduler()

    def start(self) -> None:
        if not settings.outbound_enabled:
            return
        self.scheduler.add_job(
            self.run_once,
            "interval",
            seconds=settings.outbound_poll_seconds,
            id="outbound_drain",
            replace_existing=True,
            max_instances=1,
        )
        self.scheduler.start()

    def shutdown(self) -> None:
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)

    def run_once(self) -> int:
        enviadas = 0
        for identity, mensagens in self.registry.drain_all().items():
            for idx, texto in enumerate(mensagens):
                try:
                    self.evolution_client.send_text(settings.evolution_instance, identity, texto)
                    enviadas += 1
                except (RuntimeError, httpx.HTTPError):
                    logger.exception("outbound_send_failed", extra={"identity": identity})
                    # O restante volta para a fila e sai no próximo ciclo, na mesma ordem
                    self.registry.requeue_front(identity, mensagens[idx:])
                    break
        return enviadas
