from __future__ import annotations

import logging
import random
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence

import httpx

from app.db import crud
from app.services.conversation import messages
from app.services.conversation.registry import SessionRegistry
from app.services.conversation.states import SessionMetadata
from app.services.evolution_client import EvolutionClient
from app.services.order_interpreter.models import Product
from app.utils.phone import format_phone, normalize_phone

logger = logging.getLogger(__name__)


@dataclass
class BulkRecipient:
    telefone: str
    nome: Optional[str] = None
    tipo_pedido: Optional[str] = None
    answered: bool = False

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "BulkRecipient":
        return cls(
            telefone=str(row.get("phone") or row.get("telefone") or ""),
            nome=row.get("name") or row.get("nome"),
            tipo_pedido=row.get("order_type") or row.get("tipo_pedido"),
            answered=bool(row.get("answered")),
        )


@dataclass
class BulkProgress:
    total: int = 0
    sent: int = 0
    failed: int = 0
    skipped: int = 0
    current_index: int = -1
    running: bool = False
    aborted: bool = False
    results: List[Dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total": self.total,
            "sent": self.sent,
            "failed": self.failed,
            "skipped": self.skipped,
            "current_index": self.current_index,
            "running": self.running,
            "aborted": self.aborted,
            "results": list(self.results),
        }


def load_recipients(db_factory: Callable) -> List[BulkRecipient]:
    with db_factory() as db:
        rows = crud.fetch_bulk_recipients(db)
    return [BulkRecipient.from_row(row) for row in rows]


class BulkSender:
    """
    Envia a mensagem de abertura para vários clientes, um por vez.

    Entre um envio e outro espera um intervalo aleatório para respeitar os
    limites do WhatsApp. A flag de aborto é consultada a cada destinatário.
    """

    def __init__(
        self,
        registry: SessionRegistry,
        evolution_client: EvolutionClient,
        instance: str,
        catalog_provider: Callable[[], Sequence[Product]],
        delay_min_seconds: float = 18,
        delay_max_seconds: float = 30,
        call_by_name: bool = True,
        sleep: Callable[[float], None] = time.sleep,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.registry = registry
        self.evolution_client = evolution_client
        self.instance = instance
        self.catalog_provider = catalog_provider
        self.delay_min_seconds = delay_min_seconds
        self.delay_max_seconds = max(delay_max_seconds, delay_min_seconds)
        self.call_by_name = call_by_name
        self.sleep = sleep
        self.rng = rng or random.Random()

        self.progress = BulkProgress()
        self._abort = threading.Event()
        self._run_lock = threading.Lock()

    @property
    def running(self) -> bool:
        return self.progress.running

    def abort(self) -> None:
        self._abort.set()
        logger.info("bulk_abort_requested")

    def _opening_text(self, recipient: BulkRecipient) -> str:
        nomes = [p.nome for p in self.catalog_provider() if p.enabled]
        exemplo = messages.build_example(nomes, self.rng) if nomes else None
        nome = recipient.nome if self.call_by_name else None
        return messages.initial_message(nome, exemplo, self.rng)

    def _send_one(self, recipient: BulkRecipient) -> Dict[str, Any]:
        identity = normalize_phone(recipient.telefone)
        phone = format_phone(recipient.telefone)
        if recipient.answered:
            self.progress.skipped += 1
            return {"phone": phone, "status": "skipped", "reason": "already_answered"}

        try:
            if not identity or not self.evolution_client.is_on_whatsapp(self.instance, identity):
                self.progress.failed += 1
                return {"phone": phone, "status": "failed", "reason": "invalid_number"}

            self.registry.start_collecting(
                identity,
                SessionMetadata(nome=recipient.nome, tipo_pedido=recipient.tipo_pedido, telefone=identity),
            )
            self.evolution_client.send_text(self.instance, identity, self._opening_text(recipient))
        except (RuntimeError, httpx.HTTPError) as exc:
            logger.exception("bulk_send_failed", extra={"identity": identity})
            self.progress.failed += 1
            return {"phone": phone, "status": "failed", "reason": str(exc)[:200]}

        self.progress.sent += 1
        return {"phone": phone, "status": "sent"}

    def send(self, recipients: Iterable[BulkRecipient]) -> BulkProgress:
        if not self._run_lock.acquire(blocking=False):
            raise RuntimeError("bulk send already running")
        try:
            lista = list(recipients)
            self._abort.clear()
            self.progress = BulkProgress(total=len(lista), running=True)
            logger.info("bulk_started", extra={"total": len(lista)})

            for idx, recipient in enumerate(lista):
                if self._abort.is_set():
                    self.progress.aborted = True
                    logger.info("bulk_aborted", extra={"total": idx})
                    break
                self.progress.current_index = idx
                result = self._send_one(recipient)
                self.progress.results.append(result)

                if result["status"] == "sent" and idx < len(lista) - 1:
                    self.sleep(self.rng.uniform(self.delay_min_seconds, self.delay_max_seconds))

            logger.info(
                "bulk_finished",
                extra={"total": self.progress.sent, "state": "aborted" if self.progress.aborted else "done"},
            )
            return self.progress
        finally:
            self.progress.running = False
            self._run_lock.release()
