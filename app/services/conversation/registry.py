"""Registro das conversas ativas, uma por identidade."""

from __future__ import annotations

import logging
import random
import threading
from typing import Any, Callable, Dict, List, Optional, Sequence, Set

from app.services.conversation.session import ConversationSession, ProcessResult
from app.services.conversation.states import ClientStatus, MessageType, SessionMetadata
from app.services.order_interpreter.models import Product
from app.services.order_interpreter.service import OrderInterpreterService

logger = logging.getLogger(__name__)


class SessionRegistry:
    """
    Mapa identidade -> sessão.

    O lock do registro só protege o mapa; cada sessão serializa as próprias
    transições. Também guarda as identidades entregues a um atendente humano.
    """

    def __init__(
        self,
        catalog_provider: Callable[[], Sequence[Product]],
        store,
        timers,
        interpreter: Optional[OrderInterpreterService] = None,
        inactivity_seconds: float = 5,
        reminder_seconds: float = 5,
        max_reminders: int = 5,
        disable_reset_keyword: str = "sair",
        call_by_name: bool = True,
        rng: Optional[random.Random] = None,
        on_client_status: Optional[Callable[[str, ClientStatus], None]] = None,
        on_bot_active: Optional[Callable[[str, bool], None]] = None,
    ) -> None:
        self.catalog_provider = catalog_provider
        self.store = store
        self.timers = timers
        self.interpreter = interpreter or OrderInterpreterService()
        self.inactivity_seconds = inactivity_seconds
        self.reminder_seconds = reminder_seconds
        self.max_reminders = max_reminders
        self.disable_reset_keyword = disable_reset_keyword
        self.call_by_name = call_by_name
        self.rng = rng
        self.on_client_status = on_client_status
        self.on_bot_active = on_bot_active

        self._sessions: Dict[str, ConversationSession] = {}
        self._handed_off: Set[str] = set()
        self._lock = threading.Lock()

    def get_or_create(self, identity: str) -> ConversationSession:
        session = self.get(identity)
        if session is not None:
            return session

        # Montada fora do lock: o construtor consulta o catálogo
        nova = ConversationSession(
            identity,
            catalog_provider=self.catalog_provider,
            interpreter=self.interpreter,
            store=self.store,
            timers=self.timers,
            inactivity_seconds=self.inactivity_seconds,
            reminder_seconds=self.reminder_seconds,
            max_reminders=self.max_reminders,
            disable_reset_keyword=self.disable_reset_keyword,
            call_by_name=self.call_by_name,
            rng=self.rng,
            on_client_status=self.on_client_status,
        )
        with self._lock:
            session = self._sessions.setdefault(identity, nova)
        if session is nova:
            logger.info("session_created", extra={"identity": identity})
        return session

    def get(self, identity: str) -> Optional[ConversationSession]:
        with self._lock:
            return self._sessions.get(identity)

    def identities(self) -> List[str]:
        with self._lock:
            return list(self._sessions)

    def is_bot_active(self, identity: str) -> bool:
        with self._lock:
            return identity not in self._handed_off

    def set_bot_active(self, identity: str, active: bool) -> None:
        with self._lock:
            if active:
                self._handed_off.discard(identity)
            else:
                self._handed_off.add(identity)
        if self.on_bot_active is not None:
            self.on_bot_active(identity, active)

    def restore_handed_off(self, identity: str) -> None:
        """Marca como entregue ao atendente uma identidade que o banco já registra assim."""
        with self._lock:
            if identity in self._sessions:
                return
            self._handed_off.add(identity)

    def process_message(
        self,
        identity: str,
        texto: str,
        message_type: str = MessageType.TEXT,
        metadata: Optional[SessionMetadata] = None,
    ) -> Optional[ProcessResult]:
        """
        Entrega a mensagem à sessão da identidade.

        Retorna None quando a identidade está com um atendente e a mensagem
        não é a palavra de retorno ao bot.
        """
        if not self.is_bot_active(identity):
            if (texto or "").strip().lower() != self.disable_reset_keyword:
                logger.info("message_skipped_handed_off", extra={"identity": identity})
                return None
            self.set_bot_active(identity, True)
            logger.info("bot_reenabled", extra={"identity": identity})

        session = self.get_or_create(identity)
        result = session.handle_message(texto, message_type, metadata)
        if not result.bot_active:
            self.set_bot_active(identity, False)
        return result

    def drain_pending(self, identity: str) -> List[str]:
        session = self.get(identity)
        if session is None:
            return []
        return session.drain_pending()

    def drain_all(self) -> Dict[str, List[str]]:
        pendentes: Dict[str, List[str]] = {}
        for identity in self.identities():
            mensagens = self.drain_pending(identity)
            if mensagens:
                pendentes[identity] = mensagens
        return pendentes

    def requeue_front(self, identity: str, mensagens: Sequence[str]) -> None:
        session = self.get(identity)
        if session is not None:
            session.requeue_front(mensagens)

    def get_session_snapshot(self, identity: str) -> Optional[Dict[str, Any]]:
        session = self.get(identity)
        if session is None:
            return None
        snapshot = session.snapshot()
        snapshot["bot_active"] = self.is_bot_active(identity)
        return snapshot

    def start_collecting(self, identity: str, metadata: Optional[SessionMetadata] = None) -> None:
        self.set_bot_active(identity, True)
        self.get_or_create(identity).start_collecting(metadata)

    def reset(self, identity: str) -> bool:
        """Reinicia a conversa; usado quando o transporte reconecta."""
        session = self.get(identity)
        self.set_bot_active(identity, True)
        if session is None:
            return False
        session.reset()
        logger.info("session_reset", extra={"identity": identity})
        return True

    def reset_all(self) -> int:
        """Reinicia todas as conversas e devolve o bot a todos; usado ao reconectar o transporte."""
        identities = self.identities()
        for identity in identities:
            self.reset(identity)
        with self._lock:
            restantes = list(self._handed_off)
        for identity in restantes:
            self.set_bot_active(identity, True)
        return len(identities)
