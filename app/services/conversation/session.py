"""Máquina de estados de uma conversa de pedido."""

from __future__ import annotations

import logging
import random
import threading
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Callable, Deque, Dict, List, Optional, Sequence, Set

from app.services.conversation import messages
from app.services.conversation.states import ClientStatus, MessageType, SessionMetadata, SessionState
from app.services.conversation.timers import TimerKind, timer_job_id
from app.services.order_interpreter.models import DisabledHit, Ledger, Product
from app.services.order_interpreter.service import OrderInterpreterService
from app.services.order_store import PersistenceError

logger = logging.getLogger(__name__)

CONFIRM_WORDS = frozenset(
    {
        "confirmar", "confimar", "confirma", "confima", "confirmo",
        "sim", "s", "ok", "okey", "okay", "claro", "pode ser", "pronto", "ponto",
    }
)

CANCEL_WORDS = frozenset(
    {
        "nao", "não", "n", "cancelar", "cancela", "cancelra", "cancelrar", '"cancelar"', "'cancelar'",
        "cancelar.", '"cancelar."', "'cancelar.'",
        "não obrigada", "não obrigado", "nao obrigada", "nao obrigado", "nao brigada", "nao brigado",
        "n obrigada", "n obrigado", "n brigada", "n brigado",
        "não, obrigada", "não, obrigado", "nao, obrigada", "nao, obrigado", "nao, brigada", "nao, brigado",
        "n, obrigada", "n, obrigado", "n, brigada", "n, brigado",
        "nao vou pedir", "não vou pedir", "nao quero", "não quero",
        "não vou querer", "não vou querer hoje", "não quero hoje",
        "nao vou querer", "nao vou querer hoje", "nao quero hoje",
        "obrigado, não quero hoje", "obrigado, nao quero hoje",
        "hoje nao", "hoje não", "hj nao", "hj não", "hj n",
        "estamos viajando", "estou viajando", "tamo viajando", "tamos viajando", "to viajando", "tô viajando",
        "ainda tenho", "ainda tem", "não preciso", "estamos abastecidos", "estou abastecido", "estou abastecida",
        "para essa semana não", "para essa semana n", "sem pedidos",
        "só próxima semana", "só proxima semana", "so proxima semana", "próxima semana", "proxima semana",
    }
)

GREETING_WORDS = {
    "olá": "Olá", "ola": "Olá", "oi": "Oi", "opa": "Opa", "eae": "Eae", "salve": "Salve",
    "alo": "Alô", "alô": "Alô", "hello": "Hello", "hi": "Hi", "hey": "Hey",
    "saudações": "Saudações", "saudacoes": "Saudações",
    "bom dia": "Bom dia", "boa dia": "Bom dia", "bon dia": "Bom dia",
    "boa tarde": "Boa tarde", "bom tarde": "Boa tarde", "bon tarde": "Boa tarde",
    "boa noite": "Boa noite", "bom noite": "Boa noite", "bon noite": "Boa noite",
}
_GREETING_PREFIXES = ("opa", "oi", "ola", "olá", "eae")

OPTION_ORDER = "1"
OPTION_HUMAN = "2"
OPTION_CATALOG = "3"
OPTION_HELP = "4"


def _clean(texto: str) -> str:
    return (texto or "").strip().lower()


def _greeting(texto: str) -> Optional[str]:
    limpo = " ".join(_clean(texto).translate(str.maketrans("", "", "?!,.")).split())
    if limpo in GREETING_WORDS:
        return GREETING_WORDS[limpo]
    for prefixo in _GREETING_PREFIXES:
        resto = limpo[len(prefixo) + 1:] if limpo.startswith(prefixo + " ") else None
        if resto and resto in GREETING_WORDS and resto not in _GREETING_PREFIXES:
            return f"{GREETING_WORDS[prefixo]} {GREETING_WORDS[resto].lower()}"
    return None


@dataclass
class ProcessResult:
    state: SessionState
    mensagens: List[str] = field(default_factory=list)
    bot_active: bool = True
    sucesso: bool = True
    client_status: ClientStatus = ClientStatus.NONE

    def to_dict(self) -> Dict[str, Any]:
        return {
            "state": self.state.value,
            "mensagens": list(self.mensagens),
            "bot_active": self.bot_active,
            "sucesso": self.sucesso,
            "client_status": self.client_status.value,
        }


class ConversationSession:
    """
    Uma conversa por identidade.

    Recebe dois tipos de evento: mensagens do cliente (`handle_message`) e
    disparos de timer (`on_timer`). Ambos rodam sob o lock da sessão, então
    uma transição nunca se mistura com outra da mesma conversa. Todo texto de
    resposta entra na fila da sessão e é retirado por `drain_pending`.
    """

    def __init__(
        self,
        identity: str,
        catalog_provider: Callable[[], Sequence[Product]],
        interpreter: OrderInterpreterService,
        store,
        timers,
        inactivity_seconds: float = 5,
        reminder_seconds: float = 5,
        max_reminders: int = 5,
        disable_reset_keyword: str = "sair",
        call_by_name: bool = True,
        rng: Optional[random.Random] = None,
        on_client_status: Optional[Callable[[str, ClientStatus], None]] = None,
    ) -> None:
        self.identity = identity
        self.catalog_provider = catalog_provider
        self.interpreter = interpreter
        self.store = store
        self.timers = timers
        self.inactivity_seconds = inactivity_seconds
        self.reminder_seconds = reminder_seconds
        self.max_reminders = max_reminders
        self.disable_reset_keyword = disable_reset_keyword
        self.call_by_name = call_by_name
        self.rng = rng or random.Random()
        self.on_client_status = on_client_status

        self.state = SessionState.WAITING_FOR_NEXT
        self.ledger = Ledger(catalog_provider())
        self.reminder_count = 0
        self.last_activity = time.time()
        self.metadata = SessionMetadata()
        self.client_status = ClientStatus.NONE

        self._outbound: Deque[str] = deque()
        # Passos já gravados de uma confirmação que falhou no meio
        self._pedido_gravado_id: Optional[int] = None
        self._pedido_gravado = False
        self._totais_contados: Set[str] = set()
        self._generations: Dict[TimerKind, int] = {kind: 0 for kind in TimerKind}
        self._lock = threading.RLock()

    # ------------------------------------------------------------------ fila

    def _queue(self, texto: str) -> None:
        if texto:
            self._outbound.append(texto)

    def _drain(self) -> List[str]:
        mensagens = list(self._outbound)
        self._outbound.clear()
        return mensagens

    def drain_pending(self) -> List[str]:
        with self._lock:
            return self._drain()

    def requeue_front(self, mensagens: Sequence[str]) -> None:
        """Devolve ao início da fila mensagens que não puderam ser entregues."""
        with self._lock:
            self._outbound.extendleft(reversed([m for m in mensagens if m]))

    # ---------------------------------------------------------------- timers

    def _arm(self, kind: TimerKind) -> None:
        self._generations[kind] += 1
        delay = self.inactivity_seconds if kind == TimerKind.INACTIVITY else self.reminder_seconds
        self.timers.schedule(timer_job_id(self.identity, kind), delay, self.on_timer, kind, self._generations[kind])

    def _cancel(self, kind: TimerKind) -> None:
        self._generations[kind] += 1
        self.timers.cancel(timer_job_id(self.identity, kind))

    def _cancel_all(self) -> None:
        for kind in TimerKind:
            self._cancel(kind)

    def on_timer(self, kind: TimerKind, generation: int) -> None:
        with self._lock:
            if generation != self._generations[kind]:
                return
            if kind == TimerKind.INACTIVITY:
                self._on_inactivity()
            else:
                self._on_reminder()

    def _on_inactivity(self) -> None:
        if self.state != SessionState.COLLECTING:
            return
        if self.ledger.has_enabled_items():
            self._enter_confirming()
        else:
            self._arm(TimerKind.INACTIVITY)

    def _on_reminder(self) -> None:
        if self.state != SessionState.CONFIRMING:
            return
        if self.reminder_count < self.max_reminders:
            resumo = messages.summary(self.ledger.enabled_items(), self.metadata.tipo_pedido)
            self._queue(messages.reminder(self.reminder_count, self.max_reminders - 1, resumo))
            self.reminder_count += 1
            self._arm(TimerKind.REMINDER)
            return
        self._save_pending()

    # --------------------------------------------------------------- helpers

    def _nome_chamada(self) -> Optional[str]:
        return self.metadata.nome if self.call_by_name else None

    def _example(self) -> str:
        nomes = [p.nome for p in self.ledger.produtos if p.enabled]
        return messages.build_example(nomes, self.rng)

    def _set_client_status(self, status: ClientStatus) -> None:
        self.client_status = status
        if self.on_client_status is not None and status != ClientStatus.NONE:
            self.on_client_status(self.identity, status)

    def _reset_order(self) -> None:
        self.ledger.reset()
        self.reminder_count = 0
        self._clear_confirm_progress()

    def _clear_confirm_progress(self) -> None:
        self._pedido_gravado_id = None
        self._pedido_gravado = False
        self._totais_contados = set()

    def _drop_disabled(self) -> List[DisabledHit]:
        """Zera produtos que ficaram desabilitados depois de entrar no pedido."""
        removidos: List[DisabledHit] = []
        for produto, quantidade in list(self.ledger):
            if not produto.enabled and quantidade > 0:
                removidos.append(DisabledHit(produto=produto.nome, quantidade=quantidade))
        if removidos:
            quantidades = self.ledger.to_dict()
            for hit in removidos:
                quantidades[hit.produto] = 0
            self.ledger = Ledger(self.ledger.produtos, quantidades)
        return removidos

    def _enter_confirming(self) -> None:
        self._cancel(TimerKind.INACTIVITY)
        self.state = SessionState.CONFIRMING
        self.reminder_count = 1
        self._queue(messages.summary(self.ledger.enabled_items(), self.metadata.tipo_pedido))
        self._arm(TimerKind.REMINDER)
        logger.info("order_summary_sent", extra={"identity": self.identity, "state": self.state.value})

    def _save_pending(self) -> None:
        linhas = self.ledger.order_lines()
        try:
            self.store.add_pending_order(
                self.identity,
                self.metadata.nome,
                self.metadata.tipo_pedido,
                "Auto-saved (pending confirmation)",
                linhas,
                telefone=self.metadata.telefone,
            )
        except PersistenceError:
            logger.exception("persistence_failed", extra={"identity": self.identity, "order_status": "pending"})
            self._queue(messages.FALHA_AO_SALVAR)
            return

        self._cancel(TimerKind.REMINDER)
        self._reset_order()
        self.state = SessionState.WAITING_FOR_NEXT
        self._queue(messages.PEDIDO_PENDENTE)
        self._set_client_status(ClientStatus.AUTO_CONFIRMED_ORDER)
        logger.info("pending_order_saved", extra={"identity": self.identity, "order_status": "pending"})

    def _confirm(self, texto: str) -> bool:
        itens = self.ledger.enabled_items()
        linhas = self.ledger.order_lines()
        try:
            # Numa nova tentativa, só refaz os passos que ainda não foram gravados
            if not self._pedido_gravado:
                self._pedido_gravado_id = self.store.add_confirmed_order(
                    self.identity,
                    self.metadata.nome,
                    self.metadata.tipo_pedido,
                    texto,
                    linhas,
                    telefone=self.metadata.telefone,
                )
                self._pedido_gravado = True
            for linha in linhas:
                if linha.produto in self._totais_contados:
                    continue
                self.store.increment_product_total(linha.produto, linha.quantidade)
                self._totais_contados.add(linha.produto)
        except PersistenceError:
            logger.exception(
                "persistence_failed",
                extra={"identity": self.identity, "order_status": "confirmed", "order_id": self._pedido_gravado_id},
            )
            self._queue(messages.FALHA_AO_SALVAR)
            return False

        self._cancel(TimerKind.REMINDER)
        self._reset_order()
        self.state = SessionState.WAITING_FOR_NEXT
        self._queue(messages.confirmed(itens, self._nome_chamada()))
        self._set_client_status(ClientStatus.CONFIRMED_ORDER)
        logger.info("order_confirmed", extra={"identity": self.identity, "order_status": "confirmed"})
        return True

    # ---------------------------------------------------------------- estados

    def _handle_waiting(self) -> bool:
        self.state = SessionState.OPTION
        self._queue(messages.menu(self._nome_chamada()))
        return True

    def _handle_option(self, limpo: str) -> bool:
        if limpo == OPTION_ORDER:
            self.state = SessionState.COLLECTING
            self._arm(TimerKind.INACTIVITY)
            if not any(p.enabled for p in self.ledger.produtos):
                self._queue(messages.SEM_PRODUTOS)
                return False
            self._queue(messages.ordering_hint(self._example()))
            return True
        if limpo == OPTION_HUMAN:
            self.state = SessionState.WAITING_FOR_NEXT
            self._queue(messages.handoff(self.disable_reset_keyword))
            self._set_client_status(ClientStatus.TALK_TO_EMPLOYEE)
            return True
        if limpo == OPTION_CATALOG:
            self._queue(messages.catalog_list(self.ledger.produtos, self._nome_chamada()))
            return True
        if limpo == OPTION_HELP:
            self._queue(messages.help_message(self._example()))
            return True
        self._queue(messages.MENU_REPETIR)
        return False

    def _handle_collecting(self, texto: str, limpo: str) -> bool:
        if limpo in CONFIRM_WORDS:
            removidos = self._drop_disabled()
            if removidos:
                self._queue(messages.out_of_stock(removidos))
            if not self.ledger.has_enabled_items():
                self._queue(messages.LISTA_VAZIA)
                return False
            self._enter_confirming()
            return True

        result = self.interpreter.parse(texto, self.ledger)
        if result.desabilitados:
            self._queue(messages.out_of_stock(result.desabilitados))
        if result.pedidos:
            self.ledger = result.ledger
        elif not result.desabilitados:
            self._queue(messages.NAO_RECONHECIDO)
        self._arm(TimerKind.INACTIVITY)
        return bool(result.pedidos)

    def _handle_confirming(self, texto: str, limpo: str) -> bool:
        if limpo in CONFIRM_WORDS:
            return self._confirm(texto)

        if limpo in CANCEL_WORDS:
            self._cancel(TimerKind.REMINDER)
            self._reset_order()
            self.state = SessionState.COLLECTING
            self._arm(TimerKind.INACTIVITY)
            self._queue(messages.PEDIDO_CANCELADO)
            return True

        result = self.interpreter.parse(texto, self.ledger)
        if not result.pedidos and not result.desabilitados:
            self._queue(messages.NAO_RECONHECIDO_CONFIRMACAO)
            return False

        if result.desabilitados:
            self._queue(messages.out_of_stock(result.desabilitados, confirmando=True))
        self.ledger = result.ledger
        self._clear_confirm_progress()
        self._cancel(TimerKind.REMINDER)
        self.reminder_count = 0
        self.state = SessionState.COLLECTING
        self._arm(TimerKind.INACTIVITY)
        return not result.desabilitados

    def handle_message(
        self,
        texto: str,
        message_type: str = MessageType.TEXT,
        metadata: Optional[SessionMetadata] = None,
    ) -> ProcessResult:
        """
        Processa uma mensagem do cliente e devolve as respostas da fila.

        Args:
            texto: Texto recebido (vazio para mídia)
            message_type: "text" ou qualquer outro tipo do transporte
            metadata: Nome, tipo de pedido e telefone do cliente

        Returns:
            ProcessResult: Estado final, mensagens a enviar e se o bot segue ativo
        """
        with self._lock:
            self.metadata.merge(metadata)
            self.last_activity = time.time()
            self.client_status = ClientStatus.NONE
            self.ledger = self.ledger.resync(self.catalog_provider())
            estado_anterior = self.state

            bot_active = True
            limpo = _clean(texto)
            saudacao = _greeting(texto)

            if message_type != MessageType.TEXT and self.state != SessionState.CONFIRMING:
                self._cancel(TimerKind.INACTIVITY)
                self.state = SessionState.OPTION
                self._queue(messages.NAO_TEXTO)
                sucesso = True
            elif self.state == SessionState.COLLECTING and not self.ledger.has_items() and saudacao:
                self._queue(messages.greeting_hint(saudacao, self._example()))
                self._arm(TimerKind.INACTIVITY)
                sucesso = True
            elif limpo in CANCEL_WORDS and self.state != SessionState.CONFIRMING:
                self._cancel_all()
                self._reset_order()
                self.state = SessionState.WAITING_FOR_NEXT
                self._queue(messages.ATE_PROXIMA)
                self._set_client_status(ClientStatus.WONT_ORDER)
                sucesso = True
            elif self.state == SessionState.WAITING_FOR_NEXT:
                sucesso = self._handle_waiting()
            elif self.state == SessionState.OPTION:
                sucesso = self._handle_option(limpo)
                if limpo == OPTION_HUMAN:
                    bot_active = False
            elif self.state == SessionState.COLLECTING:
                sucesso = self._handle_collecting(texto, limpo)
            else:
                sucesso = self._handle_confirming(texto, limpo)

            if self.state != estado_anterior:
                logger.info(
                    "session_transition",
                    extra={"identity": self.identity, "state": self.state.value},
                )

            return ProcessResult(
                state=self.state,
                mensagens=self._drain(),
                bot_active=bot_active,
                sucesso=sucesso,
                client_status=self.client_status,
            )

    # ------------------------------------------------------------- controles

    def start_collecting(self, metadata: Optional[SessionMetadata] = None) -> None:
        """Abre a coleta sem passar pelo menu (usado no envio em massa)."""
        with self._lock:
            self.metadata.merge(metadata)
            self._cancel_all()
            self.ledger = Ledger(self.catalog_provider())
            self.reminder_count = 0
            self._clear_confirm_progress()
            self.state = SessionState.COLLECTING
            self._arm(TimerKind.INACTIVITY)

    def reset(self) -> None:
        with self._lock:
            self._cancel_all()
            self._reset_order()
            self._outbound.clear()
            self.state = SessionState.WAITING_FOR_NEXT
            self.client_status = ClientStatus.NONE

    def snapshot(self) -> Dict[str, Any]:
        with self._lock:
            return {
                "identity": self.identity,
                "state": self.state.value,
                "ledger": self.ledger.to_dict(),
                "reminder_count": self.reminder_count,
                "client_status": self.client_status.value,
                "last_activity": self.last_activity,
                "pending_messages": len(self._outbound),
                "metadata": {
                    "nome": self.metadata.nome,
                    "tipo_pedido": self.metadata.tipo_pedido,
                },
            }
