"""Estados e metadados das conversas."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class SessionState(str, Enum):
    WAITING_FOR_NEXT = "waiting_for_next"
    OPTION = "option"
    COLLECTING = "collecting"
    CONFIRMING = "confirming"


class ClientStatus(str, Enum):
    """Situação do cliente exposta ao painel do operador."""

    NONE = ""
    TALK_TO_EMPLOYEE = "talkToEmployee"
    WONT_ORDER = "wontOrder"
    CONFIRMED_ORDER = "confirmedOrder"
    AUTO_CONFIRMED_ORDER = "autoConfirmedOrder"


class MessageType(str, Enum):
    TEXT = "text"
    OTHER = "other"


@dataclass
class SessionMetadata:
    """Dados da conversa vindos do transporte."""

    nome: Optional[str] = None
    tipo_pedido: Optional[str] = None
    telefone: Optional[str] = None

    def merge(self, other: Optional["SessionMetadata"]) -> None:
        if other is None:
            return
        if other.nome:
            self.nome = other.nome
        if other.tipo_pedido:
            self.tipo_pedido = other.tipo_pedido
        if other.telefone:
            self.telefone = other.telefone
