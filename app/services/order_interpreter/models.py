"""Modelos de dados para o Order Interpreter."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, Iterator, List, Optional, Sequence, Tuple


class OrderStatus(str, Enum):
    """Situação de um pedido gravado."""

    PARSED = "parsed"
    PENDING = "pending"
    CONFIRMED = "confirmed"


@dataclass(frozen=True)
class Product:
    """Produto do catálogo com seus apelidos."""

    nome: str
    aliases: Tuple[str, ...] = ()
    enabled: bool = True


@dataclass
class Token:
    """Trecho contíguo de espaços ou de texto dentro de uma linha normalizada."""

    valor: str
    is_whitespace: bool
    posicao: int
    indice: int
    indice_conteudo: Optional[int] = None


@dataclass
class NumberToken:
    """Quantidade extraída do texto."""

    valor: int
    posicao: int
    indice_conteudo: int


@dataclass
class Mention:
    """Trecho do texto que referencia um produto do catálogo."""

    inicio: int
    fim: int
    produto: str
    palavras: int
    score: float
    enabled: bool = True

    def overlaps(self, other: "Mention") -> bool:
        return self.inicio <= other.fim and other.inicio <= self.fim


@dataclass
class OrderLine:
    """Linha de pedido reconhecida para um produto habilitado."""

    produto: str
    quantidade: int
    score: float = 100.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "produto": self.produto,
            "quantidade": self.quantidade,
            "score": self.score,
        }


@dataclass
class DisabledHit:
    """Produto desabilitado mencionado pelo cliente."""

    produto: str
    quantidade: int

    def to_dict(self) -> Dict[str, Any]:
        return {"produto": self.produto, "quantidade": self.quantidade}


class Ledger:
    """
    Quantidades acumuladas por produto, na ordem do catálogo.

    Todo produto do catálogo começa com zero. Só o parser (sobre uma cópia)
    e o reset alteram as quantidades.
    """

    def __init__(self, produtos: Iterable[Product], quantidades: Optional[Dict[str, int]] = None) -> None:
        self._produtos: Dict[str, Product] = {}
        self._quantidades: Dict[str, int] = {}
        for produto in produtos:
            if produto.nome in self._produtos:
                continue
            self._produtos[produto.nome] = produto
            self._quantidades[produto.nome] = 0
        for nome, qtd in (quantidades or {}).items():
            if nome in self._quantidades:
                self._quantidades[nome] = max(int(qtd), 0)

    @property
    def produtos(self) -> List[Product]:
        return list(self._produtos.values())

    def __iter__(self) -> Iterator[Tuple[Product, int]]:
        for nome, produto in self._produtos.items():
            yield produto, self._quantidades[nome]

    def __len__(self) -> int:
        return len(self._produtos)

    def get(self, nome: str) -> int:
        return self._quantidades.get(nome, 0)

    def add(self, nome: str, quantidade: int) -> None:
        if nome not in self._quantidades:
            raise KeyError(nome)
        if quantidade < 0:
            raise ValueError("quantidade negativa")
        self._quantidades[nome] += quantidade

    def reset(self) -> None:
        for nome in self._quantidades:
            self._quantidades[nome] = 0

    def copy(self) -> "Ledger":
        return Ledger(self._produtos.values(), dict(self._quantidades))

    def resync(self, produtos: Sequence[Product]) -> "Ledger":
        """Realinha ao catálogo atual mantendo as quantidades já acumuladas."""
        return Ledger(produtos, dict(self._quantidades))

    def has_items(self) -> bool:
        return any(qtd > 0 for qtd in self._quantidades.values())

    def enabled_items(self) -> List[Tuple[Product, int]]:
        return [(p, qtd) for p, qtd in self if p.enabled and qtd > 0]

    def has_enabled_items(self) -> bool:
        return bool(self.enabled_items())

    def is_zero(self) -> bool:
        return not self.has_items()

    def to_dict(self) -> Dict[str, int]:
        return dict(self._quantidades)

    def order_lines(self) -> List[OrderLine]:
        return [OrderLine(produto=p.nome, quantidade=qtd) for p, qtd in self.enabled_items()]


@dataclass
class ParseResult:
    """Resultado do parse de uma mensagem inteira."""

    pedidos: List[OrderLine] = field(default_factory=list)
    desabilitados: List[DisabledHit] = field(default_factory=list)
    ledger: Optional[Ledger] = None

    @property
    def reconhecido(self) -> bool:
        return bool(self.pedidos)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "pedidos": [p.to_dict() for p in self.pedidos],
            "desabilitados": [d.to_dict() for d in self.desabilitados],
            "ledger": self.ledger.to_dict() if self.ledger is not None else {},
        }
