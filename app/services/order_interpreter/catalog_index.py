"""Índice de apelidos do catálogo."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Set

from app.services.order_interpreter.models import Product
from app.services.order_interpreter.tokenizer import normalize_line


@dataclass(frozen=True)
class AliasEntry:
    produto: str
    posicao_catalogo: int
    enabled: bool


class CatalogIndex:
    """Consulta por nome canônico ou apelido, já normalizados."""

    def __init__(self, produtos: Sequence[Product]) -> None:
        self.produtos: List[Product] = list(produtos)
        self._aliases: Dict[str, AliasEntry] = {}
        self._palavras: Set[str] = set()
        self._nomes_normalizados: List[str] = []
        self.max_palavras = 0

        for posicao, produto in enumerate(self.produtos):
            entrada = AliasEntry(produto=produto.nome, posicao_catalogo=posicao, enabled=produto.enabled)
            self._nomes_normalizados.append(" ".join(normalize_line(produto.nome).split()))
            for forma in (produto.nome, *produto.aliases):
                normalizada = " ".join(normalize_line(forma).split())
                if not normalizada:
                    continue
                # O primeiro produto que registra a forma fica com ela.
                self._aliases.setdefault(normalizada, entrada)
                palavras = normalizada.split()
                self._palavras.update(palavras)
                self.max_palavras = max(self.max_palavras, len(palavras))

    def lookup(self, frase: str) -> Optional[AliasEntry]:
        return self._aliases.get(frase)

    def is_product_word(self, palavra: str) -> bool:
        return palavra in self._palavras

    def nomes_normalizados(self) -> List[str]:
        return list(self._nomes_normalizados)

    def entry_at(self, posicao: int) -> AliasEntry:
        produto = self.produtos[posicao]
        return AliasEntry(produto=produto.nome, posicao_catalogo=posicao, enabled=produto.enabled)

    def __len__(self) -> int:
        return len(self.produtos)
