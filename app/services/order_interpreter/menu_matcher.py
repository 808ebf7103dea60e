"""Matcher de produtos usando fuzzy matching sobre janelas de palavras."""

from __future__ import annotations

import logging
from typing import List, Optional, Sequence, Tuple

from rapidfuzz import process
from rapidfuzz.distance import Levenshtein

from app.services.order_interpreter.catalog_index import AliasEntry, CatalogIndex
from app.services.order_interpreter.models import Mention, Token
from app.services.order_interpreter.numbers import is_number_token

logger = logging.getLogger(__name__)

# Configurações de threshold
FUZZY_THRESHOLD = 65  # Mínimo para considerar match válido
EXACT_MATCH_SCORE = 100

# Palavras puladas ao montar a frase candidata, sem quebrar a janela
CONECTORES = frozenset(
    {
        "de", "da", "do", "das", "dos", "com", "em", "no", "na", "nos", "nas",
        "e", "o", "a", "os", "as", "pra", "para", "mais",
    }
)
PALAVRAS_RUIDO = frozenset(
    {
        "quero", "queria", "manda", "mande", "amanha", "cada", "cadas", "momento",
        "amiga", "amigo", "kg", "kilo", "kilos", "quilo", "quilos", "un", "und",
        "unidade", "unidades", "x", "favor", "pf", "pfv", "por", "me", "vou", "querer",
    }
)


def similarity(a: str, b: str) -> float:
    """Similaridade de edição normalizada (0 a 100)."""
    return Levenshtein.normalized_similarity(a, b) * 100


class MenuMatcher:
    """Gera menções candidatas a produtos do catálogo em uma linha tokenizada."""

    def __init__(self, index: CatalogIndex, threshold: float = FUZZY_THRESHOLD) -> None:
        """
        Inicializa o matcher.

        Args:
            index: Índice de apelidos do catálogo
            threshold: Similaridade mínima (0-100) para aceitar um match aproximado
        """
        self.index = index
        self.threshold = threshold
        # Nomes com mais palavras primeiro, como desempate do fuzzy
        ordem = sorted(
            range(len(index.produtos)),
            key=lambda pos: len(index.produtos[pos].nome.split()),
            reverse=True,
        )
        self._ordem_fuzzy: List[int] = ordem
        nomes = index.nomes_normalizados()
        self._nomes_fuzzy: List[str] = [nomes[pos] for pos in ordem]

    def _is_skippable(self, palavra: str) -> bool:
        if self.index.is_product_word(palavra):
            return False
        return palavra in CONECTORES or palavra in PALAVRAS_RUIDO

    def _collect_window(self, tokens: Sequence[Token], inicio: int, tamanho: int) -> Optional[List[Token]]:
        """
        Junta `tamanho` tokens de conteúdo a partir de `inicio`.

        Conectores e palavras de ruído são consumidos sem contar. Um número ou
        o fim da linha antes de completar a janela invalida a tentativa.
        """
        coletados: List[Token] = []
        pos = inicio
        while pos < len(tokens) and len(coletados) < tamanho:
            token = tokens[pos]
            pos += 1
            if token.is_whitespace:
                continue
            if is_number_token(token.valor):
                return None
            if self._is_skippable(token.valor):
                continue
            coletados.append(token)
        if len(coletados) < tamanho:
            return None
        return coletados

    def _fuzzy_match(self, frase: str) -> Tuple[Optional[AliasEntry], float]:
        if not self._nomes_fuzzy:
            return None, 0
        result = process.extractOne(
            frase,
            self._nomes_fuzzy,
            scorer=Levenshtein.normalized_similarity,
            score_cutoff=self.threshold / 100,
        )
        if result is None:
            return None, 0
        _, score, idx = result
        return self.index.entry_at(self._ordem_fuzzy[idx]), score * 100

    def match_phrase(self, frase: str) -> Tuple[Optional[AliasEntry], float]:
        """Match exato por apelido; senão o nome mais parecido acima do threshold."""
        exact = self.index.lookup(frase)
        if exact is not None:
            return exact, EXACT_MATCH_SCORE
        return self._fuzzy_match(frase)

    def candidates(self, tokens: Sequence[Token]) -> List[Mention]:
        """
        Tenta todas as janelas em todas as posições iniciais.

        Exemplo:
            "2 mangas e 3 queijos" -> [Mention(manga), Mention(queijo)]
        """
        mencoes: List[Mention] = []
        vistos = set()
        max_palavras = self.index.max_palavras

        for token in tokens:
            if token.is_whitespace or is_number_token(token.valor) or self._is_skippable(token.valor):
                continue

            for tamanho in range(max_palavras, 0, -1):
                janela = self._collect_window(tokens, token.indice, tamanho)
                if janela is None:
                    continue

                frase = " ".join(t.valor for t in janela)
                entrada, score = self.match_phrase(frase)
                if entrada is None:
                    continue

                chave = (janela[0].indice, janela[-1].indice, entrada.produto)
                if chave in vistos:
                    continue
                vistos.add(chave)

                mencoes.append(
                    Mention(
                        inicio=janela[0].indice,
                        fim=janela[-1].indice,
                        produto=entrada.produto,
                        palavras=tamanho,
                        score=score,
                        enabled=entrada.enabled,
                    )
                )

        logger.debug("menu_matcher_candidates", extra={"total": len(mencoes)})
        return mencoes
