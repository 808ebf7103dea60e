"""Serviço principal de interpretação de pedidos."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Tuple

from app.services.order_interpreter.catalog_index import CatalogIndex
from app.services.order_interpreter.menu_matcher import FUZZY_THRESHOLD, MenuMatcher
from app.services.order_interpreter.models import DisabledHit, Ledger, OrderLine, ParseResult, Product
from app.services.order_interpreter.numbers import extract_numbers
from app.services.order_interpreter.overlap import resolve_overlaps
from app.services.order_interpreter.quantity_assigner import assign_quantities
from app.services.order_interpreter.tokenizer import normalize_line, split_lines, tokenize

logger = logging.getLogger(__name__)


class OrderInterpreterService:
    """
    Serviço principal para interpretação de pedidos.

    Orquestra o fluxo por linha:
    1. Tokenizer: normaliza e quebra a linha em tokens
    2. Numbers: extrai as quantidades
    3. MenuMatcher: gera menções candidatas de produtos
    4. Overlap: escolhe as menções que não se sobrepõem
    5. QuantityAssigner: liga quantidades às menções
    6. Acumula no ledger e separa produtos desabilitados
    """

    def __init__(self, threshold: float = FUZZY_THRESHOLD):
        """
        Inicializa o serviço.

        Args:
            threshold: Similaridade mínima (0-100) para o match aproximado
        """
        self.threshold = threshold
        self._cache: Optional[Tuple[Tuple[Product, ...], MenuMatcher]] = None

    def _matcher_for(self, produtos: List[Product]) -> MenuMatcher:
        # Compartilhado entre sessões: troca o par inteiro de uma vez.
        catalogo = tuple(produtos)
        cache = self._cache
        if cache is None or cache[0] != catalogo:
            cache = (catalogo, MenuMatcher(CatalogIndex(catalogo), threshold=self.threshold))
            self._cache = cache
        return cache[1]

    def _parse_line(self, linha: str, matcher: MenuMatcher, ledger: Ledger, result: ParseResult) -> bool:
        normalizada = normalize_line(linha)
        tokens = tokenize(normalizada)
        numeros = extract_numbers(tokens)
        mencoes = resolve_overlaps(matcher.candidates(tokens))
        if not mencoes:
            return False

        quantidades = assign_quantities(tokens, mencoes, numeros)
        for mencao, quantidade in zip(mencoes, quantidades):
            if not mencao.enabled:
                result.desabilitados.append(DisabledHit(produto=mencao.produto, quantidade=quantidade))
                continue
            ledger.add(mencao.produto, quantidade)
            result.pedidos.append(OrderLine(produto=mencao.produto, quantidade=quantidade, score=mencao.score))
        return True

    def parse(self, texto: str, ledger: Ledger) -> ParseResult:
        """
        Interpreta a mensagem inteira contra o ledger atual.

        O ledger recebido não é alterado: o resultado traz uma cópia com as
        quantidades novas somadas.

        Args:
            texto: Mensagem do cliente, possivelmente com várias linhas
            ledger: Quantidades já acumuladas (carrega o catálogo)

        Returns:
            ParseResult: Linhas reconhecidas, produtos desabilitados e ledger novo
        """
        trabalho = ledger.copy()
        result = ParseResult(ledger=trabalho)
        matcher = self._matcher_for(trabalho.produtos)

        linhas_reconhecidas = 0
        for linha in split_lines(texto or ""):
            if self._parse_line(linha, matcher, trabalho, result):
                linhas_reconhecidas += 1

        logger.debug(
            "order_parsed",
            extra={
                "linhas": linhas_reconhecidas,
                "pedidos": len(result.pedidos),
                "desabilitados": len(result.desabilitados),
            },
        )
        return result

    def interpret_to_dict(self, texto: str, ledger: Ledger) -> Dict[str, Any]:
        """
        Interpreta o pedido e retorna como dicionário.

        Args:
            texto: Texto livre do cliente
            ledger: Quantidades já acumuladas

        Returns:
            Dict: Resultado da interpretação como dicionário
        """
        return self.parse(texto, ledger).to_dict()
