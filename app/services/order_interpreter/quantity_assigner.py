"""Atribuição de quantidades às menções de produto."""

from __future__ import annotations

from typing import List, Optional, Sequence

from app.services.order_interpreter.models import Mention, NumberToken, Token

QUANTIDADE_PADRAO = 1


def token_distance(tokens: Sequence[Token], pos_a: int, pos_b: int) -> int:
    """
    Distância entre dois tokens.

    Cada caractere de espaço entre eles conta 1, cada token de conteúdo conta 1,
    e o passo final até o token vizinho soma mais 1.
    """
    inicio, fim = sorted((pos_a, pos_b))
    distancia = 0
    for token in tokens[inicio + 1:fim]:
        distancia += len(token.valor) if token.is_whitespace else 1
    return distancia + 1


def assign_quantities(
    tokens: Sequence[Token],
    mencoes: Sequence[Mention],
    numeros: Sequence[NumberToken],
) -> List[int]:
    """
    Associa cada número à menção livre mais próxima.

    Os números são processados da esquerda para a direita. Empate vai para a
    menção mais à esquerda. Número sem menção livre é descartado; menção sem
    número fica com quantidade 1.

    Returns:
        Quantidades na mesma ordem de `mencoes`.
    """
    atribuidas: List[Optional[int]] = [None] * len(mencoes)

    for numero in sorted(numeros, key=lambda n: n.posicao):
        escolhida = -1
        menor = None
        for idx, mencao in enumerate(mencoes):
            if atribuidas[idx] is not None:
                continue
            distancia = token_distance(tokens, numero.posicao, mencao.inicio)
            if menor is None or distancia < menor:
                menor = distancia
                escolhida = idx
            elif distancia == menor and mencao.inicio < mencoes[escolhida].inicio:
                escolhida = idx
        if escolhida >= 0:
            atribuidas[escolhida] = numero.valor

    return [qtd if qtd is not None else QUANTIDADE_PADRAO for qtd in atribuidas]
