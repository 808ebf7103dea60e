"""Seleção de menções sem sobreposição."""

from __future__ import annotations

from typing import List, Sequence

from app.services.order_interpreter.models import Mention


def resolve_overlaps(candidatos: Sequence[Mention]) -> List[Mention]:
    """
    Escolhe um subconjunto de menções que não se sobrepõem.

    Prioridade: maior score, depois mais palavras, depois a mais à esquerda.
    O resultado volta ordenado pela posição no texto.
    """
    ordenados = sorted(candidatos, key=lambda m: (-m.score, -m.palavras, m.inicio))
    aceitas: List[Mention] = []
    for mencao in ordenados:
        if any(mencao.overlaps(outra) for outra in aceitas):
            continue
        aceitas.append(mencao)
    return sorted(aceitas, key=lambda m: m.inicio)
