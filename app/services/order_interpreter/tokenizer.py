"""Normalização e tokenização das linhas do pedido."""

from __future__ import annotations

import re
import unicodedata
from typing import List

from app.services.order_interpreter.models import Token
from app.services.order_interpreter.numbers import COMPOSTOS_PROTEGIDOS, NUMBER_WORDS

_PONTUACAO_RE = re.compile(r"[,.;+\-/()\[\]:]")
_TOKEN_RE = re.compile(r"\S+|\s+")
_DIGITO_LETRA_RE = re.compile(r"(?<=\d)(?=[a-z])|(?<=[a-z])(?=\d)")

# Compostos protegidos são separados mesmo colados a outras letras.
_COMPOSTOS_RE = [
    (re.compile(rf"(?<=\S)(?={w})"), re.compile(rf"(?<={w})(?=\S)")) for w in COMPOSTOS_PROTEGIDOS
]

# Demais palavras numéricas só em fronteira de palavra, da mais longa para a mais curta.
_PALAVRAS_NUMERICAS_RE = [
    (re.compile(rf"(?<=\S)(?=\b{w}\b)"), re.compile(rf"(?<=\b{w})(?=\S)(?!\w)"))
    for w in sorted(NUMBER_WORDS, key=len, reverse=True)
    if w not in COMPOSTOS_PROTEGIDOS
]


def strip_accents(text: str) -> str:
    """Remove acentos e converte para minúsculas."""
    if not text:
        return ""
    normalized = unicodedata.normalize("NFKD", text)
    without_accents = "".join(ch for ch in normalized if not unicodedata.combining(ch))
    return without_accents.lower()


def _separate_numbers_and_words(text: str) -> str:
    result = _DIGITO_LETRA_RE.sub(" ", text)

    for antes, depois in _COMPOSTOS_RE:
        result = antes.sub(" ", result)
        result = depois.sub(" ", result)

    for antes, depois in _PALAVRAS_NUMERICAS_RE:
        result = antes.sub(" ", result)
        result = depois.sub(" ", result)

    return result


def normalize_line(line: str) -> str:
    """
    Normaliza uma linha do pedido.

    Minúsculas, sem acentos, espaço entre dígitos e letras, espaço em volta de
    palavras numéricas e pontuação trocada por espaço. Aplicar duas vezes dá o
    mesmo resultado.

    Exemplo:
        "2Mangas, dezesseisqueijos" -> "2 mangas  dezesseis queijos"
    """
    result = strip_accents(line)
    result = _separate_numbers_and_words(result)
    result = _PONTUACAO_RE.sub(" ", result)
    return result.strip()


def tokenize(normalized: str) -> List[Token]:
    """Divide a linha em trechos de espaço e de conteúdo sem perder caracteres."""
    tokens: List[Token] = []
    conteudo = 0
    for match in _TOKEN_RE.finditer(normalized):
        valor = match.group(0)
        is_whitespace = valor.isspace()
        tokens.append(
            Token(
                valor=valor,
                is_whitespace=is_whitespace,
                posicao=match.start(),
                indice=len(tokens),
                indice_conteudo=None if is_whitespace else conteudo,
            )
        )
        if not is_whitespace:
            conteudo += 1
    return tokens


def split_lines(message: str) -> List[str]:
    """Divide a mensagem em linhas não vazias."""
    if not message:
        return []
    return [line.strip() for line in message.split("\n") if line.strip()]
