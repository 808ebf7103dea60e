"""Léxico de números em português e extração de quantidades."""

from __future__ import annotations

import re
from typing import Dict, List, Optional, Sequence

from app.services.order_interpreter.models import NumberToken, Token

UNIDADES: Dict[str, int] = {
    "zero": 0,
    "um": 1,
    "uma": 1,
    "dois": 2,
    "duas": 2,
    "tres": 3,
    "treis": 3,
    "quatro": 4,
    "cinco": 5,
    "cnico": 5,
    "seis": 6,
    "ses": 6,
    "sete": 7,
    "oito": 8,
    "nove": 9,
    "nov": 9,
}

DEZ_A_DEZENOVE: Dict[str, int] = {
    "dez": 10,
    "onze": 11,
    "doze": 12,
    "treze": 13,
    "quatorze": 14,
    "catorze": 14,
    "quinze": 15,
    "dezesseis": 16,
    "dezessete": 17,
    "dezoito": 18,
    "dezenove": 19,
}

DEZENAS: Dict[str, int] = {
    "vinte": 20,
    "trinta": 30,
    "quarenta": 40,
    "cinquenta": 50,
    "sessenta": 60,
    "setenta": 70,
    "oitenta": 80,
    "noventa": 90,
}

CENTENAS: Dict[str, int] = {
    "cem": 100,
    "cento": 100,
    "duzentos": 200,
    "trezentos": 300,
    "quatrocentos": 400,
    "quinhentos": 500,
    "seiscentos": 600,
    "setecentos": 700,
    "oitocentos": 800,
    "novecentos": 900,
}

NUMBER_WORDS: Dict[str, int] = {**UNIDADES, **DEZ_A_DEZENOVE, **DEZENAS, **CENTENAS}

# Compostos que contêm palavras menores do léxico ("dezoito" contém "oito").
COMPOSTOS_PROTEGIDOS = ("dezesseis", "dezessete", "dezoito", "dezenove")

CONECTOR_NUMERICO = "e"

_DIGITS_RE = re.compile(r"^\d+$")

# Classe de grandeza: só uma classe menor pode continuar o composto.
_CLASSE_CENTENA = 3
_CLASSE_DEZENA = 2
_CLASSE_TERMINAL = 1


def is_digits(texto: str) -> bool:
    return bool(_DIGITS_RE.match(texto))


def is_number_word(texto: str) -> bool:
    return texto in NUMBER_WORDS


def is_number_token(texto: str) -> bool:
    return is_digits(texto) or is_number_word(texto)


def _classe(palavra: str) -> int:
    if palavra in CENTENAS and palavra != "cem":
        return _CLASSE_CENTENA
    if palavra in DEZENAS:
        return _CLASSE_DEZENA
    return _CLASSE_TERMINAL


def _pode_continuar(anterior: str, proxima: str) -> bool:
    """Verifica se `proxima` pode somar ao composto iniciado por `anterior`."""
    classe = _classe(anterior)
    if classe == _CLASSE_TERMINAL:
        return False
    if classe == _CLASSE_CENTENA:
        return proxima in DEZENAS or proxima in DEZ_A_DEZENOVE or proxima in UNIDADES
    return proxima in UNIDADES


def parse_number_words(palavras: Sequence[str]) -> Optional[int]:
    """
    Soma uma sequência de palavras numéricas.

    Exemplo:
        ["cento", "vinte", "cinco"] -> 125
        ["zero"] -> None
    """
    total = sum(NUMBER_WORDS.get(p, 0) for p in palavras)
    return total if total > 0 else None


def extract_numbers(tokens: Sequence[Token]) -> List[NumberToken]:
    """
    Extrai as quantidades dos tokens de conteúdo, da esquerda para a direita.

    Dígitos formam uma quantidade sozinhos. Uma palavra numérica inicia um
    composto que cresce enquanto o próximo token (colado ou depois de um único
    "e") for uma palavra de grandeza menor: "cento e vinte e cinco" vira 125.
    """
    conteudo = [t for t in tokens if not t.is_whitespace]
    numeros: List[NumberToken] = []

    i = 0
    while i < len(conteudo):
        token = conteudo[i]

        if is_digits(token.valor):
            valor = int(token.valor)
            if valor > 0:
                numeros.append(NumberToken(valor=valor, posicao=token.indice, indice_conteudo=token.indice_conteudo))
            i += 1
            continue

        if not is_number_word(token.valor):
            i += 1
            continue

        palavras = [token.valor]
        j = i + 1
        while j < len(conteudo):
            atual = palavras[-1]
            candidato = conteudo[j].valor
            if is_number_word(candidato) and _pode_continuar(atual, candidato):
                palavras.append(candidato)
                j += 1
                continue
            if (
                candidato == CONECTOR_NUMERICO
                and j + 1 < len(conteudo)
                and is_number_word(conteudo[j + 1].valor)
                and _pode_continuar(atual, conteudo[j + 1].valor)
            ):
                palavras.append(conteudo[j + 1].valor)
                j += 2
                continue
            break

        valor = parse_number_words(palavras)
        if valor is not None:
            numeros.append(NumberToken(valor=valor, posicao=token.indice, indice_conteudo=token.indice_conteudo))
            i = j
        else:
            i += 1

    return numeros
