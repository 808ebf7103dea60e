from app.services.order_interpreter.numbers import extract_numbers, is_number_token, parse_number_words
from app.services.order_interpreter.tokenizer import normalize_line, split_lines, strip_accents, tokenize


def _valores(texto):
    return [n.valor for n in extract_numbers(tokenize(normalize_line(texto)))]


def test_digits_and_words():
    assert _valores("2 mangas e tres queijos") == [2, 3]


def test_compound_number():
    assert _valores("cento e vinte e cinco mangas") == [125]
    assert _valores("vinte cinco uvas") == [25]


def test_terminal_words_do_not_combine():
    assert _valores("dois tres") == [2, 3]
    assert _valores("dez e cinco") == [10, 5]


def test_zero_is_not_a_quantity():
    assert _valores("zero mangas") == []
    assert _valores("0 mangas") == []


def test_number_glued_to_word():
    assert _valores("dezoitomangas") == [18]


def test_parse_number_words():
    assert parse_number_words(["cento", "vinte", "cinco"]) == 125
    assert parse_number_words(["zero"]) is None


def test_is_number_token():
    assert is_number_token("12")
    assert is_number_token("duas")
    assert not is_number_token("manga")


def test_tokenize_keeps_every_character():
    normalizada = normalize_line("2  mangas e 1 queijo")
    tokens = tokenize(normalizada)
    assert "".join(t.valor for t in tokens) == normalizada
    conteudo = [t for t in tokens if not t.is_whitespace]
    assert [t.indice_conteudo for t in conteudo] == list(range(len(conteudo)))


def test_strip_accents():
    assert strip_accents("Pão de AÇÚCAR") == "pao de acucar"


def test_split_lines_drops_blank():
    assert split_lines("2 mangas\n\n  \n3 queijos ") == ["2 mangas", "3 queijos"]
