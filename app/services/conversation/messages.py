"""Textos enviados ao cliente pelo bot."""

from __future__ import annotations

import random
from typing import Iterable, List, Optional, Sequence, Tuple

from app.services.order_interpreter.models import DisabledHit, Product

MENU_OPCOES = (
    'Você deseja:\n'
    'realizar um pedido (digite "*1*");\n'
    'falar com um funcionário (digite "*2*");\n'
    'ver a lista de produtos (digite "*3*") ou\n'
    'saber mais sobre o programa e como usá-lo (digite "*4*")?'
)

MENU_REPETIR = (
    'Por favor, escolha uma opção:\n'
    '("*1*") para pedir;\n'
    '("*2*") para falar com um funcionário;\n'
    '("*3*") para ver a lista de produtos ou\n'
    '("*4*") para saber mais sobre o programa e como usá-lo'
)

MENU_DEPOIS = (
    'E agora? Você deseja:\n'
    'realizar um pedido (digite "*1*");\n'
    'falar com um funcionário (digite "*2*");\n'
    'ver novamente a lista de produtos (digite "*3*") ou\n'
    'saber mais sobre o programa e como usá-lo (digite "*4*")?'
)

NAO_TEXTO = (
    "Perdão, mas o nosso programa de mensagens automáticas ainda não entende mensagens "
    "que não sejam de texto.\n\n" + MENU_OPCOES
)

FALAR_COM_FUNCIONARIO = 'Ok, assim que pudermos terá uma resposta!\n\n(digite "{reset}" caso queira voltar a falar com um robô)'
SEM_PRODUTOS = "❌ Não há produtos disponíveis no momento. Por favor, entre em contato conosco."
ATE_PROXIMA = "Ok, até próxima semana! 😃"
PEDIDO_CANCELADO = "🔄 **Pedido cancelado!** Digite novos itens."
LISTA_VAZIA = "❌ Lista vazia. Adicione itens primeiro."
NAO_RECONHECIDO = (
    "☹️ Desculpa, não consegui reconhecer nenhum item... Tente usar termos como '2 mangas', "
    "'cinco queijos'. *Se desejar cancelar o pedido, digite \"cancelar\".*"
)
NAO_RECONHECIDO_CONFIRMACAO = "☹️ Perdão, o item não foi reconhecido. Digite 'confirmar' para confirmar ou 'nao' para cancelar."
PEDIDO_PENDENTE = "🟡 **PEDIDO SALVO COMO PENDENTE** - *Pedido confirmado automaticamente.*"
FALHA_AO_SALVAR = "❌ Não conseguimos registrar seu pedido agora. Responda \"confirmar\" novamente em instantes."

EXEMPLO_PADRAO = "2 mangas e 3 queijos"


def build_example(nomes: Sequence[str], rng: Optional[random.Random] = None) -> str:
    """Exemplo de pedido com dois produtos diferentes escolhidos ao acaso."""
    rng = rng or random.Random()
    if not nomes:
        return EXEMPLO_PADRAO
    if len(nomes) == 1:
        return f"{rng.randint(1, 10)} {nomes[0]}"
    primeiro, segundo = rng.sample(list(nomes), 2)
    return f"{rng.randint(1, 10)} {primeiro} e {rng.randint(1, 10)} {segundo}"


_ABERTURAS = ("Opa", "Olá", "Oi")
_AGUARDO = (
    "Estamos no aguardo do seu pedido!",
    "Já estamos no aguardo do seu pedido!",
    "Já estamos no aguardo do pedido!",
    "Estamos aguardando o pedido!",
    "Já estamos aguardando o pedido!",
    "Nós estamos no aguardo do seu pedido!",
    "Nós já estamos no aguardo do seu pedido!",
    "Nós estamos aguardando o pedido!",
    "Nós já estamos aguardando o pedido!",
)


def initial_message(nome: Optional[str], exemplo: Optional[str], rng: Optional[random.Random] = None) -> str:
    """Primeira mensagem do envio em massa, convidando o cliente a pedir."""
    rng = rng or random.Random()
    quem = f" {nome}" if nome else ""
    texto = f"{rng.choice(_ABERTURAS)}{quem}! {rng.choice(_AGUARDO)}"
    texto += "\n\n(Isto é uma mensagem automática para a sua conveniência 😊"
    texto += f", digite naturalmente como: {exemplo})" if exemplo else ")"
    texto += '\ndigite "pronto" quando terminar seu pedido ou aguarde a mensagem automática!\n'
    texto += '*Caso não queira pedir, digite "cancelar".*'
    return texto


def _saudacao(nome: Optional[str]) -> str:
    return f"Olá {nome}!" if nome else "Olá!"


def menu(nome: Optional[str] = None) -> str:
    return f"{_saudacao(nome)} Isso é uma mensagem automática. 😁\n\n{MENU_OPCOES}"


def ordering_hint(exemplo: str) -> str:
    return (
        f'Ótimo! Digite seus pedidos. Exemplo: "{exemplo}"\n'
        'digite "pronto" quando terminar seu pedido ou aguarde a mensagem automática!'
    )


def greeting_hint(saudacao: str, exemplo: Optional[str]) -> str:
    if exemplo:
        dica = (
            f"(digite seu pedido naturalmente como: {exemplo})\n"
            'digite "pronto" quando terminar seu pedido ou aguarde a mensagem automática!\n'
            '*Caso não queira pedir, digite "cancelar".*'
        )
    else:
        dica = "(não há produtos disponíveis no momento)"
    return f"{saudacao}! Isto é uma mensagem automática para a sua conveniência 😊\n\n{dica}"


def catalog_list(produtos: Iterable[Product], nome: Optional[str] = None) -> str:
    inicio = f"Certo, {nome}. Aqui" if nome else "Certo, aqui"
    linhas = [f"{inicio} está nossa lista de produtos!\n"]
    disponiveis = 0
    for produto in produtos:
        if produto.enabled:
            linhas.append(f"• {produto.nome} - ✅")
            disponiveis += 1
        else:
            linhas.append(f"• {produto.nome} - ❌ (Fora de estoque no momento)")
    if not disponiveis:
        linhas.append("Nenhum produto disponível no momento.")
    return "\n".join(linhas) + "\n\n" + MENU_DEPOIS


def help_message(exemplo: str) -> str:
    return (
        "Ok, aqui temos instruções de como utilizar o programa e mais sobre ele!\n\n"
        'O programa oferece quatro opções quando está no menu inicial: "*1*" para realizar um pedido, '
        '"*2*" para falar com um funcionário, "*3*" para ver a lista de produtos e "*4*" para ler '
        "a mensagem que você está lendo agora.\n\n"
        f"Para realizar um pedido, basta digitar mensagens de texto de forma natural, como: {exemplo}. "
        "O programa entende mensagens em linguagem natural.\n\n" + MENU_DEPOIS
    )


def handoff(reset_keyword: str) -> str:
    return FALAR_COM_FUNCIONARIO.format(reset=reset_keyword)


def summary(itens: Sequence[Tuple[Product, int]], tipo_pedido: Optional[str] = None) -> str:
    linhas = ["📋 **RESUMO DO SEU PEDIDO:**"]
    for produto, quantidade in itens:
        if tipo_pedido == "outro":
            linhas.append(f"\n{produto.nome}")
        else:
            linhas.append(f"• {produto.nome}: {quantidade}")
    linhas.append('\n⚠️ **Confirma o pedido?** (responda com "sim" ou "não")')
    return "\n".join(linhas)


def reminder(numero: int, total: int, resumo: str) -> str:
    return f"🔔 **LEMBRETE ({numero}/{total}):**\n{resumo}"


def confirmed(itens: Sequence[Tuple[Product, int]], nome: Optional[str] = None) -> str:
    linhas = ["✅ **PEDIDO CONFIRMADO COM SUCESSO!**\n", "**Itens confirmados:**"]
    for produto, quantidade in itens:
        linhas.append(f"• {quantidade}x {produto.nome}")
    agradecimento = f"Obrigado pelo pedido, {nome}! 🎉" if nome else "Obrigado pelo pedido! 🎉"
    linhas.append(f"\n{agradecimento}")
    return "\n".join(linhas)


def out_of_stock(desabilitados: Sequence[DisabledHit], confirmando: bool = False) -> str:
    """Aviso de produtos fora de estoque, que ficam fora do pedido."""
    nomes: List[str] = []
    for hit in desabilitados:
        if hit.produto not in nomes:
            nomes.append(hit.produto)

    linhas = ["❌ **ATENÇÃO:**\n"]
    if len(nomes) > 1:
        linhas.append("Os seguintes produtos estão temporariamente fora de estoque:")
    else:
        linhas.append("O seguinte produto está temporariamente fora de estoque:")
    linhas.extend(f"• *{nome}*" for nome in nomes)
    linhas.append("\nConfirmação interrompida. Você pode:" if confirmando else "\nVocê pode:")
    linhas.append("- Continuar adicionando outros produtos")
    linhas.append('- Digitar "pronto" para enviar o pedido sem estes itens')
    linhas.append('- Digitar "cancelar" para cancelar o seu pedido')
    return "\n".join(linhas)
