import pytest

from app.services.conversation import messages
from app.services.conversation.states import ClientStatus, MessageType, SessionMetadata, SessionState
from app.services.order_store import PersistenceError

IDENTITY = "5547999999999"
INATIVIDADE = f"{IDENTITY}:inactivity"
LEMBRETE = f"{IDENTITY}:reminder"


def _collecting(session):
    session.handle_message("oi", metadata=SessionMetadata(nome="Ana"))
    session.handle_message("1")
    assert session.state == SessionState.COLLECTING


def _confirming(session, timers):
    _collecting(session)
    session.handle_message("2 mangas e 3 queijos")
    timers.fire(INATIVIDADE)
    session.drain_pending()
    assert session.state == SessionState.CONFIRMING


def test_first_message_shows_menu(session):
    result = session.handle_message("oi", metadata=SessionMetadata(nome="Ana"))
    assert result.state == SessionState.OPTION
    assert result.mensagens == [messages.menu("Ana")]


def test_option_one_starts_collecting(session, timers):
    session.handle_message("oi")
    result = session.handle_message("1")
    assert result.state == SessionState.COLLECTING
    assert result.mensagens[0].startswith("Ótimo! Digite seus pedidos.")
    assert INATIVIDADE in timers.jobs


def test_invalid_option_repeats_menu(session):
    session.handle_message("oi")
    result = session.handle_message("9")
    assert result.state == SessionState.OPTION
    assert result.sucesso is False
    assert result.mensagens == [messages.MENU_REPETIR]


def test_option_two_hands_off(session, status_log):
    session.handle_message("oi")
    result = session.handle_message("2")
    assert result.bot_active is False
    assert result.state == SessionState.WAITING_FOR_NEXT
    assert result.client_status == ClientStatus.TALK_TO_EMPLOYEE
    assert status_log == [(IDENTITY, ClientStatus.TALK_TO_EMPLOYEE)]


def test_option_three_lists_catalog(session):
    session.handle_message("oi")
    result = session.handle_message("3")
    assert result.state == SessionState.OPTION
    assert "• Banana - ❌" in result.mensagens[0]


def test_option_four_shows_help(session):
    session.handle_message("oi")
    result = session.handle_message("4")
    assert result.state == SessionState.OPTION
    assert result.sucesso is True
    assert result.mensagens[0].startswith("Ok, aqui temos instruções")


def test_items_accumulate_silently(session):
    _collecting(session)
    result = session.handle_message("2 mangas e 3 queijos")
    assert result.mensagens == []
    result = session.handle_message("1 manga")
    assert session.ledger.get("Manga") == 3
    assert session.ledger.get("Queijo") == 3


def test_unrecognized_text_asks_again(session, timers):
    _collecting(session)
    result = session.handle_message("tudo bem?")
    assert result.sucesso is False
    assert result.mensagens == [messages.NAO_RECONHECIDO]
    assert INATIVIDADE in timers.jobs


def test_disabled_product_is_reported(session):
    _collecting(session)
    result = session.handle_message("2 bananas")
    assert "Banana" in result.mensagens[0]
    assert "ATENÇÃO" in result.mensagens[0]
    assert session.ledger.get("Banana") == 0


def test_greeting_while_collecting(session):
    _collecting(session)
    result = session.handle_message("Bom dia!")
    assert result.mensagens[0].startswith("Bom dia!")
    assert result.state == SessionState.COLLECTING


def test_non_text_goes_to_menu(session):
    _collecting(session)
    result = session.handle_message("", MessageType.OTHER)
    assert result.state == SessionState.OPTION
    assert result.mensagens == [messages.NAO_TEXTO]


def test_inactivity_sends_exactly_one_summary(session, timers):
    _collecting(session)
    session.handle_message("2 mangas e 3 queijos")
    callback, args = timers.jobs[INATIVIDADE]

    timers.fire(INATIVIDADE)
    pendentes = session.drain_pending()
    assert session.state == SessionState.CONFIRMING
    assert len(pendentes) == 1
    assert "• Manga: 2" in pendentes[0]
    assert "• Queijo: 3" in pendentes[0]
    assert LEMBRETE in timers.jobs
    assert INATIVIDADE not in timers.jobs

    # Um disparo atrasado do mesmo timer não faz nada.
    callback(*args)
    assert session.drain_pending() == []


def test_inactivity_with_empty_ledger_rearms(session, timers):
    _collecting(session)
    timers.fire(INATIVIDADE)
    assert session.state == SessionState.COLLECTING
    assert session.drain_pending() == []
    assert INATIVIDADE in timers.jobs


def test_ready_word_with_empty_ledger(session):
    _collecting(session)
    result = session.handle_message("pronto")
    assert result.mensagens == [messages.LISTA_VAZIA]
    assert result.state == SessionState.COLLECTING


def test_ready_word_enters_confirming(session, timers):
    _collecting(session)
    session.handle_message("2 mangas")
    result = session.handle_message("pronto")
    assert result.state == SessionState.CONFIRMING
    assert len(result.mensagens) == 1
    assert LEMBRETE in timers.jobs


def test_five_reminders_save_pending_order(session, timers, store, status_log):
    _confirming(session, timers)

    for numero in range(1, 5):
        timers.fire(LEMBRETE)
        pendentes = session.drain_pending()
        assert len(pendentes) == 1
        assert pendentes[0].startswith(f"🔔 **LEMBRETE ({numero}/4):**")

    timers.fire(LEMBRETE)
    assert store.pending == [(IDENTITY, "Auto-saved (pending confirmation)", [("Manga", 2), ("Queijo", 3)])]
    assert session.state == SessionState.WAITING_FOR_NEXT
    assert session.ledger.is_zero()
    assert session.reminder_count == 0
    assert session.drain_pending() == [messages.PEDIDO_PENDENTE]
    assert status_log[-1] == (IDENTITY, ClientStatus.AUTO_CONFIRMED_ORDER)
    assert timers.jobs == {}


def test_confirm_saves_order(session, timers, store, status_log):
    _confirming(session, timers)
    result = session.handle_message("sim")
    assert result.sucesso is True
    assert result.state == SessionState.WAITING_FOR_NEXT
    assert result.client_status == ClientStatus.CONFIRMED_ORDER
    assert "Obrigado pelo pedido, Ana!" in result.mensagens[0]
    assert store.confirmed == [(IDENTITY, "sim", [("Manga", 2), ("Queijo", 3)])]
    assert store.totals == {"Manga": 2, "Queijo": 3}
    assert session.ledger.is_zero()
    assert LEMBRETE not in timers.jobs


def test_deny_returns_to_collecting(session, timers):
    _confirming(session, timers)
    result = session.handle_message("não")
    assert result.state == SessionState.COLLECTING
    assert result.mensagens == [messages.PEDIDO_CANCELADO]
    assert session.ledger.is_zero()
    assert LEMBRETE not in timers.jobs
    assert INATIVIDADE in timers.jobs


def test_new_items_while_confirming(session, timers):
    _confirming(session, timers)
    result = session.handle_message("1 queijo")
    assert result.state == SessionState.COLLECTING
    assert session.ledger.get("Queijo") == 4
    assert session.reminder_count == 0
    assert LEMBRETE not in timers.jobs


def test_unrecognized_while_confirming(session, timers):
    _confirming(session, timers)
    result = session.handle_message("hmm")
    assert result.state == SessionState.CONFIRMING
    assert result.mensagens == [messages.NAO_RECONHECIDO_CONFIRMACAO]


def test_persistence_failure_keeps_state(session, timers, store):
    _confirming(session, timers)
    store.fail = True
    antes = session.ledger.to_dict()

    result = session.handle_message("sim")
    assert result.sucesso is False
    assert result.state == SessionState.CONFIRMING
    assert result.mensagens == [messages.FALHA_AO_SALVAR]
    assert session.ledger.to_dict() == antes

    store.fail = False
    result = session.handle_message("sim")
    assert result.sucesso is True
    assert len(store.confirmed) == 1


def test_confirm_retry_after_partial_failure_writes_once(session, timers, store):
    _confirming(session, timers)
    original = store.increment_product_total
    chamadas = []

    def falha_no_segundo(produto, quantidade):
        chamadas.append(produto)
        if len(chamadas) == 2:
            raise PersistenceError("db down")
        original(produto, quantidade)

    store.increment_product_total = falha_no_segundo

    result = session.handle_message("sim")
    assert result.sucesso is False
    assert result.state == SessionState.CONFIRMING
    assert result.mensagens == [messages.FALHA_AO_SALVAR]

    result = session.handle_message("sim")
    assert result.sucesso is True
    assert result.state == SessionState.WAITING_FOR_NEXT
    assert len(store.confirmed) == 1
    assert store.totals == {"Manga": 2, "Queijo": 3}


def test_pending_save_failure_keeps_confirming(session, timers, store):
    _confirming(session, timers)
    for _ in range(4):
        timers.fire(LEMBRETE)
    session.drain_pending()
    store.fail = True

    timers.fire(LEMBRETE)
    assert session.state == SessionState.CONFIRMING
    assert session.ledger.get("Manga") == 2
    assert session.drain_pending() == [messages.FALHA_AO_SALVAR]


def _waiting(session):
    assert session.state == SessionState.WAITING_FOR_NEXT


def _option(session):
    session.handle_message("oi")
    assert session.state == SessionState.OPTION


def _collecting_with_items(session):
    _collecting(session)
    session.handle_message("2 mangas")


@pytest.mark.parametrize("preparar", [_waiting, _option, _collecting_with_items])
@pytest.mark.parametrize("palavra", ["cancelar", "n", "nao"])
def test_cancel_is_idempotent(session, timers, preparar, palavra):
    preparar(session)

    for _ in range(2):
        result = session.handle_message(palavra)
        assert result.state == SessionState.WAITING_FOR_NEXT
        assert result.mensagens == [messages.ATE_PROXIMA]
        assert result.client_status == ClientStatus.WONT_ORDER
        assert session.ledger.is_zero()
        assert timers.jobs == {}


def test_start_collecting_and_reset(session, timers):
    session.start_collecting(SessionMetadata(nome="Bia", tipo_pedido="normal"))
    assert session.state == SessionState.COLLECTING
    assert session.metadata.nome == "Bia"
    assert INATIVIDADE in timers.jobs

    session.handle_message("2 mangas")
    session.reset()
    snapshot = session.snapshot()
    assert snapshot["state"] == "waiting_for_next"
    assert snapshot["ledger"] == {"Manga": 0, "Queijo": 0, "Banana": 0}
    assert snapshot["reminder_count"] == 0
    assert timers.jobs == {}


def test_other_order_type_summary_lists_names(session, timers):
    session.start_collecting(SessionMetadata(tipo_pedido="outro"))
    session.handle_message("2 mangas")
    timers.fire(INATIVIDADE)
    resumo = session.drain_pending()[0]
    assert "\nManga" in resumo
    assert "Manga: 2" not in resumo
