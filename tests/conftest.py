import random

import pytest

from app.services.conversation.registry import SessionRegistry
from app.services.conversation.session import ConversationSession
from app.services.order_interpreter import OrderInterpreterService, Product
from app.services.order_store import PersistenceError


CATALOGO = [
    Product("Manga"),
    Product("Queijo"),
    Product("Banana", enabled=False),
]


class FakeTimers:
    """Guarda os jobs agendados para o teste disparar na mão."""

    def __init__(self):
        self.jobs = {}

    def schedule(self, job_id, delay_seconds, callback, *args):
        self.jobs[job_id] = (callback, args)

    def cancel(self, job_id):
        self.jobs.pop(job_id, None)

    def fire(self, job_id):
        callback, args = self.jobs.pop(job_id)
        callback(*args)


class FakeStore:
    def __init__(self):
        self.fail = False
        self.confirmed = []
        self.pending = []
        self.totals = {}

    def _check(self):
        if self.fail:
            raise PersistenceError("db down")

    def add_confirmed_order(self, identity, nome, tipo_pedido, texto_original, linhas, telefone=None):
        self._check()
        self.confirmed.append((identity, texto_original, [(l.produto, l.quantidade) for l in linhas]))
        return len(self.confirmed)

    def add_pending_order(self, identity, nome, tipo_pedido, texto_original, linhas, telefone=None):
        self._check()
        self.pending.append((identity, texto_original, [(l.produto, l.quantidade) for l in linhas]))
        return len(self.pending)

    def increment_product_total(self, produto, quantidade):
        self._check()
        self.totals[produto] = self.totals.get(produto, 0) + quantidade


@pytest.fixture
def catalog():
    return list(CATALOGO)


@pytest.fixture
def timers():
    return FakeTimers()


@pytest.fixture
def store():
    return FakeStore()


@pytest.fixture
def status_log():
    return []


@pytest.fixture
def session(catalog, timers, store, status_log):
    return ConversationSession(
        "5547999999999",
        catalog_provider=lambda: catalog,
        interpreter=OrderInterpreterService(),
        store=store,
        timers=timers,
        rng=random.Random(0),
        on_client_status=lambda identity, status: status_log.append((identity, status)),
    )


@pytest.fixture
def registry(catalog, timers, store):
    return SessionRegistry(
        catalog_provider=lambda: catalog,
        store=store,
        timers=timers,
        rng=random.Random(0),
    )
