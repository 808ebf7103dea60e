from contextlib import contextmanager

import pytest
from sqlalchemy.exc import OperationalError

from app.services.catalog_service import CatalogService, product_from_row


class FakeResult:
    def __init__(self, rows):
        self.rows = rows

    def mappings(self):
        return self

    def all(self):
        return self.rows


class FakeDB:
    def __init__(self, owner):
        self.owner = owner

    def execute(self, sql, params=None):
        self.owner.loads += 1
        if self.owner.fail:
            raise OperationalError("SELECT", {}, Exception("down"))
        return FakeResult(self.owner.rows)


class FakeFactory:
    def __init__(self, rows):
        self.rows = rows
        self.fail = False
        self.loads = 0

    @contextmanager
    def __call__(self):
        yield FakeDB(self)


class Clock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


ROWS = [
    {"id": 1, "name": "Manga", "akas": '["manga palmer"]', "enabled": True},
    {"id": 2, "name": "Queijo", "akas": None, "enabled": False},
    {"id": 3, "name": "Manga", "akas": None, "enabled": True},
]


def test_product_from_row_parses_akas():
    produto = product_from_row({"name": " Uva ", "akas": "uva verde, uva roxa", "enabled": None})
    assert produto.nome == "Uva"
    assert produto.aliases == ("uva verde", "uva roxa")
    assert produto.enabled is True


def test_catalog_is_cached_until_ttl():
    factory, clock = FakeFactory(ROWS), Clock()
    service = CatalogService(factory, ttl_seconds=30, clock=clock)

    produtos = service.get_products()
    assert [p.nome for p in produtos] == ["Manga", "Queijo"]
    assert produtos[0].aliases == ("manga palmer",)
    assert produtos[1].enabled is False

    clock.now = 10
    service.get_products()
    assert factory.loads == 1

    clock.now = 31
    service.get_products()
    assert factory.loads == 2


def test_reload_failure_keeps_last_catalog():
    factory, clock = FakeFactory(ROWS), Clock()
    service = CatalogService(factory, ttl_seconds=30, clock=clock)
    service.get_products()

    factory.fail = True
    clock.now = 60
    assert [p.nome for p in service.get_products()] == ["Manga", "Queijo"]


def test_first_load_failure_raises():
    factory = FakeFactory(ROWS)
    factory.fail = True
    with pytest.raises(OperationalError):
        CatalogService(factory, clock=Clock()).get_products()
