from __future__ import annotations

import json
import logging
import threading
import time
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError

from app.db import crud
from app.services.order_interpreter.models import Product

logger = logging.getLogger(__name__)


def _parse_akas(raw: Any) -> tuple:
    if raw is None:
        return ()
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except ValueError:
            return tuple(a.strip() for a in raw.split(",") if a.strip())
    if isinstance(raw, (list, tuple)):
        return tuple(str(a).strip() for a in raw if str(a).strip())
    return ()


def product_from_row(row: Dict[str, Any]) -> Product:
    enabled = row.get("enabled")
    return Product(
        nome=str(row.get("name") or "").strip(),
        aliases=_parse_akas(row.get("akas")),
        enabled=True if enabled is None else bool(enabled),
    )


class CatalogService:
    """Catálogo de produtos lido do banco, com cache curto."""

    def __init__(self, db_factory: Callable, ttl_seconds: float = 30.0, clock: Callable[[], float] = time.monotonic) -> None:
        self.db_factory = db_factory
        self.ttl_seconds = ttl_seconds
        self.clock = clock
        self._lock = threading.Lock()
        self._cache: Optional[List[Product]] = None
        self._loaded_at = 0.0

    def _load(self) -> List[Product]:
        with self.db_factory() as db:
            rows = crud.fetch_products(db)
        produtos: List[Product] = []
        vistos = set()
        for row in rows:
            produto = product_from_row(row)
            if not produto.nome or produto.nome in vistos:
                continue
            vistos.add(produto.nome)
            produtos.append(produto)
        return produtos

    def get_products(self) -> List[Product]:
        with self._lock:
            agora = self.clock()
            if self._cache is not None and agora - self._loaded_at < self.ttl_seconds:
                return list(self._cache)
            try:
                self._cache = self._load()
                self._loaded_at = agora
                logger.info("catalog_loaded", extra={"total": len(self._cache)})
            except SQLAlchemyError:
                if self._cache is None:
                    raise
                # Mantém o último catálogo conhecido.
                logger.warning("catalog_load_failed", exc_info=True)
            return list(self._cache)
