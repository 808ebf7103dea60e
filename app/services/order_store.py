from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Optional, Sequence

from sqlalchemy.exc import SQLAlchemyError

from app.db import crud
from app.services.order_interpreter.models import OrderLine, OrderStatus

logger = logging.getLogger(__name__)


class PersistenceError(RuntimeError):
    """Falha ao gravar no banco; a operação pode ser repetida."""


class OrderStore:
    def __init__(self, db_factory: Callable) -> None:
        self.db_factory = db_factory

    def _save_order(
        self,
        status: OrderStatus,
        identity: str,
        nome: Optional[str],
        tipo_pedido: Optional[str],
        texto_original: str,
        linhas: Sequence[OrderLine],
        telefone: Optional[str] = None,
    ) -> Optional[int]:
        payload = [linha.to_dict() for linha in linhas]
        try:
            with self.db_factory() as db:
                order_id = crud.insert_user_order(
                    db,
                    identity=identity,
                    telefone=telefone or identity,
                    nome=nome,
                    tipo_pedido=tipo_pedido,
                    texto_original=texto_original,
                    linhas=payload,
                    status=status.value,
                )
        except SQLAlchemyError as exc:
            raise PersistenceError(f"insert_user_order failed: {exc}") from exc
        logger.info("order_saved", extra={"identity": identity, "order_status": status.value})
        return order_id

    def add_confirmed_order(
        self,
        identity: str,
        nome: Optional[str],
        tipo_pedido: Optional[str],
        texto_original: str,
        linhas: Sequence[OrderLine],
        telefone: Optional[str] = None,
    ) -> Optional[int]:
        return self._save_order(OrderStatus.CONFIRMED, identity, nome, tipo_pedido, texto_original, linhas, telefone)

    def add_pending_order(
        self,
        identity: str,
        nome: Optional[str],
        tipo_pedido: Optional[str],
        texto_original: str,
        linhas: Sequence[OrderLine],
        telefone: Optional[str] = None,
    ) -> Optional[int]:
        return self._save_order(OrderStatus.PENDING, identity, nome, tipo_pedido, texto_original, linhas, telefone)

    def increment_product_total(self, produto: str, quantidade: int) -> None:
        try:
            with self.db_factory() as db:
                crud.increment_product_total(db, produto, quantidade)
        except SQLAlchemyError as exc:
            raise PersistenceError(f"increment_product_total failed: {exc}") from exc

    def get_client(self, telefone: str) -> Optional[Dict[str, Any]]:
        try:
            with self.db_factory() as db:
                row = crud.fetch_client(db, telefone)
        except SQLAlchemyError:
            logger.warning("client_fetch_failed", extra={"identity": telefone}, exc_info=True)
            return None
        return dict(row) if row else None

    def update_client_status(
        self,
        telefone: str,
        status: Optional[str] = None,
        answered: Optional[bool] = None,
        is_chatbot: Optional[bool] = None,
    ) -> None:
        """Atualiza o painel do operador; falhas aqui não interrompem a conversa."""
        try:
            with self.db_factory() as db:
                crud.update_client_status(db, telefone, status=status, answered=answered, is_chatbot=is_chatbot)
        except SQLAlchemyError:
            logger.warning("client_status_update_failed", extra={"identity": telefone}, exc_info=True)
