from __future__ import annotations

from typing import Any, Dict, List, Optional
import json

from sqlalchemy import text


def _normalize_phone_digits(phone: str | None) -> str:
    if not phone:
        return ""
    return "".join(ch for ch in str(phone) if ch.isdigit())


def fetch_products(db) -> List[Dict[str, Any]]:
    sql = text(
        """
        SELECT id, name, akas, enabled
        FROM public.products
        ORDER BY position ASC, id ASC
        """
    )
    return db.execute(sql).mappings().all()


def insert_user_order(
    db,
    identity: str,
    telefone: str | None,
    nome: str | None,
    tipo_pedido: str | None,
    texto_original: str,
    linhas: List[Dict[str, Any]],
    status: str,
) -> Optional[int]:
    total = sum(int(linha.get("quantidade") or 0) for linha in linhas)
    sql = text(
        """
        INSERT INTO public.user_orders
          (identity, phone_number, name, order_type, original_message, parsed_orders, total_quantity, status)
        VALUES
          (:identity, :phone_number, :name, :order_type, :original_message, CAST(:parsed_orders AS jsonb), :total_quantity, :status)
        RETURNING id
        """
    )
    result = db.execute(
        sql,
        {
            "identity": identity,
            "phone_number": _normalize_phone_digits(telefone) or None,
            "name": nome,
            "order_type": tipo_pedido or "normal",
            "original_message": texto_original,
            "parsed_orders": json.dumps(linhas, ensure_ascii=False),
            "total_quantity": total,
            "status": status,
        },
    ).mappings().first()
    db.commit()
    return result.get("id") if result else None


def increment_product_total(db, produto: str, quantidade: int) -> None:
    sql = text(
        """
        INSERT INTO public.product_totals (product, total_quantity)
        VALUES (:product, :quantity)
        ON CONFLICT (product) DO UPDATE
        SET total_quantity = public.product_totals.total_quantity + EXCLUDED.total_quantity,
            updated_at = now()
        """
    )
    db.execute(sql, {"product": produto, "quantity": int(quantidade)})
    db.commit()


def fetch_client(db, telefone: str) -> Optional[Dict[str, Any]]:
    sql = text(
        """
        SELECT id, phone, name, order_type, answered, status, is_chatbot
        FROM public.clients
        WHERE regexp_replace(phone, '\\D', '', 'g') = CAST(:tel AS text)
        LIMIT 1
        """
    )
    return db.execute(sql, {"tel": _normalize_phone_digits(telefone)}).mappings().first()


def update_client_status(
    db,
    telefone: str,
    status: str | None = None,
    answered: bool | None = None,
    is_chatbot: bool | None = None,
) -> None:
    sql = text(
        """
        UPDATE public.clients
        SET status = COALESCE(CAST(:status AS text), status),
            answered = COALESCE(CAST(:answered AS boolean), answered),
            is_chatbot = COALESCE(CAST(:is_chatbot AS boolean), is_chatbot),
            updated_at = now()
        WHERE regexp_replace(phone, '\\D', '', 'g') = CAST(:tel AS text)
        """
    )
    db.execute(
        sql,
        {
            "tel": _normalize_phone_digits(telefone),
            "status": status,
            "answered": answered,
            "is_chatbot": is_chatbot,
        },
    )
    db.commit()


def fetch_bulk_recipients(db) -> List[Dict[str, Any]]:
    sql = text(
        """
        SELECT id, phone, name, order_type, answered
        FROM public.clients
        WHERE COALESCE(is_chatbot, true) = true
        ORDER BY id ASC
        """
    )
    return db.execute(sql).mappings().all()
