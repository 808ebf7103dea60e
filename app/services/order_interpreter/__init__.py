"""Order Interpreter Service - Interpreta pedidos de clientes em linguagem natural."""

from app.services.order_interpreter.service import OrderInterpreterService
from app.services.order_interpreter.models import (
    DisabledHit,
    Ledger,
    OrderLine,
    ParseResult,
    Product,
)

__all__ = [
    "OrderInterpreterService",
    "DisabledHit",
    "Ledger",
    "OrderLine",
    "ParseResult",
    "Product",
]
