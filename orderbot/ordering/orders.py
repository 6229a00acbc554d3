# orderbot/ordering/orders.py
from __future__ import annotations

import logging
from threading import Lock
from typing import Dict, List, Protocol, Tuple

from sqlalchemy.orm import sessionmaker

from ..models import Order
from .cart import Cart, build_summary, dump_items

logger = logging.getLogger(__name__)


class OrderSink(Protocol):
    def finalize_order(self, branch_id: str, sender_id: str, cart: Cart) -> str: ...


class SqlOrderSink:
    """Confirmed orders go to the orders table; the order id is the row id."""

    def __init__(self, session_factory: sessionmaker, currency_symbol: str = "$") -> None:
        self._sessions = session_factory
        self.currency_symbol = currency_symbol

    def finalize_order(self, branch_id: str, sender_id: str, cart: Cart) -> str:
        if cart.is_empty:
            raise ValueError("Order is empty")

        summary, _total = build_summary(cart, currency_symbol=self.currency_symbol)
        with self._sessions() as db:
            order = Order(
                branch_id=branch_id,
                sender_id=sender_id,
                status="confirmed",
                summary_text=summary,
                items_json=dump_items(cart),
                subtotal=cart.subtotal,
            )
            db.add(order)
            db.commit()
            db.refresh(order)
            order_id = str(order.id)

        logger.info("Order %s confirmed for %s at %s (%d lines)", order_id, sender_id, branch_id, len(cart.lines))
        return order_id


class MemoryOrderSink:
    def __init__(self) -> None:
        self.orders: List[Tuple[str, str, str, Cart]] = []
        self._lock = Lock()

    def finalize_order(self, branch_id: str, sender_id: str, cart: Cart) -> str:
        if cart.is_empty:
            raise ValueError("Order is empty")
        with self._lock:
            order_id = f"ORD-{len(self.orders) + 1:05d}"
            self.orders.append((order_id, branch_id, sender_id, cart.model_copy(deep=True)))
        return order_id

    def by_id(self) -> Dict[str, Cart]:
        return {oid: cart for oid, _b, _s, cart in self.orders}
