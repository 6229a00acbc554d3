# orderbot/ordering/cart.py
from __future__ import annotations

import json
from decimal import Decimal
from typing import Any, Dict, List, Tuple

from pydantic import BaseModel, Field

from .menu import CatalogEntry, format_price


class CartLine(BaseModel):
    product: CatalogEntry
    quantity: int = Field(ge=1)
    unit_price: Decimal

    @property
    def line_total(self) -> Decimal:
        return self.unit_price * self.quantity


class Cart(BaseModel):
    lines: List[CartLine] = Field(default_factory=list)

    @property
    def subtotal(self) -> Decimal:
        return sum((line.line_total for line in self.lines), Decimal("0"))

    @property
    def is_empty(self) -> bool:
        return not self.lines

    def add(self, product: CatalogEntry, quantity: int = 1) -> None:
        if quantity <= 0:
            return
        for line in self.lines:
            if line.product.name == product.name:
                line.quantity += quantity
                return
        self.lines.append(CartLine(product=product, quantity=quantity, unit_price=product.price))

    def merge(self, other: "Cart") -> "Cart":
        """Additive merge: nothing already in this cart is dropped."""
        merged = self.model_copy(deep=True)
        for line in other.lines:
            merged.add(line.product, line.quantity)
        return merged

    def quantity_of(self, name: str) -> int:
        return sum(line.quantity for line in self.lines if line.product.name == name)


def cart_items(cart: Cart) -> List[Dict[str, Any]]:
    """Plain rows for order storage."""
    return [
        {
            "name": line.product.name,
            "category": line.product.category,
            "qty": line.quantity,
            "unit_price": str(line.unit_price),
            "line_total": str(line.line_total),
        }
        for line in cart.lines
    ]


def dump_items(cart: Cart) -> str:
    return json.dumps(cart_items(cart), ensure_ascii=False)


def build_summary(
    cart: Cart,
    currency_symbol: str = "$",
    delivery_fee: Decimal = Decimal("0"),
) -> Tuple[str, Decimal]:
    if cart.is_empty:
        return ("Tu pedido está vacío.", Decimal("0"))

    lines: List[str] = []
    for i, line in enumerate(cart.lines, start=1):
        lt = format_price(line.line_total, currency_symbol)
        lines.append(f"{i}. {line.quantity} x {line.product.name} = {lt}")

    subtotal = cart.subtotal
    text = "🧾 *Tu pedido:*\n" + "\n".join(lines)
    text += f"\n\nSubtotal: {format_price(subtotal, currency_symbol)}"

    total = subtotal
    if delivery_fee > 0:
        total = subtotal + delivery_fee
        text += f"\nDomicilio: {format_price(delivery_fee, currency_symbol)}"
        text += f"\n*Total: {format_price(total, currency_symbol)}*"
    return (text, total)
