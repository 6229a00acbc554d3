from __future__ import annotations

import json
from decimal import Decimal

import pytest
from pydantic import ValidationError

from orderbot.ordering.cart import Cart, CartLine, build_summary, dump_items


def test_add_aggregates_and_ignores_non_positive(entries):
    cafe, americano = entries[0], entries[1]
    cart = Cart()
    cart.add(cafe, 2)
    cart.add(americano)
    cart.add(cafe, 1)
    cart.add(cafe, 0)
    cart.add(cafe, -3)
    assert [(line.product.name, line.quantity) for line in cart.lines] == [("Café", 3), ("Café Americano", 1)]
    assert cart.subtotal == sum((line.line_total for line in cart.lines), Decimal("0"))
    assert cart.subtotal == Decimal("12500")


def test_cart_line_rejects_zero_quantity(entries):
    with pytest.raises(ValidationError):
        CartLine(product=entries[0], quantity=0, unit_price=entries[0].price)


def test_merge_is_additive_and_leaves_inputs_alone(entries):
    a = Cart()
    a.add(entries[0], 1)
    b = Cart()
    b.add(entries[0], 2)
    b.add(entries[2], 1)

    merged = a.merge(b)
    assert merged.quantity_of("Café") == 3
    assert merged.quantity_of("Cappuccino") == 1
    assert a.quantity_of("Café") == 1
    assert len(b.lines) == 2


def test_summary_without_delivery(entries):
    cart = Cart()
    cart.add(entries[3], 1)
    text, total = build_summary(cart)
    assert "1. 1 x Frappé de Café = $9,000" in text
    assert "Subtotal: $9,000" in text
    assert "Domicilio" not in text
    assert total == Decimal("9000")


def test_summary_with_delivery(entries):
    cart = Cart()
    cart.add(entries[2], 2)
    text, total = build_summary(cart, delivery_fee=Decimal("3000"))
    assert "Domicilio: $3,000" in text
    assert "*Total: $11,000*" in text
    assert total == Decimal("11000")


def test_empty_summary():
    assert build_summary(Cart()) == ("Tu pedido está vacío.", Decimal("0"))


def test_dump_items(entries):
    cart = Cart()
    cart.add(entries[2], 2)
    rows = json.loads(dump_items(cart))
    assert rows == [
        {"name": "Cappuccino", "category": "Bebidas Calientes", "qty": 2, "unit_price": "4000", "line_total": "8000"}
    ]


def test_cart_survives_json_round_trip(entries):
    cart = Cart()
    cart.add(entries[6], 2)
    again = Cart.model_validate(cart.model_dump(mode="json"))
    assert again == cart
