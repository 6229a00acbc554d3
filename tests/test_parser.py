from __future__ import annotations

from decimal import Decimal

import pytest

from orderbot.ordering.menu import CatalogEntry
from orderbot.ordering.parser import parse, segments


def lines(cart):
    return [(line.product.name, line.quantity) for line in cart.lines]


# ----------------------------
# Contract
# ----------------------------
@pytest.mark.parametrize("text", ["", "   ", "\n", "???", "hola", "😀😀", "x" * 500, "0", "y y y , ,"])
def test_never_raises_and_odd_input_gives_nothing(entries, text):
    cart = parse(text, entries)
    assert cart.is_empty
    assert cart.subtotal == Decimal("0")


def test_empty_catalog(entries):
    assert parse("2 cafes", []).is_empty


def test_idempotent_for_same_catalog(entries, index):
    text = "hola, quiero 2 cappuccinos y un croissant con jamón y queso"
    first = parse(text, entries)
    assert parse(text, entries) == first
    assert parse(text, index) == first


# ----------------------------
# Quantities
# ----------------------------
def test_same_product_is_aggregated(entries):
    cart = parse("quiero 2 cappuccino, 1 cappuccino", entries)
    assert lines(cart) == [("Cappuccino", 3)]
    assert cart.subtotal == Decimal("12000")


@pytest.mark.parametrize(
    "text,expected",
    [
        ("dos limonadas de coco", [("Limonada de Coco", 2)]),
        ("cafe x3", [("Café", 3)]),
        ("2x wrap de pollo", [("Wrap de Pollo", 2)]),
        ("un muffin de chocolate", [("Muffin de Chocolate", 1)]),
        ("0 cafe, 1 cappuccino", [("Cappuccino", 1)]),
        ("cero cafes", []),
    ],
)
def test_quantity_forms(entries, text, expected):
    assert lines(parse(text, entries)) == expected


# ----------------------------
# Near-duplicate names
# ----------------------------
class TestNearDuplicates:
    """café / café americano / frappé de café share tokens; each must resolve to itself."""

    def test_longer_name_wins(self, entries):
        assert lines(parse("quiero un café americano", entries)) == [("Café Americano", 1)]

    def test_short_name_stays_short(self, entries):
        assert lines(parse("quiero un café", entries)) == [("Café", 1)]

    def test_frappe_de_cafe(self, entries):
        cart = parse("quiero 1 Frappé de Café", entries)
        assert lines(cart) == [("Frappé de Café", 1)]
        assert cart.lines[0].line_total == Decimal("9000")

    def test_all_three_in_one_message(self, entries):
        cart = parse("1 cafe, 2 cafes americanos y 1 frappe de cafe", entries)
        assert lines(cart) == [("Café", 1), ("Café Americano", 2), ("Frappé de Café", 1)]

    def test_ambiguous_segment_is_dropped(self, entries):
        # "frappe" alone could be coffee or vanilla: skip it, keep the rest
        assert lines(parse("1 frappe y 1 cappuccino", entries)) == [("Cappuccino", 1)]


def test_product_name_with_y_is_not_split(entries):
    cart = parse("1 café americano y 2 croissant con jamón y queso", entries)
    assert lines(cart) == [("Café Americano", 1), ("Croissant con Jamón y Queso", 2)]


def test_product_starting_with_x_keeps_its_name(entries):
    xocolatl = CatalogEntry(name="Xocolatl", price=Decimal("6000"), category="Bebidas Calientes")
    cart = parse("2 xocolatl y 2xcafé", [*entries, xocolatl])
    assert lines(cart) == [("Xocolatl", 2), ("Café", 2)]


def test_greeting_and_noise_are_ignored(entries):
    cart = parse("Hola buenas! me regalas 2 Cappuccinos y algo rico por favor", entries)
    assert lines(cart) == [("Cappuccino", 2)]


def test_typos_and_aliases(entries):
    cart = parse("3 capuccino, 1 tinto", entries)
    assert lines(cart) == [("Cappuccino", 3), ("Café", 1)]


def test_segments_strip_filler(index):
    assert segments("Hola, quiero 2 cafés y por favor un muffin", index) == ["2 cafes", "un muffin"]
