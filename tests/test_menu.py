from __future__ import annotations

from decimal import Decimal

import pytest

from orderbot.errors import AmbiguousProductMatch
from orderbot.ordering.menu import (
    CatalogEntry,
    CatalogIndex,
    all_category_names,
    entries_from_menu,
    find_entry,
    format_price,
    parse_menu_text,
    render_menu,
)


# ----------------------------
# Product resolution
# ----------------------------
class TestCatalogIndex:
    def test_exact_name_beats_longer_names(self, index):
        assert index.find("cafe").name == "Café"
        assert index.find("CAFÉ AMERICANO").name == "Café Americano"
        assert index.find("frappe de cafe").name == "Frappé de Café"

    def test_alias_and_stopwords(self, index):
        assert index.find("tinto").name == "Café"
        assert index.find("capuchino").name == "Cappuccino"
        assert index.find("limonada coco").name == "Limonada de Coco"

    def test_plural_and_typo_repair(self, index):
        assert index.find("cappuccinos").name == "Cappuccino"
        assert index.find("capuccino").name == "Cappuccino"
        assert index.find("limonadas de coco").name == "Limonada de Coco"

    def test_contained_alias_prefers_longest(self, index):
        # "cafe americano grande" contains both "cafe" and "cafe americano"
        assert index.find("cafe americano grande").name == "Café Americano"

    def test_segment_inside_one_name(self, index):
        assert index.find("croissant").name == "Croissant con Jamón y Queso"
        assert index.find("hamburguesa").name == "Hamburguesa con Queso"

    def test_segment_inside_several_names_is_ambiguous(self, index):
        with pytest.raises(AmbiguousProductMatch) as exc:
            index.find("frappe")
        assert exc.value.candidates == ["Frappé de Café", "Frappé de Vainilla"]
        assert find_entry(index, "frappe") is None

    def test_declaration_order_breaks_key_collisions(self):
        first = CatalogEntry(name="Té", price=Decimal(2000), aliases=("aromatica",))
        second = CatalogEntry(name="Aromática", price=Decimal(2500))
        idx = CatalogIndex([first, second])
        assert idx.find("aromatica").name == "Té"

    def test_unknown_text(self, index):
        assert index.find("bicicleta") is None
        assert index.find("") is None


# ----------------------------
# Loading
# ----------------------------
def test_entries_from_menu_reads_categories_and_flat_items():
    menu = {
        "categories": [
            {"name": "Bebidas", "items": [{"name": "Café", "price": 3000, "aliases": ["tinto"]}, {"price": 1}]},
        ],
        "items": [{"name": "Muffin", "price": "3500", "category": "Postres"}],
    }
    out = entries_from_menu(menu)
    assert [e.name for e in out] == ["Café", "Muffin"]
    assert out[0].aliases == ("tinto",)
    assert out[0].category == "Bebidas"
    assert out[1].price == Decimal("3500")


def test_parse_menu_text_sections_and_prices():
    text = (
        "*BEBIDAS CALIENTES*\n"
        "Cappuccino - $4,000\n"
        "Café Americano $3.000\n"
        "\n"
        "Postres:\n"
        "• Muffin de Chocolate - $3.500\n"
        "Galleta - $2.50\n"
        "Línea sin precio\n"
    )
    out = parse_menu_text(text)
    assert [(e.name, e.price, e.category) for e in out] == [
        ("Cappuccino", Decimal("4000"), "Bebidas Calientes"),
        ("Café Americano", Decimal("3000"), "Bebidas Calientes"),
        ("Muffin de Chocolate", Decimal("3500"), "Postres"),
        ("Galleta", Decimal("2.50"), "Postres"),
    ]


def test_parse_menu_text_skips_duplicates():
    out = parse_menu_text("Café - $3.000\ncafe - $3.500")
    assert len(out) == 1


# ----------------------------
# Rendering
# ----------------------------
def test_format_price():
    assert format_price(Decimal("3000")) == "$3,000"
    assert format_price(Decimal("4.5"), "€") == "€4.50"


def test_render_menu_groups_by_category(entries):
    text = render_menu(entries[:3] + entries[11:])
    assert text.splitlines() == [
        "*BEBIDAS CALIENTES*",
        "• Café - $3,000",
        "• Café Americano - $3,500",
        "• Cappuccino - $4,000",
        "",
        "*POSTRES*",
        "• Muffin de Chocolate - $3,500",
    ]
    assert render_menu([]) == ""


def test_all_category_names(entries):
    assert all_category_names(entries)[:3] == ["Bebidas Calientes", "Bebidas Frías", "Panadería"]
