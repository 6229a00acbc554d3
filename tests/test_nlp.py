from __future__ import annotations

import pytest

from orderbot.ordering.nlp import (
    correct_token,
    fuzzy_best_key,
    normalize_message,
    normalize_text,
    parse_qty,
    protect_phrases,
    singularize,
    split_items,
    strip_filler_prefix,
    word_to_int,
)


def test_normalize_text_strips_accents_case_and_punctuation():
    assert normalize_text("  Frappé de CAFÉ!! ") == "frappe de cafe"
    assert normalize_text("¿Qué   tienen?") == "que tienen"
    assert normalize_text("") == ""


def test_normalize_message_keeps_separators():
    assert normalize_message("2 Cafés, 1 Té") == "2 cafes, 1 te"
    assert normalize_message("uno\n dos") == "uno\ndos"


@pytest.mark.parametrize(
    "segment,expected",
    [
        ("2 cafes", (2, "cafes")),
        ("2x cafe", (2, "cafe")),
        ("2 x cafe", (2, "cafe")),
        ("cafe x3", (3, "cafe")),
        ("tres cafes", (3, "cafes")),
        ("una limonada de coco", (1, "limonada de coco")),
        ("0 cafe", (0, "cafe")),
        ("cafe", (1, "cafe")),
        ("2 xiaomi", (2, "xiaomi")),
        ("2xcafe", (2, "cafe")),
    ],
)
def test_parse_qty(segment, expected):
    assert parse_qty(segment) == expected


def test_word_to_int():
    assert word_to_int("seis") == 6
    assert word_to_int("12") == 12
    assert word_to_int("muchos") is None


def test_split_items_on_commas_and_y():
    assert split_items("2 cafe, 1 te y 3 muffin") == ["2 cafe", "1 te", "3 muffin"]
    assert split_items("cafe") == ["cafe"]


def test_protected_phrase_survives_split():
    msg = protect_phrases("1 cafe y 1 croissant con jamon y queso", ["croissant con jamon y queso", "cafe"])
    assert split_items(msg) == ["1 cafe", "1 croissant con jamon y queso"]


def test_strip_filler_prefix_chains():
    assert strip_filler_prefix("hola quiero por favor el cafe") == "cafe"
    assert strip_filler_prefix("buenas me regalas 2 cafes por favor") == "2 cafes"


def test_singularize_only_to_known_tokens():
    vocab = {"cappuccino", "limon"}
    assert singularize("cappuccinos", vocab) == "cappuccino"
    assert singularize("limones", vocab) == "limon"
    assert singularize("papas", vocab) == "papas"


def test_correct_token_and_fuzzy_key():
    assert correct_token("capuccino", ["cappuccino", "cafe"]) == "cappuccino"
    assert correct_token("te", ["tea"]) == "te"
    assert fuzzy_best_key(["wrap de pollo", "cafe"], "wrap de poyo") == "wrap de pollo"
    assert fuzzy_best_key(["cafe"], "zzz") is None
