from __future__ import annotations

import pytest

from orderbot.ai_intent import COMMAND_SCHEMA, _catalog_hints, rewriter_from_settings
from orderbot.command_router import command_to_userlike_text
from orderbot.ordering.intents import Intent, classify


@pytest.mark.parametrize(
    "cmd,intent",
    [
        ({"intent": "greeting"}, Intent.GREETING),
        ({"intent": "show_menu"}, Intent.MENU),
        ({"intent": "show_cart"}, Intent.CART),
        ({"intent": "confirm"}, Intent.CONFIRM),
        ({"intent": "cancel"}, Intent.CANCEL),
        ({"intent": "add_items", "items": [{"name": "Cappuccino", "qty": 2}]}, Intent.ORDER),
        ({"intent": "recommend", "party_size": 4, "meal": "cena"}, Intent.RECOMMEND),
    ],
)
def test_commands_round_trip_through_the_classifier(cmd, intent):
    assert classify(command_to_userlike_text(cmd)) is intent


def test_add_items_text():
    cmd = {"intent": "add_items", "items": [{"name": "Cappuccino", "qty": 2}, {"name": "Muffin", "qty": "x"}, {"qty": 3}]}
    assert command_to_userlike_text(cmd) == "quiero 2 Cappuccino, 1 Muffin"


def test_recommend_text():
    assert command_to_userlike_text({"intent": "recommend", "party_size": 6, "meal": "almuerzo"}) == (
        "recomiendame algo para 6 personas para almuerzo"
    )
    assert command_to_userlike_text({"intent": "recommend", "party_size": None}) == "recomiendame algo"


@pytest.mark.parametrize("cmd", [{}, {"intent": "unknown"}, {"intent": "add_items", "items": []}])
def test_unusable_commands(cmd):
    assert command_to_userlike_text(cmd) == ""


def test_schema_lists_every_command():
    intents = COMMAND_SCHEMA["schema"]["properties"]["intent"]["enum"]
    assert {"greeting", "show_menu", "show_cart", "add_items", "recommend", "confirm", "cancel"} <= set(intents)


def test_rewriter_disabled_by_default(cfg):
    assert rewriter_from_settings(cfg) is None
    assert rewriter_from_settings(cfg.model_copy(update={"llm_enabled": True})) is None


def test_catalog_hints_list_categories_once_in_menu_order(entries):
    hints = _catalog_hints(entries)
    assert hints["categories"][:2] == ["Bebidas Calientes", "Bebidas Frías"]
    assert len(hints["categories"]) == len(set(hints["categories"]))
    assert hints["products"][0] == "Café"
