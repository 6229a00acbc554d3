# orderbot/command_router.py
from __future__ import annotations

from typing import Any, Dict, List


def _items_text(items: List[Dict[str, Any]]) -> str:
    parts: List[str] = []
    for it in items or []:
        if not isinstance(it, dict):
            continue
        name = str(it.get("name") or "").strip()
        if not name:
            continue
        try:
            qty = int(it.get("qty") or 1)
        except (TypeError, ValueError):
            qty = 1
        if qty > 0:
            parts.append(f"{qty} {name}")
    return ", ".join(parts)


def command_to_userlike_text(cmd: Dict[str, Any]) -> str:
    """
    Turn a structured command into text the rule-based classifier already
    understands, so the LLM never bypasses the deterministic pipeline.
    Returns "" when the command carries nothing usable.
    """
    intent = str(cmd.get("intent") or "unknown").strip()

    if intent == "greeting":
        return "hola"

    if intent == "show_menu":
        return "menu"

    if intent == "show_cart":
        return "mi pedido"

    if intent == "confirm":
        return "confirmar"

    if intent == "cancel":
        return "cancelar"

    if intent == "add_items":
        items = _items_text(cmd.get("items") or [])
        return f"quiero {items}" if items else ""

    if intent == "recommend":
        text = "recomiendame algo"
        party = cmd.get("party_size")
        if isinstance(party, int) and party > 0:
            text += f" para {party} personas"
        meal = str(cmd.get("meal") or "").strip()
        if meal:
            text += f" para {meal}"
        return text

    return ""
