# orderbot/ordering/intents.py
from __future__ import annotations

import re
from enum import Enum
from typing import Optional

from .nlp import NUMBER_WORDS, normalize_text, word_to_int


class Intent(str, Enum):
    GREETING = "greeting"
    MENU = "menu"
    ORDER = "order"
    RECOMMEND = "recommend"
    CONFIRM = "confirm"
    CANCEL = "cancel"
    CART = "cart"
    GENERIC = "generic"


_GREETINGS = {
    "hola", "holi", "hello", "hi", "hey", "buenas", "buen dia", "buenos dias",
    "buenas tardes", "buenas noches", "que tal", "saludos",
}

_CONFIRMATIONS = {
    "si", "sii", "si senor", "si por favor", "si porfa", "claro", "dale", "listo",
    "ok", "okay", "de una", "confirmo", "confirmar", "pedir", "pidelo", "hazlo",
    "perfecto", "va", "si pedir", "si confirmo", "si claro",
}

_CANCELS = {
    "no", "cancelar", "cancela", "cancelalo", "olvidalo", "no gracias",
    "borrar", "borra todo", "empezar de nuevo", "nuevo pedido", "reset",
}

_CART_WORDS = {"carrito", "mi pedido", "ver pedido", "ver carrito", "resumen", "que llevo"}

_MENU_RE = re.compile(r"\b(?:menu|carta|productos|que tienen|que venden|que hay)\b")
_RECOMMEND_RE = re.compile(
    r"\b(?:recom(?:i)?end\w*|sugier\w*|sugerencia\w*|sugiere\w*|"
    r"que me aconsejas|no se que pedir|ayudame a elegir)\b"
)
_ORDER_RE = re.compile(
    r"\b(?:quiero|quisiera|queria|me das|me da|me regalas|regalame|dame|deme|"
    r"voy a querer|vamos a querer|me gustaria|ordenar|pideme|traeme|agregame|agrega)\b"
)
_LEADING_QTY_RE = re.compile(r"^(?:\d+|" + "|".join(k for k in NUMBER_WORDS if k != "cero") + r")\s+\w")
# "quiero ver el menu", "me das la carta": a menu request unless a quantity is named
_MENU_NOUN_RE = re.compile(r"\b(?:menu|carta)\b")
_ANY_QTY_RE = re.compile(r"\b(?:\d+|" + "|".join(k for k in NUMBER_WORDS if k not in ("cero", "un", "una", "uno")) + r")\b")

_NUM = r"(\d+|" + "|".join(NUMBER_WORDS) + r")"
_PARTY_RES = [
    re.compile(r"\bpara " + _NUM + r"\s*(?:personas?|pax|adultos|comensales|de nosotros)\b"),
    re.compile(r"\bsomos " + _NUM + r"\b"),
    re.compile(r"\b" + _NUM + r" personas?\b"),
]
_PARTY_ALONE_RE = re.compile(r"^(?:para\s+|somos\s+)?" + _NUM + r"(?:\s+personas?)?$")

_MEALS = {
    "desayuno": "Desayuno",
    "desayunar": "Desayuno",
    "almuerzo": "Almuerzo",
    "almorzar": "Almuerzo",
    "cena": "Cena",
    "cenar": "Cena",
    "onces": "Snack/Merienda",
    "merienda": "Snack/Merienda",
    "snack": "Snack/Merienda",
}


def classify(text: str) -> Intent:
    """Map one message to exactly one Intent. Pure: no state, no catalog."""
    s = normalize_text(text)
    if not s:
        return Intent.GENERIC

    if s in _CONFIRMATIONS:
        return Intent.CONFIRM
    if s in _CANCELS:
        return Intent.CANCEL
    if s in _CART_WORDS:
        return Intent.CART

    if _RECOMMEND_RE.search(s):
        return Intent.RECOMMEND
    if _MENU_NOUN_RE.search(s) and not _ANY_QTY_RE.search(s):
        return Intent.MENU
    if _ORDER_RE.search(s) or _LEADING_QTY_RE.match(s):
        return Intent.ORDER
    if _MENU_RE.search(s):
        return Intent.MENU

    if s in _GREETINGS:
        return Intent.GREETING
    if len(s.split()) <= 4 and any(s.startswith(g + " ") for g in _GREETINGS):
        return Intent.GREETING

    return Intent.GENERIC


def extract_party_size(text: str) -> Optional[int]:
    s = normalize_text(text)
    for rx in _PARTY_RES:
        m = rx.search(s)
        if m:
            return word_to_int(m.group(1))
    return None


def extract_bare_party_size(text: str) -> Optional[int]:
    """Answer to "¿para cuántas personas?": "6", "seis", "somos 4", "para 3 personas"."""
    s = normalize_text(text)
    m = _PARTY_ALONE_RE.match(s)
    if m:
        return word_to_int(m.group(1))
    return extract_party_size(s)


def extract_meal_context(text: str) -> Optional[str]:
    for tok in normalize_text(text).split():
        if tok in _MEALS:
            return _MEALS[tok]
    return None
