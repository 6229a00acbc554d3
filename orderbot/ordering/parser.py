# orderbot/ordering/parser.py
from __future__ import annotations

import logging
from typing import List, Sequence, Union

from .cart import Cart
from .menu import CatalogEntry, CatalogIndex, find_entry
from .nlp import normalize_message, normalize_text, parse_qty, protect_phrases, split_items, strip_filler_prefix

logger = logging.getLogger(__name__)

CatalogSnapshot = Union[CatalogIndex, Sequence[CatalogEntry]]


def _as_index(catalog: CatalogSnapshot) -> CatalogIndex:
    if isinstance(catalog, CatalogIndex):
        return catalog
    return CatalogIndex(list(catalog or []))


def segments(text: str, index: CatalogIndex) -> List[str]:
    msg = protect_phrases(normalize_message(text), index.phrases)
    out: List[str] = []
    for part in split_items(msg):
        seg = strip_filler_prefix(normalize_text(part))
        if seg:
            out.append(seg)
    return out


def parse(text: str, catalog: CatalogSnapshot) -> Cart:
    """
    Turn a free-form message into a Cart. Unmatched spans are ignored, so
    "hola! quiero 2 cappuccinos y algo rico" still yields the cappuccinos.
    """
    cart = Cart()
    if not text or not text.strip():
        return cart

    index = _as_index(catalog)
    if not index.entries:
        return cart

    for seg in segments(text, index):
        qty, rest = parse_qty(seg)
        if qty <= 0:
            continue
        rest = strip_filler_prefix(rest)
        entry = find_entry(index, rest)
        if not entry:
            logger.debug("No product for segment %r", seg)
            continue
        cart.add(entry, qty)

    return cart
