# orderbot/ordering/menu.py
from __future__ import annotations

import logging
import re
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional, Sequence, Set, Tuple

from pydantic import BaseModel, ConfigDict

from ..errors import AmbiguousProductMatch
from .nlp import (
    content_tokens,
    correct_token,
    fuzzy_best_key,
    normalize_text,
    singularize,
    tokens,
)

logger = logging.getLogger(__name__)


class CatalogEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    aliases: Tuple[str, ...] = ()
    price: Decimal
    category: str = ""

    def keys(self) -> List[str]:
        """Normalized lookup keys: canonical name first, then aliases."""
        out: List[str] = []
        for raw in (self.name, *self.aliases):
            k = normalize_text(raw)
            if k and k not in out:
                out.append(k)
        return out


def entry_from_dict(it: Dict[str, Any], category: str = "") -> Optional[CatalogEntry]:
    name = str(it.get("name") or "").strip()
    if not name:
        return None
    try:
        price = Decimal(str(it.get("price", it.get("base_price", 0)) or 0))
    except InvalidOperation:
        return None
    aliases = it.get("aliases") or []
    if not isinstance(aliases, list):
        aliases = []
    return CatalogEntry(
        name=name,
        aliases=tuple(str(a) for a in aliases if str(a).strip()),
        price=price,
        category=str(it.get("category") or category or ""),
    )


def entries_from_menu(menu: Dict[str, Any]) -> List[CatalogEntry]:
    """
    Menu JSON schema:
      - categories: [{name, items: [{name, price, aliases[]}]}]
      - items: [{name, price, category, aliases[]}]   (flat variant)
    """
    out: List[CatalogEntry] = []

    categories = menu.get("categories") or []
    if isinstance(categories, list):
        for c in categories:
            if not isinstance(c, dict):
                continue
            cname = str(c.get("name") or "").strip()
            for it in (c.get("items") or []):
                if isinstance(it, dict):
                    e = entry_from_dict(it, cname)
                    if e:
                        out.append(e)

    items = menu.get("items") or []
    if isinstance(items, list):
        for it in items:
            if isinstance(it, dict):
                e = entry_from_dict(it)
                if e:
                    out.append(e)
    return out


# ----------------------------
# Free-text menus
# ----------------------------
_SECTION_STARS_RE = re.compile(r"^\*+\s*(.+?)\s*\*+$")
_PRICE_DASH_RE = re.compile(r"^(.+?)\s*[-–:]\s*\$\s*([\d.,]+)\s*$")
_PRICE_SPACE_RE = re.compile(r"^(.+?)\s+\$\s*([\d.,]+)\s*$")
_BULLET_RE = re.compile(r"^[•\-\*·]\s*")


def _parse_price(raw: str) -> Optional[Decimal]:
    # "$12,000" and "$12.000" are thousands in COP menus; "$4.50" is a decimal price
    s = raw.strip()
    if re.fullmatch(r"\d{1,3}(?:[.,]\d{3})+", s):
        s = s.replace(".", "").replace(",", "")
    else:
        s = s.replace(",", ".")
    try:
        value = Decimal(s)
    except InvalidOperation:
        return None
    return value if value > 0 else None


def parse_menu_text(text: str) -> List[CatalogEntry]:
    """
    Extract products from a free-text menu, one product per line:

        *BEBIDAS CALIENTES*
        Cappuccino - $4,000
        Café Americano $3,000

    Lines wrapped in asterisks or ending in ':' open a new category.
    """
    out: List[CatalogEntry] = []
    seen: Set[str] = set()
    category = ""

    for line in (text or "").splitlines():
        s = line.strip()
        if not s:
            continue

        m = _SECTION_STARS_RE.match(s)
        if m:
            category = m.group(1).strip().title()
            continue

        if s.endswith(":") and "$" not in s:
            category = s[:-1].strip().title()
            continue

        s = _BULLET_RE.sub("", s)
        m = _PRICE_DASH_RE.match(s) or _PRICE_SPACE_RE.match(s)
        if not m:
            continue

        name = m.group(1).strip()
        price = _parse_price(m.group(2))
        key = normalize_text(name)
        if not price or len(key) < 3 or key in seen:
            continue
        seen.add(key)
        out.append(CatalogEntry(name=name, price=price, category=category))

    return out


def format_price(value: Decimal, currency_symbol: str = "$") -> str:
    if value == value.to_integral_value():
        return f"{currency_symbol}{int(value):,}"
    return f"{currency_symbol}{value:,.2f}"


def render_menu(entries: Sequence[CatalogEntry], currency_symbol: str = "$") -> str:
    if not entries:
        return ""
    lines: List[str] = []
    current = None
    for e in entries:
        if e.category != current:
            current = e.category
            if lines:
                lines.append("")
            if current:
                lines.append(f"*{current.upper()}*")
        lines.append(f"• {e.name} - {format_price(e.price, currency_symbol)}")
    return "\n".join(lines)


def all_category_names(entries: Sequence[CatalogEntry]) -> List[str]:
    out: List[str] = []
    for e in entries:
        if e.category and e.category not in out:
            out.append(e.category)
    return out


# ----------------------------
# Product resolution
# ----------------------------
class CatalogIndex:
    """
    Lookup structure over one branch snapshot. Keys are normalized names and
    aliases; every key remembers the declaration position of its entry so ties
    resolve to the product declared first.
    """

    def __init__(self, entries: Sequence[CatalogEntry]) -> None:
        self.entries: List[CatalogEntry] = list(entries)
        # key -> (declaration position, entry); first declaration wins on collisions
        self.by_key: Dict[str, Tuple[int, CatalogEntry]] = {}
        # frozenset(content tokens) -> (position, entry)
        self.by_tokens: Dict[frozenset, Tuple[int, CatalogEntry]] = {}
        self.vocabulary: Set[str] = set()

        for pos, e in enumerate(self.entries):
            for k in e.keys():
                self.by_key.setdefault(k, (pos, e))
                ct = frozenset(content_tokens(k))
                if ct:
                    self.by_tokens.setdefault(ct, (pos, e))
                self.vocabulary.update(tokens(k))

        self._vocab_list = sorted(self.vocabulary)

    @property
    def phrases(self) -> List[str]:
        return list(self.by_key.keys())

    def repair(self, text: str) -> str:
        """Singularize, then typo-correct tokens against the catalog vocabulary."""
        out = []
        for t in tokens(text):
            t = singularize(t, self.vocabulary)
            t = correct_token(t, self._vocab_list)
            out.append(t)
        return " ".join(out)

    def _exact(self, q: str) -> Optional[CatalogEntry]:
        hit = self.by_key.get(q)
        if hit:
            return hit[1]
        ct = frozenset(content_tokens(q))
        hit = self.by_tokens.get(ct) if ct else None
        return hit[1] if hit else None

    def _contained(self, q: str) -> Optional[CatalogEntry]:
        """Aliases fully inside the segment; most shared tokens, longest alias, declared first."""
        qt = set(content_tokens(q))
        if not qt:
            return None
        ranked: List[Tuple[int, int, int, CatalogEntry]] = []
        for k, (pos, e) in self.by_key.items():
            kt = set(content_tokens(k))
            if not kt or not kt <= qt:
                continue
            ranked.append((-len(kt & qt), -len(k), pos, e))
        if not ranked:
            return None
        ranked.sort(key=lambda x: (x[0], x[1], x[2]))
        return ranked[0][3]

    def _containing(self, q: str) -> Optional[CatalogEntry]:
        """Aliases that contain the whole segment: accepted only when one product qualifies."""
        qt = set(content_tokens(q))
        if not qt:
            return None
        candidates: Dict[int, CatalogEntry] = {}
        for k, (pos, e) in self.by_key.items():
            if qt <= set(content_tokens(k)):
                candidates[pos] = e
        if not candidates:
            return None
        if len(candidates) > 1:
            raise AmbiguousProductMatch(q, [e.name for _, e in sorted(candidates.items())])
        return next(iter(candidates.values()))

    def find(self, text: str) -> Optional[CatalogEntry]:
        q = normalize_text(text)
        if not q:
            return None

        variants = [q]
        repaired = self.repair(q)
        if repaired and repaired != q:
            variants.append(repaired)

        for v in variants:
            hit = self._exact(v)
            if hit:
                return hit

        for v in variants:
            hit = self._contained(v)
            if hit:
                return hit

        for v in variants:
            hit = self._containing(v)
            if hit:
                return hit

        best = fuzzy_best_key(self.phrases, q)
        if best:
            return self.by_key[best][1]
        return None


def find_entry(index: CatalogIndex, text: str) -> Optional[CatalogEntry]:
    """Resolve free text to one product, or None when nothing (or too many things) match."""
    try:
        return index.find(text)
    except AmbiguousProductMatch as e:
        logger.debug("Discarding ambiguous segment: %s", e)
        return None
