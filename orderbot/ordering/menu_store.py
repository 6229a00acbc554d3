# orderbot/ordering/menu_store.py
from __future__ import annotations

import json
import logging
from pathlib import Path
from threading import RLock
from typing import Any, Dict, List, Optional, Protocol, Sequence

from ..errors import CatalogUnavailable
from .menu import CatalogEntry, entries_from_menu, parse_menu_text, render_menu

logger = logging.getLogger(__name__)


class CatalogAccessor(Protocol):
    def get_catalog(self, branch_id: str) -> List[CatalogEntry]: ...

    def get_menu_text(self, branch_id: str) -> str: ...


def _normalize_branch(branch_id: str) -> str:
    return (branch_id or "").strip().lower()


class JsonCatalog:
    """
    Menus on disk, one folder per branch:

        <menus_dir>/<branch_id>/menu.json

    menu.json holds `categories`/`items` and optionally a free-text `menu_text`.
    A menu with only `menu_text` gets its products parsed from the text.
    """

    def __init__(self, menus_dir: Path, currency_symbol: str = "$") -> None:
        self.menus_dir = Path(menus_dir).resolve()
        self.currency_symbol = currency_symbol
        self._cache: Dict[str, Dict[str, Any]] = {}
        self._lock = RLock()
        logger.info("Menus directory: %s (exists=%s)", self.menus_dir, self.menus_dir.exists())

    def _load(self, branch_id: str) -> Dict[str, Any]:
        slug = _normalize_branch(branch_id)
        if not slug:
            raise CatalogUnavailable(branch_id, "empty branch id")

        with self._lock:
            # 1) cache hit
            if slug in self._cache:
                return self._cache[slug]

            # 2) read from disk
            path = self.menus_dir / slug / "menu.json"
            if not path.is_file():
                raise CatalogUnavailable(branch_id, f"no menu at {path}")
            try:
                data = json.loads(path.read_text(encoding="utf-8"))
            except (OSError, json.JSONDecodeError) as e:
                raise CatalogUnavailable(branch_id, f"invalid menu file: {e}") from e
            if not isinstance(data, dict):
                raise CatalogUnavailable(branch_id, "menu.json must hold an object")

            entries = entries_from_menu(data)
            text = str(data.get("menu_text") or "")
            if not entries and text:
                entries = parse_menu_text(text)
            if not text:
                text = render_menu(entries, self.currency_symbol)

            loaded = {"entries": entries, "text": text}
            self._cache[slug] = loaded
            logger.info("Loaded menu for %s: %d products", slug, len(entries))
            return loaded

    def get_catalog(self, branch_id: str) -> List[CatalogEntry]:
        return list(self._load(branch_id)["entries"])

    def get_menu_text(self, branch_id: str) -> str:
        return self._load(branch_id)["text"]

    def reload(self, branch_id: Optional[str] = None) -> None:
        with self._lock:
            if branch_id is None:
                self._cache.clear()
            else:
                self._cache.pop(_normalize_branch(branch_id), None)


class StaticCatalog:
    """In-memory catalogs, for tests and admin tooling."""

    def __init__(
        self,
        catalogs: Optional[Dict[str, Sequence[CatalogEntry]]] = None,
        menu_texts: Optional[Dict[str, str]] = None,
        currency_symbol: str = "$",
    ) -> None:
        self._catalogs = {_normalize_branch(k): list(v) for k, v in (catalogs or {}).items()}
        self._texts = {_normalize_branch(k): v for k, v in (menu_texts or {}).items()}
        self.currency_symbol = currency_symbol

    def get_catalog(self, branch_id: str) -> List[CatalogEntry]:
        slug = _normalize_branch(branch_id)
        if slug not in self._catalogs:
            raise CatalogUnavailable(branch_id)
        return list(self._catalogs[slug])

    def get_menu_text(self, branch_id: str) -> str:
        slug = _normalize_branch(branch_id)
        if slug in self._texts:
            return self._texts[slug]
        return render_menu(self.get_catalog(branch_id), self.currency_symbol)
