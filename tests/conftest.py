from __future__ import annotations

import itertools
from decimal import Decimal
from typing import List

import pytest

from orderbot.config import Settings
from orderbot.ordering.brain import ConversationEngine
from orderbot.ordering.menu import CatalogEntry, CatalogIndex
from orderbot.ordering.menu_store import StaticCatalog
from orderbot.ordering.orders import MemoryOrderSink
from orderbot.ordering.recommend import RecommendationMachine
from orderbot.ordering.store import MemoryStore

BRANCH = "cafe-aroma"
SENDER = "+573001112233"


def _e(name: str, price: int, category: str, *aliases: str) -> CatalogEntry:
    return CatalogEntry(name=name, price=Decimal(price), category=category, aliases=tuple(aliases))


@pytest.fixture
def entries() -> List[CatalogEntry]:
    # near-duplicate names on purpose: café / café americano / frappé de café
    return [
        _e("Café", 3000, "Bebidas Calientes", "tinto"),
        _e("Café Americano", 3500, "Bebidas Calientes"),
        _e("Cappuccino", 4000, "Bebidas Calientes", "capuchino"),
        _e("Frappé de Café", 9000, "Bebidas Frías"),
        _e("Frappé de Vainilla", 9500, "Bebidas Frías"),
        _e("Limonada de Coco", 4000, "Bebidas Frías"),
        _e("Croissant con Jamón y Queso", 4500, "Panadería"),
        _e("Wrap de Pollo", 5500, "Comidas"),
        _e("Hamburguesa con Queso", 14000, "Comidas"),
        _e("Ensalada Vegetariana", 12000, "Comidas"),
        _e("Pizza Familiar", 45000, "Comidas"),
        _e("Muffin de Chocolate", 3500, "Postres"),
    ]


@pytest.fixture
def index(entries) -> CatalogIndex:
    return CatalogIndex(entries)


@pytest.fixture
def catalog(entries) -> StaticCatalog:
    return StaticCatalog({BRANCH: entries})


@pytest.fixture
def cfg() -> Settings:
    return Settings(
        llm_enabled=False,
        openai_api_key="",
        database_url="sqlite://",
        currency_symbol="$",
        delivery_fee=Decimal("0"),
        small_party_max=2,
        medium_party_max=5,
        recommendation_limit=3,
        share_portion_size=3,
        template_window=3,
    )


@pytest.fixture
def store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def orders() -> MemoryOrderSink:
    return MemoryOrderSink()


@pytest.fixture
def ids():
    counter = itertools.count(1)
    return lambda: f"rec_test_{next(counter):04d}"


@pytest.fixture
def machine(store, catalog, cfg, ids) -> RecommendationMachine:
    return RecommendationMachine(store, catalog, cfg, id_factory=ids)


@pytest.fixture
def engine(catalog, store, orders, cfg, machine) -> ConversationEngine:
    return ConversationEngine(catalog=catalog, store=store, orders=orders, cfg=cfg, machine=machine)


@pytest.fixture
def say(engine):
    """Send one message as the default sender and return the Reply."""

    def _say(text: str, business_type: str = "cafe"):
        return engine.respond(BRANCH, text, SENDER, business_type)

    return _say
