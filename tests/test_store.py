from __future__ import annotations

import json
import threading
from decimal import Decimal

import pytest

from orderbot.db import make_engine, make_session_factory
from orderbot.models import Order
from orderbot.ordering.brain import ConversationEngine
from orderbot.ordering.cart import Cart
from orderbot.ordering.orders import MemoryOrderSink, SqlOrderSink
from orderbot.ordering.store import KeyedLocks, MemoryStore, SqlStore, make_key


@pytest.fixture
def sessions():
    return make_session_factory(make_engine("sqlite://"))


@pytest.fixture(params=["memory", "sql"])
def any_store(request, sessions):
    if request.param == "memory":
        return MemoryStore()
    return SqlStore(sessions)


def test_get_put_delete(any_store):
    assert any_store.get("conversation", "k") is None
    any_store.put("conversation", "k", {"a": 1, "nested": {"b": [1, 2]}})
    assert any_store.get("conversation", "k") == {"a": 1, "nested": {"b": [1, 2]}}

    any_store.put("conversation", "k", {"a": 2})
    assert any_store.get("conversation", "k") == {"a": 2}

    any_store.delete("conversation", "k")
    assert any_store.get("conversation", "k") is None
    any_store.delete("conversation", "k")


def test_kinds_are_separate(any_store):
    any_store.put("rec_session", "x", {"v": 1})
    any_store.put("rec_active", "x", {"v": 2})
    any_store.put("rec_session", "y", {"v": 3})
    assert sorted(any_store.items("rec_session")) == [("x", {"v": 1}), ("y", {"v": 3})]
    assert any_store.items("conversation") == []


def test_memory_store_copies_payloads():
    store = MemoryStore()
    payload = {"lines": []}
    store.put("conversation", "k", payload)
    payload["lines"].append("mutated")
    got = store.get("conversation", "k")
    got["lines"].append("again")
    assert store.get("conversation", "k") == {"lines": []}


def test_make_key():
    assert make_key("cafe-aroma", "+57300") == "cafe-aroma|+57300"


def test_keyed_locks_are_reentrant():
    locks = KeyedLocks()
    with locks.hold("a"):
        with locks.hold("a"):
            with locks.hold("b"):
                pass
    assert len(locks) == 0


def test_keyed_locks_forget_released_keys(machine, engine):
    for n in range(50):
        machine.create_session(f"+5730000{n:04d}", "cafe-aroma", "biz-1", 2, None)
    assert len(machine._locks) == 0

    engine.respond("cafe-aroma", "hola", "+57300")
    engine.evict("+57300", "cafe-aroma")
    assert len(engine._locks) == 0


def test_keyed_locks_serialize_waiters_on_one_key():
    locks = KeyedLocks()
    inside = []
    overlaps = []

    def work():
        for _ in range(200):
            with locks.hold("k"):
                inside.append(1)
                if len(inside) > 1:
                    overlaps.append(1)
                inside.pop()

    threads = [threading.Thread(target=work) for _ in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert overlaps == []
    assert len(locks) == 0


# ----------------------------
# Orders
# ----------------------------
def test_sql_order_sink(sessions, entries):
    sink = SqlOrderSink(sessions)
    cart = Cart()
    cart.add(entries[2], 2)
    cart.add(entries[6], 1)

    order_id = sink.finalize_order("cafe-aroma", "+57300", cart)

    with sessions() as db:
        row = db.get(Order, int(order_id))
        assert row.branch_id == "cafe-aroma"
        assert row.status == "confirmed"
        assert Decimal(row.subtotal) == Decimal("12500")
        assert [it["name"] for it in json.loads(row.items_json)] == ["Cappuccino", "Croissant con Jamón y Queso"]
        assert "Subtotal: $12,500" in row.summary_text

    assert sink.finalize_order("cafe-aroma", "+57300", cart) != order_id


@pytest.mark.parametrize("sink_cls", [MemoryOrderSink, None])
def test_empty_cart_is_rejected(sessions, sink_cls):
    sink = sink_cls() if sink_cls else SqlOrderSink(sessions)
    with pytest.raises(ValueError):
        sink.finalize_order("cafe-aroma", "+57300", Cart())


def test_engine_on_sql(sessions, catalog, cfg):
    engine = ConversationEngine(catalog, SqlStore(sessions), SqlOrderSink(sessions), cfg)
    engine.respond("cafe-aroma", "quiero 2 cappuccinos", "+57300")
    reply = engine.respond("cafe-aroma", "sí", "+57300")
    assert reply.order_id == "1"

    engine.respond("cafe-aroma", "recomiéndame algo para 2 personas", "+57300")
    for _ in range(4):
        reply = engine.respond("cafe-aroma", "1", "+57300")
    assert "Mi recomendación para 2 personas" in reply.text
