# orderbot/main.py
from __future__ import annotations

import logging
from typing import Optional

from .ai_intent import rewriter_from_settings
from .config import Settings, settings as default_settings
from .db import make_engine, make_session_factory
from .ordering.brain import ConversationEngine
from .ordering.menu_store import JsonCatalog
from .ordering.orders import SqlOrderSink
from .ordering.store import SqlStore

logger = logging.getLogger(__name__)


def build_engine(cfg: Optional[Settings] = None) -> ConversationEngine:
    """
    Wire the production collaborators: menus from disk, contexts/sessions and
    confirmed orders in the configured database, optional LLM fallback.
    """
    cfg = cfg or default_settings
    db_engine = make_engine(cfg.database_url)
    sessions = make_session_factory(db_engine)

    catalog = JsonCatalog(cfg.menus_dir, currency_symbol=cfg.currency_symbol)
    engine = ConversationEngine(
        catalog=catalog,
        store=SqlStore(sessions),
        orders=SqlOrderSink(sessions, currency_symbol=cfg.currency_symbol),
        cfg=cfg,
        rewriter=rewriter_from_settings(cfg),
    )
    logger.info("Conversation engine ready (db=%s, menus=%s)", db_engine.url, cfg.menus_dir)
    return engine
