# orderbot/ordering/brain.py
from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Callable, Dict, List, Mapping, Optional, Union

from pydantic import BaseModel

from ..ai_intent import Rewriter
from ..config import Settings, settings as default_settings
from ..errors import CatalogUnavailable, InvalidPartySize, SessionNotActive, SessionNotFound
from . import replies as R
from .cart import Cart, build_summary
from .context import ConversationContext, context_key, delete_context, load_context, save_context
from .intents import (
    Intent,
    classify,
    extract_bare_party_size,
    extract_meal_context,
    extract_party_size,
)
from .menu import CatalogEntry
from .menu_store import CatalogAccessor
from .orders import OrderSink
from .parser import parse
from .recommend import FinalRecommendation, Question, RecommendationMachine, RecommendationSession
from .store import KeyedLocks, KeyedStore

logger = logging.getLogger(__name__)


class Reply(BaseModel):
    text: str
    intent: Intent
    cart: Optional[Cart] = None
    order_id: Optional[str] = None
    session_id: Optional[str] = None


class Turn:
    """Everything a handler needs for one inbound message."""

    def __init__(
        self,
        ctx: ConversationContext,
        branch_id: str,
        text: str,
        business_type: str,
        business_id: str,
    ) -> None:
        self.ctx = ctx
        self.branch_id = branch_id
        self.text = text
        self.business_type = business_type
        self.business_id = business_id


class ConversationEngine:
    """
    One call per inbound chat message. Messages from the same sender at the
    same branch are processed one at a time; context and recommendation
    sessions live in the injected store.
    """

    def __init__(
        self,
        catalog: CatalogAccessor,
        store: KeyedStore,
        orders: OrderSink,
        cfg: Optional[Settings] = None,
        machine: Optional[RecommendationMachine] = None,
        rewriter: Optional[Rewriter] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.catalog = catalog
        self.store = store
        self.orders = orders
        self.cfg = cfg or default_settings
        self.machine = machine or RecommendationMachine(store, catalog, self.cfg)
        self.rewriter = rewriter
        self.replies = R.ReplyBook(self.cfg.currency_symbol, self.cfg.template_window)
        self._now = clock or datetime.utcnow
        self._locks = KeyedLocks()

        self._handlers: Dict[Intent, Callable[[Turn], Reply]] = {
            Intent.GREETING: self._greeting,
            Intent.MENU: self._menu,
            Intent.ORDER: self._order,
            Intent.RECOMMEND: self._recommend,
            Intent.CONFIRM: self._confirm,
            Intent.CANCEL: self._cancel,
            Intent.CART: self._show_cart,
            Intent.GENERIC: self._generic,
        }

    # -------------------
    # Public surface
    # -------------------
    def respond(
        self,
        branch_id: str,
        text: str,
        sender_id: str,
        business_type: str = "restaurant",
        context: Optional[Mapping[str, Any]] = None,
    ) -> Reply:
        key = context_key(sender_id, branch_id)
        with self._locks.hold(key):
            try:
                ctx = load_context(self.store, sender_id, branch_id)
            except Exception:
                logger.exception("Could not load conversation %s, starting fresh", key)
                ctx = ConversationContext(sender_id=sender_id, branch_id=branch_id)

            business_id = str((context or {}).get("business_id") or branch_id)
            before = ctx.model_copy(deep=True)
            try:
                reply = self._dispatch(Turn(ctx, branch_id, text or "", business_type, business_id))
            except Exception:
                logger.exception("Failed to handle message from %s", key)
                # half-applied changes are dropped; only the apology is recorded
                ctx = before
                reply = Reply(text=self.replies.error(ctx), intent=Intent.GENERIC)

            ctx.last_intent = reply.intent
            ctx.message_count += 1
            try:
                save_context(self.store, ctx)
            except Exception:
                logger.exception("Could not save conversation %s", key)
            return reply

    def evict(self, sender_id: str, branch_id: str) -> None:
        """Drop a sender's context (external idle-timeout policy)."""
        with self._locks.hold(context_key(sender_id, branch_id)):
            delete_context(self.store, sender_id, branch_id)

    # -------------------
    # Dispatch
    # -------------------
    def _dispatch(self, turn: Turn) -> Reply:
        intent = classify(turn.text)
        ctx = turn.ctx

        session = self.machine.get_active_session(ctx.sender_id, turn.branch_id)
        if session:
            return self._in_session(turn, session, intent)

        if ctx.awaiting_party_size:
            size = extract_bare_party_size(turn.text)
            if size is not None:
                return self._start_recommendation(turn, size, ctx.pending_meal_context)
            if intent is Intent.GENERIC:
                return Reply(text=R.INVALID_PARTY_SIZE, intent=Intent.RECOMMEND)
            ctx.awaiting_party_size = False
            ctx.pending_meal_context = None

        if intent is Intent.GENERIC and self.rewriter:
            rewritten = self._rewrite(turn)
            if rewritten:
                logger.debug("LLM rewrote %r -> %r", turn.text, rewritten)
                turn.text = rewritten
                intent = classify(rewritten)

        return self._handlers[intent](turn)

    def _rewrite(self, turn: Turn) -> str:
        try:
            entries: List[CatalogEntry] = self.catalog.get_catalog(turn.branch_id)
        except CatalogUnavailable:
            entries = []
        try:
            return self.rewriter(turn.text, entries) if self.rewriter else ""
        except Exception as e:
            logger.warning("LLM rewrite failed, using rules only: %s", e)
            return ""

    # -------------------
    # Handlers
    # -------------------
    def _greeting(self, turn: Turn) -> Reply:
        return Reply(text=self.replies.greeting(turn.ctx, turn.business_type), intent=Intent.GREETING)

    def _menu(self, turn: Turn) -> Reply:
        try:
            menu_text = self.catalog.get_menu_text(turn.branch_id)
        except CatalogUnavailable as e:
            logger.warning("%s", e)
            return Reply(text=R.MENU_UNAVAILABLE, intent=Intent.MENU)
        if not menu_text.strip():
            return Reply(text=R.MENU_UNAVAILABLE, intent=Intent.MENU)

        turn.ctx.last_menu_shown_at = self._now()
        text = self.replies.with_closing(turn.ctx, R.MENU_INTRO.format(menu=menu_text))
        return Reply(text=text, intent=Intent.MENU)

    def _order(self, turn: Turn) -> Reply:
        try:
            entries = self.catalog.get_catalog(turn.branch_id)
        except CatalogUnavailable as e:
            logger.warning("%s", e)
            return Reply(text=R.ORDERS_UNAVAILABLE, intent=Intent.ORDER)

        cart = parse(turn.text, entries)
        if cart.is_empty:
            return Reply(text=self.replies.pick(turn.ctx, R.ORDER_NOT_FOUND), intent=Intent.ORDER)
        return self._add_to_cart(turn, cart)

    def _add_to_cart(self, turn: Turn, cart: Cart) -> Reply:
        ctx = turn.ctx
        merged = (ctx.pending_cart or Cart()).merge(cart)
        ctx.pending_cart = merged
        ctx.awaiting_confirmation = True

        summary, _total = build_summary(merged, self.cfg.currency_symbol, self.cfg.delivery_fee)
        intro = self.replies.pick(ctx, R.ORDER_ADDED)
        logger.info("Cart for %s at %s: %d lines", ctx.sender_id, turn.branch_id, len(merged.lines))
        return Reply(
            text=f"{intro}\n\n{summary}\n\n{R.CONFIRM_PROMPT}",
            intent=Intent.ORDER,
            cart=merged,
        )

    def _recommend(self, turn: Turn) -> Reply:
        size = extract_party_size(turn.text)
        meal = extract_meal_context(turn.text)
        if size is None:
            turn.ctx.awaiting_party_size = True
            turn.ctx.pending_meal_context = meal
            return Reply(text=R.ASK_PARTY_SIZE, intent=Intent.RECOMMEND)
        return self._start_recommendation(turn, size, meal)

    def _start_recommendation(self, turn: Turn, size: int, meal: Optional[str]) -> Reply:
        ctx = turn.ctx
        ctx.awaiting_party_size = False
        ctx.pending_meal_context = None
        try:
            session = self.machine.create_session(ctx.sender_id, turn.branch_id, turn.business_id, size, meal)
        except InvalidPartySize:
            ctx.awaiting_party_size = True
            ctx.pending_meal_context = meal
            return Reply(text=R.INVALID_PARTY_SIZE, intent=Intent.RECOMMEND)
        return self._render_step(turn, session, self.machine.get_next_question(session.session_id))

    def _in_session(self, turn: Turn, session: RecommendationSession, intent: Intent) -> Reply:
        if intent is Intent.RECOMMEND and extract_party_size(turn.text):
            return self._recommend(turn)
        if intent is Intent.MENU:
            return self._menu(turn)
        if intent is Intent.CART:
            return self._show_cart(turn)
        if intent is Intent.ORDER:
            # Named products go to the cart; the session stays where it was.
            try:
                cart = parse(turn.text, self.catalog.get_catalog(turn.branch_id))
            except CatalogUnavailable:
                cart = Cart()
            if not cart.is_empty:
                return self._add_to_cart(turn, cart)

        sid = session.session_id
        try:
            accepted = self.machine.process_answer(sid, turn.text)
            if not accepted:
                if intent is Intent.CANCEL:
                    self.machine.abandon_session(sid)
                    return Reply(text=R.SESSION_CANCELLED, intent=Intent.CANCEL)
                question = self.machine.get_next_question(sid)
                return self._render_step(turn, session, question, hint=R.ANSWER_NOT_UNDERSTOOD)
            return self._render_step(turn, session, self.machine.get_next_question(sid))
        except (SessionNotFound, SessionNotActive) as e:
            logger.warning("Restarting recommendation for %s: %s", turn.ctx.sender_id, e)
            return self._start_recommendation(turn, session.party_size, session.meal_context)
        except CatalogUnavailable as e:
            logger.warning("%s", e)
            return Reply(text=R.NO_RECOMMENDATION, intent=Intent.RECOMMEND, session_id=sid)

    def _render_step(
        self,
        turn: Turn,
        session: RecommendationSession,
        step: Union[Question, FinalRecommendation],
        hint: Optional[str] = None,
    ) -> Reply:
        if isinstance(step, Question):
            return Reply(
                text=self.replies.question(step, hint=hint),
                intent=Intent.RECOMMEND,
                session_id=session.session_id,
            )

        suggestion = step.to_cart()
        turn.ctx.suggested_cart = None if suggestion.is_empty else suggestion
        return Reply(
            text=self.replies.recommendation(step, session.party_size),
            intent=Intent.RECOMMEND,
            session_id=session.session_id,
        )

    def _confirm(self, turn: Turn) -> Reply:
        ctx = turn.ctx
        if ctx.has_pending_cart():
            cart = ctx.pending_cart
            order_id = self.orders.finalize_order(turn.branch_id, ctx.sender_id, cart)
            summary, _total = build_summary(cart, self.cfg.currency_symbol, self.cfg.delivery_fee)
            ctx.pending_cart = None
            ctx.suggested_cart = None
            ctx.awaiting_confirmation = False
            return Reply(
                text=R.ORDER_CONFIRMED.format(order_id=order_id, summary=summary),
                intent=Intent.CONFIRM,
                cart=cart,
                order_id=order_id,
            )

        if ctx.suggested_cart is not None and not ctx.suggested_cart.is_empty:
            suggestion = ctx.suggested_cart
            ctx.suggested_cart = None
            return self._add_to_cart(turn, suggestion)

        ctx.awaiting_confirmation = False
        return Reply(text=R.NOTHING_TO_CONFIRM, intent=Intent.CONFIRM)

    def _cancel(self, turn: Turn) -> Reply:
        ctx = turn.ctx
        if not ctx.has_pending_cart() and ctx.suggested_cart is None:
            return Reply(text=R.NOTHING_TO_CANCEL, intent=Intent.CANCEL)
        ctx.pending_cart = None
        ctx.suggested_cart = None
        ctx.awaiting_confirmation = False
        return Reply(text=R.CANCELLED, intent=Intent.CANCEL)

    def _show_cart(self, turn: Turn) -> Reply:
        cart = turn.ctx.pending_cart or Cart()
        summary, _total = build_summary(cart, self.cfg.currency_symbol, self.cfg.delivery_fee)
        if cart.is_empty:
            return Reply(text=self.replies.with_closing(turn.ctx, summary), intent=Intent.CART)
        return Reply(text=f"{summary}\n\n{R.CONFIRM_PROMPT}", intent=Intent.CART, cart=cart)

    def _generic(self, turn: Turn) -> Reply:
        # a bare product name ("frappé de café") is still an order; questions are not
        if "?" not in turn.text:
            try:
                cart = parse(turn.text, self.catalog.get_catalog(turn.branch_id))
            except CatalogUnavailable:
                cart = Cart()
            if not cart.is_empty:
                return self._add_to_cart(turn, cart)
        return Reply(text=self.replies.fallback(turn.ctx), intent=Intent.GENERIC)
