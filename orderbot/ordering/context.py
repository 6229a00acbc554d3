# orderbot/ordering/context.py
from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from .cart import Cart
from .intents import Intent
from .store import KeyedStore, make_key

CONTEXT_KIND = "conversation"


class ConversationContext(BaseModel):
    sender_id: str
    branch_id: str
    last_intent: Optional[Intent] = None
    pending_cart: Optional[Cart] = None
    awaiting_confirmation: bool = False
    last_menu_shown_at: Optional[datetime] = None

    # top pick of the last finished recommendation, ordered with "pedir"
    suggested_cart: Optional[Cart] = None
    awaiting_party_size: bool = False
    pending_meal_context: Optional[str] = None

    # template ids of recent replies, newest last
    recent_templates: List[str] = Field(default_factory=list)
    message_count: int = 0
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    def has_pending_cart(self) -> bool:
        return self.pending_cart is not None and not self.pending_cart.is_empty

    def remember_template(self, template_id: str, window: int) -> None:
        self.recent_templates.append(template_id)
        if len(self.recent_templates) > window:
            del self.recent_templates[: len(self.recent_templates) - window]


def context_key(sender_id: str, branch_id: str) -> str:
    return make_key(branch_id, sender_id)


def load_context(store: KeyedStore, sender_id: str, branch_id: str) -> ConversationContext:
    raw = store.get(CONTEXT_KIND, context_key(sender_id, branch_id))
    if raw is None:
        return ConversationContext(sender_id=sender_id, branch_id=branch_id)
    return ConversationContext.model_validate(raw)


def save_context(store: KeyedStore, ctx: ConversationContext) -> None:
    ctx.updated_at = datetime.utcnow()
    store.put(CONTEXT_KIND, context_key(ctx.sender_id, ctx.branch_id), ctx.model_dump(mode="json"))


def delete_context(store: KeyedStore, sender_id: str, branch_id: str) -> None:
    store.delete(CONTEXT_KIND, context_key(sender_id, branch_id))
