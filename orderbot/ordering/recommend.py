# orderbot/ordering/recommend.py
from __future__ import annotations

import logging
import math
import zlib
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, Union
from uuid import uuid4

from pydantic import BaseModel, Field

from ..config import Settings, settings as default_settings
from ..errors import InvalidPartySize, SessionNotActive, SessionNotFound
from .cart import Cart
from .menu import CatalogEntry
from .menu_store import CatalogAccessor
from .nlp import normalize_text
from .store import KeyedLocks, KeyedStore, make_key

logger = logging.getLogger(__name__)

SESSION_KIND = "rec_session"
ACTIVE_KIND = "rec_active"


# ----------------------------
# Question bank
# ----------------------------
@dataclass(frozen=True)
class QuestionSpec:
    id: str
    wordings: Tuple[str, ...]
    options: Tuple[str, ...]
    values: Tuple[Any, ...]


# per-person budget, in the menu's currency
_BUDGET = QuestionSpec(
    id="budget",
    wordings=(
        "¿Cuál es tu presupuesto aproximado por persona? 💰",
        "Para esta ocasión, ¿qué presupuesto por persona tienes en mente? 💵",
        "Para saber qué recomendarte, ¿cuánto quieren gastar por persona? 💸",
    ),
    options=("Menos de $15.000", "$15.000 - $25.000", "$25.000 - $40.000", "Más de $40.000"),
    values=((0, 15000), (15000, 25000), (25000, 40000), (40000, None)),
)

_MEAL_TYPE = QuestionSpec(
    id="meal_type",
    wordings=(
        "¿Qué tipo de comida prefieres? 🍽️",
        "¿Qué se te antoja más ahora mismo? 🍛",
        "Pensando en el momento del día, ¿qué comida buscas? 🥗",
    ),
    options=("Desayuno", "Almuerzo", "Cena", "Snack/Merienda", "Cualquiera"),
    values=("desayuno", "almuerzo", "cena", "snack", None),
)

_DIETARY = QuestionSpec(
    id="dietary_restrictions",
    wordings=(
        "¿Tienen alguna restricción alimentaria? 🥗",
        "¿Debo tener en cuenta alguna preferencia o restricción? ✅",
        "¿Comen de todo o prefieren evitar algo? 🚫",
    ),
    options=("Ninguna", "Vegetariano", "Vegano", "Sin gluten", "Sin lactosa"),
    values=(None, "vegetariano", "vegano", "sin gluten", "sin lactosa"),
)

_CUISINE = QuestionSpec(
    id="cuisine_preference",
    wordings=(
        "¿Qué tipo de cocina prefieren? 🌮",
        "¿Les gusta más la cocina colombiana u otra? 🍝",
        "¿Qué estilo de comida les provoca? 🍣",
    ),
    options=("Cualquiera", "Colombiana", "Internacional", "Italiana", "Mexicana"),
    values=(None, "colombiana", "internacional", "italiana", "mexicana"),
)

_OCCASION = QuestionSpec(
    id="special_occasion",
    wordings=(
        "¿Es para alguna ocasión especial? 🎉",
        "¿El plan es casual o algo especial? ✨",
        "¿Hay alguna ocasión particular para este plan? 🎈",
    ),
    options=("Comida casual", "Celebración", "Reunión de trabajo", "Cita romántica"),
    values=("casual", "celebracion", "trabajo", "romantica"),
)

_SPICE = QuestionSpec(
    id="spice_level",
    wordings=(
        "¿Cómo te va con el picante? 🌶️",
        "¿Prefieres algo suave o con picante? 🔥",
        "¿Le ponemos picante o mejor suave? 🌶️",
    ),
    options=("Sin picante", "Un poco", "Bien picante"),
    values=("sin picante", "medio", "picante"),
)

_SHARING = QuestionSpec(
    id="sharing_style",
    wordings=(
        "¿Prefieren platos para compartir o porciones individuales? 🍕",
        "Siendo varios, ¿piden algo al centro para compartir o cada uno lo suyo? 🍽️",
        "¿Les armo algo familiar para compartir o porciones individuales? 👨‍👩‍👧‍👦",
    ),
    options=("Para compartir", "Porciones individuales"),
    values=(True, False),
)

_BEVERAGES = QuestionSpec(
    id="beverages",
    wordings=(
        "¿Incluimos bebidas para el grupo? 🥤",
        "¿Les sumo bebidas para todos? 🧃",
        "¿Quieren que la recomendación incluya bebidas? 🍹",
    ),
    options=("Sí, con bebidas", "No, solo comida"),
    values=(True, False),
)

QUESTION_BANK: Dict[str, QuestionSpec] = {
    q.id: q for q in (_BUDGET, _MEAL_TYPE, _DIETARY, _CUISINE, _OCCASION, _SPICE, _SHARING, _BEVERAGES)
}


class PartyTier(str, Enum):
    SMALL = "small"
    MEDIUM = "medium"
    LARGE = "large"


# large groups get sharing/drinks follow-ups; small groups are not asked about them
TIER_QUESTIONS: Dict[PartyTier, Tuple[str, ...]] = {
    PartyTier.SMALL: ("meal_type", "budget", "dietary_restrictions", "spice_level"),
    PartyTier.MEDIUM: ("budget", "meal_type", "dietary_restrictions", "cuisine_preference", "special_occasion"),
    PartyTier.LARGE: ("budget", "meal_type", "dietary_restrictions", "sharing_style", "beverages"),
}


def tier_for(party_size: int, cfg: Settings) -> PartyTier:
    if party_size <= cfg.small_party_max:
        return PartyTier.SMALL
    if party_size <= cfg.medium_party_max:
        return PartyTier.MEDIUM
    return PartyTier.LARGE


def _seed(text: str) -> int:
    return zlib.crc32(text.encode("utf-8"))


def build_sequence(
    session_id: str, party_size: int, meal_context: Optional[str], cfg: Settings
) -> Tuple[int, List[str]]:
    """
    Pick the question order for a session: one rotation of the tier's bank,
    chosen from the session id so two sessions for the same group size need
    not ask in the same order.
    """
    base = list(TIER_QUESTIONS[tier_for(party_size, cfg)])
    if meal_context:
        base = [q for q in base if q != "meal_type"]
    sequence_id = _seed(session_id) % len(base)
    return sequence_id, base[sequence_id:] + base[:sequence_id]


# ----------------------------
# Records
# ----------------------------
class SessionStatus(str, Enum):
    ACTIVE = "active"
    COMPLETED = "completed"
    ABANDONED = "abandoned"


class RecordedAnswer(BaseModel):
    question_id: str
    raw: str
    label: str


class Question(BaseModel):
    id: str
    prompt: str
    options: List[str]
    step_index: int
    total_steps: int


class RecommendedItem(BaseModel):
    product: CatalogEntry
    quantity: int
    unit_price: Decimal
    total_price: Decimal
    score: int
    reason: str


class FinalRecommendation(BaseModel):
    session_id: str
    items: List[RecommendedItem] = Field(default_factory=list)
    extras: List[RecommendedItem] = Field(default_factory=list)
    preferences: Dict[str, Any] = Field(default_factory=dict)

    @property
    def main(self) -> Optional[RecommendedItem]:
        return self.items[0] if self.items else None

    def to_cart(self) -> Cart:
        cart = Cart()
        for it in ([self.main] if self.main else []) + self.extras:
            cart.add(it.product, it.quantity)
        return cart


class RecommendationSession(BaseModel):
    session_id: str
    sender_id: str
    branch_id: str
    business_id: str
    party_size: int
    meal_context: Optional[str] = None
    step: int = 0
    total_steps: int
    question_ids: List[str]
    answers: List[RecordedAnswer] = Field(default_factory=list)
    question_sequence_id: int = 0
    wording_seed: int = 0
    status: SessionStatus = SessionStatus.ACTIVE
    final: Optional[FinalRecommendation] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)


# ----------------------------
# Answer resolution
# ----------------------------
_NO_PREFERENCE = {"no", "nada", "ninguna", "ninguno", "cualquiera", "lo que sea", "da igual", "me da igual"}


def resolve_option(spec: QuestionSpec, raw: str) -> Optional[int]:
    """1-based index or a case/accent-insensitive label match; None if unresolved."""
    s = normalize_text(raw)
    if not s:
        return None

    if s.isdigit():
        idx = int(s) - 1
        return idx if 0 <= idx < len(spec.options) else None

    labels = [normalize_text(o) for o in spec.options]
    if s in labels:
        return labels.index(s)

    if s in _NO_PREFERENCE and None in spec.values:
        return spec.values.index(None)

    # "vegetariano por favor", "las individuales": a unique label word inside the answer
    words = set(s.split())
    hits = [
        i for i, label in enumerate(labels)
        if f" {s} " in f" {label} " or any(w in words for w in label.split() if len(w) > 3)
    ]
    if len(hits) == 1:
        return hits[0]
    return None


# ----------------------------
# Scoring
# ----------------------------
_MEAL_KEYWORDS: Dict[str, Tuple[str, ...]] = {
    "desayuno": ("cafe", "huevo", "huevos", "pan", "croissant", "arepa", "tostada", "waffle", "pancake", "calentado"),
    "almuerzo": ("arroz", "pollo", "carne", "bandeja", "hamburguesa", "wrap", "pasta", "sopa", "almuerzo", "ensalada", "alitas"),
    "cena": ("pasta", "carne", "pizza", "hamburguesa", "alitas", "lasagna", "salmon"),
    "snack": ("muffin", "galleta", "crepe", "crepes", "brownie", "postre", "flan", "torta", "frappe", "empanada"),
}

_MEAL_ALIASES = {
    "breakfast": "desayuno",
    "lunch": "almuerzo",
    "dinner": "cena",
    "merienda": "snack",
    "onces": "snack",
}

_RESTRICTED: Dict[str, Tuple[str, ...]] = {
    "vegetariano": ("carne", "pollo", "cerdo", "jamon", "tocino", "res", "pescado", "atun", "chorizo", "alitas", "salmon"),
    "vegano": ("carne", "pollo", "cerdo", "jamon", "tocino", "res", "pescado", "atun", "chorizo", "alitas", "salmon",
               "queso", "leche", "huevo", "huevos", "crema", "mantequilla", "nutella", "latte", "cappuccino"),
    "sin gluten": ("pan", "croissant", "wrap", "pasta", "pizza", "galleta", "muffin", "torta", "crepe", "crepes", "hamburguesa"),
    "sin lactosa": ("leche", "queso", "crema", "latte", "cappuccino", "mantequilla"),
}

_CUISINE_KEYWORDS: Dict[str, Tuple[str, ...]] = {
    "colombiana": ("bandeja", "arepa", "ajiaco", "empanada", "calentado", "chicharron", "patacon"),
    "italiana": ("pasta", "pizza", "lasagna", "risotto"),
    "mexicana": ("taco", "tacos", "burrito", "nachos", "quesadilla"),
    "internacional": ("hamburguesa", "wrap", "sandwich", "alitas", "ensalada"),
}

_SHARE_KEYWORDS = ("familiar", "combo", "compartir", "picada", "bandeja", "pizza", "alitas", "nachos", "mega", "jarra")

_DRINK_WORDS = ("bebida", "bebidas", "jugo", "limonada", "gaseosa", "soda", "cafe", "te", "frappe", "malteada",
                "agua", "cerveza", "cappuccino", "latte", "chocolate")


def _text_of(entry: CatalogEntry) -> set:
    return set(normalize_text(f"{entry.name} {entry.category}").split())


def is_drink(entry: CatalogEntry) -> bool:
    cat = set(normalize_text(entry.category).split())
    if cat & {"bebida", "bebidas", "drinks", "jugos", "cafe", "cafes"}:
        return True
    first = normalize_text(entry.name).split()[:1]
    return bool(first and first[0] in _DRINK_WORDS)


def preferences_from(session: RecommendationSession) -> Dict[str, Any]:
    prefs: Dict[str, Any] = {}
    meal = normalize_text(session.meal_context or "").split()
    if meal:
        prefs["meal_type"] = _MEAL_ALIASES.get(meal[0], meal[0])
    for ans in session.answers:
        spec = QUESTION_BANK.get(ans.question_id)
        if not spec or ans.label not in spec.options:
            continue
        value = spec.values[spec.options.index(ans.label)]
        if value is None:
            continue
        if spec.id == "budget":
            prefs["budget"] = {"min": value[0], "max": value[1]}
        elif spec.id == "dietary_restrictions":
            prefs.setdefault("dietary", []).append(value)
        elif spec.id == "cuisine_preference":
            prefs["cuisine"] = value
        elif spec.id == "special_occasion":
            prefs["occasion"] = value
        elif spec.id == "spice_level":
            prefs["spice"] = value
        elif spec.id == "sharing_style":
            prefs["sharing"] = value
        elif spec.id == "beverages":
            prefs["beverages"] = value
        elif spec.id == "meal_type":
            prefs["meal_type"] = value
    return prefs


def _passes_filters(entry: CatalogEntry, prefs: Dict[str, Any]) -> bool:
    budget = prefs.get("budget")
    if budget and budget.get("max") is not None:
        # allow up to 20% over the ceiling
        if entry.price > Decimal(budget["max"]) * Decimal("1.2"):
            return False
    words = _text_of(entry)
    for restriction in prefs.get("dietary", []):
        if words & set(_RESTRICTED.get(restriction, ())):
            return False
    return True


def score_entry(entry: CatalogEntry, prefs: Dict[str, Any]) -> Tuple[int, str]:
    score = 50.0
    reasons: List[str] = []
    words = _text_of(entry)
    price = float(entry.price)

    budget = prefs.get("budget")
    if budget:
        lo = float(budget["min"] or 0)
        hi = budget["max"]
        mid = (lo + float(hi)) / 2 if hi is not None else lo * 1.25
        if mid > 0:
            score += max(0.0, 30 - abs(price - mid) / mid * 30)
            reasons.append("se ajusta a su presupuesto")

    meal = prefs.get("meal_type")
    if meal and words & set(_MEAL_KEYWORDS.get(meal, ())):
        score += 20
        reasons.append(f"ideal para {meal}")

    cuisine = prefs.get("cuisine")
    if cuisine and words & set(_CUISINE_KEYWORDS.get(cuisine, ())):
        score += 15
        reasons.append(f"cocina {cuisine}")

    if prefs.get("sharing") and words & set(_SHARE_KEYWORDS):
        score += 20
        reasons.append("perfecto para compartir")

    occasion = prefs.get("occasion")
    if occasion == "romantica" and words & {"pasta", "vino", "postre", "torta"}:
        score += 25
        reasons.append("perfecto para una cita")
    elif occasion == "trabajo" and price < 30000:
        score += 15
        reasons.append("práctico para una reunión")
    elif occasion == "celebracion" and words & {"torta", "postre", "pizza", "combo", "picada"}:
        score += 15
        reasons.append("para celebrar")

    spice = prefs.get("spice")
    if spice == "picante" and "picante" in words:
        score += 15
        reasons.append("con el picante que buscas")
    elif spice == "sin picante" and "picante" not in words:
        score += 10

    # a drink is rarely the main pick
    if is_drink(entry):
        score -= 20

    final = int(round(min(100.0, max(0.0, score))))
    return final, (", ".join(reasons) or "una buena opción para ustedes").capitalize()


def rank_catalog(entries: Sequence[CatalogEntry], prefs: Dict[str, Any]) -> List[Tuple[int, str, CatalogEntry]]:
    pool = [e for e in entries if _passes_filters(e, prefs)]
    if not pool:
        # never come back empty-handed: rank everything instead
        pool = list(entries)
    order = {e.name: i for i, e in enumerate(entries)}
    scored = [(*score_entry(e, prefs), e) for e in pool]
    scored.sort(key=lambda x: (-x[0], order[x[2].name]))
    return scored


# ----------------------------
# Session machine
# ----------------------------
class RecommendationMachine:
    """
    Guided question flow per (sender, branch). Sessions live in the keyed
    store; every mutation of one session is serialized by its lock.
    """

    def __init__(
        self,
        store: KeyedStore,
        catalog: CatalogAccessor,
        cfg: Optional[Settings] = None,
        id_factory: Optional[Callable[[], str]] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.store = store
        self.catalog = catalog
        self.cfg = cfg or default_settings
        self._new_id = id_factory or (lambda: f"rec_{uuid4().hex[:16]}")
        self._now = clock or datetime.utcnow
        self._locks = KeyedLocks()

    # --- storage ---
    def _save(self, session: RecommendationSession) -> None:
        session.updated_at = self._now()
        self.store.put(SESSION_KIND, session.session_id, session.model_dump(mode="json"))

    def get_session(self, session_id: str) -> RecommendationSession:
        raw = self.store.get(SESSION_KIND, session_id or "")
        if raw is None:
            raise SessionNotFound(session_id)
        return RecommendationSession.model_validate(raw)

    def get_active_session(self, sender_id: str, branch_id: str) -> Optional[RecommendationSession]:
        ref = self.store.get(ACTIVE_KIND, make_key(branch_id, sender_id))
        if not ref:
            return None
        try:
            session = self.get_session(ref.get("session_id", ""))
        except SessionNotFound:
            return None
        return session if session.status == SessionStatus.ACTIVE else None

    # --- lifecycle ---
    def create_session(
        self,
        sender_id: str,
        branch_id: str,
        business_id: str,
        party_size: int,
        meal_context: Optional[str] = None,
    ) -> RecommendationSession:
        if isinstance(party_size, bool) or not isinstance(party_size, int) or party_size < 1:
            raise InvalidPartySize(party_size)

        with self._locks.hold(make_key("sender", branch_id, sender_id)):
            previous = self.get_active_session(sender_id, branch_id)
            if previous:
                self.abandon_session(previous.session_id)

            session_id = self._new_id()
            sequence_id, question_ids = build_sequence(session_id, party_size, meal_context, self.cfg)
            now = self._now()
            session = RecommendationSession(
                session_id=session_id,
                sender_id=sender_id,
                branch_id=branch_id,
                business_id=business_id,
                party_size=party_size,
                meal_context=meal_context,
                total_steps=len(question_ids),
                question_ids=question_ids,
                question_sequence_id=sequence_id,
                wording_seed=_seed(session_id[::-1]),
                created_at=now,
            )
            self._save(session)
            self.store.put(ACTIVE_KIND, make_key(branch_id, sender_id), {"session_id": session_id})

        logger.info(
            "Recommendation session %s created for %s people (tier=%s, steps=%d, sequence=%d)",
            session_id, party_size, tier_for(party_size, self.cfg).value, session.total_steps, sequence_id,
        )
        return session

    def abandon_session(self, session_id: str) -> None:
        """Externally triggered abandon (idle timeout, user cancel, superseded)."""
        with self._locks.hold(session_id):
            try:
                session = self.get_session(session_id)
            except SessionNotFound:
                return
            if session.status != SessionStatus.ACTIVE:
                return
            session.status = SessionStatus.ABANDONED
            self._save(session)
        self._clear_active(session)
        logger.info("Recommendation session %s abandoned at step %d", session_id, session.step)

    def abandon_idle_sessions(self, older_than: timedelta, now: Optional[datetime] = None) -> int:
        cutoff = (now or self._now()) - older_than
        count = 0
        for session_id, raw in self.store.items(SESSION_KIND):
            if raw.get("status") != SessionStatus.ACTIVE.value:
                continue
            session = RecommendationSession.model_validate(raw)
            if session.updated_at < cutoff:
                self.abandon_session(session_id)
                count += 1
        return count

    def _clear_active(self, session: RecommendationSession) -> None:
        key = make_key(session.branch_id, session.sender_id)
        ref = self.store.get(ACTIVE_KIND, key)
        if ref and ref.get("session_id") == session.session_id:
            self.store.delete(ACTIVE_KIND, key)

    # --- questions ---
    def _question(self, session: RecommendationSession) -> Question:
        spec = QUESTION_BANK[session.question_ids[session.step]]
        wording = spec.wordings[(session.wording_seed + session.step) % len(spec.wordings)]
        return Question(
            id=spec.id,
            prompt=wording,
            options=list(spec.options),
            step_index=session.step,
            total_steps=session.total_steps,
        )

    def get_next_question(self, session_id: str) -> Union[Question, FinalRecommendation]:
        with self._locks.hold(session_id):
            session = self.get_session(session_id)
            if session.status == SessionStatus.ABANDONED:
                raise SessionNotActive(session_id, session.status.value)
            if session.status == SessionStatus.COMPLETED and session.final is not None:
                return session.final
            if session.step < session.total_steps:
                return self._question(session)
            return self._complete(session)

    def process_answer(self, session_id: str, raw_answer: str) -> bool:
        """
        Record the answer to the current question. Returns False (and leaves the
        session untouched) when the answer matches no option.
        """
        with self._locks.hold(session_id):
            session = self.get_session(session_id)
            if session.status != SessionStatus.ACTIVE or session.step >= session.total_steps:
                raise SessionNotActive(session_id, session.status.value)

            spec = QUESTION_BANK[session.question_ids[session.step]]
            idx = resolve_option(spec, raw_answer or "")
            if idx is None:
                logger.debug("Session %s: unresolved answer %r for %s", session_id, raw_answer, spec.id)
                return False

            session.answers.append(RecordedAnswer(question_id=spec.id, raw=raw_answer, label=spec.options[idx]))
            session.step += 1
            if session.step == session.total_steps:
                self._complete(session)
            else:
                self._save(session)
            return True

    # --- final ---
    def _complete(self, session: RecommendationSession) -> FinalRecommendation:
        final = self.recommend(session)
        session.final = final
        session.status = SessionStatus.COMPLETED
        self._save(session)
        self._clear_active(session)
        logger.info(
            "Recommendation session %s completed: %s",
            session.session_id, ", ".join(i.product.name for i in final.items) or "no products",
        )
        return final

    def recommend(self, session: RecommendationSession) -> FinalRecommendation:
        entries = self.catalog.get_catalog(session.branch_id)
        prefs = preferences_from(session)

        per_item = session.party_size
        if prefs.get("sharing"):
            per_item = max(1, math.ceil(session.party_size / max(1, self.cfg.share_portion_size)))

        def _item(score: int, reason: str, entry: CatalogEntry, qty: int) -> RecommendedItem:
            return RecommendedItem(
                product=entry,
                quantity=qty,
                unit_price=entry.price,
                total_price=entry.price * qty,
                score=score,
                reason=reason,
            )

        ranked = rank_catalog(entries, prefs)
        items = [_item(s, r, e, per_item) for s, r, e in ranked[: max(1, self.cfg.recommendation_limit)]]

        extras: List[RecommendedItem] = []
        if prefs.get("beverages") and items and not is_drink(items[0].product):
            drinks = [e for e in entries if is_drink(e) and _passes_filters(e, prefs)]
            if drinks:
                extras.append(_item(50, "Bebidas para el grupo", drinks[0], session.party_size))

        return FinalRecommendation(session_id=session.session_id, items=items, extras=extras, preferences=prefs)
