# orderbot/ordering/replies.py
from __future__ import annotations

from typing import Dict, List, Optional, Sequence, Tuple

from .context import ConversationContext
from .menu import format_price
from .recommend import FinalRecommendation, Question

Template = Tuple[str, str]  # (template id, text)

# ----------------------------
# Templates (es)
# ----------------------------
GREETINGS: Dict[str, List[Template]] = {
    "restaurant": [
        ("greet.restaurant.1", "¡Hola! Bienvenido a nuestro restaurante 🍽️\n\nPuedes pedirme el *menú*, hacer tu pedido o pedirme una recomendación para tu grupo."),
        ("greet.restaurant.2", "¡Hola! 👋 Qué gusto saludarte. ¿Te muestro el *menú* o ya sabes qué vas a pedir?"),
        ("greet.restaurant.3", "¡Buenas! 😊 Si no sabes qué pedir, dime *recomiéndame algo para 2 personas* y te ayudo a elegir."),
    ],
    "cafe": [
        ("greet.cafe.1", "¡Hola! Bienvenido a nuestra cafetería ☕\n\n¿Quieres ver el *menú* de bebidas y pastelería o ya tienes antojo de algo?"),
        ("greet.cafe.2", "¡Hola! ☕ ¿Un café para empezar? Escribe *menú* para ver todo lo que tenemos."),
        ("greet.cafe.3", "¡Buenas! 🥐 Cuéntame qué se te antoja o pídeme una recomendación."),
    ],
    "pharmacy": [
        ("greet.pharmacy.1", "¡Hola! Bienvenido a nuestra farmacia 💊\n\nPuedo ayudarte a consultar productos y hacer tu pedido. Escribe *menú* para ver el catálogo."),
        ("greet.pharmacy.2", "¡Hola! 💊 ¿Qué producto estás buscando hoy?"),
    ],
    "grocery": [
        ("greet.grocery.1", "¡Hola! Bienvenido a nuestra tienda 🛒\n\nEscribe *menú* para ver los productos o envíame tu lista de compras."),
        ("greet.grocery.2", "¡Hola! 🛒 Mándame tu lista, por ejemplo: *2 leches, 1 pan tajado*."),
    ],
}

ORDER_ADDED: List[Template] = [
    ("order.added.1", "¡Listo! Lo agregué a tu pedido ✅"),
    ("order.added.2", "Anotado ✅"),
    ("order.added.3", "Perfecto, ya lo sumé 🙌"),
]

ORDER_NOT_FOUND: List[Template] = [
    ("order.notfound.1", "No encontré esos productos en el menú 🤔 Escribe *menú* para ver las opciones."),
    ("order.notfound.2", "Mmm, no logré identificar el producto. ¿Me lo escribes como aparece en el *menú*?"),
    ("order.notfound.3", "No reconocí ese producto 😅 Prueba con el nombre exacto, por ejemplo *1 cappuccino*."),
]

FALLBACKS: List[Template] = [
    ("fallback.1", "Puedo mostrarte el *menú*, tomar tu pedido o recomendarte algo. ¿Qué prefieres?"),
    ("fallback.2", "No estoy seguro de haber entendido 🤔 Escríbeme lo que quieres pedir, por ejemplo *2 empanadas*."),
    ("fallback.3", "Si quieres, dime *recomiéndame algo para 4 personas* y te armo una propuesta 😉"),
]

CLOSINGS: List[Template] = [
    ("closing.1", "¿En qué más puedo ayudarte?"),
    ("closing.2", "¿Quieres agregar algo más?"),
    ("closing.3", "Aquí estoy si necesitas algo más 😊"),
    ("closing.4", "¿Te ayudo con algo más?"),
]

ERRORS: List[Template] = [
    ("error.1", "Lo siento, tuve un problema procesando tu mensaje 🙏 ¿Puedes intentarlo de nuevo?"),
    ("error.2", "Ups, algo salió mal de mi lado 😓 Intenta de nuevo en un momento, por favor."),
]

MENU_INTRO = "📋 *Nuestro menú:*\n\n{menu}"
MENU_UNAVAILABLE = "En este momento no tengo el menú disponible 😔 Por favor intenta más tarde."
ORDERS_UNAVAILABLE = "En este momento no puedo tomar pedidos 😔 Por favor intenta más tarde."
CONFIRM_PROMPT = "Escribe *sí* para confirmar o *cancelar* para empezar de nuevo."
ORDER_CONFIRMED = "🎉 ¡Pedido confirmado! Tu número de pedido es *{order_id}*.\n\n{summary}"
NOTHING_TO_CONFIRM = "Aún no tienes productos en tu pedido. Escríbeme lo que quieres, por ejemplo *1 cappuccino*."
CANCELLED = "Listo, cancelé tu pedido 🗑️ Cuando quieras empezamos de nuevo."
NOTHING_TO_CANCEL = "No tienes nada pendiente por cancelar 👍"
SESSION_CANCELLED = "Listo, dejamos la recomendación aquí 👍"
ASK_PARTY_SIZE = "¡Con gusto te recomiendo! 🙌 ¿Para cuántas personas es?"
INVALID_PARTY_SIZE = "Necesito un número de personas válido (1 o más). ¿Para cuántas personas es?"
QUESTION_HEADER = "Pregunta {n}/{total}: {prompt}"
QUESTION_FOOTER = "Responde con el número o el nombre de la opción."
ANSWER_NOT_UNDERSTOOD = "No entendí tu respuesta 🙈"
SUGGESTION_PROMPT = "¿Quieres pedirlo? Escribe *pedir* y lo agrego a tu pedido."
NO_RECOMMENDATION = "No encontré productos para recomendarte en este momento 😔"


class ReplyBook:
    """
    Picks reply variants per sender without repeating what the sender saw in
    the last `window` turns; the chosen ids are stored in the context.
    """

    def __init__(self, currency_symbol: str = "$", window: int = 3) -> None:
        self.currency_symbol = currency_symbol
        # a turn records at most two templates, so 3 always covers the previous closing
        self.window = max(3, window)

    def pick(self, ctx: ConversationContext, variants: Sequence[Template]) -> str:
        recent = set(ctx.recent_templates)
        n = len(variants)
        start = ctx.message_count % n
        for i in range(n):
            tid, text = variants[(start + i) % n]
            if tid not in recent:
                ctx.remember_template(tid, self.window)
                return text
        # every variant was used recently: take the oldest-used one
        by_age = {tid: i for i, tid in enumerate(ctx.recent_templates)}
        tid, text = min(variants, key=lambda v: by_age.get(v[0], -1))
        ctx.remember_template(tid, self.window)
        return text

    def with_closing(self, ctx: ConversationContext, text: str) -> str:
        return f"{text}\n\n{self.pick(ctx, CLOSINGS)}"

    def greeting(self, ctx: ConversationContext, business_type: str) -> str:
        pool = GREETINGS.get((business_type or "").strip().lower()) or GREETINGS["restaurant"]
        return self.pick(ctx, pool)

    def fallback(self, ctx: ConversationContext) -> str:
        return self.pick(ctx, FALLBACKS)

    def error(self, ctx: ConversationContext) -> str:
        return self.pick(ctx, ERRORS)

    def question(self, q: Question, hint: Optional[str] = None) -> str:
        parts = []
        if hint:
            parts.append(hint)
        parts.append(QUESTION_HEADER.format(n=q.step_index + 1, total=q.total_steps, prompt=q.prompt))
        parts.append("\n".join(f"{i}. {opt}" for i, opt in enumerate(q.options, start=1)))
        parts.append(QUESTION_FOOTER)
        return "\n\n".join(parts)

    def recommendation(self, rec: FinalRecommendation, party_size: int) -> str:
        main = rec.main
        if not main:
            return NO_RECOMMENDATION

        def money(v):
            return format_price(v, self.currency_symbol)

        who = "ti" if party_size == 1 else f"{party_size} personas"
        lines = [
            f"🎯 *Mi recomendación para {who}:*",
            "",
            f"⭐ {main.quantity} x {main.product.name} - {money(main.total_price)}",
            f"   {main.reason}",
        ]
        for extra in rec.extras:
            lines.append(f"➕ {extra.quantity} x {extra.product.name} - {money(extra.total_price)}")
        alternatives = rec.items[1:]
        if alternatives:
            lines.append("")
            lines.append("También te pueden gustar:")
            for alt in alternatives:
                lines.append(f"• {alt.product.name} - {money(alt.unit_price)} c/u")
        lines.append("")
        lines.append(SUGGESTION_PROMPT)
        return "\n".join(lines)
