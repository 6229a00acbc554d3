# orderbot/ai_intent.py
from __future__ import annotations

import json
import logging
from typing import Any, Callable, Dict, List, Optional

from openai import OpenAI

from .command_router import command_to_userlike_text
from .config import Settings
from .ordering.menu import CatalogEntry, all_category_names

logger = logging.getLogger(__name__)

SYSTEM = """Eres un intérprete de intenciones para un asistente de pedidos por chat.
Convierte el mensaje del cliente en UN comando JSON que cumpla el esquema.
Reglas:
- Nunca inventes productos: usa solo nombres de la lista de productos. Si no estás seguro usa "unknown".
- "recommend" cuando el cliente pide sugerencias; party_size es el número de personas si lo menciona.
- Sé robusto a errores de ortografía y jerga.
"""

# JSON Schema for Structured Outputs
COMMAND_SCHEMA: Dict[str, Any] = {
    "name": "chat_order_command",
    "schema": {
        "type": "object",
        "additionalProperties": False,
        "properties": {
            "intent": {
                "type": "string",
                "enum": [
                    "greeting",
                    "show_menu",
                    "show_cart",
                    "add_items",
                    "recommend",
                    "confirm",
                    "cancel",
                    "unknown",
                ],
            },
            "items": {
                "type": "array",
                "items": {
                    "type": "object",
                    "additionalProperties": False,
                    "properties": {
                        "name": {"type": "string"},
                        "qty": {"type": "integer", "minimum": 1},
                    },
                    "required": ["name", "qty"],
                },
            },
            "party_size": {"type": ["integer", "null"], "minimum": 1},
            "meal": {"type": ["string", "null"]},
        },
        "required": ["intent", "items", "party_size", "meal"],
    },
    "strict": True,
}

# (message, catalog) -> user-like text, or "" when nothing usable came back
Rewriter = Callable[[str, List[CatalogEntry]], str]


def _catalog_hints(catalog: List[CatalogEntry]) -> Dict[str, Any]:
    # Keep hints small to control cost + latency.
    return {"categories": all_category_names(catalog), "products": [e.name for e in catalog[:120]]}


class OpenAIRewriter:
    """Ask the model for a structured command and turn it back into plain text."""

    def __init__(self, api_key: str, model: str) -> None:
        self.model = model
        self._client = OpenAI(api_key=api_key)

    def interpret(self, message: str, catalog: List[CatalogEntry]) -> Dict[str, Any]:
        payload = {"message": message, "catalog": _catalog_hints(catalog)}
        resp = self._client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": SYSTEM},
                {"role": "user", "content": json.dumps(payload, ensure_ascii=False)},
            ],
            # Structured Outputs: forces schema correctness
            response_format={"type": "json_schema", "json_schema": COMMAND_SCHEMA},
        )
        return json.loads(resp.choices[0].message.content or "{}")

    def __call__(self, message: str, catalog: List[CatalogEntry]) -> str:
        cmd = self.interpret(message, catalog)
        return command_to_userlike_text(cmd)


def rewriter_from_settings(cfg: Settings) -> Optional[Rewriter]:
    if not (cfg.llm_enabled and cfg.openai_api_key):
        return None
    logger.info("LLM intent fallback enabled (model=%s)", cfg.openai_model)
    return OpenAIRewriter(api_key=cfg.openai_api_key, model=cfg.openai_model)
