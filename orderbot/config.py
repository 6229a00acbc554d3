# orderbot/config.py
from __future__ import annotations

import os
from decimal import Decimal
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel

# Load .env locally (safe in prod too)
load_dotenv()

PROJECT_ROOT = Path(__file__).resolve().parents[1]
DEFAULT_MENUS_DIR = PROJECT_ROOT / "data"


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() not in {"0", "false", "no", ""}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name, str(default))
    try:
        return int(raw)
    except ValueError:
        return default


# -------------------
# Config (env-driven)
# -------------------
class Settings(BaseModel):
    llm_enabled: bool = _env_flag("LLM_ENABLED", "0")
    openai_api_key: str = os.getenv("OPENAI_API_KEY", "").strip()
    openai_model: str = os.getenv("OPENAI_MODEL", "gpt-4o-mini").strip()

    database_url: str = os.getenv("DATABASE_URL", "sqlite:///./orderbot.db")
    menus_dir: Path = Path(os.getenv("MENUS_DIR", str(DEFAULT_MENUS_DIR)))

    currency_symbol: str = os.getenv("CURRENCY_SYMBOL", "$")
    delivery_fee: Decimal = Decimal(os.getenv("DELIVERY_FEE", "0"))

    # party-size tiers: <= small_party_max is small, <= medium_party_max is medium
    small_party_max: int = _env_int("SMALL_PARTY_MAX", 2)
    medium_party_max: int = _env_int("MEDIUM_PARTY_MAX", 5)
    recommendation_limit: int = _env_int("RECOMMENDATION_LIMIT", 3)
    share_portion_size: int = _env_int("SHARE_PORTION_SIZE", 3)

    # how many recent reply templates a sender must not see again
    template_window: int = _env_int("TEMPLATE_WINDOW", 3)

    log_level: str = os.getenv("LOG_LEVEL", "INFO").upper()


settings = Settings()
