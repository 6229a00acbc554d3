from __future__ import annotations

import argparse
import logging
from pathlib import Path

from orderbot.config import Settings, settings
from orderbot.main import build_engine
from orderbot.ordering.cart import build_summary
from orderbot.ordering.menu_store import JsonCatalog
from orderbot.ordering.parser import parse


def main() -> None:
    ap = argparse.ArgumentParser(description="Talk to a branch's ordering assistant from the terminal.")
    ap.add_argument("branch", help="branch id (folder name under the menus dir)")
    ap.add_argument("--sender", default="console", help="sender id to converse as")
    ap.add_argument("--business-type", default="restaurant")
    ap.add_argument("--menus-dir", type=Path, default=settings.menus_dir)
    ap.add_argument("--db", default="sqlite://", help="database url (default: in-memory)")
    ap.add_argument("--parse-only", action="store_true", help="only run the order parser on each line")
    args = ap.parse_args()

    logging.basicConfig(level=settings.log_level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    cfg = Settings(**{**settings.model_dump(), "menus_dir": args.menus_dir, "database_url": args.db})

    if args.parse_only:
        catalog = JsonCatalog(cfg.menus_dir, currency_symbol=cfg.currency_symbol).get_catalog(args.branch)
        print(f"{len(catalog)} products loaded. Ctrl-D to quit.")
        while True:
            try:
                line = input("> ")
            except EOFError:
                break
            summary, _total = build_summary(parse(line, catalog), cfg.currency_symbol)
            print(summary + "\n")
        return

    engine = build_engine(cfg)
    print(f"Chatting with branch '{args.branch}' as '{args.sender}'. Ctrl-D to quit.")
    while True:
        try:
            line = input("> ")
        except EOFError:
            break
        reply = engine.respond(args.branch, line, args.sender, args.business_type, {"business_id": args.branch})
        print(reply.text + "\n")


if __name__ == "__main__":
    main()
