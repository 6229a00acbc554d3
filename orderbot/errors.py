# orderbot/errors.py
from __future__ import annotations


class OrderBotError(Exception):
    """Base class for errors raised by the ordering core."""


class InvalidPartySize(OrderBotError):
    def __init__(self, party_size: object) -> None:
        super().__init__(f"Party size must be a positive integer, got {party_size!r}")
        self.party_size = party_size


class SessionNotFound(OrderBotError):
    def __init__(self, session_id: str) -> None:
        super().__init__(f"Recommendation session not found: {session_id}")
        self.session_id = session_id


class SessionNotActive(OrderBotError):
    def __init__(self, session_id: str, status: str) -> None:
        super().__init__(f"Recommendation session {session_id} is {status}")
        self.session_id = session_id
        self.status = status


class AmbiguousProductMatch(OrderBotError):
    """Raised inside the matcher only; the parser discards the segment."""

    def __init__(self, text: str, candidates: list[str]) -> None:
        super().__init__(f"'{text}' matches several products: {', '.join(candidates)}")
        self.text = text
        self.candidates = candidates


class CatalogUnavailable(OrderBotError):
    def __init__(self, branch_id: str, reason: str = "") -> None:
        msg = f"Catalog unavailable for branch {branch_id}"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)
        self.branch_id = branch_id
