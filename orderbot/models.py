# orderbot/models.py
from __future__ import annotations

from datetime import datetime

from sqlalchemy import Column, DateTime, Integer, Numeric, String, Text

from .db import Base


class Order(Base):
    __tablename__ = "orders"
    id = Column(Integer, primary_key=True)
    branch_id = Column(String, index=True, nullable=False)
    sender_id = Column(String, index=True, nullable=False)
    status = Column(String, default="confirmed")  # confirmed | delivered | cancelled
    created_at = Column(DateTime, default=datetime.utcnow)
    summary_text = Column(Text, default="")
    items_json = Column(Text, default="[]")
    subtotal = Column(Numeric(12, 2), default=0)


class Record(Base):
    """Keyed JSON record: conversation contexts and recommendation sessions."""

    __tablename__ = "records"
    kind = Column(String, primary_key=True)
    key = Column(String, primary_key=True)
    payload = Column(Text, nullable=False, default="{}")
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
