"""
SQLAlchemy models for the Headrest billing handoff.
"""
from __future__ import annotations

from sqlalchemy import Column, DateTime, Integer, Text
from sqlalchemy.orm import declarative_base
from sqlalchemy.sql import func

Base = declarative_base()


class ProcessedWebhookEvent(Base):
    __tablename__ = "processed_webhook_events"

    id = Column(Integer, primary_key=True, autoincrement=True)
    event_id = Column(Text, nullable=False, unique=True, index=True)
    event_type = Column(Text, nullable=False)
    processed_at = Column(DateTime(timezone=True), server_default=func.now())


class StoredValue(Base):
    """Row of the SQL-backed key-value store used for server-side handoffs."""

    __tablename__ = "stored_values"

    key = Column(Text, primary_key=True)
    value = Column(Text, nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())


__all__ = ["Base", "ProcessedWebhookEvent", "StoredValue"]
