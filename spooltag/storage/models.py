"""SQLAlchemy models for persisted key-value records."""

from datetime import datetime

from sqlalchemy import Column, DateTime, String, Text

from .database import Base


class KeyValueRecord(Base):
    """A single string value stored under (namespace, key)."""
    __tablename__ = "kv_records"

    namespace = Column(String(64), primary_key=True)
    key = Column(String(128), primary_key=True)
    value = Column(Text, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
