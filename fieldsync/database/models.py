"""SQLAlchemy database models for fieldsync."""

from sqlalchemy import Column, String, Text, DateTime

from fieldsync.database.database import Base
from fieldsync.models.event_factory import utc_now


class KeyValueDB(Base):
    """Row of the durable key-value store."""

    __tablename__ = "kv_store"

    key = Column(String, primary_key=True)
    value = Column(Text, nullable=False)
    updated_at = Column(DateTime, nullable=False, default=utc_now, onupdate=utc_now)
