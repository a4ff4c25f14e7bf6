"""SQLAlchemy database models for the persistence layer."""
from datetime import datetime, UTC
from sqlalchemy import Column, String, DateTime, JSON
from sqlalchemy.orm import declarative_base

Base = declarative_base()


def utc_now():
    """Get current UTC timestamp."""
    return datetime.now(UTC)


class Snapshot(Base):
    """One JSON snapshot per persistence key, replaced as a whole on write."""
    __tablename__ = "kv_snapshots"

    key = Column(String(255), primary_key=True, index=True)
    value = Column(JSON, nullable=False)
    updated_at = Column(DateTime, default=utc_now, onupdate=utc_now, nullable=False)

    def __repr__(self):
        return f"<Snapshot(key={self.key})>"
