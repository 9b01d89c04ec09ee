"""
Venue Execution - ORM Models.

============================================================
PURPOSE
============================================================
SQLAlchemy ORM models for ledger persistence.

TABLES:
- ledger_records: one row per venue ledger, plus one row for
  the aggregator's global state. The payload is the JSON
  snapshot produced by Ledger.to_dict() / GlobalState.to_dict().

============================================================
"""

from datetime import datetime

from sqlalchemy import DateTime, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from .types import utcnow


class Base(DeclarativeBase):
    """Base class for ORM models."""
    pass


class LedgerRecordModel(Base):
    """
    Persisted ledger snapshot.
    """

    __tablename__ = "ledger_records"

    record_key: Mapped[str] = mapped_column(String(64), primary_key=True)
    payload: Mapped[str] = mapped_column(Text, nullable=False)
    saved_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False
    )

    def __repr__(self) -> str:
        return f"<LedgerRecordModel {self.record_key} saved_at={self.saved_at}>"
