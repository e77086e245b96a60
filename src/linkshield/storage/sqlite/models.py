"""SQLAlchemy ORM models for persisted engine state."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import JSON, DateTime, Float, Index, String, func
from sqlalchemy.orm import Mapped, declarative_base, mapped_column

Base = declarative_base()


class CacheEntryRecord(Base):
    """One cached check result inside a cache namespace."""

    __tablename__ = "cache_entries"

    namespace: Mapped[str] = mapped_column(String(64), primary_key=True)
    key: Mapped[str] = mapped_column(String(4096), primary_key=True)
    payload: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    timestamp: Mapped[float] = mapped_column(Float, nullable=False)

    __table_args__ = (Index("ix_cache_entries_namespace", "namespace"),)

    def __repr__(self) -> str:
        return f"<CacheEntryRecord(namespace={self.namespace}, key={self.key})>"


class StateEntryRecord(Base):
    """Scalar engine state such as the last blocklist refresh instant."""

    __tablename__ = "state_entries"

    key: Mapped[str] = mapped_column(String(255), primary_key=True)
    value: Mapped[Any] = mapped_column(JSON, nullable=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=func.now(), onupdate=func.now()
    )

    def __repr__(self) -> str:
        return f"<StateEntryRecord(key={self.key})>"
