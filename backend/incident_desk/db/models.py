"""SQLAlchemy models for the durable key-value blobs."""
from __future__ import annotations

from sqlalchemy import String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all models."""


class StoredBlob(Base):
    """One durable key holding a whole serialized JSON blob."""

    __tablename__ = "kv_store"

    key: Mapped[str] = mapped_column(String(100), primary_key=True)
    value: Mapped[str] = mapped_column(Text, nullable=False)  # JSON string
    updated_at: Mapped[str] = mapped_column(String(30), nullable=False)  # ISO format timestamp
