"""
SQLAlchemy ORM models for stored pipeline output.

Batch output is schemaless: every record is a JSON document addressed by
(collection, key), e.g. ("games", "<event_id>") or ("slips", "latest").
"""
from datetime import datetime
from typing import Any

from sqlalchemy import JSON, DateTime, Index, String, create_engine
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


class Document(Base):
    """One stored JSON document."""

    __tablename__ = "documents"

    collection: Mapped[str] = mapped_column(String(50), primary_key=True)
    key: Mapped[str] = mapped_column(String(200), primary_key=True)
    payload: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False
    )

    __table_args__ = (Index("ix_documents_updated", "collection", "updated_at"),)


def get_engine(database_url: str):
    return create_engine(database_url)
