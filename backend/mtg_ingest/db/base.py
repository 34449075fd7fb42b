"""
SQLAlchemy Base class for all models.
"""
from datetime import datetime
from typing import Any

from sqlalchemy import JSON, DateTime, Text, func
from sqlalchemy.dialects.postgresql import JSONB, TSVECTOR
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

# JSONB / TSVECTOR on PostgreSQL, portable fallbacks elsewhere (SQLite in tests)
JSONDocument = JSON().with_variant(JSONB(), "postgresql")
SearchVector = TSVECTOR().with_variant(Text(), "sqlite")


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    # Automatically generate __tablename__ from class name
    @classmethod
    def __tablename__(cls) -> str:
        return cls.__name__.lower() + "s"

    # Common columns for all models
    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False
    )

    def to_dict(self) -> dict[str, Any]:
        """Convert model to dictionary."""
        return {c.name: getattr(self, c.name) for c in self.__table__.columns}
