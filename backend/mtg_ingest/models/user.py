"""
User model: owner of collections and price alerts.
"""
from typing import TYPE_CHECKING, List

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from mtg_ingest.db.base import Base

if TYPE_CHECKING:
    from mtg_ingest.models.collection_item import CollectionItem
    from mtg_ingest.models.price_alert import PriceAlert


class User(Base):
    """A collector whose tracked cards drive price updates and alerts."""

    __tablename__ = "users"

    email: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        nullable=False,
        index=True
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False)

    collection_items: Mapped[List["CollectionItem"]] = relationship(
        "CollectionItem",
        back_populates="user",
        cascade="all, delete-orphan",
    )
    price_alerts: Mapped[List["PriceAlert"]] = relationship(
        "PriceAlert",
        back_populates="user",
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return f"<User {self.email}>"
