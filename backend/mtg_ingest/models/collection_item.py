"""
Collection items: cards a user owns (inventory) or wants (wishlist).

The pipeline only reads this table: the distinct card ids across every
collection are the "tracked" cards priced by the daily update, and inventory
rows decide who receives price alerts.
"""
from datetime import date
from enum import Enum
from typing import TYPE_CHECKING, Optional

from sqlalchemy import CheckConstraint, Date, ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship, validates

from mtg_ingest.db.base import Base

if TYPE_CHECKING:
    from mtg_ingest.models.user import User


class CollectionType(str, Enum):
    """Which list a collection item belongs to."""
    INVENTORY = "inventory"
    WISHLIST = "wishlist"


TREATMENT_OPTIONS = (
    "Normal", "Foil", "Etched", "Showcase", "Extended Art",
    "Borderless", "Full Art", "Retro Frame", "Textured Foil",
)


class CollectionItem(Base):
    """A card (by catalog id) in one of a user's collections."""

    __tablename__ = "collection_items"

    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    # Scryfall card UUID
    card_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    collection_type: Mapped[str] = mapped_column(String(20), nullable=False)
    quantity: Mapped[int] = mapped_column(default=1, nullable=False)
    treatment: Mapped[Optional[str]] = mapped_column(String(30), nullable=True)
    language: Mapped[Optional[str]] = mapped_column(String(30), nullable=True)
    acquired_price_cents: Mapped[Optional[int]] = mapped_column(nullable=True)
    acquired_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)

    user: Mapped["User"] = relationship("User", back_populates="collection_items")

    __table_args__ = (
        UniqueConstraint("user_id", "card_id", "collection_type", name="uq_collection_items_user_card_type"),
        CheckConstraint("quantity > 0 AND quantity <= 999", name="ck_collection_items_quantity"),
        CheckConstraint("acquired_price_cents IS NULL OR acquired_price_cents >= 0", name="ck_collection_items_price"),
        Index("ix_collection_items_type_card", "collection_type", "card_id"),
    )

    @validates("collection_type")
    def validate_collection_type(self, key, value):
        if value not in {t.value for t in CollectionType}:
            raise ValueError(f"Unknown collection type: {value}")
        return value

    @validates("treatment")
    def validate_treatment(self, key, value):
        if value is not None and value not in TREATMENT_OPTIONS:
            raise ValueError(f"Unknown treatment: {value}")
        return value

    def __repr__(self) -> str:
        return f"<CollectionItem user={self.user_id} card={self.card_id} type={self.collection_type}>"
