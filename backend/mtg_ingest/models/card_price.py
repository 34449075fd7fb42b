"""
CardPrice model: immutable price snapshots per card.

Prices are stored in integer cents to avoid floating-point drift. Many
snapshots accumulate per card id; the pipeline never updates or deletes them.
"""
from datetime import datetime
from typing import Optional

from sqlalchemy import CheckConstraint, DateTime, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from mtg_ingest.db.base import Base


def price_for_treatment(
    usd_cents: Optional[int],
    usd_foil_cents: Optional[int],
    usd_etched_cents: Optional[int],
    treatment: Optional[str],
) -> Optional[int]:
    """
    Select the price matching a card treatment.

    Foil and etched fall back to the base price when their own is missing;
    every other treatment uses the base price.
    """
    kind = (treatment or "").lower()
    if kind == "foil":
        return usd_foil_cents if usd_foil_cents is not None else usd_cents
    if kind == "etched":
        return usd_etched_cents if usd_etched_cents is not None else usd_cents
    return usd_cents


class CardPrice(Base):
    """A point-in-time Scryfall price snapshot for one card."""

    __tablename__ = "card_prices"

    # Scryfall card UUID
    card_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    usd_cents: Mapped[Optional[int]] = mapped_column(nullable=True)
    usd_foil_cents: Mapped[Optional[int]] = mapped_column(nullable=True)
    usd_etched_cents: Mapped[Optional[int]] = mapped_column(nullable=True)
    fetched_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        CheckConstraint("usd_cents IS NULL OR usd_cents >= 0", name="ck_card_prices_usd"),
        CheckConstraint("usd_foil_cents IS NULL OR usd_foil_cents >= 0", name="ck_card_prices_usd_foil"),
        CheckConstraint("usd_etched_cents IS NULL OR usd_etched_cents >= 0", name="ck_card_prices_usd_etched"),
    )

    def price_for_treatment(self, treatment: Optional[str]) -> Optional[int]:
        return price_for_treatment(
            self.usd_cents, self.usd_foil_cents, self.usd_etched_cents, treatment
        )

    def __repr__(self) -> str:
        return f"<CardPrice card={self.card_id} usd={self.usd_cents} at={self.fetched_at}>"


# Latest-first lookups per card
Index("ix_card_prices_card_fetched_desc", CardPrice.card_id, CardPrice.fetched_at.desc())
