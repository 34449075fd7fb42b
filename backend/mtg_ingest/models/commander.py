"""
Commander and Decklist models.

Commanders come from the weekly EDHREC ranking; each one owns the average
decklist scraped for it. Decklist contents are stored as a JSON document with
a full-text search vector built from the card and commander names.
"""
from datetime import datetime
from typing import Any, List, Optional

from sqlalchemy import DateTime, ForeignKey, Index, String, UniqueConstraint, text
from sqlalchemy.orm import Mapped, mapped_column, relationship, validates

from mtg_ingest.db.base import Base, JSONDocument, SearchVector


class Commander(Base):
    """
    One real-world commander.

    Unique on name: re-discovery updates rank and URL on the same row.
    `last_scraped_at` is only touched when a decklist is saved.
    """

    __tablename__ = "commanders"

    name: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    rank: Mapped[int] = mapped_column(nullable=False, index=True)
    edhrec_url: Mapped[str] = mapped_column(String(500), nullable=False)
    last_scraped_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True
    )

    decklists: Mapped[List["Decklist"]] = relationship(
        "Decklist",
        back_populates="commander",
        foreign_keys="Decklist.commander_id",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="Decklist.id",
    )

    def __repr__(self) -> str:
        return f"<Commander #{self.rank} {self.name}>"

    @property
    def primary_decklist(self) -> Optional["Decklist"]:
        return self.decklists[0] if self.decklists else None

    @property
    def card_count(self) -> int:
        """Number of cards in the primary decklist, 0 if none was scraped."""
        decklist = self.primary_decklist
        return len(decklist.contents) if decklist and decklist.contents else 0


class Decklist(Base):
    """
    Scraped card list for a commander, optionally paired with a partner.

    At most one row per (commander, partner); repeat scrapes replace
    `contents` in place.
    """

    __tablename__ = "decklists"

    commander_id: Mapped[int] = mapped_column(
        ForeignKey("commanders.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    partner_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("commanders.id", ondelete="CASCADE"),
        nullable=True
    )
    # [{card_id, card_name, card_url, quantity, is_commander}, ...]
    contents: Mapped[list[dict[str, Any]]] = mapped_column(JSONDocument, nullable=False)
    vector: Mapped[Optional[str]] = mapped_column(SearchVector, nullable=True)

    commander: Mapped["Commander"] = relationship(
        "Commander",
        back_populates="decklists",
        foreign_keys=[commander_id],
    )
    partner: Mapped[Optional["Commander"]] = relationship(
        "Commander",
        foreign_keys=[partner_id],
    )

    __table_args__ = (
        UniqueConstraint("commander_id", "partner_id", name="uq_decklists_commander_partner"),
        # NULL partners are distinct in a plain unique constraint
        Index(
            "uq_decklists_solo_commander",
            "commander_id",
            unique=True,
            postgresql_where=text("partner_id IS NULL"),
            sqlite_where=text("partner_id IS NULL"),
        ),
        Index("ix_decklists_vector", "vector", postgresql_using="gin"),
    )

    @validates("contents")
    def validate_contents(self, key, value):
        if not value:
            raise ValueError("Decklist contents can't be blank")
        return value

    def search_text(self) -> str:
        """Card names plus commander and partner names, space separated."""
        words = [
            entry["card_name"]
            for entry in self.contents or []
            if entry.get("card_name")
        ]
        if self.commander is not None and self.commander.name:
            words.append(self.commander.name)
        if self.partner is not None and self.partner.name:
            words.append(self.partner.name)
        return " ".join(words)

    def __repr__(self) -> str:
        return f"<Decklist commander={self.commander_id} partner={self.partner_id} cards={len(self.contents or [])}>"
