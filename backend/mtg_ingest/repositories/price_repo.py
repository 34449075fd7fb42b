"""
Price repository for card price snapshots.

Snapshots are append-only; every query orders newest first.
"""
from datetime import datetime
from typing import Iterable, Optional, Sequence

from sqlalchemy import select
from sqlalchemy.orm import Session

from mtg_ingest.models.card_price import CardPrice
from mtg_ingest.repositories.base import BaseRepository


class PriceRepository(BaseRepository[CardPrice]):
    """
    Repository for price snapshot operations.

    Handles:
    - Appending new snapshots
    - Latest / latest-two lookups used by alert detection
    - Date range history
    - The same-day idempotency filter for batch updates
    """

    def __init__(self, db: Session):
        super().__init__(CardPrice, db)

    def _newest_first(self, card_id: str):
        return (
            select(CardPrice)
            .where(CardPrice.card_id == card_id)
            .order_by(CardPrice.fetched_at.desc(), CardPrice.id.desc())
        )

    def add_snapshot(
        self,
        card_id: str,
        fetched_at: datetime,
        usd_cents: Optional[int] = None,
        usd_foil_cents: Optional[int] = None,
        usd_etched_cents: Optional[int] = None,
    ) -> CardPrice:
        return self.create(
            card_id=card_id,
            fetched_at=fetched_at,
            usd_cents=usd_cents,
            usd_foil_cents=usd_foil_cents,
            usd_etched_cents=usd_etched_cents,
        )

    def latest_for(self, card_id: str) -> CardPrice | None:
        return self.db.execute(self._newest_first(card_id).limit(1)).scalar_one_or_none()

    def latest_two(self, card_id: str) -> Sequence[CardPrice]:
        """Two most recent snapshots, newest first. Fewer if history is short."""
        return self.db.execute(self._newest_first(card_id).limit(2)).scalars().all()

    def for_date_range(
        self,
        card_id: str,
        start: datetime,
        end: datetime,
    ) -> Sequence[CardPrice]:
        """Snapshots with `start <= fetched_at <= end`, newest first."""
        query = self._newest_first(card_id).where(
            CardPrice.fetched_at >= start,
            CardPrice.fetched_at <= end,
        )
        return self.db.execute(query).scalars().all()

    def card_ids_priced_since(self, card_ids: Iterable[str], since: datetime) -> set[str]:
        """Subset of `card_ids` that already has a snapshot fetched at or after `since`."""
        ids = list(card_ids)
        if not ids:
            return set()
        query = (
            select(CardPrice.card_id)
            .where(CardPrice.card_id.in_(ids), CardPrice.fetched_at >= since)
            .distinct()
        )
        return set(self.db.execute(query).scalars().all())
