"""
Read-only queries over user collections.

Collections are maintained elsewhere; the pipeline only needs to know which
cards are tracked and who holds what in their inventory.
"""
from typing import NamedTuple, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from mtg_ingest.models.collection_item import CollectionItem, CollectionType
from mtg_ingest.repositories.base import BaseRepository


class Holding(NamedTuple):
    user_id: int
    card_id: str
    treatment: Optional[str]


class CollectionRepository(BaseRepository[CollectionItem]):
    def __init__(self, db: Session):
        super().__init__(CollectionItem, db)

    def tracked_card_ids(self) -> list[str]:
        """Distinct card ids across every user's inventory and wishlist."""
        query = select(CollectionItem.card_id).distinct().order_by(CollectionItem.card_id)
        return list(self.db.execute(query).scalars().all())

    def inventory_holdings(self) -> list[Holding]:
        """Distinct (user, card, treatment) triples from inventory items."""
        query = (
            select(CollectionItem.user_id, CollectionItem.card_id, CollectionItem.treatment)
            .where(CollectionItem.collection_type == CollectionType.INVENTORY.value)
            .distinct()
            .order_by(CollectionItem.user_id, CollectionItem.card_id)
        )
        return [Holding(*row) for row in self.db.execute(query).all()]
