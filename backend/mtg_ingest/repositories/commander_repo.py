"""
Commander repository: ranking upserts and decklist persistence.
"""
from typing import Any, Optional, Sequence

import structlog
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from mtg_ingest.models.commander import Commander, Decklist
from mtg_ingest.repositories.base import BaseRepository

logger = structlog.get_logger(__name__)


class CommanderRepository(BaseRepository[Commander]):
    """Commanders, their decklists and decklist search."""

    def __init__(self, db: Session):
        super().__init__(Commander, db)

    @property
    def _is_postgres(self) -> bool:
        return self.db.get_bind().dialect.name == "postgresql"

    def list_by_rank(self, limit: Optional[int] = None) -> Sequence[Commander]:
        query = select(Commander).order_by(Commander.rank, Commander.name)
        if limit is not None:
            query = query.limit(limit)
        return self.db.execute(query).scalars().all()

    def get_by_name(self, name: str) -> Commander | None:
        return self.find_one_by(name=name)

    def upsert_from_ranking(self, entries: list[dict[str, Any]]) -> list[Commander]:
        """
        Create or update one commander per ranking entry, matched by name.

        Rank and URL are overwritten; `last_scraped_at` is left alone.

        Args:
            entries: `{name, rank, url}` dicts in ranking order

        Returns:
            Commanders in the same order as `entries`
        """
        commanders = []
        for entry in entries:
            commander = self.get_by_name(entry["name"])
            if commander is None:
                commander = Commander(
                    name=entry["name"],
                    rank=entry["rank"],
                    edhrec_url=entry["url"],
                )
                self.db.add(commander)
            else:
                commander.rank = entry["rank"]
                commander.edhrec_url = entry["url"]
            # Flush per entry so a repeated name in one ranking hits the same row
            self.db.flush()
            commanders.append(commander)
        return commanders

    def get_decklist(
        self,
        commander: Commander,
        partner: Optional[Commander] = None,
    ) -> Decklist | None:
        query = select(Decklist).where(Decklist.commander_id == commander.id)
        if partner is None:
            query = query.where(Decklist.partner_id.is_(None))
        else:
            query = query.where(Decklist.partner_id == partner.id)
        return self.db.execute(query).scalar_one_or_none()

    def save_decklist(
        self,
        commander: Commander,
        contents: list[dict[str, Any]],
        partner: Optional[Commander] = None,
    ) -> Decklist:
        """
        Store `contents` as the decklist for (commander, partner).

        An existing decklist has its contents replaced, never appended to.
        The search vector is rebuilt from the new contents in the same flush.
        """
        decklist = self.get_decklist(commander, partner)
        if decklist is None:
            decklist = Decklist(commander=commander, partner=partner, contents=list(contents))
            self.db.add(decklist)
        else:
            decklist.contents = list(contents)

        search_text = decklist.search_text()
        if self._is_postgres:
            decklist.vector = func.to_tsvector("english", search_text)
        else:
            decklist.vector = search_text

        self.db.flush()
        logger.debug(
            "Decklist saved",
            commander=commander.name,
            cards=len(contents),
            decklist_id=decklist.id,
        )
        return decklist

    def search_decklists(self, query: str, limit: int = 20) -> Sequence[Decklist]:
        """
        Full-text search over decklist card and commander names.

        Ranked by `ts_rank` on PostgreSQL; plain substring match elsewhere.
        """
        if not query or not query.strip():
            return []

        if self._is_postgres:
            tsquery = func.plainto_tsquery("english", query)
            stmt = (
                select(Decklist)
                .where(Decklist.vector.op("@@")(tsquery))
                .order_by(func.ts_rank(Decklist.vector, tsquery).desc(), Decklist.id)
            )
        else:
            stmt = (
                select(Decklist)
                .where(Decklist.vector.ilike(f"%{query.strip()}%"))
                .order_by(Decklist.id)
            )
        return self.db.execute(stmt.limit(limit)).scalars().all()
