"""
Price alert repository.
"""
from datetime import datetime
from typing import Optional, Sequence

from sqlalchemy import select
from sqlalchemy.orm import Session

from mtg_ingest.models.price_alert import PriceAlert
from mtg_ingest.repositories.base import BaseRepository


class PriceAlertRepository(BaseRepository[PriceAlert]):
    def __init__(self, db: Session):
        super().__init__(PriceAlert, db)

    def for_user(
        self,
        user_id: int,
        *,
        active_only: bool = True,
        limit: int = 100,
    ) -> Sequence[PriceAlert]:
        """
        Alerts for a user, newest first.

        Args:
            user_id: User ID
            active_only: Exclude dismissed alerts
            limit: Maximum alerts to return
        """
        query = select(PriceAlert).where(PriceAlert.user_id == user_id)
        if active_only:
            query = query.where(PriceAlert.dismissed.is_(False))
        query = query.order_by(PriceAlert.created_at.desc(), PriceAlert.id.desc()).limit(limit)
        return self.db.execute(query).scalars().all()

    def recent_alert_exists(self, user_id: int, card_id: str, since: datetime) -> bool:
        """True when any alert for (user, card) was created at or after `since`."""
        query = (
            select(PriceAlert.id)
            .where(
                PriceAlert.user_id == user_id,
                PriceAlert.card_id == card_id,
                PriceAlert.created_at >= since,
            )
            .limit(1)
        )
        return self.db.execute(query).first() is not None

    def dismiss(
        self,
        alert_id: int,
        user_id: int,
        now: Optional[datetime] = None,
    ) -> PriceAlert | None:
        """Dismiss one of the user's alerts. Returns None if it isn't theirs."""
        alert = self.find_one_by(id=alert_id, user_id=user_id)
        if alert is None:
            return None
        alert.dismiss(now)
        self.db.flush()
        return alert
