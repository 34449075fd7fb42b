"""
Price alert detection.

Runs after each batch price update: compares the two most recent snapshots
of every card held in an inventory and records an alert for large moves.
"""
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Callable, Optional

import structlog
from sqlalchemy.orm import Session

from mtg_ingest.core.config import settings
from mtg_ingest.models.price_alert import AlertType, PriceAlert
from mtg_ingest.repositories.alert_repo import PriceAlertRepository
from mtg_ingest.repositories.collection_repo import CollectionRepository, Holding
from mtg_ingest.repositories.price_repo import PriceRepository

logger = structlog.get_logger(__name__)


def percentage_change(old_cents: int, new_cents: int) -> float:
    """Signed percent change from old to new, rounded to 2 decimals."""
    return round((new_cents - old_cents) / old_cents * 100, 2)


class PriceAlertDetector:
    """
    Creates PriceAlert rows for significant inventory price movements.

    A holding alerts when its treatment price moved by at least the increase
    threshold (+20%) or at most the decrease threshold (-30%) between the
    latest two snapshots, unless the user already got an alert for that card
    within the dedup window. Wishlist items never alert.
    """

    def __init__(
        self,
        db: Session,
        now: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
        increase_threshold: Optional[float] = None,
        decrease_threshold: Optional[float] = None,
        dedup_window: Optional[timedelta] = None,
    ):
        self.db = db
        self._now = now
        self.increase_threshold = (
            settings.price_alert_increase_threshold if increase_threshold is None else increase_threshold
        )
        self.decrease_threshold = (
            settings.price_alert_decrease_threshold if decrease_threshold is None else decrease_threshold
        )
        self.dedup_window = dedup_window or timedelta(hours=settings.price_alert_dedup_hours)
        self.collections = CollectionRepository(db)
        self.prices = PriceRepository(db)
        self.alerts = PriceAlertRepository(db)

    def meets_threshold(self, change: float) -> bool:
        return change >= self.increase_threshold or change <= self.decrease_threshold

    def detect_price_changes(self) -> list[PriceAlert]:
        """
        Check every inventory holding and create alerts.

        Alerts are flushed, not committed; the caller owns the transaction.

        Returns:
            The alerts created in this pass
        """
        now = self._now()
        created = []
        for holding in self.collections.inventory_holdings():
            alert = self._check_holding(holding, now)
            if alert is not None:
                created.append(alert)

        logger.info("Price change detection finished", alerts_created=len(created))
        return created

    def _check_holding(self, holding: Holding, now: datetime) -> Optional[PriceAlert]:
        snapshots = self.prices.latest_two(holding.card_id)
        if len(snapshots) < 2:
            return None
        latest, previous = snapshots

        old_price = previous.price_for_treatment(holding.treatment)
        new_price = latest.price_for_treatment(holding.treatment)
        if old_price is None or new_price is None or old_price <= 0:
            return None

        change = percentage_change(old_price, new_price)
        if not self.meets_threshold(change):
            return None

        if self.alerts.recent_alert_exists(holding.user_id, holding.card_id, now - self.dedup_window):
            logger.debug(
                "Skipping duplicate price alert",
                user_id=holding.user_id,
                card_id=holding.card_id,
            )
            return None

        alert = PriceAlert(
            user_id=holding.user_id,
            card_id=holding.card_id,
            alert_type=AlertType.PRICE_INCREASE if change > 0 else AlertType.PRICE_DECREASE,
            old_price_cents=old_price,
            new_price_cents=new_price,
            percentage_change=Decimal(str(change)),
            treatment=holding.treatment,
            created_at=now,
        )
        self.db.add(alert)
        # Visible to the dedup check for the holding's other treatments
        self.db.flush()

        logger.info(
            "Price alert created",
            user_id=holding.user_id,
            card_id=holding.card_id,
            alert_type=alert.alert_type,
            percentage_change=change,
        )
        return alert
