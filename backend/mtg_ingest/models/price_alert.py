"""PriceAlert model: significant price movements on inventory cards."""
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING, Optional

from sqlalchemy import Boolean, CheckConstraint, DateTime, ForeignKey, Index, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column, relationship, validates

from mtg_ingest.db.base import Base

if TYPE_CHECKING:
    from mtg_ingest.models.user import User


class AlertType(str, Enum):
    """Direction of the price movement."""

    PRICE_INCREASE = "price_increase"
    PRICE_DECREASE = "price_decrease"


class PriceAlert(Base):
    """Alert raised when a tracked card moves past a threshold."""

    __tablename__ = "price_alerts"

    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    card_id: Mapped[str] = mapped_column(String(64), nullable=False)
    alert_type: Mapped[str] = mapped_column(String(20), nullable=False)
    old_price_cents: Mapped[int] = mapped_column(nullable=False)
    new_price_cents: Mapped[int] = mapped_column(nullable=False)
    # Signed percent, two decimals
    percentage_change: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    treatment: Mapped[Optional[str]] = mapped_column(String(30), nullable=True)

    dismissed: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    dismissed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True
    )

    user: Mapped["User"] = relationship("User", back_populates="price_alerts")

    __table_args__ = (
        Index("ix_price_alerts_user_card_created", "user_id", "card_id", "created_at"),
        Index("ix_price_alerts_user_dismissed", "user_id", "dismissed"),
        CheckConstraint("old_price_cents >= 0", name="ck_price_alerts_old_price"),
        CheckConstraint("new_price_cents >= 0", name="ck_price_alerts_new_price"),
    )

    @validates("alert_type")
    def validate_alert_type(self, key, value):
        if isinstance(value, AlertType):
            value = value.value
        if value not in {t.value for t in AlertType}:
            raise ValueError(f"Unknown alert type: {value}")
        return value

    @validates("treatment")
    def validate_treatment(self, key, value):
        return value.lower() if value else value

    @property
    def is_price_increase(self) -> bool:
        return self.alert_type == AlertType.PRICE_INCREASE.value

    @property
    def is_price_decrease(self) -> bool:
        return self.alert_type == AlertType.PRICE_DECREASE.value

    def dismiss(self, now: Optional[datetime] = None) -> None:
        self.dismissed = True
        self.dismissed_at = now or datetime.now(timezone.utc)

    def __repr__(self) -> str:
        return f"<PriceAlert user={self.user_id} card={self.card_id} {self.alert_type} {self.percentage_change}%>"
