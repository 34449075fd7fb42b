"""
ScraperExecution model: one audit row per commander discovery run.

Child decklist jobs carrying the execution id add to `total_cards_processed`
after the discovery run itself has finished.
"""
from datetime import datetime
from enum import Enum
from typing import Optional

from sqlalchemy import CheckConstraint, DateTime, String, Text
from sqlalchemy.orm import Mapped, mapped_column, validates

from mtg_ingest.db.base import Base


class ExecutionStatus(str, Enum):
    SUCCESS = "success"
    PARTIAL_SUCCESS = "partial_success"
    FAILURE = "failure"


class ScraperExecution(Base):
    """Outcome and counters of a discovery run."""

    __tablename__ = "scraper_executions"

    started_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    finished_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    status: Mapped[str] = mapped_column(
        String(20),
        default=ExecutionStatus.SUCCESS.value,
        nullable=False,
        index=True
    )
    commanders_attempted: Mapped[int] = mapped_column(default=0, nullable=False)
    commanders_succeeded: Mapped[int] = mapped_column(default=0, nullable=False)
    commanders_failed: Mapped[int] = mapped_column(default=0, nullable=False)
    total_cards_processed: Mapped[int] = mapped_column(default=0, nullable=False)
    error_summary: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    __table_args__ = (
        CheckConstraint("commanders_attempted >= 0", name="ck_scraper_executions_attempted"),
        CheckConstraint("commanders_succeeded >= 0", name="ck_scraper_executions_succeeded"),
        CheckConstraint("commanders_failed >= 0", name="ck_scraper_executions_failed"),
        CheckConstraint("total_cards_processed >= 0", name="ck_scraper_executions_cards"),
    )

    @validates("status")
    def validate_status(self, key, value):
        if isinstance(value, ExecutionStatus):
            value = value.value
        if value not in {s.value for s in ExecutionStatus}:
            raise ValueError(f"Unknown execution status: {value}")
        return value

    @property
    def execution_time_seconds(self) -> Optional[float]:
        if self.finished_at is None or self.started_at is None:
            return None
        return (self.finished_at - self.started_at).total_seconds()

    @property
    def success_rate(self) -> float:
        """Succeeded over attempted as a percentage, 0 when nothing was attempted."""
        if not self.commanders_attempted:
            return 0.0
        return round(self.commanders_succeeded / self.commanders_attempted * 100, 2)

    def __repr__(self) -> str:
        return f"<ScraperExecution {self.id} {self.status} started={self.started_at}>"
